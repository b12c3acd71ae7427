"""The closed set of accessibility personas and how each one is described to the model."""

from __future__ import annotations

from enum import Enum


class PersonaId(str, Enum):
    COLORBLIND = "colorblind"
    NON_NATIVE = "nonNative"
    ELDERLY = "elderly"
    MOTOR_IMPAIRED = "motorImpaired"
    LOW_VISION = "lowVision"
    COGNITIVE_IMPAIRED = "cognitiveImpaired"


# One framing sentence per persona. Adding a persona means adding a row here.
PERSONA_DESCRIPTIONS: dict[PersonaId, str] = {
    PersonaId.COLORBLIND: (
        "a user with deuteranopia (red-green colorblindness). Focus on color contrast, "
        "use of color alone to convey information, and alternative visual cues"
    ),
    PersonaId.NON_NATIVE: (
        "a non-native English speaker with B1 level proficiency. Focus on language "
        "complexity, clarity of instructions, cultural references, and comprehensibility"
    ),
    PersonaId.ELDERLY: (
        "an elderly user (65+) who may have age-related vision, hearing, or motor "
        "difficulties. Focus on font size, button size, clear navigation, simple "
        "language, and avoiding rapid animations"
    ),
    PersonaId.MOTOR_IMPAIRED: (
        "a user with limited fine motor control who may use assistive devices like "
        "head pointers or voice control. Focus on large click targets, keyboard "
        "navigation, avoiding hover-only interactions, and sufficient spacing "
        "between elements"
    ),
    PersonaId.LOW_VISION: (
        "a user with low vision who relies on screen readers and high contrast. Focus "
        "on semantic HTML, proper heading structure, alt text for images, sufficient "
        "color contrast, and compatibility with assistive technologies"
    ),
    PersonaId.COGNITIVE_IMPAIRED: (
        "a user with cognitive impairments or learning disabilities. Focus on simple "
        "language, clear instructions, consistent navigation, minimal cognitive load, "
        "error prevention, and clear feedback"
    ),
}


def describe(persona: PersonaId) -> str:
    return PERSONA_DESCRIPTIONS[PersonaId(persona)]


def list_personas() -> list[str]:
    return [p.value for p in PersonaId]
