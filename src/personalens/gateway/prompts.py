"""Deterministic, persona-driven prompt construction."""

from __future__ import annotations

import json

from personalens.models import PageSignals
from personalens.personas import PersonaId, describe

SYSTEM_PROMPT = (
    "You are an accessibility expert analyzing web pages for different user personas. "
    "Provide specific, actionable feedback in JSON format."
)

PROMPT_TEXT_SAMPLES = 20
PROMPT_COLOR_SAMPLES = 10
PROMPT_IMAGE_SAMPLES = 10

USER_PROMPT_TEMPLATE = """\
Analyze this web page for accessibility and usability issues from the perspective of {persona}.

Page Data:
- URL: {url}
- Title: {title}
- Text Content: {text}
- Color Information: {colors}
- Images: {images}
- Forms: {forms}
- Navigation: {navigation}
- Heading Structure: {headings}

Please analyze this page and return your findings in the following JSON format:
{{
  "issues": [
    {{
      "type": "Issue Category",
      "description": "Specific description of the problem",
      "severity": "high|medium|low",
      "suggestion": "Specific actionable recommendation"
    }}
  ],
  "summary": "Brief overall assessment of the page's accessibility for this persona"
}}

Focus on issues most relevant to {persona}.
"""


def _compact(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def build_prompt(signals: PageSignals, persona: PersonaId) -> str:
    """Embed the persona framing and truncated signal slices into the user prompt."""
    data = signals.model_dump(by_alias=True)
    return USER_PROMPT_TEMPLATE.format(
        persona=describe(persona),
        url=signals.url,
        title=signals.title,
        text=_compact(data["textSamples"][:PROMPT_TEXT_SAMPLES]),
        colors=_compact(data["colorSamples"][:PROMPT_COLOR_SAMPLES]),
        images=_compact(data["imageSamples"][:PROMPT_IMAGE_SAMPLES]),
        forms=_compact(data["formSummary"]),
        navigation=_compact(data["navSummary"]),
        headings=_compact(data["headingOutline"]),
    )


def build_messages(signals: PageSignals, persona: PersonaId) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(signals, persona)},
    ]
