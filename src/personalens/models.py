"""Pydantic models for the analysis pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from personalens.personas import PersonaId

MAX_TEXT_SAMPLES = 50
MAX_COLOR_SAMPLES = 20
MAX_IMAGE_SAMPLES = 20


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenWireModel(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ColorSample(FrozenWireModel):
    element: str
    color: str
    background: str


class ImageSample(FrozenWireModel):
    src: str
    alt: str = ""
    has_alt: bool = False


class FormInput(FrozenWireModel):
    type: str
    has_label: bool = False
    placeholder: str = ""
    required: bool = False


class FormSummary(FrozenWireModel):
    form_count: int = 0
    inputs: list[FormInput] = Field(default_factory=list)


class NavSummary(FrozenWireModel):
    nav_count: int = 0
    link_count: int = 0
    nav_texts: list[str] = Field(default_factory=list)


class Heading(FrozenWireModel):
    level: int = Field(ge=1, le=6)
    text: str = ""


class PageSignals(FrozenWireModel):
    """Capped excerpt of a page, captured once per request inside the page context."""

    url: str
    title: str = ""
    text_samples: list[str] = Field(default_factory=list, max_length=MAX_TEXT_SAMPLES)
    color_samples: list[ColorSample] = Field(default_factory=list, max_length=MAX_COLOR_SAMPLES)
    image_samples: list[ImageSample] = Field(default_factory=list, max_length=MAX_IMAGE_SAMPLES)
    form_summary: FormSummary = Field(default_factory=FormSummary)
    nav_summary: NavSummary = Field(default_factory=NavSummary)
    heading_outline: list[Heading] = Field(default_factory=list)


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Issue(WireModel):
    type: str = ""
    description: str = ""
    severity: Severity = Severity.MEDIUM
    suggestion: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class AnalysisReport(WireModel):
    """What the pipeline hands back for every run, well-formed even when the model was not."""

    persona: PersonaId
    issues: list[Issue] = Field(default_factory=list)
    summary: str = ""
    timestamp: str = Field(default_factory=utc_timestamp)


class AnalysisRequest(WireModel):
    persona: PersonaId
    signals: PageSignals
    credential: str = ""
