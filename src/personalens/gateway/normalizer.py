"""Turn whatever the model said into an ``AnalysisReport``.

``normalize`` never raises. Text that is not a JSON object with an optional
``issues`` list degrades to a single high-severity parsing issue instead.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable

from pydantic import ValidationError

from personalens.models import AnalysisReport, Issue, Severity, utc_timestamp
from personalens.personas import PersonaId

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Analysis completed"
SNIPPET_CHARS = 200

PARSE_ERROR_TYPE = "JSON Parsing Error"
PARSE_ERROR_SUGGESTION = (
    "This may be due to a model API error, prompt issues, or response truncation. "
    "Try running the test again, or check your API key and quota."
)
PARSE_ERROR_SUMMARY = (
    "There was an error processing the accessibility analysis - "
    "the AI response was not in the expected JSON format."
)


def strip_code_fence(raw_text: str) -> str:
    """Remove one surrounding ```json or bare ``` fence."""
    text = raw_text.strip()
    if text.startswith("```json") and text.endswith("```") and len(text) >= 10:
        return text[7:-3].strip()
    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        return text[3:-3].strip()
    return text


class ResponseNormalizer:
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock

    def _timestamp(self) -> str:
        return utc_timestamp(self._clock() if self._clock else None)

    def normalize(self, raw_text: str | None, persona: PersonaId) -> AnalysisReport:
        cleaned = strip_code_fence(raw_text or "")
        try:
            parsed = json.loads(cleaned)
        except (ValueError, RecursionError) as exc:
            logger.warning("Failed to parse model response as JSON: %s", exc)
            logger.debug("Raw model content: %s", raw_text)
            return self._fallback(cleaned, persona)

        raw_issues = parsed.get("issues") if isinstance(parsed, dict) else None
        if not isinstance(parsed, dict) or not isinstance(raw_issues, (list, type(None))):
            logger.warning("Model response is JSON but not an analysis object")
            return self._fallback(cleaned, persona)

        summary = parsed.get("summary")
        return AnalysisReport(
            persona=persona,
            issues=[issue for issue in map(_coerce_issue, raw_issues or []) if issue is not None],
            summary=summary if isinstance(summary, str) and summary else DEFAULT_SUMMARY,
            timestamp=self._timestamp(),
        )

    def _fallback(self, cleaned: str, persona: PersonaId) -> AnalysisReport:
        snippet = cleaned[:SNIPPET_CHARS] + "..." if len(cleaned) > SNIPPET_CHARS else cleaned
        return AnalysisReport(
            persona=persona,
            issues=[
                Issue(
                    type=PARSE_ERROR_TYPE,
                    description=(
                        "Could not parse the accessibility analysis results. "
                        f'Raw response snippet: "{snippet}"'
                    ),
                    severity=Severity.HIGH,
                    suggestion=PARSE_ERROR_SUGGESTION,
                )
            ],
            summary=PARSE_ERROR_SUMMARY,
            timestamp=self._timestamp(),
        )


def _coerce_issue(raw: object) -> Issue | None:
    if not isinstance(raw, dict):
        return None
    fields = {
        name: raw.get(name) if isinstance(raw.get(name), str) else ""
        for name in ("type", "description", "suggestion")
    }
    severity = raw.get("severity")
    try:
        return Issue(**fields, severity=severity)
    except ValidationError:
        return Issue(**fields, severity=Severity.MEDIUM)
