"""Tests for personalens.models module."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from personalens.models import (
    MAX_TEXT_SAMPLES,
    AnalysisReport,
    Heading,
    Issue,
    PageSignals,
    Severity,
    utc_timestamp,
)
from personalens.personas import PersonaId

from .conftest import SAMPLE_SIGNALS


class TestPageSignals:
    def test_accepts_camel_case(self):
        signals = PageSignals.model_validate(SAMPLE_SIGNALS)
        assert signals.image_samples[0].has_alt is False
        assert signals.form_summary.inputs[0].has_label is False
        assert signals.nav_summary.nav_texts == ["Home About"]

    def test_dumps_camel_case(self):
        data = PageSignals.model_validate(SAMPLE_SIGNALS).model_dump(by_alias=True)
        assert set(data) == {
            "url", "title", "textSamples", "colorSamples", "imageSamples",
            "formSummary", "navSummary", "headingOutline",
        }

    def test_text_samples_capped(self):
        with pytest.raises(ValidationError):
            PageSignals(url="https://example.com", text_samples=["x"] * (MAX_TEXT_SAMPLES + 1))

    def test_frozen(self, signals):
        with pytest.raises(ValidationError):
            signals.title = "changed"

    def test_heading_level_range(self):
        with pytest.raises(ValidationError):
            Heading(level=7, text="too deep")


class TestIssue:
    def test_severity_case_insensitive(self):
        assert Issue(severity="High").severity is Severity.HIGH
        assert Issue(severity=" low ").severity is Severity.LOW

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValidationError):
            Issue(severity="critical")

    def test_defaults(self):
        issue = Issue()
        assert issue.type == ""
        assert issue.severity is Severity.MEDIUM


class TestAnalysisReport:
    def test_timestamp_default(self):
        report = AnalysisReport(persona=PersonaId.ELDERLY)
        assert report.timestamp.endswith("Z")
        assert report.issues == []

    def test_json_dump(self):
        report = AnalysisReport(
            persona=PersonaId.NON_NATIVE,
            issues=[Issue(type="Jargon", severity="low")],
            summary="ok",
            timestamp="2024-05-01T12:00:00.000Z",
        )
        data = report.model_dump(by_alias=True, mode="json")
        assert data["persona"] == "nonNative"
        assert data["issues"][0]["severity"] == "low"


def test_utc_timestamp_format():
    now = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    assert utc_timestamp(now) == "2024-05-01T12:00:00.123Z"
