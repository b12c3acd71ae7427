"""PersonaLens - persona-driven accessibility critiques of web pages."""

__version__ = "0.1.0"

from personalens.models import AnalysisReport, Issue, PageSignals, Severity
from personalens.orchestrator import Milestone, ReportOrchestrator
from personalens.personas import PersonaId

__all__ = [
    "AnalysisReport",
    "Issue",
    "Milestone",
    "PageSignals",
    "PersonaId",
    "ReportOrchestrator",
    "Severity",
]
