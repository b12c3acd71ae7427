"""Drive one analysis run from the UI context.

Phases run strictly in order, with no parallelism::

    resolve tab -> bridge ready -> capture signals -> generate report

Each completed phase emits a ``Milestone``. The first failure aborts the run
with an ``AnalysisError`` naming the phase; there are no partial reports.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from pydantic import ValidationError

from personalens.bridge import ContextBridge
from personalens.browser import Browser
from personalens.config import Settings
from personalens.errors import PersonaLensError
from personalens.messaging import AnalyzePageCommand, GenerateReportCommand, MessageChannel
from personalens.models import AnalysisReport, PageSignals
from personalens.personas import PersonaId

logger = logging.getLogger(__name__)


class Milestone(str, Enum):
    TAB_RESOLVED = "TabResolved"
    BRIDGE_READY = "BridgeReady"
    SIGNALS_CAPTURED = "SignalsCaptured"
    REPORT_RECEIVED = "ReportReceived"


MILESTONE_ORDER = list(Milestone)


def progress_for(milestone: Milestone) -> float:
    """Fraction of the run completed once ``milestone`` has been reached."""
    return (MILESTONE_ORDER.index(milestone) + 1) / len(MILESTONE_ORDER)


class Phase(str, Enum):
    RESOLVE_TAB = "resolving the active tab"
    CONNECT = "connecting to the page"
    CAPTURE = "capturing page signals"
    REPORT = "generating the report"


class AlreadyRunningError(PersonaLensError):
    """A run is already in flight on this orchestrator."""


class AnalysisError(PersonaLensError):
    """A run failed; ``phase`` says where and ``cause`` is the originating error."""

    def __init__(self, phase: Phase, cause: Exception) -> None:
        super().__init__(f"Test failed while {phase.value}: {str(cause) or type(cause).__name__}")
        self.phase = phase
        self.cause = cause


class ReportOrchestrator:
    """Runs the analysis pipeline for the active tab, one run at a time."""

    def __init__(
        self,
        browser: Browser,
        background: MessageChannel,
        *,
        bridge: ContextBridge | None = None,
        settings: Settings | None = None,
        on_milestone: Callable[[Milestone], None] | None = None,
    ) -> None:
        self.settings = settings or browser.settings
        self.browser = browser
        self.background = background
        self.bridge = bridge or ContextBridge(
            browser,
            browser,
            settle_delay=self.settings.settle_delay,
            probe_timeout=self.settings.message_timeout,
        )
        self.on_milestone = on_milestone
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _reached(self, milestone: Milestone) -> None:
        logger.info("Milestone %s", milestone.value)
        if self.on_milestone is not None:
            self.on_milestone(milestone)

    async def run(self, persona: PersonaId, credential: str) -> AnalysisReport:
        if self._running:
            raise AlreadyRunningError("An analysis is already running; wait for it to finish")
        self._running = True
        try:
            return await self._run(PersonaId(persona), credential)
        finally:
            self._running = False

    async def _run(self, persona: PersonaId, credential: str) -> AnalysisReport:
        phase = Phase.RESOLVE_TAB
        try:
            tab = self.browser.active_tab()
            self._reached(Milestone.TAB_RESOLVED)

            phase = Phase.CONNECT
            await self.bridge.ensure_ready(tab)
            self._reached(Milestone.BRIDGE_READY)

            phase = Phase.CAPTURE
            payload = await self.browser.send_to_tab(
                tab.id, AnalyzePageCommand(persona=persona), timeout=self.settings.message_timeout
            )
            signals = PageSignals.model_validate(payload)
            self._reached(Milestone.SIGNALS_CAPTURED)

            phase = Phase.REPORT
            reply = await self.background.send(
                GenerateReportCommand(page_data=signals, persona=persona, api_key=credential)
            )
            report = AnalysisReport.model_validate(reply)
            self._reached(Milestone.REPORT_RECEIVED)
        except (PersonaLensError, ValidationError) as exc:
            logger.error("Analysis failed while %s: %s", phase.value, exc)
            raise AnalysisError(phase, exc) from exc

        logger.info("Report for %s: %d issues", persona.value, len(report.issues))
        return report
