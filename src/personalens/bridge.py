"""Make sure a tab hosts a live content script before extraction is attempted.

The handshake is a small state machine::

    UNKNOWN -> REJECTED                       (restricted URL, no probe)
    UNKNOWN -> PROBING -> READY               (script already present)
    UNKNOWN -> PROBING -> INJECTING -> VERIFYING -> READY | FAILED

At most one injection is attempted per ``ensure_ready`` call. A failed
re-probe after injection is terminal.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from personalens.errors import PersonaLensError
from personalens.messaging import ChannelError, CommandFailedError, PingCommand

if TYPE_CHECKING:
    from personalens.browser import Tab

logger = logging.getLogger(__name__)

SETTLE_DELAY = 0.1

INTERNAL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "moz-extension://",
)
EXTENSION_STORE_MARKERS = (
    "chrome.google.com/webstore",
    "addons.mozilla.org",
    "microsoftedge.microsoft.com",
)


class BridgeState(str, Enum):
    UNKNOWN = "unknown"
    REJECTED = "rejected"
    PROBING = "probing"
    INJECTING = "injecting"
    VERIFYING = "verifying"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATES = frozenset({BridgeState.REJECTED, BridgeState.READY, BridgeState.FAILED})


class RestrictionKind(str, Enum):
    INTERNAL_PAGE = "internal_page"
    EXTENSION_STORE = "extension_store"


RESTRICTION_MESSAGES = {
    RestrictionKind.INTERNAL_PAGE: (
        "Cannot run tests on browser internal pages. "
        "Please navigate to a regular website and try again."
    ),
    RestrictionKind.EXTENSION_STORE: (
        "Cannot run tests on browser extension stores. "
        "Please navigate to a regular website and try again."
    ),
}


class RestrictedPageError(PersonaLensError):
    """The page is one content scripts can never run on. Not retryable."""

    def __init__(self, url: str, kind: RestrictionKind) -> None:
        super().__init__(RESTRICTION_MESSAGES[kind])
        self.url = url
        self.kind = kind


class InjectionFailedError(PersonaLensError):
    """Injection or the verifying probe failed. Not retried again."""


class TabMessenger(Protocol):
    async def send_to_tab(self, tab_id: int, command: Any, *, timeout: float | None = None) -> Any: ...


class ScriptInjector(Protocol):
    async def inject_content_script(self, tab_id: int) -> None: ...


def classify_url(url: str) -> RestrictionKind | None:
    """Return why ``url`` is off-limits, or None for a regular page."""
    if url.startswith(INTERNAL_PREFIXES):
        return RestrictionKind.INTERNAL_PAGE
    if any(marker in url for marker in EXTENSION_STORE_MARKERS):
        return RestrictionKind.EXTENSION_STORE
    return None


@dataclass
class BridgeSession:
    """State of one handshake attempt against one tab."""

    tab_id: int
    url: str
    state: BridgeState = BridgeState.UNKNOWN
    history: list[BridgeState] = field(default_factory=lambda: [BridgeState.UNKNOWN])
    probes: int = 0
    injections: int = 0
    error: PersonaLensError | None = None

    def advance(self, state: BridgeState) -> None:
        logger.debug("Tab %d bridge %s -> %s", self.tab_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)


class ContextBridge:
    """Runs the probe / inject / verify handshake for a tab."""

    def __init__(
        self,
        messenger: TabMessenger,
        injector: ScriptInjector,
        *,
        settle_delay: float = SETTLE_DELAY,
        probe_timeout: float | None = None,
    ) -> None:
        self._messenger = messenger
        self._injector = injector
        self.settle_delay = settle_delay
        self.probe_timeout = probe_timeout

    async def ensure_ready(self, tab: Tab) -> BridgeSession:
        session = BridgeSession(tab_id=tab.id, url=tab.url)
        while session.state not in TERMINAL_STATES:
            await self._step(session)
        if session.error is not None:
            raise session.error
        return session

    async def _step(self, session: BridgeSession) -> None:
        state = session.state
        if state is BridgeState.UNKNOWN:
            kind = classify_url(session.url)
            if kind is not None:
                logger.info("Refusing restricted page %s (%s)", session.url, kind.value)
                session.error = RestrictedPageError(session.url, kind)
                session.advance(BridgeState.REJECTED)
            else:
                session.advance(BridgeState.PROBING)

        elif state is BridgeState.PROBING:
            try:
                await self._probe(session)
            except (ChannelError, CommandFailedError) as exc:
                logger.info("Content script not found in tab %d (%s), injecting", session.tab_id, exc)
                session.advance(BridgeState.INJECTING)
            else:
                session.advance(BridgeState.READY)

        elif state is BridgeState.INJECTING:
            session.injections += 1
            try:
                await self._injector.inject_content_script(session.tab_id)
            except Exception as exc:
                self._fail(session, exc)
                return
            await asyncio.sleep(self.settle_delay)
            session.advance(BridgeState.VERIFYING)

        elif state is BridgeState.VERIFYING:
            try:
                await self._probe(session)
            except (ChannelError, CommandFailedError) as exc:
                self._fail(session, exc)
            else:
                session.advance(BridgeState.READY)

    async def _probe(self, session: BridgeSession) -> None:
        session.probes += 1
        reply = await self._messenger.send_to_tab(
            session.tab_id, PingCommand(), timeout=self.probe_timeout
        )
        if not isinstance(reply, dict) or reply.get("status") != "ready":
            raise CommandFailedError(f"Unexpected ping reply: {reply!r}")

    def _fail(self, session: BridgeSession, cause: Exception) -> None:
        logger.error("Content script injection failed for tab %d: %s", session.tab_id, cause)
        error = InjectionFailedError(
            f"Failed to load content script: {str(cause) or 'Unknown injection error'}. "
            "Please refresh the page and try again."
        )
        error.__cause__ = cause
        session.error = error
        session.advance(BridgeState.FAILED)
