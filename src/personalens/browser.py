"""Tabs, page contexts and content-script installation.

Each tab owns a ``PageContext``: the loaded document plus the channel through
which other contexts talk to it. A page context answers nothing until a
content script has been installed on its channel, either at load time or by
``Browser.inject_content_script``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from personalens.config import Settings
from personalens.errors import PersonaLensError
from personalens.extractor import PageSignalExtractor
from personalens.messaging import AnalyzePageCommand, MessageChannel, PingCommand

logger = logging.getLogger(__name__)

USER_AGENT = "PersonaLens/0.1 (+accessibility review)"


class PageLoadError(PersonaLensError):
    """Raised when a page cannot be fetched after all retries."""


class NoActiveTabError(PersonaLensError):
    """Raised when there is no active tab to analyze."""


class ScriptingError(PersonaLensError):
    """Raised when the browser refuses to run scripts in a page."""


@dataclass
class Tab:
    id: int
    url: str
    active: bool = False


class ContentScript:
    """The listener that hosts a ``PageSignalExtractor`` inside a page context."""

    def __init__(self, extractor: PageSignalExtractor) -> None:
        self.extractor = extractor

    def install(self, channel: MessageChannel) -> None:
        channel.listen(self.handle)

    def handle(self, command: Any) -> dict:
        if isinstance(command, PingCommand):
            return {"status": self.extractor.ping()}
        if isinstance(command, AnalyzePageCommand):
            return self.extractor.capture().model_dump(by_alias=True)
        raise ValueError(f"Unsupported action: {command.action}")


class PageContext:
    def __init__(self, url: str, html: str, *, scriptable: bool = True, timeout: float = 10.0) -> None:
        self.url = url
        self.html = html
        self.scriptable = scriptable
        self.channel = MessageChannel(f"page:{url}", timeout=timeout)

    @property
    def has_content_script(self) -> bool:
        return self.channel.has_listener

    def install_content_script(self) -> None:
        if not self.scriptable:
            raise ScriptingError(f"Cannot access contents of the page at {self.url}")
        ContentScript(PageSignalExtractor(self.url, self.html)).install(self.channel)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.HTTPStatusError)),
    reraise=True,
)
def _get(url: str, timeout: float) -> httpx.Response:
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        response = client.get(url, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
        return response


def fetch_page(url: str, settings: Settings) -> str:
    """Load the HTML of ``url``, retrying transient failures."""
    try:
        response = _get(url, settings.page_timeout)
    except httpx.HTTPError as exc:
        logger.error("Page load failed for %s: %s", url, exc)
        raise PageLoadError(f"Failed to load {url}: {exc}") from exc
    logger.info("Loaded %d bytes from %s", len(response.text), url)
    return response.text


class Browser:
    """Holds tabs and routes messages and injections to their page contexts."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._tabs: dict[int, Tab] = {}
        self._pages: dict[int, PageContext] = {}
        self._ids = itertools.count(1)

    def open_tab(
        self,
        url: str,
        html: str = "",
        *,
        active: bool = True,
        content_script: bool = False,
        scriptable: bool = True,
    ) -> Tab:
        tab = Tab(id=next(self._ids), url=url, active=active)
        if active:
            for other in self._tabs.values():
                other.active = False
        page = PageContext(url, html, scriptable=scriptable, timeout=self.settings.message_timeout)
        if content_script and scriptable:
            page.install_content_script()
        self._tabs[tab.id] = tab
        self._pages[tab.id] = page
        logger.debug("Opened tab %d at %s", tab.id, url)
        return tab

    def open(self, url: str, **kwargs: Any) -> Tab:
        """Fetch ``url`` over HTTP and open it in a new active tab."""
        return self.open_tab(url, fetch_page(url, self.settings), **kwargs)

    def page(self, tab_id: int) -> PageContext:
        try:
            return self._pages[tab_id]
        except KeyError:
            raise NoActiveTabError(f"No tab with id {tab_id}") from None

    def active_tab(self) -> Tab:
        for tab in self._tabs.values():
            if tab.active:
                return tab
        raise NoActiveTabError("No active tab to analyze")

    async def send_to_tab(self, tab_id: int, command: Any, *, timeout: float | None = None) -> Any:
        return await self.page(tab_id).channel.send(command, timeout=timeout)

    async def inject_content_script(self, tab_id: int) -> None:
        page = self.page(tab_id)
        page.install_content_script()
        logger.info("Injected content script into tab %d", tab_id)
