"""Tests for personalens.bridge."""

from __future__ import annotations

import asyncio

import pytest

from personalens.bridge import (
    BridgeState,
    ContextBridge,
    InjectionFailedError,
    RestrictedPageError,
    RestrictionKind,
    classify_url,
)
from personalens.browser import Browser, ScriptingError, Tab
from personalens.messaging import NoReceiverError

from .conftest import SAMPLE_HTML


class FakeMessenger:
    """Answers pings only once ``installed`` is set."""

    def __init__(self, installed: bool = False) -> None:
        self.installed = installed
        self.calls = 0

    async def send_to_tab(self, tab_id, command, *, timeout=None):
        self.calls += 1
        if not self.installed:
            raise NoReceiverError("receiving end does not exist")
        return {"status": "ready"}


class FakeInjector:
    def __init__(self, messenger: FakeMessenger | None = None, *, fail: bool = False) -> None:
        self.messenger = messenger
        self.fail = fail
        self.calls = 0

    async def inject_content_script(self, tab_id):
        self.calls += 1
        if self.fail:
            raise ScriptingError("Cannot access contents of the page")
        if self.messenger is not None:
            self.messenger.installed = True


def ensure(bridge: ContextBridge, url: str = "https://example.com/"):
    return asyncio.run(bridge.ensure_ready(Tab(id=1, url=url)))


class TestClassifyUrl:
    @pytest.mark.parametrize("url", [
        "chrome://settings",
        "chrome-extension://abc/popup.html",
        "edge://flags",
        "about:blank",
        "moz-extension://abc/page.html",
    ])
    def test_internal_pages(self, url):
        assert classify_url(url) is RestrictionKind.INTERNAL_PAGE

    @pytest.mark.parametrize("url", [
        "https://chrome.google.com/webstore/detail/x",
        "https://addons.mozilla.org/en-US/firefox/",
        "https://microsoftedge.microsoft.com/addons",
    ])
    def test_extension_stores(self, url):
        assert classify_url(url) is RestrictionKind.EXTENSION_STORE

    def test_regular_page(self):
        assert classify_url("https://example.com/about") is None


class TestContextBridge:
    def test_internal_page_rejected_without_probe(self):
        messenger = FakeMessenger(installed=True)
        injector = FakeInjector()
        bridge = ContextBridge(messenger, injector, settle_delay=0)

        with pytest.raises(RestrictedPageError, match="browser internal pages") as exc_info:
            ensure(bridge, "chrome://extensions")

        assert exc_info.value.kind is RestrictionKind.INTERNAL_PAGE
        assert messenger.calls == 0
        assert injector.calls == 0

    def test_store_page_rejected_with_store_message(self):
        messenger = FakeMessenger(installed=True)
        bridge = ContextBridge(messenger, FakeInjector(), settle_delay=0)
        with pytest.raises(RestrictedPageError, match="extension stores"):
            ensure(bridge, "https://addons.mozilla.org/addon/x")
        assert messenger.calls == 0

    def test_ready_on_first_probe(self):
        messenger = FakeMessenger(installed=True)
        injector = FakeInjector()
        session = ensure(ContextBridge(messenger, injector, settle_delay=0))

        assert session.state is BridgeState.READY
        assert session.history == [BridgeState.UNKNOWN, BridgeState.PROBING, BridgeState.READY]
        assert injector.calls == 0

    def test_injects_then_verifies(self):
        messenger = FakeMessenger()
        injector = FakeInjector(messenger)
        session = ensure(ContextBridge(messenger, injector, settle_delay=0))

        assert session.state is BridgeState.READY
        assert session.history == [
            BridgeState.UNKNOWN,
            BridgeState.PROBING,
            BridgeState.INJECTING,
            BridgeState.VERIFYING,
            BridgeState.READY,
        ]
        assert session.probes == 2
        assert session.injections == 1

    def test_unresponsive_page_gets_one_injection_and_one_reprobe(self):
        messenger = FakeMessenger()
        injector = FakeInjector()  # injection "succeeds" but nothing starts listening
        bridge = ContextBridge(messenger, injector, settle_delay=0)

        with pytest.raises(InjectionFailedError, match="Failed to load content script") as exc_info:
            ensure(bridge)

        assert injector.calls == 1
        assert messenger.calls == 2
        assert isinstance(exc_info.value.__cause__, NoReceiverError)

    def test_injection_error_is_terminal(self):
        messenger = FakeMessenger()
        injector = FakeInjector(fail=True)
        bridge = ContextBridge(messenger, injector, settle_delay=0)

        with pytest.raises(InjectionFailedError, match="Cannot access contents") as exc_info:
            ensure(bridge)

        assert injector.calls == 1
        assert messenger.calls == 1
        assert isinstance(exc_info.value.__cause__, ScriptingError)

    def test_unexpected_ping_reply_counts_as_absent(self):
        class OddMessenger(FakeMessenger):
            async def send_to_tab(self, tab_id, command, *, timeout=None):
                self.calls += 1
                return {"status": "loading"}

        messenger = OddMessenger()
        with pytest.raises(InjectionFailedError):
            ensure(ContextBridge(messenger, FakeInjector(), settle_delay=0))
        assert messenger.calls == 2


class TestBridgeWithBrowser:
    def test_injects_into_real_page(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML)
        assert browser.page(tab.id).has_content_script is False

        session = asyncio.run(ContextBridge(browser, browser, settle_delay=0).ensure_ready(tab))

        assert session.state is BridgeState.READY
        assert session.injections == 1
        assert browser.page(tab.id).has_content_script is True

    def test_preloaded_script_skips_injection(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML, content_script=True)
        session = asyncio.run(ContextBridge(browser, browser, settle_delay=0).ensure_ready(tab))
        assert session.injections == 0

    def test_unscriptable_page_fails(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML, scriptable=False)
        with pytest.raises(InjectionFailedError):
            asyncio.run(ContextBridge(browser, browser, settle_delay=0).ensure_ready(tab))
