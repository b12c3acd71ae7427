"""Tests for personalens.browser."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import httpx
import pytest

from personalens.browser import (
    Browser,
    NoActiveTabError,
    PageLoadError,
    ScriptingError,
    fetch_page,
)
from personalens.messaging import AnalyzePageCommand, NoReceiverError, PingCommand
from personalens.personas import PersonaId

from .conftest import SAMPLE_HTML


def mock_client(response=None, side_effect=None):
    client = MagicMock()
    client.__enter__ = MagicMock(return_value=client)
    client.__exit__ = MagicMock(return_value=False)
    client.get = MagicMock(return_value=response, side_effect=side_effect)
    return client


class TestFetchPage:
    def test_returns_body(self, settings):
        response = MagicMock()
        response.text = "<html>Hello</html>"
        response.raise_for_status = MagicMock()
        client = mock_client(response)

        with patch("personalens.browser.httpx.Client", return_value=client):
            assert fetch_page("https://example.com", settings) == "<html>Hello</html>"

        headers = client.get.call_args.kwargs["headers"]
        assert headers["User-Agent"].startswith("PersonaLens/")

    def test_non_retryable_error_wrapped(self, settings):
        client = mock_client(side_effect=httpx.ConnectError("Connection refused"))
        with patch("personalens.browser.httpx.Client", return_value=client), \
             pytest.raises(PageLoadError, match="Failed to load"):
            fetch_page("https://example.com", settings)
        assert client.get.call_count == 1


class TestBrowser:
    def test_active_tab_switches(self, settings):
        browser = Browser(settings)
        first = browser.open_tab("https://a.example.com/")
        second = browser.open_tab("https://b.example.com/")
        assert browser.active_tab() is second
        assert first.active is False

    def test_no_active_tab(self, settings):
        with pytest.raises(NoActiveTabError):
            Browser(settings).active_tab()

    def test_page_silent_until_script_installed(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML)
        with pytest.raises(NoReceiverError):
            asyncio.run(browser.send_to_tab(tab.id, PingCommand()))

    def test_injected_script_answers_ping_and_analyze(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML)

        async def scenario():
            await browser.inject_content_script(tab.id)
            ping = await browser.send_to_tab(tab.id, PingCommand())
            data = await browser.send_to_tab(tab.id, AnalyzePageCommand(persona=PersonaId.ELDERLY))
            return ping, data

        ping, data = asyncio.run(scenario())
        assert ping == {"status": "ready"}
        assert data["title"] == "Test Page"
        assert data["headingOutline"][0] == {"level": 1, "text": "Hello World"}

    def test_unscriptable_page_refuses_injection(self, settings):
        browser = Browser(settings)
        tab = browser.open_tab("https://example.com/", SAMPLE_HTML, scriptable=False)
        with pytest.raises(ScriptingError):
            asyncio.run(browser.inject_content_script(tab.id))

    def test_open_fetches_page(self, settings):
        browser = Browser(settings)
        with patch("personalens.browser.fetch_page", return_value=SAMPLE_HTML) as fetch:
            tab = browser.open("https://example.com/")
        fetch.assert_called_once_with("https://example.com/", settings)
        assert browser.page(tab.id).html == SAMPLE_HTML
