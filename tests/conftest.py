"""Shared fixtures for PersonaLens tests."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from personalens.config import Settings
from personalens.gateway.identities import StaticIdentityStore
from personalens.gateway.proxy import ProxyGateway
from personalens.models import PageSignals


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Settings with dummy keys, a private state file and no settle delay."""
    return Settings(
        openai_api_key="test-openai-key",
        proxy_url="https://proxy.test/analyze",
        proxy_anon_key="test-anon-key",
        state_file=str(tmp_path / "state.json"),
        message_timeout=2.0,
        proxy_timeout=5.0,
        settle_delay=0.0,
    )


VALID_KEY = "pl-valid-key"


@pytest.fixture()
def identities() -> StaticIdentityStore:
    return StaticIdentityStore.from_keys({"tester@example.com": VALID_KEY})


def completion(text: str) -> SimpleNamespace:
    """Shape of an OpenAI chat completion with a single choice."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def mock_openai(text: str) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion(text))
    return client


@pytest.fixture()
def openai_client() -> MagicMock:
    return mock_openai(SAMPLE_MODEL_RESPONSE)


@pytest.fixture()
def gateway(settings, identities, openai_client) -> ProxyGateway:
    return ProxyGateway(settings, identities, client=openai_client)


@pytest.fixture()
def signals() -> PageSignals:
    return PageSignals.model_validate(SAMPLE_SIGNALS)


SAMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head>
    <title>Test Page</title>
    <style>body { color: red; }</style>
</head>
<body style="color: #333">
    <nav><a href="/home">Home</a><a href="/about">About</a></nav>
    <div role="navigation"></div>
    <main>
        <h1>Hello World</h1>
        <p>This is a test page with <a href="https://example.com" style="color: blue">a link</a>.</p>
        <h3>Skipped level</h3>
        <img src="/images/hero.jpg">
        <img src="https://cdn.example.com/logo.png" alt="Company logo">
        <button style="background-color: #ffcc00; color: white">Buy</button>
        <form>
            <label for="email">Email</label>
            <input id="email" type="email" placeholder="you@example.com" required>
            <label>Name <input name="name"></label>
            <select name="country"></select>
            <textarea placeholder="Comments"></textarea>
        </form>
    </main>
</body>
</html>
"""

SAMPLE_SIGNALS = {
    "url": "https://shop.example.com/",
    "title": "Shop",
    "textSamples": ["Welcome", "Buy now"],
    "colorSamples": [{"element": "button", "color": "rgb(200, 200, 200)", "background": "rgb(255, 255, 255)"}],
    "imageSamples": [{"src": "https://shop.example.com/hero.jpg", "alt": "", "hasAlt": False}],
    "formSummary": {"formCount": 1, "inputs": [{"type": "email", "hasLabel": False, "placeholder": "Email", "required": True}]},
    "navSummary": {"navCount": 1, "linkCount": 4, "navTexts": ["Home About"]},
    "headingOutline": [{"level": 1, "text": "Welcome"}],
}

SAMPLE_MODEL_RESPONSE = json.dumps({
    "issues": [
        {
            "type": "Missing Alt Text",
            "description": "The hero image has no alternative text.",
            "severity": "high",
            "suggestion": "Add a descriptive alt attribute.",
        },
        {
            "type": "Low Contrast",
            "description": "The button text is light grey on white.",
            "severity": "Medium",
            "suggestion": "Darken the button text.",
        },
    ],
    "summary": "Two barriers for low-vision users.",
})
