"""Background context: answers ``generateReport`` by asking the gateway.

The background context is the only one allowed to reach the network. It
forwards ``{pageData, persona, apiKey}`` either to the remote proxy over HTTP
(``ProxyClient``) or, when running everything locally, straight to an
in-process ``ProxyGateway`` (``LocalGatewayClient``).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from personalens.config import Settings
from personalens.errors import PersonaLensError
from personalens.gateway.proxy import ProxyGateway
from personalens.messaging import GenerateReportCommand, MessageChannel
from personalens.models import AnalysisReport, AnalysisRequest, PageSignals
from personalens.personas import PersonaId

logger = logging.getLogger(__name__)

CREDENTIAL_HEADER = "x-personalens-key"


class ProxyError(PersonaLensError):
    """Raised when the remote proxy rejects the request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReportService(Protocol):
    async def generate_report(
        self, page_data: PageSignals, persona: PersonaId, credential: str
    ) -> AnalysisReport: ...


class ProxyClient:
    """Posts analysis requests to the remote proxy."""

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self, credential: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", CREDENTIAL_HEADER: credential}
        if self.settings.proxy_anon_key:
            headers["Authorization"] = f"Bearer {self.settings.proxy_anon_key}"
        return headers

    async def generate_report(
        self, page_data: PageSignals, persona: PersonaId, credential: str
    ) -> AnalysisReport:
        body = {
            "pageData": page_data.model_dump(by_alias=True),
            "persona": PersonaId(persona).value,
            "apiKey": credential,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.proxy_timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.settings.proxy_url, json=body, headers=self._headers(credential)
                )
        except httpx.HTTPError as exc:
            logger.error("Failed to generate report: %s", exc)
            raise ProxyError(f"Failed to generate report: {exc}") from exc

        if not response.is_success:
            try:
                message = response.json().get("error")
            except (ValueError, AttributeError):
                message = None
            logger.error("Proxy answered %d: %s", response.status_code, message)
            raise ProxyError(message or f"API error: {response.status_code}", response.status_code)

        return AnalysisReport.model_validate(response.json())


class LocalGatewayClient:
    """Calls an in-process gateway; typed gateway errors propagate unchanged."""

    def __init__(self, gateway: ProxyGateway) -> None:
        self.gateway = gateway

    async def generate_report(
        self, page_data: PageSignals, persona: PersonaId, credential: str
    ) -> AnalysisReport:
        request = AnalysisRequest(persona=persona, signals=page_data, credential=credential)
        return await self.gateway.analyze(request)


class BackgroundService:
    """Listener installed on the background context's channel."""

    def __init__(self, reports: ReportService) -> None:
        self.reports = reports

    def install(self, channel: MessageChannel) -> None:
        channel.listen(self.handle)

    async def handle(self, command: Any) -> dict:
        if not isinstance(command, GenerateReportCommand):
            raise ValueError(f"Unsupported action: {command.action}")
        report = await self.reports.generate_report(command.page_data, command.persona, command.api_key)
        return report.model_dump(by_alias=True, mode="json")


def start_background(reports: ReportService, settings: Settings | None = None) -> MessageChannel:
    """Create the background context's channel with its service listening on it."""
    settings = settings or Settings()
    channel = MessageChannel("background", timeout=settings.proxy_timeout + settings.message_timeout)
    BackgroundService(reports).install(channel)
    return channel
