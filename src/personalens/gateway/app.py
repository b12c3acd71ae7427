"""FastAPI application exposing the gateway to remote callers."""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from personalens.background import CREDENTIAL_HEADER
from personalens.errors import PersonaLensError
from personalens.gateway.identities import AuthServiceError
from personalens.gateway.proxy import (
    InvalidCredentialError,
    MissingCredentialError,
    ProxyGateway,
    UpstreamCallError,
    UpstreamConfigError,
)
from personalens.models import AnalysisRequest, PageSignals, WireModel
from personalens.personas import PersonaId

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[PersonaLensError], int] = {
    MissingCredentialError: 400,
    InvalidCredentialError: 401,
    AuthServiceError: 500,
    UpstreamConfigError: 500,
    UpstreamCallError: 500,
}


class ProxyPayload(WireModel):
    page_data: PageSignals
    persona: PersonaId
    api_key: str = ""


class HealthResponse(BaseModel):
    status: str


class UnauthorizedCaller(PersonaLensError):
    """The bearer token does not match the configured anon key."""


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def create_app(gateway_factory: Callable[[], ProxyGateway]) -> FastAPI:
    """Create the FastAPI application serving ``POST /analyze``."""
    app = FastAPI(title="PersonaLens Gateway", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", CREDENTIAL_HEADER],
    )

    gateways: list[ProxyGateway] = []

    async def get_gateway() -> ProxyGateway:
        # Built once, on first use, so the credential index survives across requests.
        if not gateways:
            gateways.append(gateway_factory())
        return gateways[0]

    async def require_caller(
        gateway: ProxyGateway = Depends(get_gateway),
        authorization: str = Header(default=""),
    ) -> None:
        # Route dependencies resolve before the body is validated.
        anon_key = gateway.settings.proxy_anon_key
        if anon_key and authorization != f"Bearer {anon_key}":
            raise UnauthorizedCaller("Invalid authorization token")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", dependencies=[Depends(require_caller)])
    async def analyze(
        payload: ProxyPayload,
        gateway: ProxyGateway = Depends(get_gateway),
        personalens_key: str = Header(default="", alias=CREDENTIAL_HEADER),
    ) -> dict[str, Any]:
        request = AnalysisRequest(
            persona=payload.persona,
            signals=payload.page_data,
            credential=payload.api_key or personalens_key,
        )
        report = await gateway.analyze(request)
        return report.model_dump(by_alias=True, mode="json")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = errors[0].get("msg", "malformed body") if errors else "malformed body"
        return _error(400, f"Invalid request: {detail}")

    @app.exception_handler(UnauthorizedCaller)
    async def unauthorized_handler(_: Request, exc: UnauthorizedCaller) -> JSONResponse:
        return _error(401, str(exc))

    @app.exception_handler(PersonaLensError)
    async def pipeline_error_handler(_: Request, exc: PersonaLensError) -> JSONResponse:
        status = STATUS_BY_ERROR.get(type(exc), 500)
        if status >= 500:
            logger.error("Gateway error: %s", exc)
        return _error(status, str(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected gateway error: %s", exc)
        return _error(500, "Internal server error")

    return app
