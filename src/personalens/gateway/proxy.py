"""Credential-gated access to the model provider."""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from personalens.config import Settings
from personalens.errors import PersonaLensError
from personalens.gateway.identities import CredentialIndex, IdentityStore
from personalens.gateway.normalizer import ResponseNormalizer
from personalens.gateway.prompts import build_messages
from personalens.models import AnalysisReport, AnalysisRequest

logger = logging.getLogger(__name__)

MODEL = "gpt-4o-mini"
MAX_TOKENS = 1500
TEMPERATURE = 0.3


class MissingCredentialError(PersonaLensError):
    """No credential was presented."""


class InvalidCredentialError(PersonaLensError):
    """The credential does not belong to any registered identity."""


class UpstreamConfigError(PersonaLensError):
    """The model provider is not configured on this gateway."""


class UpstreamCallError(PersonaLensError):
    """The model provider answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProxyGateway:
    """Validates the caller, builds the persona prompt and asks the model."""

    def __init__(
        self,
        settings: Settings,
        identities: IdentityStore,
        *,
        client: AsyncOpenAI | None = None,
        normalizer: ResponseNormalizer | None = None,
    ) -> None:
        self.settings = settings
        self._index = CredentialIndex(
            identities,
            ttl=settings.identity_cache_ttl,
            min_refresh_interval=settings.identity_miss_refresh_interval,
        )
        self._client = client
        self._normalizer = normalizer or ResponseNormalizer()

    def _openai(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise UpstreamConfigError("OpenAI service not configured")
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.proxy_timeout,
                max_retries=0,
            )
        return self._client

    async def analyze(self, request: AnalysisRequest) -> AnalysisReport:
        if not request.credential:
            raise MissingCredentialError("PersonaLens API key is required")

        identity = await self._index.lookup(request.credential)
        if identity is None:
            raise InvalidCredentialError("Invalid PersonaLens API key")

        client = self._openai()
        messages = build_messages(request.signals, request.persona)
        content = await self._complete(client, messages)

        logger.info("API call from user %s for persona %s", identity.email or identity.id, request.persona.value)
        return self._normalizer.normalize(content, request.persona)

    async def _complete(self, client: AsyncOpenAI, messages: list[dict[str, str]]) -> str:
        try:
            response = await client.chat.completions.create(
                model=MODEL,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
        except openai.APIStatusError as exc:
            logger.error("OpenAI API error %d: %s", exc.status_code, exc.message)
            raise UpstreamCallError(f"OpenAI API error: {exc.status_code}", exc.status_code) from exc
        except openai.APIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise UpstreamCallError(f"OpenAI API error: {exc}") from exc
        return response.choices[0].message.content or ""
