"""Registered identities and credential lookup.

Credentials are matched by exact equality against the ``api_key`` stored in
each identity's metadata. Lookups go through a dict keyed by credential; the
index is rebuilt from the store when it is older than its TTL, and once more on
a miss so freshly issued keys are honoured immediately.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from personalens.errors import PersonaLensError

logger = logging.getLogger(__name__)

ADMIN_USERS_PATH = "/auth/v1/admin/users"
PAGE_SIZE = 1000
MIN_REFRESH_INTERVAL = 5.0


class AuthServiceError(PersonaLensError):
    """Raised when the identity store itself cannot be read."""


class Identity(BaseModel):
    id: str
    email: str = ""
    user_metadata: dict = Field(default_factory=dict)

    @property
    def api_key(self) -> str | None:
        key = self.user_metadata.get("api_key")
        return key if isinstance(key, str) and key else None


class IdentityStore(Protocol):
    async def list_identities(self) -> list[Identity]: ...


class StaticIdentityStore:
    """In-memory identities, optionally loaded from a JSON file."""

    def __init__(self, identities: list[Identity] | None = None) -> None:
        self._identities = list(identities or [])

    @classmethod
    def from_keys(cls, keys: dict[str, str]) -> StaticIdentityStore:
        """Build from ``{email: api_key}``."""
        return cls([
            Identity(id=str(i), email=email, user_metadata={"api_key": key})
            for i, (email, key) in enumerate(keys.items(), start=1)
        ])

    @classmethod
    def from_file(cls, path: Path) -> StaticIdentityStore:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            users = raw.get("users", raw) if isinstance(raw, dict) else raw
            return cls([Identity.model_validate(u) for u in users])
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as exc:
            raise AuthServiceError(f"Cannot read identities from {path}: {exc}") from exc

    async def list_identities(self) -> list[Identity]:
        return list(self._identities)


class SupabaseIdentityStore:
    """Lists users through the Supabase auth admin API using the service role key."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not service_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the Supabase identity store")
        self._url = base_url.rstrip("/") + ADMIN_USERS_PATH
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }
        self._timeout = timeout
        self._transport = transport

    async def list_identities(self) -> list[Identity]:
        identities: list[Identity] = []
        page = 1
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                while True:
                    response = await client.get(
                        self._url,
                        params={"page": page, "per_page": PAGE_SIZE},
                        headers=self._headers,
                    )
                    response.raise_for_status()
                    users = response.json().get("users", [])
                    identities.extend(Identity.model_validate(u) for u in users)
                    if len(users) < PAGE_SIZE:
                        break
                    page += 1
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.error("Error fetching users: %s", exc)
            raise AuthServiceError("Authentication service error") from exc
        return identities


class CredentialIndex:
    """Hash lookup from credential to identity over an ``IdentityStore``."""

    def __init__(
        self,
        store: IdentityStore,
        *,
        ttl: float = 60.0,
        min_refresh_interval: float = MIN_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self.ttl = ttl
        self.min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._index: dict[str, Identity] = {}
        self._loaded_at: float | None = None

    async def refresh(self) -> None:
        try:
            identities = await self._store.list_identities()
        except AuthServiceError:
            raise
        except Exception as exc:
            logger.error("Identity store failed: %s", exc)
            raise AuthServiceError("Authentication service error") from exc
        self._index = {ident.api_key: ident for ident in identities if ident.api_key}
        self._loaded_at = self._clock()
        logger.debug("Indexed %d credentials", len(self._index))

    def _age(self) -> float:
        return float("inf") if self._loaded_at is None else self._clock() - self._loaded_at

    def _stale(self) -> bool:
        return self._age() > self.ttl

    async def lookup(self, credential: str) -> Identity | None:
        refreshed = False
        if self._stale():
            await self.refresh()
            refreshed = True
        identity = self._index.get(credential)
        # Unknown keys may rebuild the index at most once per min_refresh_interval.
        if identity is None and not refreshed and self._age() >= self.min_refresh_interval:
            await self.refresh()
            identity = self._index.get(credential)
        return identity
