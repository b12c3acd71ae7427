"""Remote gateway: credential check, prompt construction, model call, normalization."""

from __future__ import annotations

import logging
from pathlib import Path

from personalens.config import Settings
from personalens.gateway.identities import (
    IdentityStore,
    StaticIdentityStore,
    SupabaseIdentityStore,
)
from personalens.gateway.proxy import ProxyGateway

logger = logging.getLogger(__name__)


def build_identity_store(settings: Settings) -> IdentityStore:
    """Pick the identity store the settings point at."""
    if settings.identities_file:
        return StaticIdentityStore.from_file(Path(settings.identities_file).expanduser())
    if settings.supabase_url:
        return SupabaseIdentityStore(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.message_timeout,
        )
    logger.warning("No identity store configured; every credential will be rejected")
    return StaticIdentityStore()


def build_gateway(settings: Settings) -> ProxyGateway:
    return ProxyGateway(settings, build_identity_store(settings))


__all__ = ["ProxyGateway", "build_gateway", "build_identity_store"]
