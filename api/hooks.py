"""
api/hooks.py -- Application side of the OAuth flow.

ProvisioningHooks is the OAuthHooks implementation the API composes into every
OAuthFlow: a verified profile is upserted into the users table and the user id
is handed back to the callback route, which then issues the session. The auth
package itself never creates sessions from OAuth.

build_oauth_flows() creates one OAuthFlow per provider that has credentials
configured.
"""

from __future__ import annotations

import logging

import httpx
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from auth.models import OauthUserDetails
from auth.oauth import OAuthFlow
from auth.store import UserStore
from core.config import Settings

logger = logging.getLogger("sessiongate.api.oauth")


class ProvisioningHooks:
    def __init__(self, user_store: UserStore) -> None:
        self.user_store = user_store

    async def notify_verified(self, provider: str, profile: OauthUserDetails, request: Request) -> str:
        user = await run_in_threadpool(self.user_store.upsert_oauth_user, provider, profile)
        logger.info("OAuth login via %s for user %s", provider, user.id)
        return user.id

    async def notify_error(self, provider: str, error: Exception) -> None:
        # Class name only: provider error bodies may echo codes or tokens.
        logger.error("OAuth failure via %s: %s", provider, error.__class__.__name__)


def build_oauth_flows(
    settings: Settings,
    user_store: UserStore,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, OAuthFlow]:
    hooks = ProvisioningHooks(user_store)
    flows: dict[str, OAuthFlow] = {}
    for provider in settings.enabled_providers():
        client_id, client_secret = settings.provider_credentials(provider)
        flows[provider] = OAuthFlow(
            provider=provider,
            client_id=client_id,
            client_secret=client_secret,
            oauth_redirect_uri=f"{settings.api_base_url}/api/v1/auth/callback/{provider}",
            verified_redirect_uri=f"{settings.ui_url}/",
            hooks=hooks,
            timeout=settings.oauth_http_timeout,
            transport=transport,
        )
        logger.info("%s OAuth provider registered", provider)
    return flows
