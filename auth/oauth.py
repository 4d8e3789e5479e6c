"""
auth/oauth.py -- OAuth2 authorization-code flow orchestrator.

One OAuthFlow per provider drives both halves of the login:

  request_auth()            -- issue state + code_verifier, store them in
                               httpOnly cookies, 302 to the provider.
  verify_auth_callback(req) -- check the callback against those cookies,
                               exchange the code, fetch and normalize the
                               profile, notify the caller, 302 onwards.

Token exchange and the user-info call go through authlib's httpx
AsyncOAuth2Client. A fresh client is opened for every call, so an access
token obtained for one request never sits on an object shared with another.

Security notes:
  State check. The callback is accepted only when the oauth_state cookie
  equals the state query parameter (constant-time compare) and an
  oauth_code_verifier cookie is present. Both checks run before any network
  call. A mismatch means the callback did not come from a flow this browser
  started (CSRF / login fixation) and is answered with 401.

  PKCE. A code_verifier is issued for every flow; providers flagged
  use_code_verifier receive its S256 challenge and the verifier itself at
  token exchange. The flow cookies are cleared on success so a replayed
  callback has nothing to match.

  Errors. Protocol failures answer 401. Provider, network, and timeout
  failures, and anything unexpected, are reported through
  OAuthHooks.notify_error() and answered with a bare 500 -- never a redirect
  that could look like success, and never with internal detail in the body.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response

from auth.cookies import clear_oauth_flow_cookies, read_oauth_flow_cookies, set_oauth_flow_cookies
from auth.errors import OAuthProtocolError, UpstreamProviderError
from auth.models import OauthUserDetails
from auth.providers import ProviderConfig, get_provider
from auth.tokens import generate_code_verifier, generate_state

logger = logging.getLogger("sessiongate.auth.oauth")

DEFAULT_TIMEOUT_SECONDS = 10.0


# ---------------------------------------------------------------------------
# Caller hooks
# ---------------------------------------------------------------------------


class OAuthHooks(Protocol):
    """Capabilities the composing application plugs into the flow.

    notify_verified() runs once per successful callback. Whatever it returns
    is handed back on CallbackOutcome.verified for the caller to act on (for
    example, issuing a session cookie). Exceptions it raises are treated as
    unexpected errors.
    """

    async def notify_verified(self, provider: str, profile: OauthUserDetails, request: Request) -> Any: ...

    async def notify_error(self, provider: str, error: Exception) -> None: ...


class LoggingOAuthHooks:
    """Default hooks: log and do nothing else."""

    async def notify_verified(self, provider: str, profile: OauthUserDetails, request: Request) -> Any:
        logger.info("Verified %s user %s", provider, profile.oauth_user_id)
        return None

    async def notify_error(self, provider: str, error: Exception) -> None:
        logger.error("OAuth error for %s: %s", provider, error.__class__.__name__)


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of verify_auth_callback().

    response is always safe to return as-is. profile and verified are set only
    when the callback was accepted.
    """

    response: Response
    profile: OauthUserDetails | None = None
    verified: Any = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def _server_error() -> Response:
    return PlainTextResponse("Internal Server Error", status_code=500)


class OAuthFlow:
    """Authorization-code flow for one provider.

    Usage:
        flow = OAuthFlow(
            provider="github",
            client_id=..., client_secret=...,
            oauth_redirect_uri="https://api.example.com/api/v1/auth/callback/github",
            verified_redirect_uri="https://example.com/",
        )
        return await flow.request_auth()
        ...
        outcome = await flow.verify_auth_callback(request)

    Raises UnsupportedProviderError at construction for an unknown provider.
    transport is passed to httpx (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        provider: str,
        client_id: str,
        client_secret: str,
        oauth_redirect_uri: str,
        verified_redirect_uri: str,
        scopes: Sequence[str] | None = None,
        hooks: OAuthHooks | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config: ProviderConfig = get_provider(provider)
        self.provider = provider
        self.client_id = client_id
        self.client_secret = client_secret
        self.oauth_redirect_uri = oauth_redirect_uri
        self.verified_redirect_uri = verified_redirect_uri
        self.scopes: tuple[str, ...] = tuple(scopes) if scopes else self.config.scopes
        self.hooks: OAuthHooks = hooks or LoggingOAuthHooks()
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> AsyncOAuth2Client:
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return AsyncOAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_endpoint_auth_method=self.config.token_endpoint_auth_method,
            scope=" ".join(self.scopes),
            redirect_uri=self.oauth_redirect_uri,
            code_challenge_method="S256" if self.config.use_code_verifier else None,
            **kwargs,
        )

    async def _report_error(self, error: Exception) -> None:
        try:
            await self.hooks.notify_error(self.provider, error)
        except Exception:
            logger.exception("notify_error hook failed for %s", self.provider)

    # ------------------------------------------------------------------
    # Phase 1: initiation
    # ------------------------------------------------------------------

    async def request_auth(self) -> Response:
        """Start a flow: 302 to the provider with oauth_state / oauth_code_verifier cookies."""
        try:
            state = generate_state()
            code_verifier = generate_code_verifier()
            async with self._client() as client:
                if self.config.use_code_verifier:
                    url, _ = client.create_authorization_url(
                        self.config.authorize_url, state=state, code_verifier=code_verifier
                    )
                else:
                    url, _ = client.create_authorization_url(self.config.authorize_url, state=state)
            response = RedirectResponse(url, status_code=302)
            set_oauth_flow_cookies(response, state, code_verifier)
            return response
        except Exception as exc:
            logger.exception("Could not start %s OAuth flow", self.provider)
            await self._report_error(exc)
            return _server_error()

    # ------------------------------------------------------------------
    # Phase 2: callback
    # ------------------------------------------------------------------

    async def verify_auth_callback(self, request: Request) -> CallbackOutcome:
        """Validate the provider callback and complete the login.

        401 for a callback that does not match this browser's flow or whose
        token exchange yields no access token; 500 for provider or internal
        failures; 302 to verified_redirect_uri on success.
        """
        code = request.query_params.get("code")
        state = request.query_params.get("state")
        state_cookie, code_verifier = read_oauth_flow_cookies(request)

        if not code or not state:
            logger.warning("%s callback rejected: missing state or code", self.provider)
            return CallbackOutcome(PlainTextResponse("Unauthorized: Missing state or code", status_code=401))

        if (
            state_cookie is None
            or not hmac.compare_digest(state_cookie.encode("utf-8"), state.encode("utf-8"))
            or code_verifier is None
        ):
            logger.warning("%s callback rejected: state or code verifier mismatch", self.provider)
            return CallbackOutcome(
                PlainTextResponse("Unauthorized: Invalid state or code verifier", status_code=401)
            )

        try:
            async with self._client() as client:
                access_token = await self._exchange_code(client, code, code_verifier)
                profile = await self._fetch_profile(client, access_token)
            verified = await self.hooks.notify_verified(self.provider, profile, request)
        except OAuthProtocolError as exc:
            logger.warning("%s callback rejected: %s", self.provider, exc)
            return CallbackOutcome(PlainTextResponse("Unauthorized: Invalid access token", status_code=401))
        except UpstreamProviderError as exc:
            logger.warning("%s provider failure: %s", self.provider, exc)
            await self._report_error(exc)
            return CallbackOutcome(_server_error())
        except Exception as exc:
            logger.exception("Unexpected error completing %s OAuth callback", self.provider)
            await self._report_error(exc)
            return CallbackOutcome(_server_error())

        response = RedirectResponse(self.verified_redirect_uri, status_code=302)
        clear_oauth_flow_cookies(response)
        return CallbackOutcome(response, profile=profile, verified=verified)

    async def _exchange_code(self, client: AsyncOAuth2Client, code: str, code_verifier: str) -> str:
        kwargs: dict[str, Any] = {"code": code}
        if self.config.use_code_verifier:
            kwargs["code_verifier"] = code_verifier
        try:
            token = await client.fetch_token(self.config.token_url, **kwargs)
        except (httpx.HTTPError, AuthlibBaseError, ValueError) as exc:
            raise UpstreamProviderError(self.provider, f"token exchange failed ({exc.__class__.__name__})") from exc

        access_token = token.get("access_token") if isinstance(token, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise OAuthProtocolError("token response carried no access token")
        return access_token

    async def _fetch_profile(self, client: AsyncOAuth2Client, access_token: str) -> OauthUserDetails:
        try:
            resp = await client.request(
                "GET",
                self.config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
                withhold_token=True,
            )
            resp.raise_for_status()
            raw = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamProviderError(self.provider, f"user-info fetch failed ({exc.__class__.__name__})") from exc

        profile = self.config.transform(raw)
        if not profile.oauth_user_id:
            raise UpstreamProviderError(self.provider, "user-info response has no user id")
        logger.debug("Fetched %s profile for user %s", self.provider, profile.oauth_user_id)
        return profile
