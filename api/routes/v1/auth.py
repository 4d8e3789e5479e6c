"""
api/routes/v1/auth.py -- OAuth login, logout, and identity endpoints.

Routes:
  GET  /api/v1/auth/oauth/{provider}     -- start OAuth flow; 302 to provider
  GET  /api/v1/auth/callback/{provider}  -- OAuth callback; 302 to the user page
  GET  /api/v1/auth/logout               -- end session; 302 to sign-in
  POST /api/v1/auth/logout               -- same, for form posts
  GET  /api/v1/auth/providers            -- list configured providers (public)
  GET  /api/v1/auth/me                   -- current identity (requires session)

Security:
  OAuth initiation is rate-limited per IP (OAUTH_RATE_LIMIT).
  Callback failures answer 401/500 straight from the flow, never a redirect.
  Unknown or unconfigured providers answer 404 without touching any flow.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from api.limiter import OAUTH_START_LIMIT, limiter
from api.models import MeResponse, ProviderInfo, UserResponse
from auth.cookies import clear_oauth_flow_cookies
from auth.dependencies import get_session_store, require_session
from auth.handlers import login, logout
from auth.models import AuthContext
from auth.oauth import OAuthFlow
from auth.store import SessionStore
from core.config import get_settings

# Auth policy:
# - GET  /auth/oauth/{provider}:    public -- starts the login
# - GET  /auth/callback/{provider}: public -- provider redirects the browser here
# - GET|POST /auth/logout:          public -- no cookie is a valid (no-op) logout
# - GET  /auth/providers:           public -- sign-in page renders buttons from it
# - GET  /auth/me:                  requires session (middleware + require_session)
router = APIRouter()


def _get_flow(request: Request, provider: str) -> OAuthFlow:
    flow = request.app.state.oauth_flows.get(provider)
    if flow is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "unknown_provider", "message": "OAuth provider is not configured."},
        )
    return flow


@limiter.limit(OAUTH_START_LIMIT)
@router.get("/auth/oauth/{provider}")
async def oauth_start(request: Request, provider: str) -> Response:
    """Redirect the browser to the provider's consent page."""
    return await _get_flow(request, provider).request_auth()


@router.get("/auth/callback/{provider}", name="oauth_callback")
async def oauth_callback(
    request: Request,
    provider: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Complete the OAuth flow and log the provisioned user in.

    When the flow's hooks return a user id, a session is issued and the
    browser goes to {UI_URL}/u/{user_id}; otherwise the flow's own response
    (error, or redirect to the verified URI) is returned unchanged.
    """
    outcome = await _get_flow(request, provider).verify_auth_callback(request)
    if not outcome.ok or not outcome.verified:
        return outcome.response

    settings = get_settings()
    response = await run_in_threadpool(login, store, outcome.verified, settings.ui_url, settings.session_cookie)
    clear_oauth_flow_cookies(response)
    return response


@router.get("/auth/logout")
@router.post("/auth/logout")
def logout_route(request: Request, store: SessionStore = Depends(get_session_store)) -> Response:
    """Invalidate the current session and clear its cookie."""
    settings = get_settings()
    return logout(request, store, settings.ui_url, settings.session_cookie)


@router.get("/auth/providers", response_model=list[ProviderInfo])
async def list_providers(request: Request) -> list[ProviderInfo]:
    """Return the configured OAuth providers; empty when none are set up."""
    return [ProviderInfo(name=name) for name in request.app.state.oauth_flows]


@router.get("/auth/me", response_model=MeResponse)
async def me(auth: AuthContext = Depends(require_session)) -> MeResponse:
    """Return the identity attached to this request by the session middleware."""
    return MeResponse(user=UserResponse.from_domain(auth.user), session_id=auth.session_id)
