"""
auth/dependencies.py -- FastAPI Depends() helpers for the request identity.

The identity is established by SessionValidationMiddleware and stored as an
immutable AuthContext on request.state.auth. These helpers only read it.

get_auth_context() is the soft variant (anonymous context when there is no
session). require_session() raises InvalidCredential, which the application
turns into a redirect to the sign-in page.

Layer rule: may import from fastapi/starlette; no imports from api/ or core/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import InvalidCredential
from auth.models import AuthContext
from auth.store import SessionStore


def get_auth_context(request: Request) -> AuthContext:
    return getattr(request.state, "auth", None) or AuthContext.anonymous()


def require_session(request: Request) -> AuthContext:
    """Require a validated session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(auth: AuthContext = Depends(require_session)): ...
    """
    context = get_auth_context(request)
    if not context.is_authenticated:
        raise InvalidCredential("session required")
    return context


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store
