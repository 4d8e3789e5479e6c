"""
api/routes/v1/session.py -- Session query service.

POST /api/v1/session/validate
  request  {"session": "<token>" | null}
  response {"session": Session | null, "user": User | null}

The session cookie, when the caller sends one, wins over the body field. An
unknown, expired, or absent token answers 200 with both fields null -- a
result, not an error. Storage failures are not folded into that result: they
propagate to the StorageError handler (503).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import SessionQuery, SessionQueryResult, SessionResponse, UserResponse
from auth.cookies import read_session_cookie
from auth.dependencies import get_session_store
from auth.store import SessionStore
from core.config import get_settings

router = APIRouter()


@router.post("/session/validate", response_model=SessionQueryResult)
def validate_session(
    request: Request,
    body: SessionQuery,
    store: SessionStore = Depends(get_session_store),
) -> SessionQueryResult:
    token = read_session_cookie(request, get_settings().session_cookie) or body.session
    if not token:
        return SessionQueryResult()

    result = store.validate(token)
    if not result.is_valid:
        return SessionQueryResult()
    return SessionQueryResult(
        session=SessionResponse.from_domain(result.session),
        user=UserResponse.from_domain(result.user),
    )
