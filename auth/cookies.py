"""
auth/cookies.py -- Cookie transport for the session credential and OAuth flow nonces.

Every cookie written here carries the same fixed attributes:
  httponly=True   JS cannot read the cookie (XSS mitigation).
  secure=True     only sent over HTTPS.
  samesite="lax"  sent on top-level cross-site GET navigations (needed for the
                  OAuth callback redirect), withheld on cross-site POST.
  path="/"

The session cookie value is the token, never the derived id. Its Max-Age is
the remaining session lifetime on issuance and 0 on logout. The OAuth flow
cookies have no Max-Age: they live for the browser session and are cleared
when the callback succeeds.
"""

from __future__ import annotations

from starlette.requests import HTTPConnection
from starlette.responses import Response

STATE_COOKIE = "oauth_state"
CODE_VERIFIER_COOKIE = "oauth_code_verifier"

_ATTRIBUTES = {"httponly": True, "secure": True, "samesite": "lax", "path": "/"}


def set_session_cookie(response: Response, cookie_name: str, token: str, max_age: int) -> None:
    """Write the session token as an httpOnly cookie that expires with the session."""
    response.set_cookie(cookie_name, value=token, max_age=max_age, **_ATTRIBUTES)


def clear_session_cookie(response: Response, cookie_name: str) -> None:
    """Instruct the client to drop the session cookie immediately (Max-Age=0)."""
    response.set_cookie(cookie_name, value="", max_age=0, **_ATTRIBUTES)


def read_session_cookie(conn: HTTPConnection, cookie_name: str) -> str | None:
    return conn.cookies.get(cookie_name) or None


def set_oauth_flow_cookies(response: Response, state: str, code_verifier: str) -> None:
    response.set_cookie(STATE_COOKIE, value=state, **_ATTRIBUTES)
    response.set_cookie(CODE_VERIFIER_COOKIE, value=code_verifier, **_ATTRIBUTES)


def clear_oauth_flow_cookies(response: Response) -> None:
    """Consume the flow: a replayed callback finds no state/verifier to match."""
    response.set_cookie(STATE_COOKIE, value="", max_age=0, **_ATTRIBUTES)
    response.set_cookie(CODE_VERIFIER_COOKIE, value="", max_age=0, **_ATTRIBUTES)


def read_oauth_flow_cookies(conn: HTTPConnection) -> tuple[str | None, str | None]:
    """Return (state, code_verifier) from the request; None for absent/empty."""
    return conn.cookies.get(STATE_COOKIE) or None, conn.cookies.get(CODE_VERIFIER_COOKIE) or None
