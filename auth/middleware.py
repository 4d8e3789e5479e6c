"""
auth/middleware.py -- Session validation gate for protected routes.

Every request starts with an anonymous AuthContext on request.state.auth, so
identity from a previous request handled on the same worker can never leak
into this one. Then:

  public path                     -> pass through, anonymous
  protected path, no cookie       -> 302 to the unauthorized location
  protected path, invalid session -> 302 to the unauthorized location
  protected path, valid session   -> AuthContext(user, session_id), proceed

A path is protected when it equals one of the configured prefixes or sits
below it ("/private" covers "/private" and "/private/x", not "/privately").

StorageError from the store is not caught here. An outage must surface as a
server error, not as a redirect that looks like the user was logged out.

A validation that renews the session re-issues the session cookie on the
response with the new remaining lifetime, so the browser does not drop a
cookie the server still honors.

The session store is read from request.app.state.session_store (set by the
application lifespan), the same way route dependencies find it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from auth.cookies import read_session_cookie, set_session_cookie
from auth.models import AuthContext
from auth.store import SessionStore

logger = logging.getLogger("sessiongate.auth.middleware")


def is_protected(path: str, protected_paths: Iterable[str]) -> bool:
    for prefix in protected_paths:
        base = prefix.rstrip("/") or "/"
        if base == "/" or path == base or path.startswith(base + "/"):
            return True
    return False


class SessionValidationMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        protected_paths: Iterable[str],
        cookie_name: str,
        unauthorized_redirect: str = "/",
    ) -> None:
        super().__init__(app)
        self.protected_paths = tuple(protected_paths)
        self.cookie_name = cookie_name
        self.unauthorized_redirect = unauthorized_redirect

    def _unauthorized(self) -> Response:
        return RedirectResponse(self.unauthorized_redirect, status_code=302)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.auth = AuthContext.anonymous()

        if not is_protected(request.url.path, self.protected_paths):
            return await call_next(request)

        token = read_session_cookie(request, self.cookie_name)
        if token is None:
            return self._unauthorized()

        store: SessionStore = request.app.state.session_store
        result = await run_in_threadpool(store.validate, token)
        if not result.is_valid:
            logger.debug("Rejected invalid session on %s", request.url.path)
            return self._unauthorized()

        request.state.auth = AuthContext(user=result.user, session_id=result.session.id)
        response = await call_next(request)
        if result.renewed:
            set_session_cookie(response, self.cookie_name, token, store.remaining_seconds(result.session))
        return response
