"""
auth/handlers.py -- Browser login and logout responses.

  login()  -- issue a session for an already-identified user and send the
              browser to its profile page with the session cookie set.
  logout() -- delete the session behind the cookie and clear the cookie.

Every outcome is a 302 so the browser always lands on a UI page. Failures go
to the sign-in page with ?error=true; the cause is logged, never shown.
"""

from __future__ import annotations

import logging

from starlette.requests import HTTPConnection
from starlette.responses import RedirectResponse, Response

from auth.cookies import clear_session_cookie, read_session_cookie, set_session_cookie
from auth.errors import StorageError
from auth.store import SessionStore
from auth.tokens import derive_session_id

logger = logging.getLogger("sessiongate.auth")


def _signin_error(ui_url: str) -> Response:
    return RedirectResponse(f"{ui_url}/signin/?error=true", status_code=302)


def login(store: SessionStore, user_id: str, ui_url: str, cookie_name: str) -> Response:
    try:
        session = store.create(user_id)
    except StorageError:
        logger.exception("Login failed for user %s", user_id)
        return _signin_error(ui_url)

    response = RedirectResponse(f"{ui_url}/u/{session.user_id}", status_code=302)
    set_session_cookie(response, cookie_name, session.token, store.remaining_seconds(session))
    logger.info("User %s logged in", user_id)
    return response


def logout(conn: HTTPConnection, store: SessionStore, ui_url: str, cookie_name: str) -> Response:
    token = read_session_cookie(conn, cookie_name)
    if token is None:
        logger.info("Logout without a session cookie")
        return RedirectResponse(f"{ui_url}/signin/?", status_code=302)

    try:
        store.invalidate(derive_session_id(token))
    except StorageError:
        logger.exception("Logout failed")
        return _signin_error(ui_url)

    response = RedirectResponse(f"{ui_url}/signin", status_code=302)
    clear_session_cookie(response, cookie_name)
    return response
