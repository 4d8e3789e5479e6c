"""
api/limiter.py -- Shared slowapi rate limiter for the OAuth entry points.

Starting an OAuth flow mints a state and code verifier and sends the browser
to a third party, so it is the one route a client can hammer for free. The
limit is keyed on the client address and taken from OAUTH_RATE_LIMIT once,
at import.

The limit must be a plain string. SlowAPIMiddleware (mounted in api/main.py)
enforces only static route limits; a callable limit is treated as dynamic
and checked by the decorator wrapper, which never runs because @router
registers the undecorated endpoint.

One instance means one counter store for the whole app.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

OAUTH_START_LIMIT: str = get_settings().oauth_rate_limit
