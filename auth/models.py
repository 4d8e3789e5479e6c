"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no I/O). Stores and routes do the
work; these types only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """An identity known to the application.

    id is opaque (uuid4 hex). oauth_provider / oauth_user_id identify the
    external account the row was provisioned from.
    """

    id: str
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    oauth_provider: str | None = None  # "github", "google", ...
    oauth_user_id: str | None = None  # provider's stable user ID
    created_at: str | None = None


@dataclass
class Session:
    """A server-side session row.

    id is derive_session_id(token), never the token itself. token is filled in
    only on the value returned by SessionStore.create() -- it is the one and
    only time the plaintext is available, and it is never persisted.
    """

    id: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    token: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class SessionValidationResult:
    """Outcome of SessionStore.validate(). Both fields are None when invalid.

    renewed is True when this validation pushed expires_at forward; the
    caller should re-issue the cookie so the browser keeps it as long.
    """

    session: Session | None = None
    user: User | None = None
    renewed: bool = False

    @property
    def is_valid(self) -> bool:
        return self.session is not None and self.user is not None


@dataclass(frozen=True)
class OauthUserDetails:
    """Provider profile normalized to the shape user provisioning consumes."""

    oauth_user_id: str = ""
    email: str | None = None
    username: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """Per-request identity. Built once per request, never mutated."""

    user: User | None = None
    session_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.session_id is not None

    @classmethod
    def anonymous(cls) -> AuthContext:
        return cls()
