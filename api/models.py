"""
API request and response models for SessionGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal domain
representation. Route handlers map between the two.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from auth.models import Session, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionQuery(BaseModel):
    """Request body for POST /api/v1/session/validate.

    The session cookie, when present, takes precedence over this field.
    """

    session: Optional[str] = Field(default=None, max_length=256, description="Session token.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    id: str
    user_id: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_domain(cls, session: Session) -> SessionResponse:
        return cls(
            id=session.id,
            user_id=session.user_id,
            created_at=session.created_at,
            expires_at=session.expires_at,
        )


class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    oauth_provider: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_domain(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            avatar=user.avatar,
            oauth_provider=user.oauth_provider,
            created_at=user.created_at,
        )


class SessionQueryResult(BaseModel):
    """Upstream query contract: both fields are null for an invalid session."""

    session: Optional[SessionResponse] = None
    user: Optional[UserResponse] = None


class MeResponse(BaseModel):
    user: UserResponse
    session_id: str


class ProviderInfo(BaseModel):
    name: str


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
