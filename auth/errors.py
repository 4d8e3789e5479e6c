"""
auth/errors.py -- Exception taxonomy for the authentication core.

  InvalidCredential      -- missing, expired, or malformed session. Callers
                            normally see a typed null result instead; this is
                            raised only by helpers that need a hard failure
                            (e.g. require_session).
  OAuthProtocolError     -- state mismatch, missing code/verifier/token.
                            Surfaces as 401.
  UpstreamProviderError  -- network, timeout, or HTTP failure talking to an
                            OAuth provider. Surfaces as 500 and is reported
                            through OAuthHooks.notify_error().
  StorageError           -- persistence failure. Always propagated and kept
                            distinct from InvalidCredential so an outage is
                            never mistaken for a mass logout.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth package."""


class InvalidCredential(AuthError):
    """The request carries no usable session."""


class OAuthProtocolError(AuthError):
    """The OAuth callback does not belong to a flow this server started."""


class UpstreamProviderError(AuthError):
    """The OAuth provider could not be reached or returned an error."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StorageError(AuthError):
    """The session or user table could not be read or written."""


class UnsupportedProviderError(AuthError, ValueError):
    """A provider name with no registry entry was requested."""
