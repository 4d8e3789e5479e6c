"""
auth/tokens.py -- Session token codec and OAuth flow nonces.

Security design decisions:
  Session token: 20 bytes from the secrets module (OS CSPRNG), encoded as
       lowercase unpadded base32 (exactly 32 characters). 160 bits of entropy
       makes guessing infeasible. If the OS cannot supply randomness, the
       exception propagates -- the process must not issue sessions then.

  Session id: SHA-256 of the token, lowercase hex. Only the id is stored,
       so a leaked sessions table does not yield usable cookies. A plain hash
       (no key) is enough because the input is already high-entropy; the
       deterministic digest keeps lookup O(1) by primary key.

  OAuth nonces: state and code_verifier are URL-safe random strings. The
       verifier uses authlib's generator so its alphabet and length satisfy
       RFC 7636 (43-128 unreserved characters).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from authlib.common.security import generate_token

SESSION_TOKEN_BYTES = 20
CODE_VERIFIER_LENGTH = 64


def generate_session_token() -> str:
    """Return a new client-held session token."""
    raw = secrets.token_bytes(SESSION_TOKEN_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=").lower()


def derive_session_id(token: str) -> str:
    """Return the storage identifier for a token: hex(SHA-256(utf8(token)))."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_state() -> str:
    """Anti-CSRF nonce bound to one OAuth flow through the oauth_state cookie."""
    return secrets.token_urlsafe(32)


def generate_code_verifier() -> str:
    """PKCE code verifier (RFC 7636 section 4.1)."""
    return generate_token(CODE_VERIFIER_LENGTH)
