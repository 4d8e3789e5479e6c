"""
auth/providers.py -- Static OAuth provider registry.

Each supported provider has one ProviderConfig: OAuth2 endpoints, default
scopes, user-info endpoint, whether it takes a PKCE code_verifier, and a
transform that maps the provider's raw user-info JSON into OauthUserDetails.

Transforms are total. Provider responses are untrusted external data, so a
missing field, a wrong type, or a body that is not even a JSON object maps to
an empty value -- never to an exception. The field names below are a contract
with each provider's API.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, TypedDict, cast, get_args

from auth.errors import UnsupportedProviderError
from auth.models import OauthUserDetails

SupportedProvider = Literal["google", "github", "discord", "twitter", "linkedin"]
SUPPORTED_PROVIDERS: tuple[str, ...] = get_args(SupportedProvider)


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]
    transform: Callable[[Any], OauthUserDetails]
    use_code_verifier: bool = False
    # How the client authenticates at token_url (RFC 6749 section 2.3.1).
    token_endpoint_auth_method: str = "client_secret_basic"


# ---------------------------------------------------------------------------
# Raw response shapes (static typing only; nothing is checked at runtime)
# ---------------------------------------------------------------------------


class OidcUserInfo(TypedDict, total=False):
    """Google and LinkedIn OpenID Connect userinfo."""

    sub: str
    name: str
    email: str
    picture: str


class GithubUser(TypedDict, total=False):
    id: int
    login: str
    avatar_url: str


class DiscordUser(TypedDict, total=False):
    id: str
    username: str
    email: str
    avatar: str


class TwitterUserData(TypedDict, total=False):
    id: str
    name: str
    email: str
    profile_image_url: str


class TwitterUser(TypedDict, total=False):
    data: TwitterUserData


# ---------------------------------------------------------------------------
# Field access helpers
# ---------------------------------------------------------------------------


def _obj(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(obj: Mapping[str, Any], key: str) -> str | None:
    """Return obj[key] as a string, or None when absent or not a scalar."""
    value = obj.get(key)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        return str(value)
    return None


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def transform_google(response: Any) -> OauthUserDetails:
    data = cast(OidcUserInfo, _obj(response))
    return OauthUserDetails(
        oauth_user_id=_text(data, "sub") or "",
        email=_text(data, "email"),
        username=_text(data, "name"),
        avatar=_text(data, "picture"),
    )


def transform_discord(response: Any) -> OauthUserDetails:
    data = cast(DiscordUser, _obj(response))
    return OauthUserDetails(
        oauth_user_id=_text(data, "id") or "",
        email=_text(data, "email"),
        username=_text(data, "username"),
        avatar=_text(data, "avatar"),
    )


def transform_twitter(response: Any) -> OauthUserDetails:
    data = cast(TwitterUserData, _obj(cast(TwitterUser, _obj(response)).get("data")))
    return OauthUserDetails(
        oauth_user_id=_text(data, "id") or "",
        email=_text(data, "email"),
        username=_text(data, "name"),
        avatar=_text(data, "profile_image_url"),
    )


def transform_github(response: Any) -> OauthUserDetails:
    # read:user does not grant an email; GitHub's id is numeric.
    data = cast(GithubUser, _obj(response))
    return OauthUserDetails(
        oauth_user_id=_text(data, "id") or "",
        username=_text(data, "login") or "",
        avatar=_text(data, "avatar_url") or "",
        email="",
    )


def transform_linkedin(response: Any) -> OauthUserDetails:
    data = cast(OidcUserInfo, _obj(response))
    return OauthUserDetails(
        oauth_user_id=_text(data, "sub") or "",
        username=_text(data, "name") or "",
        avatar=_text(data, "picture") or "",
        email=_text(data, "email") or "",
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROVIDERS: dict[str, ProviderConfig] = {
    "google": ProviderConfig(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "profile", "email"),
        transform=transform_google,
        use_code_verifier=True,
    ),
    "discord": ProviderConfig(
        name="discord",
        authorize_url="https://discord.com/oauth2/authorize",
        token_url="https://discord.com/api/oauth2/token",
        userinfo_url="https://discord.com/api/users/@me",
        scopes=("identify",),
        transform=transform_discord,
        use_code_verifier=True,
    ),
    "twitter": ProviderConfig(
        name="twitter",
        authorize_url="https://twitter.com/i/oauth2/authorize",
        token_url="https://api.twitter.com/2/oauth2/token",
        userinfo_url="https://api.twitter.com/2/users/me",
        scopes=("users.read", "tweet.read"),
        transform=transform_twitter,
        use_code_verifier=True,
    ),
    "github": ProviderConfig(
        name="github",
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        userinfo_url="https://api.github.com/user",
        scopes=("read:user",),
        transform=transform_github,
        token_endpoint_auth_method="client_secret_post",
    ),
    "linkedin": ProviderConfig(
        name="linkedin",
        authorize_url="https://www.linkedin.com/oauth/v2/authorization",
        token_url="https://www.linkedin.com/oauth/v2/accessToken",  # noqa: S106 -- URL, not a password
        userinfo_url="https://api.linkedin.com/v2/userinfo",
        scopes=("openid", "profile", "email"),
        transform=transform_linkedin,
        token_endpoint_auth_method="client_secret_post",
    ),
}


def get_provider(name: str) -> ProviderConfig:
    """Return the registry entry for name. Raises UnsupportedProviderError."""
    try:
        return PROVIDERS[name]
    except KeyError:
        raise UnsupportedProviderError(f"Unsupported OAuth provider: {name!r}") from None
