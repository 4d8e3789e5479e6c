"""Unit tests for auth/store.py -- session lifecycle and user provisioning.

Covers:
- create() issues a token whose hash is the stored id
- validate() round trip, unknown token, expiry (row reaped), half-life renewal
- invalidate() is idempotent
- storage failures raise StorageError instead of looking like "invalid"
- upsert_oauth_user() creates once, then refreshes profile fields
"""

from datetime import timedelta

import pytest
from sqlalchemy import text

from auth.errors import StorageError
from auth.models import OauthUserDetails, User
from auth.store import SessionStore, UserStore, open_engine
from auth.tokens import derive_session_id
from tests.fakes import FakeClock

EXPIRATION = 30 * 24 * 60 * 60  # 30 days


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = open_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def users(engine, clock):
    return UserStore(engine, clock=clock)


@pytest.fixture
def store(engine, clock):
    return SessionStore(engine, expiration_seconds=EXPIRATION, clock=clock)


@pytest.fixture
def user(users):
    return users.create_user(User(id="", name="Ada", email="ada@example.com"))


# ---------------------------------------------------------------------------
# create / validate
# ---------------------------------------------------------------------------


def test_create_returns_token_and_hashed_id(store, user, clock):
    session = store.create(user.id)
    assert session.token
    assert session.id == derive_session_id(session.token)
    assert session.user_id == user.id
    assert session.created_at == clock.now
    assert session.expires_at == clock.now + timedelta(seconds=EXPIRATION)


def test_stored_row_never_contains_token(store, user):
    session = store.create(user.id)
    stored = store.get(session.id)
    assert stored is not None
    assert stored.token is None
    assert store.get(session.token) is None


def test_validate_round_trip(store, user):
    session = store.create(user.id)
    result = store.validate(session.token)
    assert result.is_valid
    assert result.session.id == session.id
    assert result.user.id == user.id
    assert result.user.email == "ada@example.com"


def test_validate_unknown_token_is_invalid(store, user):
    store.create(user.id)
    result = store.validate("not-a-real-token")
    assert result.session is None
    assert result.user is None


def test_validate_empty_token_is_invalid(store):
    assert not store.validate("").is_valid


def test_validate_by_id_instead_of_token_is_invalid(store, user):
    """Knowing the stored id (e.g. from a DB leak) must not authenticate."""
    session = store.create(user.id)
    assert not store.validate(session.id).is_valid


# ---------------------------------------------------------------------------
# expiry
# ---------------------------------------------------------------------------


def test_expired_session_is_invalid_and_deleted(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION + 1)
    result = store.validate(session.token)
    assert result.session is None and result.user is None
    assert store.get(session.id) is None


def test_session_is_dead_at_exact_expiry(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION)
    assert not store.validate(session.token).is_valid
    assert store.get(session.id) is None


# ---------------------------------------------------------------------------
# half-life renewal
# ---------------------------------------------------------------------------


def test_first_half_leaves_expiry_unchanged(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION // 2 - 1)
    result = store.validate(session.token)
    assert result.is_valid
    assert result.session.expires_at == session.expires_at
    assert not result.renewed
    assert store.get(session.id).expires_at == session.expires_at


def test_second_half_renews_expiry(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION // 2)
    result = store.validate(session.token)
    expected = clock.now + timedelta(seconds=EXPIRATION)
    assert result.renewed
    assert result.session.expires_at == expected
    assert store.get(session.id).expires_at == expected


def test_renewed_session_outlives_original_expiry(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION - 60)
    assert store.validate(session.token).is_valid
    clock.advance(seconds=120)  # past the original expiry
    assert store.validate(session.token).is_valid


def test_renewal_happens_again_once_past_the_new_midpoint(store, user, clock):
    session = store.create(user.id)
    clock.advance(seconds=EXPIRATION // 2)
    first = store.validate(session.token).session.expires_at
    clock.advance(seconds=1)
    assert store.validate(session.token).session.expires_at == first
    clock.advance(seconds=EXPIRATION // 2)
    assert store.validate(session.token).session.expires_at == clock.now + timedelta(seconds=EXPIRATION)


def test_remaining_seconds(store, user, clock):
    session = store.create(user.id)
    assert store.remaining_seconds(session) == EXPIRATION
    clock.advance(seconds=EXPIRATION + 5)
    assert store.remaining_seconds(session) == 0


# ---------------------------------------------------------------------------
# invalidate
# ---------------------------------------------------------------------------


def test_invalidate_deletes_session(store, user):
    session = store.create(user.id)
    store.invalidate(session.id)
    assert store.get(session.id) is None
    assert not store.validate(session.token).is_valid


def test_invalidate_is_idempotent(store, user):
    session = store.create(user.id)
    store.invalidate(session.id)
    store.invalidate(session.id)
    store.invalidate("never-existed")


def test_invalidate_user_sessions(store, users, user):
    other = users.create_user(User(id="", name="Grace"))
    store.create(user.id)
    store.create(user.id)
    keep = store.create(other.id)
    assert store.invalidate_user_sessions(user.id) == 2
    assert store.validate(keep.token).is_valid


# ---------------------------------------------------------------------------
# storage failures
# ---------------------------------------------------------------------------


def test_create_for_unknown_user_raises_storage_error(store):
    with pytest.raises(StorageError):
        store.create("no-such-user")


def test_validate_storage_failure_is_not_invalid(store, user, engine):
    session = store.create(user.id)
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE sessions"))
        conn.commit()
    with pytest.raises(StorageError):
        store.validate(session.token)


def test_invalidate_storage_failure_raises(store, engine):
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE sessions"))
        conn.commit()
    with pytest.raises(StorageError):
        store.invalidate("anything")


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------


def test_upsert_oauth_user_creates_then_reuses(users):
    details = OauthUserDetails(oauth_user_id="4242", username="octocat", avatar="https://a/1", email="")
    first = users.upsert_oauth_user("github", details)
    second = users.upsert_oauth_user("github", details)
    assert first.id == second.id
    assert first.name == "octocat"
    assert first.email is None
    assert users.get_by_oauth("github", "4242").id == first.id


def test_upsert_oauth_user_refreshes_profile_without_erasing(users):
    users.upsert_oauth_user("google", OauthUserDetails(oauth_user_id="s1", username="Ada", email="ada@example.com"))
    updated = users.upsert_oauth_user("google", OauthUserDetails(oauth_user_id="s1", username="Ada L.", email=None))
    assert updated.name == "Ada L."
    assert updated.email == "ada@example.com"
    assert users.get_by_id(updated.id).name == "Ada L."


def test_same_provider_id_on_different_providers_are_distinct_users(users):
    a = users.upsert_oauth_user("github", OauthUserDetails(oauth_user_id="1"))
    b = users.upsert_oauth_user("discord", OauthUserDetails(oauth_user_id="1"))
    assert a.id != b.id


def test_deleting_user_cascades_to_sessions(store, user, engine):
    session = store.create(user.id)
    with engine.connect() as conn:
        conn.execute(text("DELETE FROM users WHERE id = :id"), {"id": user.id})
        conn.commit()
    assert store.get(session.id) is None
