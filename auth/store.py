"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper. UserStore and SessionStore are the
repositories; _row_to_user / _row_to_session are the mappers. Route,
middleware, and OAuth code never touch SQL directly.

Session lifecycle (SessionStore.validate):
  ACTIVE  --validate, past half-life-->  RENEWED (ACTIVE with new expiry)
  ACTIVE  --validate, past expiry----->  EXPIRED (row deleted)
  ACTIVE  --logout------------------->   DELETED
There is no background sweeper: dead rows are reaped on the next validation.

Renewal is an unconditional UPDATE ... SET expires_at = now + EXPIRATION.
Two concurrent validations of the same session may both write; each write
leaves a valid future expiry, so the last one winning is harmless.

Errors:
  Every SQLAlchemyError is re-raised as StorageError. "No such session" is a
  normal return value, never an exception -- callers must be able to tell an
  outage apart from an invalid credential.

Timestamps are stored as ISO 8601 UTC strings so they round-trip exactly on
every backend, including SQLite.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StorageError
from auth.models import OauthUserDetails, Session, SessionValidationResult, User
from auth.tokens import derive_session_id, generate_session_token

logger = logging.getLogger("sessiongate.auth.store")

DEFAULT_EXPIRATION_SECONDS = 30 * 24 * 60 * 60

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("name", Text),
    Column("email", Text),
    Column("avatar", Text),
    Column("oauth_provider", String(30)),
    Column("oauth_user_id", Text),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("oauth_provider", "oauth_user_id", name="uq_users_oauth_identity"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),  # SHA-256 hex of the token
    Column("user_id", String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on each new SQLite connection.

    SQLite PRAGMAs are per-connection and are not inherited by new connections
    from the pool. foreign_keys=ON makes sessions.user_id enforce (and cascade).
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def open_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure the schema exists.

    Raises StorageError if the database cannot be reached.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    try:
        _metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise StorageError("could not initialize auth schema") from exc
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s: %s", operation, exc.__class__.__name__)
        raise StorageError(f"{operation} failed") from exc


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User rows.

    Usage:
        engine = open_engine("sqlite:///sessiongate.db")
        users = UserStore(engine)
        user = users.upsert_oauth_user("github", details)
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = _utcnow) -> None:
        self.engine = engine
        self._clock = clock

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with _storage_errors("get user"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_oauth(self, provider: str, oauth_user_id: str) -> User | None:
        """Look up a user by its (oauth_provider, oauth_user_id) pair."""
        with _storage_errors("get user by oauth identity"), self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    (_users.c.oauth_provider == provider) & (_users.c.oauth_user_id == oauth_user_id)
                )
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def create_user(self, user: User) -> User:
        """Insert a user row. A missing id is replaced with a fresh uuid4 hex."""
        user_id = user.id or uuid.uuid4().hex
        created_at = _to_iso(self._clock())
        with _storage_errors("create user"), self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=user.email,
                    avatar=user.avatar,
                    oauth_provider=user.oauth_provider,
                    oauth_user_id=user.oauth_user_id,
                    created_at=created_at,
                )
            )
            conn.commit()
        return User(
            id=user_id,
            name=user.name,
            email=user.email,
            avatar=user.avatar,
            oauth_provider=user.oauth_provider,
            oauth_user_id=user.oauth_user_id,
            created_at=created_at,
        )

    def upsert_oauth_user(self, provider: str, details: OauthUserDetails) -> User:
        """Return the user linked to a provider identity, creating it on first login.

        Profile fields are refreshed from the provider on every login; empty
        values never overwrite stored ones. A concurrent first login for the
        same identity loses the INSERT race on the unique constraint and falls
        back to reading the winner's row.
        """
        existing = self.get_by_oauth(provider, details.oauth_user_id)
        if existing is None:
            try:
                with self.engine.connect() as conn:
                    return self._insert_oauth_user(conn, provider, details)
            except IntegrityError:
                existing = self.get_by_oauth(provider, details.oauth_user_id)
                if existing is None:
                    raise StorageError("create user failed") from None
            except SQLAlchemyError as exc:
                raise StorageError("create user failed") from exc

        updates = {
            key: value
            for key, value in (("name", details.username), ("email", details.email), ("avatar", details.avatar))
            if value
        }
        if updates:
            with _storage_errors("update user"), self.engine.connect() as conn:
                conn.execute(_users.update().where(_users.c.id == existing.id).values(**updates))
                conn.commit()
            for key, value in updates.items():
                setattr(existing, key, value)
        return existing

    def _insert_oauth_user(self, conn, provider: str, details: OauthUserDetails) -> User:
        user = User(
            id=uuid.uuid4().hex,
            name=details.username or None,
            email=details.email or None,
            avatar=details.avatar or None,
            oauth_provider=provider,
            oauth_user_id=details.oauth_user_id,
            created_at=_to_iso(self._clock()),
        )
        conn.execute(
            _users.insert().values(
                id=user.id,
                name=user.name,
                email=user.email,
                avatar=user.avatar,
                oauth_provider=user.oauth_provider,
                oauth_user_id=user.oauth_user_id,
                created_at=user.created_at,
            )
        )
        conn.commit()
        logger.info("Provisioned user %s from %s", user.id, provider)
        return user


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for Session rows and the session lifecycle policy.

    The clock is injectable so expiry and renewal can be tested against fixed
    instants. It must return timezone-aware UTC datetimes.
    """

    def __init__(
        self,
        engine: Engine,
        expiration_seconds: int = DEFAULT_EXPIRATION_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine
        self.expiration = timedelta(seconds=expiration_seconds)
        self.half_life = self.expiration / 2
        self._clock = clock

    def create(self, user_id: str) -> Session:
        """Issue a session for user_id.

        The returned Session carries the plaintext token; it is the only place
        the token ever exists server-side. Raises StorageError on failure
        (including an unknown user_id, rejected by the foreign key).
        """
        token = generate_session_token()
        now = self._clock()
        session = Session(
            id=derive_session_id(token),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.expiration,
            token=token,
        )
        with _storage_errors("create session"), self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    created_at=_to_iso(session.created_at),
                    expires_at=_to_iso(session.expires_at),
                )
            )
            conn.commit()
        logger.debug("Created session %s... for user %s", session.id[:8], user_id)
        return session

    def validate(self, token: str) -> SessionValidationResult:
        """Resolve a client token to its session and user, applying expiry policy.

        Returns an empty SessionValidationResult when the token is unknown or
        the session has expired (the expired row is deleted). Renews the
        expiry to now + EXPIRATION once the session is in the second half of
        its lifetime. Raises StorageError on persistence failure.
        """
        if not token:
            return SessionValidationResult()
        session_id = derive_session_id(token)
        with _storage_errors("validate session"), self.engine.connect() as conn:
            row = conn.execute(
                select(
                    _sessions.c.id.label("session_id"),
                    _sessions.c.user_id.label("session_user_id"),
                    _sessions.c.created_at.label("session_created_at"),
                    _sessions.c.expires_at.label("session_expires_at"),
                    _users,
                )
                .select_from(_sessions.join(_users, _sessions.c.user_id == _users.c.id))
                .where(_sessions.c.id == session_id)
            ).fetchone()
            if row is None:
                return SessionValidationResult()

            session = Session(
                id=row.session_id,
                user_id=row.session_user_id,
                created_at=_from_iso(row.session_created_at),
                expires_at=_from_iso(row.session_expires_at),
            )
            user = _row_to_user(row)
            now = self._clock()

            if now >= session.expires_at:
                conn.execute(_sessions.delete().where(_sessions.c.id == session.id))
                conn.commit()
                logger.debug("Reaped expired session %s...", session.id[:8])
                return SessionValidationResult()

            renewed = False
            if now >= session.expires_at - self.half_life:
                session.expires_at = now + self.expiration
                conn.execute(
                    _sessions.update()
                    .where(_sessions.c.id == session.id)
                    .values(expires_at=_to_iso(session.expires_at))
                )
                conn.commit()
                logger.debug("Renewed session %s...", session.id[:8])
                renewed = True

        return SessionValidationResult(session=session, user=user, renewed=renewed)

    def get(self, session_id: str) -> Session | None:
        """Return the stored row for session_id without applying any policy."""
        with _storage_errors("get session"), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def invalidate(self, session_id: str) -> None:
        """Delete a session. Deleting an id that does not exist is not an error."""
        with _storage_errors("invalidate session"), self.engine.connect() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()

    def invalidate_user_sessions(self, user_id: str) -> int:
        """Delete every session belonging to user_id. Returns the number removed."""
        with _storage_errors("invalidate user sessions"), self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def remaining_seconds(self, session: Session) -> int:
        """Seconds until session expires, floored at zero. Used for cookie Max-Age."""
        remaining = (session.expires_at - self._clock()).total_seconds()
        return max(int(remaining), 0)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        avatar=row.avatar,
        oauth_provider=row.oauth_provider,
        oauth_user_id=row.oauth_user_id,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        created_at=_from_iso(row.created_at),
        expires_at=_from_iso(row.expires_at),
    )
