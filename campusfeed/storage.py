"""Persisted client state.

Only two durable artifacts exist: the authentication token and a cached
copy of the last fetched post list. Both live in a small SQLite key/value
table managed with SQLModel; everything else is refetched.

Example:
    >>> from campusfeed.storage import ClientStateStore
    >>>
    >>> store = ClientStateStore("sqlite://")
    >>> store.initialize()
    >>> store.set_token("abc.def.ghi")
    >>> store.get_token()
    'abc.def.ghi'
    >>> store.close()
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine

from campusfeed.config import settings
from campusfeed.logging import logger
from campusfeed.models import Post, post_list_adapter
from campusfeed.utils import redact_token, utc_now_iso

AUTH_TOKEN_KEY = "auth_token"
POSTS_CACHE_KEY = "posts:v1"
PERSISTED_KEYS = frozenset({AUTH_TOKEN_KEY, POSTS_CACHE_KEY})


class StateEntry(SQLModel, table=True):
    """One persisted client value.

    Attributes:
        key: Fixed string key (primary key)
        value: Serialized value
        updated_at: ISO8601 UTC timestamp of the last write
    """

    __tablename__ = "client_state"

    key: str = Field(primary_key=True)
    value: str
    updated_at: str


class ClientStateStore:
    """Key/value store for the token and the cached post list.

    Args:
        database_url: SQLAlchemy URL (defaults to settings.state_db_url)
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or settings.state_db_url
        self.engine: Any = None
        self.session: Session | None = None

    def initialize(self) -> None:
        """Create the engine and the state table."""
        if self.engine is not None:
            return

        engine_options: dict[str, Any] = {
            "echo": False,
            "connect_args": {"check_same_thread": False},
        }
        if self.database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each checkout sees an empty database
            engine_options["poolclass"] = StaticPool
        elif self.database_url.startswith("sqlite:///"):
            Path(self.database_url.removeprefix("sqlite:///")).parent.mkdir(
                parents=True, exist_ok=True
            )

        self.engine = create_engine(self.database_url, **engine_options)
        SQLModel.metadata.create_all(self.engine, tables=[StateEntry.__table__])
        self.session = Session(self.engine)
        logger.debug(f"Client state store ready at {self.database_url}")

    def close(self) -> None:
        """Close the session and dispose of the engine."""
        if self.session is not None:
            self.session.close()
            self.session = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def __enter__(self) -> "ClientStateStore":
        self.initialize()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _require_session(self, key: str) -> Session:
        if key not in PERSISTED_KEYS:
            raise ValueError(f"Unknown client state key: {key}")
        if self.session is None:
            raise RuntimeError("Client state store not initialized")
        return self.session

    # -------------------------------------------------------------------------
    # Raw key/value access
    # -------------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        session = self._require_session(key)
        entry = session.get(StateEntry, key)
        return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        session = self._require_session(key)
        entry = session.get(StateEntry, key)

        if entry:
            entry.value = value
            entry.updated_at = utc_now_iso()
        else:
            entry = StateEntry(key=key, value=value, updated_at=utc_now_iso())
            session.add(entry)

        session.commit()

    def delete(self, key: str) -> bool:
        """Remove a key; returns False if it was not stored."""
        session = self._require_session(key)
        entry = session.get(StateEntry, key)
        if entry is None:
            return False
        session.delete(entry)
        session.commit()
        return True

    # -------------------------------------------------------------------------
    # Auth token
    # -------------------------------------------------------------------------

    def get_token(self) -> str | None:
        return self.get(AUTH_TOKEN_KEY)

    def set_token(self, token: str) -> None:
        self.set(AUTH_TOKEN_KEY, token)
        logger.debug(f"Stored auth token {redact_token(token)}")

    def clear_token(self) -> None:
        self.delete(AUTH_TOKEN_KEY)

    # -------------------------------------------------------------------------
    # Cached post list
    # -------------------------------------------------------------------------

    def save_cached_posts(self, posts: Sequence[Post]) -> None:
        payload = post_list_adapter.dump_json(list(posts)).decode("utf-8")
        self.set(POSTS_CACHE_KEY, payload)

    def load_cached_posts(self) -> list[Post]:
        """Load the cached post list; a corrupt cache is dropped and reads as empty."""
        raw = self.get(POSTS_CACHE_KEY)
        if not raw:
            return []
        try:
            return post_list_adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(f"Discarding unreadable post cache: {exc.error_count()} errors")
            self.delete(POSTS_CACHE_KEY)
            return []


__all__ = [
    "AUTH_TOKEN_KEY",
    "POSTS_CACHE_KEY",
    "PERSISTED_KEYS",
    "StateEntry",
    "ClientStateStore",
]
