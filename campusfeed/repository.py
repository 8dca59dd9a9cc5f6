"""Generic in-memory store and the repository factory.

:class:`MemoryStore` is the single mutable collection owned by one
in-memory repository; no two repositories share a store.
:class:`RepositoryFactory` picks the repository family once, at startup,
from ``settings.use_mock``. The choice is never revisited at runtime.

Example:
    >>> from campusfeed.repository import RepositoryFactory
    >>>
    >>> repos = RepositoryFactory().build()
    >>> page = await repos.posts.list_posts({"category": "food"})
    >>> for post in page.items:
    ...     print(post.title)
    >>> await repos.aclose()
"""

from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any, Generic, TypeVar

from campusfeed.auth import AuthSession
from campusfeed.config import Settings, settings
from campusfeed.interfaces import (
    IAdminRepository,
    IAuthRepository,
    ICommentsRepository,
    IPostsRepository,
    IUsersRepository,
)
from campusfeed.logging import logger

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T")


# =============================================================================
# Generic Memory Store
# =============================================================================


class MemoryStore(Generic[T]):
    """Insertion-ordered collection of entities keyed by id.

    Type Parameter:
        T: Entity type (Post, User, Comment, ...)

    Args:
        items: Initial entities
        key: Function extracting the id of an entity (defaults to ``.id``)

    Example:
        >>> store = MemoryStore[User](seed_users)
        >>> user = store.get("u1")
        >>> admins = store.filter(lambda u: u.role == Role.ADMIN)
    """

    def __init__(
        self,
        items: Iterable[T] = (),
        key: Callable[[T], str] | None = None,
    ):
        self._key = key or (lambda entity: getattr(entity, "id"))
        self._items: dict[str, T] = {}
        for item in items:
            self.add(item)

    def get(self, entity_id: str) -> T | None:
        """Get entity by ID, or None if not found."""
        return self._items.get(entity_id)

    def add(self, entity: T) -> T:
        """Insert or replace an entity."""
        self._items[self._key(entity)] = entity
        return entity

    def update(self, entity: T) -> T:
        """Replace an existing entity.

        Raises:
            KeyError: If the entity is not stored
        """
        entity_id = self._key(entity)
        if entity_id not in self._items:
            raise KeyError(entity_id)
        self._items[entity_id] = entity
        return entity

    def delete(self, entity_id: str) -> bool:
        """Delete entity by ID; returns False if not found."""
        return self._items.pop(entity_id, None) is not None

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        return [item for item in self._items.values() if predicate(item)]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._items


# =============================================================================
# Repository Bundle and Factory
# =============================================================================


class Repositories:
    """The five aggregate repositories of one family, plus the shared session.

    Args:
        posts: Posts repository
        comments: Comments repository
        users: Users repository
        admin: Admin repository
        auth: Auth repository
        session: Viewer session shared by all of them
        closers: Async callables releasing transport resources
    """

    def __init__(
        self,
        posts: IPostsRepository,
        comments: ICommentsRepository,
        users: IUsersRepository,
        admin: IAdminRepository,
        auth: IAuthRepository,
        session: AuthSession,
        closers: Sequence[Callable[[], Any]] = (),
    ):
        self.posts = posts
        self.comments = comments
        self.users = users
        self.admin = admin
        self.auth = auth
        self.session = session
        self._closers = list(closers)

    async def aclose(self) -> None:
        """Release transport resources (no-op for the in-memory family)."""
        for closer in self._closers:
            await closer()
        self._closers.clear()

    async def __aenter__(self) -> "Repositories":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


class RepositoryFactory:
    """Build the repository family selected by configuration.

    Args:
        config: Settings to read ``use_mock`` and friends from
        session: Viewer session (a fresh one when omitted)

    Example:
        >>> factory = RepositoryFactory(session=AuthSession(store))
        >>> repos = factory.build()
        >>> isinstance(repos.posts, IPostsRepository)
        True
    """

    def __init__(self, config: Settings | None = None, session: AuthSession | None = None):
        self.config = config or settings
        self.session = session or AuthSession()

    def build(self, use_mock: bool | None = None) -> Repositories:
        """Construct all repositories of one family.

        Args:
            use_mock: Override ``settings.use_mock`` (tests and the CLI)
        """
        use_mock = self.config.use_mock if use_mock is None else use_mock
        if use_mock:
            return self.build_in_memory()
        return self.build_remote()

    def build_in_memory(self) -> Repositories:
        from campusfeed.memory import build_in_memory_repositories

        logger.info("Using in-memory repositories")
        return build_in_memory_repositories(self.session, latency=self.config.mock_latency)

    def build_remote(self) -> Repositories:
        from campusfeed.api import ApiClient
        from campusfeed.remote import (
            HttpAdminRepository,
            HttpAuthRepository,
            HttpCommentsRepository,
            HttpPostsRepository,
            HttpUsersRepository,
        )

        if self.config.has_default_api_url:
            logger.warning(
                f"API_BASE_URL is not configured; requests will go to {self.config.api_base_url}"
            )
        logger.info(f"Using HTTP repositories against {self.config.api_base_url}")

        client = ApiClient(
            base_url=self.config.api_base_url,
            get_token=self.session.get_token,
            timeout=self.config.request_timeout,
        )
        return Repositories(
            posts=HttpPostsRepository(client),
            comments=HttpCommentsRepository(client),
            users=HttpUsersRepository(client),
            admin=HttpAdminRepository(client),
            auth=HttpAuthRepository(client),
            session=self.session,
            closers=[client.close],
        )


__all__ = ["MemoryStore", "Repositories", "RepositoryFactory"]
