"""Authentication session and service.

:class:`AuthSession` holds the viewer's token and profile and mirrors the
token into the persisted client state. Both repository families read the
viewer from it: the HTTP client sends the token, the in-memory repositories
look up the signed-in user.

Example:
    >>> session = AuthSession(store)
    >>> service = AuthService(repos.auth, session)
    >>> user = await service.login("alice@campus.edu", "secret123")
    >>> session.user_id == user.id
    True
"""

from campusfeed.errors import AuthenticationError
from campusfeed.interfaces import IAuthRepository
from campusfeed.logging import bind_viewer, logger
from campusfeed.models import (
    AuthPayload,
    LoginInput,
    RegisterInput,
    Role,
    User,
    validate_input,
)
from campusfeed.storage import ClientStateStore
from campusfeed.utils import redact_token


class AuthSession:
    """Current viewer: token plus (once resolved) profile.

    Args:
        store: Persisted client state; when omitted the token lives in memory only
    """

    def __init__(self, store: ClientStateStore | None = None):
        self.store = store
        self.token: str | None = None
        self.user: User | None = None

    def restore(self) -> str | None:
        """Load a previously persisted token; the profile stays unresolved."""
        if self.store is not None:
            self.token = self.store.get_token()
        return self.token

    def sign_in(self, payload: AuthPayload) -> None:
        self.token = payload.token
        self.user = payload.user
        if self.store is not None:
            self.store.set_token(payload.token)
        bind_viewer(payload.user.id)

    def set_user(self, user: User) -> None:
        self.user = user
        bind_viewer(user.id)

    def sign_out(self) -> None:
        self.token = None
        self.user = None
        if self.store is not None:
            self.store.clear_token()
        bind_viewer(None)

    def get_token(self) -> str | None:
        return self.token

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user else None

    @property
    def role(self) -> Role | None:
        return self.user.role if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    def require_user(self) -> User:
        """Return the signed-in user.

        Raises:
            AuthenticationError: If nobody is signed in
        """
        if self.user is None:
            raise AuthenticationError("Please sign in first")
        return self.user


class AuthService:
    """Login, registration, profile refresh and logout.

    Args:
        repository: Auth repository (HTTP or in-memory)
        session: Session updated on every successful call
    """

    def __init__(self, repository: IAuthRepository, session: AuthSession):
        self.repository = repository
        self.session = session

    async def login(self, email: str, password: str) -> User:
        """Sign in with email and password.

        Raises:
            InvalidInputError: Malformed email or password shorter than 6 characters
            AuthenticationError: Wrong credentials
        """
        data = validate_input(LoginInput, {"email": email, "password": password})
        payload = await self.repository.login(data)
        self.session.sign_in(payload)
        logger.info(f"Signed in as {payload.user.id} ({payload.user.role})")
        return payload.user

    async def register(self, name: str, email: str, password: str) -> User:
        """Create an account and sign in.

        Raises:
            InvalidInputError: Malformed fields, password outside 8-64
                characters, or email already registered
        """
        data = validate_input(
            RegisterInput, {"name": name, "email": email, "password": password}
        )
        payload = await self.repository.register(data)
        self.session.sign_in(payload)
        logger.info(f"Registered user {payload.user.id}")
        return payload.user

    async def me(self) -> User:
        """Refresh the viewer's profile from the backend.

        An expired or rejected token signs the session out before re-raising.
        """
        if not self.session.token:
            raise AuthenticationError("Please sign in first")
        try:
            user = await self.repository.me()
        except AuthenticationError:
            logger.info(f"Token {redact_token(self.session.token)} rejected, signing out")
            self.session.sign_out()
            raise
        self.session.set_user(user)
        return user

    async def restore(self) -> User | None:
        """Resume a persisted session, returning None when there is none to resume."""
        if not self.session.restore():
            return None
        try:
            return await self.me()
        except AuthenticationError:
            return None

    async def logout(self) -> None:
        """Best-effort logout: backend failures are logged, the session is always cleared."""
        try:
            if self.session.token:
                await self.repository.logout()
        except Exception as exc:
            logger.warning(f"Logout request failed, clearing session anyway: {exc!r}")
        finally:
            self.session.sign_out()
        logger.info("Signed out")


__all__ = ["AuthSession", "AuthService"]
