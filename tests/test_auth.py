"""Tests for the auth session and service."""

import httpx
import pytest

from campusfeed.api import ApiClient
from campusfeed.auth import AuthService, AuthSession
from campusfeed.errors import AuthenticationError, InvalidInputError, RemoteError
from campusfeed.logging import get_log_context
from campusfeed.memory import build_in_memory_repositories
from campusfeed.remote import HttpAuthRepository
from campusfeed.seed import SEED_PASSWORD


@pytest.fixture
def persisted(state_store):
    """Repositories whose session mirrors its token into the state store."""
    session = AuthSession(state_store)
    return build_in_memory_repositories(session, latency=0)


@pytest.fixture
def service(persisted):
    return AuthService(persisted.auth, persisted.session)


class TestAuthSession:
    def test_anonymous(self, session):
        assert not session.is_authenticated
        assert session.user_id is None
        assert session.role is None
        with pytest.raises(AuthenticationError):
            session.require_user()

    def test_sign_in_sets_context(self, repos):
        payload = repos.auth.issue_token("u1")
        repos.session.sign_in(payload)
        assert repos.session.require_user().id == "u1"
        assert get_log_context()["viewer_id"] == "u1"

    def test_sign_out_detaches_viewer(self, repos):
        repos.session.sign_in(repos.auth.issue_token("u1"))
        repos.session.sign_out()
        assert "viewer_id" not in get_log_context()


@pytest.mark.asyncio
async def test_login_persists_token(service, persisted, state_store):
    user = await service.login("alice@campus.edu", SEED_PASSWORD)

    assert user.id == "u1"
    assert persisted.session.is_authenticated
    assert state_store.get_token() == persisted.session.token


@pytest.mark.asyncio
async def test_login_validates_locally(service, mocker):
    spy = mocker.spy(service.repository, "login")
    with pytest.raises(InvalidInputError):
        await service.login("not-an-email", SEED_PASSWORD)
    spy.assert_not_called()


@pytest.mark.asyncio
async def test_register_signs_in(service, persisted):
    user = await service.register("Zed", "zed@campus.edu", "longenough")
    assert persisted.session.user_id == user.id
    assert user.role == "user"


@pytest.mark.asyncio
async def test_me_refreshes_profile(service, persisted):
    await service.login("bob@campus.edu", SEED_PASSWORD)
    persisted.users.lookup("u2").name = "Robert Wang"

    user = await service.me()

    assert user.name == "Robert Wang"
    assert persisted.session.user.name == "Robert Wang"


@pytest.mark.asyncio
async def test_me_without_token(service):
    with pytest.raises(AuthenticationError):
        await service.me()


@pytest.mark.asyncio
async def test_rejected_token_signs_out(service, persisted, state_store):
    await service.login("alice@campus.edu", SEED_PASSWORD)
    await persisted.auth.logout()  # server forgets the token

    with pytest.raises(AuthenticationError):
        await service.me()

    assert not persisted.session.is_authenticated
    assert state_store.get_token() is None


@pytest.mark.asyncio
async def test_restore_resumes_session(persisted, state_store):
    payload = persisted.auth.issue_token("u3")
    state_store.set_token(payload.token)

    fresh = AuthSession(state_store)
    user = await AuthService(persisted.auth, fresh).restore()

    assert user is not None and user.id == "u3"
    assert fresh.user_id == "u3"


@pytest.mark.asyncio
async def test_restore_with_nothing_stored(persisted, state_store):
    assert await AuthService(persisted.auth, AuthSession(state_store)).restore() is None


@pytest.mark.asyncio
async def test_logout_is_best_effort(service, persisted, state_store, mocker):
    await service.login("alice@campus.edu", SEED_PASSWORD)
    mocker.patch.object(service.repository, "logout", side_effect=RemoteError())

    await service.logout()

    assert persisted.session.token is None
    assert state_store.get_token() is None


@pytest.mark.asyncio
async def test_logout_survives_dropped_connection(state_store):
    def handler(request):
        raise httpx.RemoteProtocolError("server disconnected")

    session = AuthSession(state_store)
    session.token = "tok"
    state_store.set_token("tok")
    client = ApiClient(
        "https://api.campus.test",
        get_token=session.get_token,
        transport=httpx.MockTransport(handler),
    )

    async with client:
        await AuthService(HttpAuthRepository(client), session).logout()

    assert session.token is None
    assert state_store.get_token() is None


@pytest.mark.asyncio
async def test_logout_survives_unexpected_error(service, persisted, mocker):
    await service.login("alice@campus.edu", SEED_PASSWORD)
    mocker.patch.object(service.repository, "logout", side_effect=RuntimeError("boom"))

    await service.logout()

    assert not persisted.session.is_authenticated
