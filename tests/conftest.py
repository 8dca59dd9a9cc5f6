"""Pytest configuration and shared fixtures for CampusFeed tests."""

import os
import sys

# Settings are read at import time; pin the testing profile first
os.environ["ENVIRONMENT"] = "testing"
os.environ["USE_MOCK"] = "true"

from collections.abc import Callable, Generator
from typing import Any

import pytest
from loguru import logger

from campusfeed.auth import AuthSession
from campusfeed.logging import clear_log_context
from campusfeed.memory import build_in_memory_repositories
from campusfeed.models import User
from campusfeed.repository import Repositories
from campusfeed.storage import ClientStateStore

# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()
    clear_log_context()


# =============================================================================
# Repositories and Session
# =============================================================================


@pytest.fixture
def state_store() -> Generator[ClientStateStore, None, None]:
    """In-memory client state store."""
    store = ClientStateStore("sqlite://")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def session() -> AuthSession:
    return AuthSession()


@pytest.fixture
def repos(session: AuthSession) -> Repositories:
    """Isolated, zero-latency in-memory repositories over fresh seed data."""
    return build_in_memory_repositories(session, latency=0)


@pytest.fixture
def sign_in(repos: Repositories) -> Callable[[str], User]:
    """Sign the shared session in as a seed user (by id)."""

    def _sign_in(user_id: str) -> User:
        payload = repos.auth.issue_token(user_id)
        repos.session.sign_in(payload)
        return payload.user

    return _sign_in


# =============================================================================
# Sample Payloads
# =============================================================================


@pytest.fixture
def share_input() -> dict[str, Any]:
    return {
        "post_type": "share",
        "title": "Braised pork rice",
        "content": "Rich, sticky and cheap. Canteen 1, window 4.",
        "category": "food",
        "canteen": "Canteen 1",
        "tags": ["rice", "pork"],
        "images": ["https://images.example.invalid/pork.jpg"],
        "share_type": "recommend",
        "price": 12,
    }


@pytest.fixture
def seeking_input() -> dict[str, Any]:
    return {
        "post_type": "seeking",
        "title": "Late night snacks?",
        "content": "Anything open after 10pm near the south dorms?",
        "budget_range": {"min": 5, "max": 20},
    }


@pytest.fixture
def companion_input() -> dict[str, Any]:
    return {
        "post_type": "companion",
        "title": "Dim sum on Sunday",
        "content": "Looking for two more people for Sunday brunch.",
        "meeting_info": {
            "meeting_time": "2024-09-08T02:00:00Z",
            "location": "West gate",
            "max_people": 3,
            "current_people": 1,
        },
    }
