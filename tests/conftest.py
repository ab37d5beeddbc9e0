"""
Pytest configuration.

Adds the project root to the Python path so that tests can import the
domain, repositories, services and api packages, and provides fixtures that
wire services to in-memory repositories.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.user import CurrentUser, Role, User  # noqa: E402
from tests.fakes import ADMIN_ID, ALICE_ID, BOB_ID, CAROL_ID, NOW, build_fake_context  # noqa: E402


@pytest.fixture
def users():
    return [
        User(user_id=ADMIN_ID, name="Admin", role=Role.ADMIN.value),
        User(user_id=ALICE_ID, name="Alice", role=Role.TELECALLER.value, team="Inbound"),
        User(user_id=BOB_ID, name="Bob", role=Role.SALES_EXECUTIVE.value, team="Field"),
        User(user_id=CAROL_ID, name="Carol", role=Role.SALES_EXECUTIVE.value, team="Field"),
    ]


@pytest.fixture
def ctx(users):
    return build_fake_context(now=NOW, users=users)


@pytest.fixture
def admin():
    return CurrentUser(id=ADMIN_ID, role=Role.ADMIN.value)


@pytest.fixture
def telecaller():
    return CurrentUser(id=ALICE_ID, role=Role.TELECALLER.value)
