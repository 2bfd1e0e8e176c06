"""Shared pytest fixtures."""

from uuid import UUID

import bcrypt
import pytest

from dndtracker.core.modules.session.models import UserData
from dndtracker.core.modules.session.service import SessionService
from dndtracker.core.modules.transaction.service import TransactionService
from dndtracker.core.modules.user.models import User
from dndtracker.core.modules.user.service import UserService
from tests.fakes import TEST_PASSWORD, FakeDatabase, FakeTransactionBackend, make_core


@pytest.fixture(scope="session")
def password_hash():
    """One real bcrypt hash, computed once with the cheapest cost factor."""
    return bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def transaction_backend():
    return FakeTransactionBackend()


@pytest.fixture
def transaction_service(database, transaction_backend):
    return TransactionService(database, backend=transaction_backend)


@pytest.fixture
def session_service(database):
    service = SessionService(database)
    service.set_core(make_core(database, session_cleanup_interval=0))
    return service


@pytest.fixture
def user_service(database, transaction_service):
    service = UserService(database)
    core = make_core(database, transaction_service)
    service.set_core(core)
    transaction_service.set_core(core)
    return service


@pytest.fixture
def mock_user(password_hash):
    """Create a verified user for testing."""
    return User(
        id=UUID("87654321-4321-8765-4321-876543218765"),
        email="adventurer@example.com",
        username="adventurer",
        password_hash=password_hash,
        is_email_verified=True,
    )


@pytest.fixture
def user_data():
    return UserData(user_id="87654321-4321-8765-4321-876543218765", email="adventurer@example.com")
