from __future__ import annotations

import base64

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from disperse.core.dependencies import get_current_user
from disperse.main import app
from disperse.models.auth import UserInfo
from disperse.models.employee import Employee
from disperse.services.conversation import conversation_registry
from disperse.services.record_store import record_store

TEST_USERNAME = "hr-admin"
TEST_PASSWORD = "test-password"


def basic_auth_header(username: str = TEST_USERNAME, password: str = TEST_PASSWORD) -> dict[str, str]:
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _auth_settings():
    from disperse.core.config import settings

    original_user = settings.BASIC_AUTH_USERNAME
    original_password = settings.BASIC_AUTH_PASSWORD
    settings.BASIC_AUTH_USERNAME = TEST_USERNAME
    settings.BASIC_AUTH_PASSWORD = TEST_PASSWORD
    yield
    settings.BASIC_AUTH_USERNAME = original_user
    settings.BASIC_AUTH_PASSWORD = original_password


@pytest.fixture(autouse=True)
def _clean_state():
    record_store.clear_data()
    conversation_registry.sessions.clear()
    yield
    record_store.clear_data()
    conversation_registry.sessions.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def mock_user():
    return UserInfo(name="HR User", method="basic")


@pytest.fixture
def authenticated_client(mock_user):
    app.dependency_overrides[get_current_user] = lambda: mock_user
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sample_employees() -> list[Employee]:
    return [
        Employee(
            id="E1",
            name="Aiko Tanaka",
            department="Sales",
            position="Account Manager",
            personality="Analytical, calm",
            experience="Python, SQL, data analysis",
            aspirations="Move into software development",
            skills=["Python", "SQL", "data analysis"],
        ),
        Employee(
            id="E2",
            name="Ben Carter",
            department="Engineering",
            position="Backend Engineer",
            personality="Detail oriented",
            experience="Go, Kubernetes",
            aspirations="Stay hands-on",
            skills=["Go", "Kubernetes"],
        ),
        Employee(
            id="E3",
            name="Chloe Martin",
            department="Marketing",
            position="Campaign Lead",
            personality="Outgoing, creative",
            experience="Branding, copywriting",
            aspirations="Lead larger teams",
            skills=["Branding", "copywriting"],
        ),
    ]


@pytest.fixture
def loaded_store(sample_employees):
    record_store.set_employees(sample_employees)
    return record_store
