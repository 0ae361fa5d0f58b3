"""
GiveHope - Test Configuration and Fixtures
"""
import os
import uuid
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set testing environment before the app modules read their settings
os.environ['ENVIRONMENT'] = 'testing'
os.environ['SCRYPT_ROUNDS'] = '4'
os.environ['SEED_DEMO_DATA'] = 'false'
os.environ.pop('ADMIN_PASSWORD', None)

from config import Settings
from database import Database
from main import create_app
from sessions import SessionManager

fake = Faker()

API = '/api'
ADMIN_PASSWORD = 'admin-test-password'
PASSWORD = 'securePassword123'


@dataclass
class Actor:
    """A logged-in client together with the user it is logged in as"""
    client: AsyncClient
    user: Dict[str, Any]

    @property
    def id(self) -> int:
        return self.user['id']


def unique_username() -> str:
    return f"{fake.user_name()}_{uuid.uuid4().hex[:6]}"


def user_payload(role: str = 'donor', **overrides) -> Dict[str, Any]:
    data = {
        'username': unique_username(),
        'email': f"{uuid.uuid4().hex[:10]}@example.com",
        'password': PASSWORD,
        'confirmPassword': PASSWORD,
        'fullName': fake.name(),
        'role': role,
    }
    data.update(overrides)
    return data


def campaign_payload(**overrides) -> Dict[str, Any]:
    data = {
        'title': fake.sentence(nb_words=5),
        'description': fake.paragraph(),
        'goalAmount': 1000,
        'category': 'Education',
    }
    data.update(overrides)
    return data


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT='testing',
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        SEED_DEMO_DATA=False,
        SESSION_COOKIE_SECURE=False,
    )


@pytest.fixture
def db() -> Database:
    """A fresh store for every test"""
    return Database()


@pytest.fixture
def sessions() -> SessionManager:
    return SessionManager(ttl_seconds=3600)


@pytest.fixture
def app(settings, db, sessions):
    return create_app(settings=settings, db=db, sessions=sessions)


@pytest.fixture
async def make_client(app) -> AsyncGenerator:
    """Factory for independent clients (one cookie jar per actor)"""
    clients = []

    def _make() -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url='http://test')
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client) -> AsyncClient:
    return make_client()


@pytest.fixture
def register(make_client):
    """Register a new user on a new client; the client stays logged in"""

    async def _register(role: str = 'donor', **overrides) -> Actor:
        client = make_client()
        response = await client.post(f'{API}/register', json=user_payload(role, **overrides))
        assert response.status_code == 201, response.text
        return Actor(client=client, user=response.json())

    return _register


@pytest.fixture
async def donor(register) -> Actor:
    return await register('donor')


@pytest.fixture
async def organization(register, db) -> Actor:
    """Organization already approved by an admin"""
    actor = await register('organization')
    db.update_user(actor.id, {'is_approved': True})
    actor.user['isApproved'] = True
    return actor


@pytest.fixture
async def admin(make_client) -> Actor:
    client = make_client()
    response = await client.post(
        f'{API}/admin-login', json={'username': 'admin', 'password': ADMIN_PASSWORD}
    )
    assert response.status_code == 200, response.text
    return Actor(client=client, user=response.json())


@pytest.fixture
async def campaign(organization, db) -> Dict[str, Any]:
    """Approved, active campaign owned by `organization`"""
    response = await organization.client.post(f'{API}/campaigns', json=campaign_payload())
    assert response.status_code == 201, response.text
    created = response.json()
    db.update_campaign(created['id'], {'is_approved': True})
    created['isApproved'] = True
    return created
