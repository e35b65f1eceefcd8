import pytest
import pytest_asyncio
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.core.auth import create_access_token
from app.db.mongo import get_db
from app.main import create_app
from app.models.base import utcnow
from app.services.notifier import Notifier, get_notifier

TEST_MONGODB_DB = "splitledger_test"


class RecordingNotifier(Notifier):
    """Keeps every published event for assertions."""

    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)

    def of(self, name):
        return [e for e in self.events if e.event == name]


@pytest_asyncio.fixture
async def test_db():
    """In-memory stand-in for the Motor database."""
    client = AsyncMongoMockClient()
    # Unique name per test keeps tests isolated
    return client[f"{TEST_MONGODB_DB}_{ObjectId()}"]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def users(test_db):
    """Alice, Bob and Charlie share a group; Dave is an outsider."""
    now = utcnow()
    created = {}
    for name in ("alice", "bob", "charlie", "dave"):
        user_id = ObjectId()
        await test_db["users"].insert_one({
            "_id": user_id,
            "name": name.capitalize(),
            "email": f"{name}@example.com",
            "is_deleted": False,
            "created_at": now,
            "updated_at": now
        })
        created[name] = str(user_id)
    return created


@pytest_asyncio.fixture
async def group(test_db, users):
    group_id = ObjectId()
    await test_db["groups"].insert_one({
        "_id": group_id,
        "name": "Flatmates",
        "members": [
            {"user_id": ObjectId(users["alice"]), "role": "admin", "is_active": True},
            {"user_id": ObjectId(users["bob"]), "role": "member", "is_active": True},
            {"user_id": ObjectId(users["charlie"]), "role": "member", "is_active": True},
        ]
    })
    return str(group_id)


@pytest.fixture
def tokens(users):
    return {name: create_access_token(user_id) for name, user_id in users.items()}


@pytest.fixture
def auth_headers(tokens):
    def headers(name):
        return {"Authorization": f"Bearer {tokens[name]}"}
    return headers


@pytest.fixture
def test_client(test_db, notifier):
    """FastAPI test client bound to the in-memory database."""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    # No context manager: the lifespan would connect to a real MongoDB
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
