from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from firebase_admin import messaging

from push_dispatch.app.config import Settings
from push_dispatch.app.errors import NotFoundError
from push_dispatch.app.main import create_app
from push_dispatch.app.notifications.service import NotificationDispatcher


class FakeTokenStore:
    """In-memory stand-in for the Firestore users collection."""

    def __init__(self, users: Dict[str, dict] = None, field: str = "fcmTokens"):
        self.users = users or {}
        self.field = field
        self.updates = []
        self.fail_updates = False

    def fetch_tokens(self, user_id):
        if user_id not in self.users:
            raise NotFoundError()
        return self.users[user_id].get(self.field)

    def remove_tokens(self, user_id, tokens):
        self.updates.append((user_id, list(tokens)))
        if self.fail_updates:
            raise RuntimeError("firestore unavailable")
        stored = self.users[user_id].get(self.field) or []
        self.users[user_id][self.field] = [t for t in stored if t not in tokens]


class FakeSender:
    """Scripted FCM: tokens listed in `errors` fail with the given exception."""

    def __init__(self, errors: Dict[str, Exception] = None, raises: Optional[Exception] = None):
        self.errors = errors or {}
        self.raises = raises
        self.messages: List[messaging.MulticastMessage] = []

    @property
    def sent_tokens(self) -> List[str]:
        return [token for message in self.messages for token in message.tokens]

    def send_each_for_multicast(self, message):
        self.messages.append(message)
        if self.raises is not None:
            raise self.raises
        responses = []
        for token in message.tokens:
            error = self.errors.get(token)
            if error is None:
                responses.append(messaging.SendResponse({'name': f'projects/p/messages/{token}'}, None))
            else:
                responses.append(messaging.SendResponse(None, error))
        return messaging.BatchResponse(responses)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        firebase_service_account=None,
        firebase_project_id=None,
        strict_credentials=False,
        log_json=False,
    )


@pytest.fixture
def token_store():
    return FakeTokenStore({
        "u1": {"fcmTokens": ["tokA"]},
    })


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def dispatcher(token_store, sender, settings):
    return NotificationDispatcher(token_store, sender, settings)


@pytest.fixture
def client(dispatcher, settings):
    app = create_app(settings=settings, dispatcher=dispatcher)
    return TestClient(app)


class FakeResponse:
    def json(self, payload, status_code=200):
        return SimpleNamespace(payload=payload, status_code=status_code)


class FakeContext:
    """Appwrite-style function context."""

    def __init__(self, method="POST", body=None):
        self.req = SimpleNamespace(method=method, body=body)
        self.res = FakeResponse()
        self.logs = []
        self.errors = []

    def log(self, message):
        self.logs.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def make_context():
    return FakeContext
