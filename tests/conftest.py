import os
import time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["COOKIE_SECURE"] = "false"
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from code_architect.collaborator import Collaborator, get_collaborator
from code_architect.database import Base, SessionLocal, engine
from code_architect.errors import CollaboratorUnavailable
from code_architect.main import app
from code_architect.models import utcnow
from code_architect.schemas import ChatReply, ChatReplyMetadata, CodeGenerationResult
from code_architect.sessions import InMemorySessionStore


class FakeCollaborator(Collaborator):
    """Scripted collaborator; flip ``fail_chat``/``fail_code`` to simulate outages."""

    def __init__(self):
        self.delay = 0
        self.fail_chat = False
        self.fail_code = False
        self.chat_calls = []
        self.code_calls = []
        self.code_result = CodeGenerationResult(
            content="Scaffolded a FastAPI service",
            files=[
                {"filename": "main.py", "filepath": "app/main.py", "content": "print('hi')\n", "file_type": "py"},
                {"filename": "Dockerfile", "filepath": "Dockerfile", "content": "FROM python:3.12\n", "file_type": "docker"},
            ],
            actions=[{"type": "pr", "label": "PR #1: Initial setup"}],
            status="completed",
        )

    def generate_chat_response(self, user_message, session_id, project_context=None):
        self.chat_calls.append({"message": user_message, "session_id": session_id, "context": project_context})
        if self.delay:
            time.sleep(self.delay)
        if self.fail_chat:
            raise CollaboratorUnavailable("AI service temporarily unavailable")
        return ChatReply(
            content=f"echo: {user_message}",
            metadata=ChatReplyMetadata(
                session_id=session_id,
                has_project_context=bool(project_context),
                timestamp=utcnow(),
            ),
        )

    def generate_code(self, request):
        self.code_calls.append(request)
        if self.fail_code:
            raise CollaboratorUnavailable("Failed to generate code")
        return self.code_result


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.session_store = InMemorySessionStore()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def collaborator():
    fake = FakeCollaborator()
    app.dependency_overrides[get_collaborator] = lambda: fake
    return fake


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(collaborator):
    return TestClient(app)


def register(client, username, email=None, password="pw12345"):
    resp = client.post(
        "/api/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


@pytest.fixture
def alice(collaborator):
    c = TestClient(app)
    c.user = register(c, "alice", "alice@x.com", "pw123")
    return c


@pytest.fixture
def bob(collaborator):
    c = TestClient(app)
    c.user = register(c, "bob")
    return c
