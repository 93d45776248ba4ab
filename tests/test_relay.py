from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from code_architect.config import settings
from code_architect.main import app
from code_architect.models import ChatMessage
from code_architect.sessions import InMemorySessionStore

from .conftest import register


def test_unknown_frame_type_keeps_connection_open(client, collaborator):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        reply = ws.receive_json()
        assert reply["type"] == "error"
        assert "ping" in reply["message"]

        ws.send_json({"type": "chat", "content": "still there?"})
        reply = ws.receive_json()
        assert reply["type"] == "chat_response"
        assert reply["content"] == "echo: still there?"
    assert len(collaborator.chat_calls) == 1


def test_malformed_frames_get_error_frames(client, collaborator):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Frame is not valid JSON"}

        ws.send_text("[1, 2]")
        assert ws.receive_json() == {"type": "error", "message": "Frame must be a JSON object"}

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"type": "error", "message": "Binary frames are not supported"}

        ws.send_json({"type": "chat", "content": ""})
        assert ws.receive_json()["type"] == "error"
    assert collaborator.chat_calls == []


def test_anonymous_chat_is_ephemeral(client, collaborator, db):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "chat", "content": "hello", "sessionId": 5, "context": "a blog backend"})
        reply = ws.receive_json()

    assert reply["type"] == "chat_response"
    assert reply["content"] == "echo: hello"
    assert reply["metadata"]["sessionId"] == 5
    assert reply["metadata"]["hasProjectContext"] is True
    assert "timestamp" in reply
    assert collaborator.chat_calls[0]["context"] == {"description": "a blog backend"}
    assert db.query(ChatMessage).count() == 0


def test_frames_answered_in_arrival_order(client, collaborator):
    with client.websocket_connect("/ws") as ws:
        for text in ["a", "b", "c"]:
            ws.send_json({"type": "chat", "content": text})
        contents = [ws.receive_json()["content"] for _ in range(3)]
    assert contents == ["echo: a", "echo: b", "echo: c"]


def test_collaborator_failure_is_an_error_frame(client, collaborator):
    collaborator.fail_chat = True
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "chat", "content": "hello"})
        reply = ws.receive_json()
        assert reply == {"type": "error", "message": "AI service temporarily unavailable"}

        collaborator.fail_chat = False
        ws.send_json({"type": "chat", "content": "again"})
        assert ws.receive_json()["type"] == "chat_response"


def _cookie(client):
    return {"cookie": f"session={client.cookies.get('session')}"}


def test_authenticated_chat_with_session_is_persisted(alice, collaborator):
    sid = alice.post("/api/chat-sessions", json={"title": "live"}).json()["id"]

    with TestClient(app).websocket_connect("/ws", headers=_cookie(alice)) as ws:
        ws.send_json({"type": "chat", "content": "persist me", "sessionId": sid})
        reply = ws.receive_json()

    assert reply["type"] == "chat_response"
    assert reply["content"] == "echo: persist me"
    history = alice.get(f"/api/chat-sessions/{sid}/messages").json()
    assert [(m["id"], m["role"]) for m in history] == [
        (reply["userMessageId"], "user"),
        (reply["aiMessageId"], "assistant"),
    ]


def test_authenticated_chat_into_foreign_session_is_refused(alice, bob, collaborator, db):
    sid = alice.post("/api/chat-sessions", json={"title": "mine"}).json()["id"]

    with TestClient(app).websocket_connect("/ws", headers=_cookie(bob)) as ws:
        ws.send_json({"type": "chat", "content": "sneaky", "sessionId": sid})
        reply = ws.receive_json()

    assert reply["type"] == "error"
    assert db.query(ChatMessage).count() == 0
    assert collaborator.chat_calls == []


def test_logout_ends_persistence_on_open_socket(alice, collaborator, db):
    sid = alice.post("/api/chat-sessions", json={"title": "live"}).json()["id"]

    with TestClient(app).websocket_connect("/ws", headers=_cookie(alice)) as ws:
        ws.send_json({"type": "chat", "content": "before logout", "sessionId": sid})
        assert ws.receive_json()["type"] == "chat_response"

        assert alice.post("/api/logout").status_code == 200

        ws.send_json({"type": "chat", "content": "after logout", "sessionId": sid})
        assert ws.receive_json() == {"type": "error", "message": "Session has ended"}

        # the socket carries on anonymously
        ws.send_json({"type": "chat", "content": "still here", "sessionId": sid})
        reply = ws.receive_json()
        assert reply["type"] == "chat_response"
        assert "userMessageId" not in reply

    assert db.query(ChatMessage).count() == 2


def test_expired_session_is_not_used_mid_connection(client, collaborator, db):
    now = [datetime.now(timezone.utc)]
    app.state.session_store = InMemorySessionStore(ttl=timedelta(minutes=5), clock=lambda: now[0])
    carol = TestClient(app)
    register(carol, "carol")
    sid = carol.post("/api/chat-sessions", json={"title": "t"}).json()["id"]

    with TestClient(app).websocket_connect("/ws", headers=_cookie(carol)) as ws:
        now[0] += timedelta(minutes=6)
        ws.send_json({"type": "chat", "content": "late", "sessionId": sid})
        assert ws.receive_json() == {"type": "error", "message": "Session has ended"}

    assert db.query(ChatMessage).count() == 0


def test_slow_collaborator_times_out_and_socket_keeps_serving(client, collaborator, monkeypatch):
    monkeypatch.setattr(settings, "COLLABORATOR_TIMEOUT", 0.05)
    collaborator.delay = 0.5
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "chat", "content": "slow"})
        assert ws.receive_json() == {"type": "error", "message": "AI service timed out"}

        collaborator.delay = 0
        ws.send_json({"type": "chat", "content": "quick"})
        reply = ws.receive_json()
        assert reply["type"] == "chat_response"
        assert reply["content"] == "echo: quick"


def test_reply_timestamp_carries_utc_offset(client, collaborator):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "chat", "content": "hi"})
        reply = ws.receive_json()
    assert reply["timestamp"].endswith("+00:00")
    assert reply["metadata"]["timestamp"].endswith("+00:00")
