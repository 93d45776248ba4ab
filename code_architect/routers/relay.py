# code_architect/routers/relay.py
"""Real-time chat relay over a WebSocket.

One frame in, at most one frame out, in arrival order. Bad frames get an
``error`` frame and the connection keeps serving. When the handshake carries
a live session cookie and the frame names a ``sessionId`` the message goes
through the same service call as ``POST /api/chat-sessions/{id}/messages``;
otherwise the reply is not persisted.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..collaborator import Collaborator, get_collaborator
from ..config import settings
from ..database import SessionLocal
from ..errors import AppError, CollaboratorUnavailable, Unauthenticated
from ..models import ChatSession, utcnow
from ..permissions import authorize
from ..schemas import ChatMessageCreate, RelayChatFrame, as_utc
from ..sessions import SessionStore
from ..services import ChatService
from .auth import resolve_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])


def error_frame(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}


def reply_frame(content: str, metadata: Optional[Dict[str, Any]] = None, **extra) -> Dict[str, Any]:
    frame = {"type": "chat_response", "content": content, "timestamp": as_utc(utcnow()).isoformat()}
    if metadata is not None:
        frame["metadata"] = metadata
    frame.update(extra)
    return frame


def parse_frame(raw: Optional[str]) -> RelayChatFrame:
    """Turn raw text into a chat frame or raise ValueError with a client-facing reason."""
    if raw is None:
        raise ValueError("Binary frames are not supported")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ValueError("Frame is not valid JSON")
    if not isinstance(data, dict):
        raise ValueError("Frame must be a JSON object")
    if data.get("type") != "chat":
        raise ValueError(f"Unrecognized frame type: {data.get('type')!r}")
    try:
        return RelayChatFrame.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid chat frame: {e.errors()[0]['msg']}")


def frame_context(frame: RelayChatFrame) -> Optional[Dict[str, Any]]:
    if isinstance(frame.context, str):
        return {"description": frame.context}
    return frame.context


class Relay:
    """Handles the frames of one connection.

    ``token`` is the session cookie from the handshake, or None for an
    anonymous socket. It is checked again before every persisted frame so a
    logout or an expired session takes effect mid-connection.
    """

    def __init__(self, collaborator: Collaborator, store: SessionStore, token: Optional[str] = None):
        self.collaborator = collaborator
        self.store = store
        self.token = token

    def authenticate(self) -> Optional[int]:
        """Resolve the handshake cookie; drop it when it is not a live session."""
        if not self.token:
            self.token = None
            return None
        db = SessionLocal()
        try:
            return resolve_user(self.token, db, self.store).id
        except Unauthenticated:
            self.token = None
            return None
        finally:
            db.close()

    async def handle(self, frame: RelayChatFrame) -> Dict[str, Any]:
        if self.token is not None and frame.session_id is not None:
            return await run_in_threadpool(self._persisted, frame)
        return await self._ephemeral(frame)

    async def _ephemeral(self, frame: RelayChatFrame) -> Dict[str, Any]:
        # an executor future cancels immediately on timeout; the worker thread is left to finish
        loop = asyncio.get_running_loop()
        try:
            reply = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    self.collaborator.generate_chat_response,
                    frame.content,
                    frame.session_id or 0,
                    frame_context(frame),
                ),
                timeout=settings.COLLABORATOR_TIMEOUT,
            )
        except asyncio.TimeoutError:
            logger.warning("Relay collaborator call timed out after %ss", settings.COLLABORATOR_TIMEOUT)
            return error_frame("AI service timed out")
        except CollaboratorUnavailable as e:
            return error_frame(e.message)

        metadata = reply.metadata.model_dump(by_alias=True, mode="json", exclude_none=True) if reply.metadata else None
        return reply_frame(reply.content, metadata)

    def _persisted(self, frame: RelayChatFrame) -> Dict[str, Any]:
        db = SessionLocal()
        try:
            try:
                user = resolve_user(self.token, db, self.store)
            except Unauthenticated as e:
                logger.info("Relay session no longer valid (%s), continuing anonymously", e.message)
                self.token = None
                return error_frame(e.message)
            try:
                session = authorize(db, user, ChatSession, frame.session_id)
            except AppError as e:
                return error_frame(e.message)

            outcome = ChatService(db, self.collaborator).post_message(
                session, ChatMessageCreate(type="user", content=frame.content)
            )
        finally:
            db.close()

        if outcome.ai_message is None:
            return error_frame(outcome.error)
        return reply_frame(
            outcome.ai_message.content,
            outcome.ai_message.meta,
            userMessageId=outcome.user_message.id,
            aiMessageId=outcome.ai_message.id,
        )


@router.websocket("/ws")
async def chat_relay(websocket: WebSocket, collaborator: Collaborator = Depends(get_collaborator)):
    await websocket.accept()

    relay = Relay(
        collaborator,
        websocket.app.state.session_store,
        websocket.cookies.get(settings.SESSION_COOKIE_NAME),
    )
    user_id = await run_in_threadpool(relay.authenticate)
    logger.info("Relay client connected (user=%s)", user_id)

    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            break
        try:
            frame = parse_frame(message.get("text"))
        except ValueError as e:
            await websocket.send_json(error_frame(str(e)))
            continue
        try:
            reply = await relay.handle(frame)
        except Exception:
            logger.exception("Relay failed to process a frame")
            reply = error_frame("Failed to process message")
        await websocket.send_json(reply)

    logger.info("Relay client disconnected")
