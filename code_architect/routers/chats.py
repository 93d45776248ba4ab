# code_architect/routers/chats.py
from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..collaborator import Collaborator, get_collaborator
from ..database import get_db
from ..models import ChatSession
from ..permissions import owned_chat_session
from ..schemas import (
    ChatMessageCreate,
    ChatMessageOut,
    ChatSessionCreate,
    ChatSessionOut,
    CodeGenerationRequest,
    CodeGenerationResponse,
    GeneratedFileOut,
    MessageExchange,
)
from ..services import ChatService, create_chat_session
from ..storage import Storage
from .auth import current_login_user

router = APIRouter(prefix="/api", tags=["chat"])

chat_db = Annotated[Session, Depends(get_db)]
collaborator_dep = Annotated[Collaborator, Depends(get_collaborator)]
owned_session = Annotated[ChatSession, Depends(owned_chat_session)]


@router.get("/chat-sessions", response_model=List[ChatSessionOut])
def list_chat_sessions(db: chat_db, current_user: current_login_user):
    return Storage(db).list_chat_sessions_by_owner(current_user.id)


@router.post("/chat-sessions", response_model=ChatSessionOut, status_code=status.HTTP_201_CREATED)
def create_session(payload: ChatSessionCreate, db: chat_db, current_user: current_login_user):
    return create_chat_session(db, current_user, payload)


@router.get("/chat-sessions/{session_id}/messages", response_model=List[ChatMessageOut])
def list_messages(session: owned_session, db: chat_db):
    return Storage(db).list_chat_messages_by_session(session.id)


@router.post(
    "/chat-sessions/{session_id}/messages",
    response_model=MessageExchange,
    status_code=status.HTTP_201_CREATED,
)
def post_message(payload: ChatMessageCreate, session: owned_session, db: chat_db, collaborator: collaborator_dep):
    """
    Store a message in the session and answer it.

    Returns 201 with the stored message even when the assistant could not
    reply; ``error`` is set and ``aiMessage`` is null in that case.
    """
    outcome = ChatService(db, collaborator).post_message(session, payload)
    return MessageExchange(
        user_message=ChatMessageOut.model_validate(outcome.user_message),
        ai_message=ChatMessageOut.model_validate(outcome.ai_message) if outcome.ai_message else None,
        error=outcome.error,
    )


@router.post("/generate-code", response_model=CodeGenerationResponse)
def generate_code(payload: CodeGenerationRequest, db: chat_db, current_user: current_login_user, collaborator: collaborator_dep):
    result, saved = ChatService(db, collaborator).generate_code(current_user, payload)
    return CodeGenerationResponse(
        **result.model_dump(),
        saved_files=[GeneratedFileOut.model_validate(f) for f in saved],
    )
