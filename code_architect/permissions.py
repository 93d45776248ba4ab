# code_architect/permissions.py
"""Ownership checks.

Every addressable record resolves to exactly one owning user by walking
User -> Project -> ChatSession -> ChatMessage or User -> Project ->
GeneratedFile. ``authorize`` is the single predicate; the ``owned_*``
functions are the request guards routes depend on.
"""
from typing import Annotated, Optional, Type, TypeVar

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .errors import NotFound, Unauthorized
from .models import Users, Project, ChatSession, ChatMessage, GeneratedFile
from .routers.auth import current_login_user

T = TypeVar("T", Project, ChatSession, ChatMessage, GeneratedFile)

_LABELS = {
    Project: "Project",
    ChatSession: "Chat session",
    ChatMessage: "Message",
    GeneratedFile: "File",
}


def owner_of(db: Session, record) -> Optional[int]:
    if isinstance(record, (Project, ChatSession)):
        return record.owner_user_id
    if isinstance(record, ChatMessage):
        session = db.get(ChatSession, record.session_id)
        return owner_of(db, session) if session else None
    if isinstance(record, GeneratedFile):
        project = db.get(Project, record.project_id)
        return owner_of(db, project) if project else None
    raise TypeError(f"No ownership rule for {type(record).__name__}")


def authorize(db: Session, user: Users, model: Type[T], record_id: int) -> T:
    record = db.get(model, record_id)
    if record is None:
        raise NotFound(f"{_LABELS[model]} {record_id} not found")
    if owner_of(db, record) != user.id:
        raise Unauthorized(f"{_LABELS[model]} {record_id} belongs to another user")
    return record


def owned_project(project_id: int, db: Annotated[Session, Depends(get_db)], current_user: current_login_user) -> Project:
    return authorize(db, current_user, Project, project_id)


def owned_chat_session(session_id: int, db: Annotated[Session, Depends(get_db)], current_user: current_login_user) -> ChatSession:
    return authorize(db, current_user, ChatSession, session_id)


def owned_file(file_id: int, db: Annotated[Session, Depends(get_db)], current_user: current_login_user) -> GeneratedFile:
    return authorize(db, current_user, GeneratedFile, file_id)
