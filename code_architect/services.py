# code_architect/services.py
"""Service layer for projects, chat sessions and AI-backed flows.

Handles:
- Project creation and partial updates
- Chat session creation (optionally tied to a project)
- Message storage (user + assistant) with the collaborator round-trip
- Code generation and persistence of the generated files

Ownership of the addressed records is checked before anything is written.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .collaborator import Collaborator
from .errors import CollaboratorUnavailable, InvalidInput, NotFound
from .models import Users, Project, ChatSession, ChatMessage, GeneratedFile
from .permissions import authorize
from .schemas import (
    ChatMessageCreate,
    ChatSessionCreate,
    CodeGenerationRequest,
    CodeGenerationResult,
    ProjectContext,
    ProjectCreate,
    ProjectUpdate,
)
from .storage import Storage

logger = logging.getLogger(__name__)

AI_FAILURE = "AI response generation failed"

# columns that exist but must never be cleared through a partial update
_REQUIRED_ON_UPDATE = ("name", "status", "tech_stack")


def create_project(db: Session, user: Users, payload: ProjectCreate) -> Project:
    project = Storage(db).create_project(
        owner_id=user.id,
        name=payload.name.strip(),
        description=payload.description,
        tech_stack=payload.tech_stack,
        status=payload.status,
        meta=payload.metadata,
    )
    logger.info("Project %s created by user %s", project.id, user.id)
    return project


def update_project(db: Session, project: Project, payload: ProjectUpdate) -> Project:
    changes = payload.model_dump(exclude_unset=True)
    cleared = [field for field in _REQUIRED_ON_UPDATE if field in changes and changes[field] is None]
    if cleared:
        raise InvalidInput("Fields cannot be null", details={"fields": cleared})
    if "metadata" in changes:
        changes["meta"] = changes.pop("metadata")
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    return Storage(db).update_project(project.id, changes)


def create_chat_session(db: Session, user: Users, payload: ChatSessionCreate) -> ChatSession:
    if payload.project_id is not None:
        try:
            authorize(db, user, Project, payload.project_id)
        except NotFound:
            raise InvalidInput(f"projectId {payload.project_id} does not reference an existing project")
    return Storage(db).create_chat_session(
        owner_id=user.id,
        title=payload.title.strip(),
        project_id=payload.project_id,
    )


def project_context_for(db: Session, session: ChatSession) -> Optional[Dict[str, Any]]:
    if session.project_id is None:
        return None
    project = Storage(db).get_project(session.project_id)
    if project is None:
        return None
    return ProjectContext.model_validate(project).model_dump(by_alias=True)


@dataclass
class MessageOutcome:
    user_message: ChatMessage
    ai_message: Optional[ChatMessage] = None
    error: Optional[str] = None


class ChatService:
    """Message and code-generation flows that involve the collaborator."""

    def __init__(self, db: Session, collaborator: Collaborator):
        self.db = db
        self.storage = Storage(db)
        self.collaborator = collaborator

    def post_message(self, session: ChatSession, payload: ChatMessageCreate) -> MessageOutcome:
        """
        Store a message and, for user messages, the assistant's reply.

        Flow:
        1. Store the message as given (caller has already checked ownership)
        2. Stop here unless the role is "user"
        3. Build project context from the session's project, if any
        4. Ask the collaborator for a reply
        5. Store the reply as an assistant message

        A collaborator failure leaves the user message in place and is
        reported through ``MessageOutcome.error``.
        """
        user_msg = self.storage.create_chat_message(
            session_id=session.id,
            role=payload.type,
            content=payload.content,
            meta=payload.metadata,
        )
        if user_msg.role != "user":
            return MessageOutcome(user_message=user_msg)

        try:
            reply = self.collaborator.generate_chat_response(
                user_msg.content,
                session.id,
                project_context_for(self.db, session),
            )
        except CollaboratorUnavailable as e:
            logger.warning("No assistant reply for session %s: %s", session.id, e.message)
            return MessageOutcome(user_message=user_msg, error=AI_FAILURE)
        except Exception:
            logger.exception("Collaborator crashed while answering session %s", session.id)
            return MessageOutcome(user_message=user_msg, error=AI_FAILURE)

        meta = reply.metadata.model_dump(by_alias=True, mode="json", exclude_none=True) if reply.metadata else None
        ai_msg = self.storage.create_chat_message(
            session_id=session.id,
            role="assistant",
            content=reply.content,
            meta=meta,
        )
        logger.info(
            "Chat message processed: session=%s, message_id=%s, response_id=%s",
            session.id, user_msg.id, ai_msg.id,
        )
        return MessageOutcome(user_message=user_msg, ai_message=ai_msg)

    def generate_code(self, user: Users, request: CodeGenerationRequest) -> tuple[CodeGenerationResult, List[GeneratedFile]]:
        """
        Run code generation and persist its files under the target project.

        Ownership of ``projectId``/``messageId`` is checked before the
        collaborator is called. If the collaborator fails nothing is stored.
        """
        project = None
        if request.project_id is not None:
            project = authorize(self.db, user, Project, request.project_id)
        if request.message_id is not None:
            if project is None:
                raise InvalidInput("messageId requires projectId")
            message = authorize(self.db, user, ChatMessage, request.message_id)
            session = self.storage.get_chat_session(message.session_id)
            if session.project_id not in (None, project.id):
                raise InvalidInput("messageId belongs to a chat session of another project")

        result = self.collaborator.generate_code(request)

        saved: List[GeneratedFile] = []
        if project is not None:
            saved = self.storage.create_generated_files(
                project.id,
                [
                    {
                        "filename": f.filename,
                        "filepath": f.filepath,
                        "content": f.content,
                        "file_type": f.file_type,
                    }
                    for f in result.files
                ],
                message_id=request.message_id,
            )
            logger.info("Saved %d generated files for project %s", len(saved), project.id)
        return result, saved
