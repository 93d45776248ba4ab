# code_architect/storage.py
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConstraintViolation, NotFound
from .models import Users, Project, ChatSession, ChatMessage, GeneratedFile, utcnow


class Storage:
    """Row-level operations over the five tables.

    ``get_*`` returns ``None`` on absence, ``update_project`` raises
    ``NotFound``, uniqueness clashes surface as ``ConstraintViolation``.
    Nothing here checks ownership; that is the gate's job.
    """

    def __init__(self, db: Session):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConstraintViolation("Record violates a uniqueness or reference constraint") from e
        self.db.refresh(row)
        return row

    # Users
    def get_user(self, user_id: int) -> Optional[Users]:
        return self.db.get(Users, user_id)

    def get_user_by_username(self, username: str) -> Optional[Users]:
        return self.db.query(Users).filter(Users.username == username).first()

    def get_user_by_email(self, email: str) -> Optional[Users]:
        return self.db.query(Users).filter(Users.email == email).first()

    def create_user(self, *, username: str, email: str, password_hash: str) -> Users:
        return self._save(Users(username=username, email=email, password_hash=password_hash))

    # Projects
    def get_project(self, project_id: int) -> Optional[Project]:
        return self.db.get(Project, project_id)

    def list_projects_by_owner(self, owner_id: int) -> List[Project]:
        return (
            self.db.query(Project)
            .filter(Project.owner_user_id == owner_id)
            .order_by(desc(Project.updated_at), desc(Project.id))
            .all()
        )

    def create_project(
        self,
        *,
        owner_id: int,
        name: str,
        description: Optional[str] = None,
        tech_stack: Optional[List[str]] = None,
        status: str = "planning",
        meta: Any = None,
    ) -> Project:
        now = utcnow()
        project = Project(
            owner_user_id=owner_id,
            name=name,
            description=description,
            tech_stack=list(tech_stack or []),
            status=status,
            meta=meta,
            created_at=now,
            updated_at=now,
        )
        return self._save(project)

    def update_project(self, project_id: int, changes: Dict[str, Any]) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")
        for field, value in changes.items():
            setattr(project, field, value)
        project.updated_at = self._later_than(project.updated_at)
        return self._save(project)

    # Chat sessions
    def get_chat_session(self, session_id: int) -> Optional[ChatSession]:
        return self.db.get(ChatSession, session_id)

    def list_chat_sessions_by_owner(self, owner_id: int) -> List[ChatSession]:
        return (
            self.db.query(ChatSession)
            .filter(ChatSession.owner_user_id == owner_id)
            .order_by(desc(ChatSession.updated_at), desc(ChatSession.id))
            .all()
        )

    def create_chat_session(self, *, owner_id: int, title: str, project_id: Optional[int] = None) -> ChatSession:
        now = utcnow()
        return self._save(
            ChatSession(
                owner_user_id=owner_id,
                project_id=project_id,
                title=title,
                created_at=now,
                updated_at=now,
            )
        )

    # Chat messages
    def get_chat_message(self, message_id: int) -> Optional[ChatMessage]:
        return self.db.get(ChatMessage, message_id)

    def list_chat_messages_by_session(self, session_id: int) -> List[ChatMessage]:
        return (
            self.db.query(ChatMessage)
            .filter(ChatMessage.session_id == session_id)
            .order_by(asc(ChatMessage.created_at), asc(ChatMessage.id))
            .all()
        )

    def create_chat_message(self, *, session_id: int, role: str, content: str, meta: Any = None) -> ChatMessage:
        msg = ChatMessage(session_id=session_id, role=role, content=content, meta=meta)
        self.db.add(msg)
        session = self.get_chat_session(session_id)
        if session is not None:
            session.updated_at = self._later_than(session.updated_at)
        return self._save(msg)

    # Generated files
    def get_generated_file(self, file_id: int) -> Optional[GeneratedFile]:
        return self.db.get(GeneratedFile, file_id)

    def list_generated_files_by_project(self, project_id: int) -> List[GeneratedFile]:
        return (
            self.db.query(GeneratedFile)
            .filter(GeneratedFile.project_id == project_id)
            .order_by(asc(GeneratedFile.created_at), asc(GeneratedFile.id))
            .all()
        )

    def create_generated_files(self, project_id: int, files: List[Dict[str, Any]], message_id: Optional[int] = None) -> List[GeneratedFile]:
        rows = [
            GeneratedFile(
                project_id=project_id,
                message_id=message_id,
                filename=f["filename"],
                filepath=f["filepath"],
                content=f["content"],
                file_type=f["file_type"],
            )
            for f in files
        ]
        if not rows:
            return []
        self.db.add_all(rows)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConstraintViolation("Generated file references a missing record") from e
        for row in rows:
            self.db.refresh(row)
        return rows

    @staticmethod
    def _later_than(previous):
        # updated_at must move forward even when two writes land in the same tick
        now = utcnow()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now
