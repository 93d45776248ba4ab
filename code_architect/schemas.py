# code_architect/schemas.py
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, EmailStr, Field, PlainSerializer
from pydantic.alias_generators import to_camel

ProjectStatus = Literal["planning", "building", "completed", "error"]
MessageRole = Literal["user", "assistant", "system"]


class CamelModel(BaseModel):
    """Base model with camelCase JSON on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,  # accept both snake_case and camelCase in input
        from_attributes=True,
    )


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


def as_utc(value: datetime) -> datetime:
    # stored values are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, PlainSerializer(lambda v: as_utc(v).isoformat(), return_type=str, when_used="json")]


# Users / auth

class RegisterRequest(CamelModel):
    username: NonBlankStr = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    created_at: UtcDatetime


class UserEnvelope(CamelModel):
    user: UserOut


class CurrentUser(CamelModel):
    user_id: int
    username: str
    email: str


# Projects

class ProjectCreate(CamelModel):
    name: NonBlankStr = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    status: ProjectStatus = "planning"
    metadata: Any = None


class ProjectUpdate(CamelModel):
    """Partial update. Unknown keys (ownerUserId, id, timestamps) are ignored."""

    name: Optional[NonBlankStr] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    tech_stack: Optional[List[str]] = None
    status: Optional[ProjectStatus] = None
    metadata: Any = None


class ProjectOut(CamelModel):
    id: int
    owner_user_id: int
    name: str
    description: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    status: ProjectStatus
    metadata: Any = Field(
        default=None,
        validation_alias=AliasChoices("meta", "metadata"),
        serialization_alias="metadata",
    )
    created_at: UtcDatetime
    updated_at: UtcDatetime


# Chat

class ChatSessionCreate(CamelModel):
    title: NonBlankStr = Field(..., min_length=1, max_length=200)
    project_id: Optional[int] = None


class ChatSessionOut(CamelModel):
    id: int
    owner_user_id: int
    project_id: Optional[int] = None
    title: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ChatMessageCreate(CamelModel):
    type: MessageRole = "user"
    content: NonBlankStr = Field(..., min_length=1)
    metadata: Any = None


class ChatMessageOut(CamelModel):
    id: int
    session_id: int
    role: MessageRole
    content: str
    metadata: Any = Field(
        default=None,
        validation_alias=AliasChoices("meta", "metadata"),
        serialization_alias="metadata",
    )
    created_at: UtcDatetime


class MessageExchange(CamelModel):
    user_message: ChatMessageOut
    ai_message: Optional[ChatMessageOut] = None
    error: Optional[str] = None


# Collaborator contract

class ProjectContext(CamelModel):
    name: str
    description: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    status: Optional[ProjectStatus] = None


class ChatReplyMetadata(CamelModel):
    model_config = ConfigDict(extra="forbid")

    session_id: int
    has_project_context: bool = False
    demo_mode: bool = False
    model: Optional[str] = None
    timestamp: UtcDatetime


class ChatReply(CamelModel):
    content: str = Field(..., min_length=1)
    metadata: Optional[ChatReplyMetadata] = None


class GeneratedArtifact(CamelModel):
    filename: str = Field(..., min_length=1)
    filepath: str = Field(..., min_length=1)
    content: str
    file_type: str = Field(..., min_length=1)
    description: Optional[str] = None


class SuggestedAction(CamelModel):
    type: Literal["pr", "deploy", "file", "migration"]
    label: str
    url: Optional[str] = None
    description: Optional[str] = None


class CodeGenerationRequest(CamelModel):
    prompt: NonBlankStr = Field(..., min_length=1)
    tech_stack: Optional[List[str]] = None
    project_type: Optional[str] = None
    context: Optional[str] = None
    project_id: Optional[int] = None
    message_id: Optional[int] = None


class CodeGenerationResult(CamelModel):
    content: str = "Code generation completed"
    files: List[GeneratedArtifact] = Field(default_factory=list)
    actions: List[SuggestedAction] = Field(default_factory=list)
    status: Literal["thinking", "building", "completed", "error"] = "completed"


# Files

class GeneratedFileOut(CamelModel):
    id: int
    project_id: int
    message_id: Optional[int] = None
    filename: str
    filepath: str
    content: str
    file_type: str
    created_at: UtcDatetime


class CodeGenerationResponse(CodeGenerationResult):
    saved_files: List[GeneratedFileOut] = Field(default_factory=list)


class DownloadEntry(CamelModel):
    filename: str
    filepath: str
    size: int


class DownloadManifest(CamelModel):
    message: str
    files: List[DownloadEntry]


# Relay frames

class RelayChatFrame(CamelModel):
    type: Literal["chat"]
    content: NonBlankStr = Field(..., min_length=1)
    session_id: Optional[int] = None
    context: Optional[Union[Dict[str, Any], str]] = None
