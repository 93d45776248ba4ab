# code_architect/collaborator.py
"""The AI collaborator: the only place that talks to a model vendor.

Callers see two capabilities, ``generate_code`` and
``generate_chat_response``. Both return validated pydantic models or raise
``CollaboratorUnavailable``; no vendor exception leaks past this module.
"""
import json
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from .clients import get_openai
from .config import settings
from .errors import CollaboratorUnavailable
from .models import utcnow
from .schemas import ChatReply, ChatReplyMetadata, CodeGenerationRequest, CodeGenerationResult

logger = logging.getLogger(__name__)


ARCHITECT_SYSTEM = (
    "You are Code Architect, an expert backend developer. You help users design and "
    "build backend applications from natural-language descriptions. Suggest code "
    "generation when the user asks for a concrete application, an API, a database "
    "schema, authentication, or a new feature for an existing project. "
    "Be friendly, technically precise and concise."
)

CODEGEN_SYSTEM = """You are Code Architect, an expert backend developer who generates production-ready code.

Generate complete, functional backend applications from the user's requirements.
Always respond with JSON in exactly this format:
{{
  "content": "Explanation of what you are building",
  "files": [
    {{"filename": "main.py", "filepath": "app/main.py", "content": "complete file content",
     "fileType": "py", "description": "FastAPI main application file"}}
  ],
  "actions": [
    {{"type": "pr", "label": "PR #1: Initial setup", "description": "Created project structure"}}
  ],
  "status": "completed"
}}
Action types are one of: pr, deploy, file, migration.
Generate real, working code with no placeholders. Include the main application, models,
routes, config, dependency manifest and a Dockerfile.

Tech stack preference: {tech_stack}
Project type: {project_type}
Additional context: {context}"""


class Collaborator(ABC):
    @abstractmethod
    def generate_code(self, request: CodeGenerationRequest) -> CodeGenerationResult:
        ...

    @abstractmethod
    def generate_chat_response(
        self,
        user_message: str,
        session_id: int,
        project_context: Optional[Dict[str, Any]] = None,
    ) -> ChatReply:
        ...


def describe_context(project_context: Optional[Dict[str, Any]]) -> str:
    if not project_context:
        return "Starting a new conversation about backend development"
    stack = ", ".join(project_context.get("techStack") or project_context.get("tech_stack") or []) or "Not specified"
    name = project_context.get("name") or "Untitled"
    description = project_context.get("description") or "No description"
    return f"Current project: {name} - {description}\nTech stack: {stack}"


def extract_output_text(resp: Any) -> str:
    # Prefer output_text; fallback to assembling text from output parts if needed
    reply = getattr(resp, "output_text", "") or ""
    if not reply and hasattr(resp, "output"):
        parts: List[str] = []
        for item in resp.output:
            if getattr(item, "type", "") == "message":
                for c in getattr(item, "content", []):
                    if getattr(c, "type", "") == "output_text":
                        parts.append(getattr(c, "text", ""))
        reply = "".join(parts)
    return reply


class OpenAICollaborator(Collaborator):
    def __init__(self, client: OpenAI, model: str = settings.OPENAI_MODEL, timeout: float = settings.COLLABORATOR_TIMEOUT):
        self.client = client
        self.model = model
        self.timeout = timeout

    def generate_chat_response(self, user_message, session_id, project_context=None) -> ChatReply:
        system = f"{ARCHITECT_SYSTEM}\n\nConversation context: {describe_context(project_context)}"
        try:
            resp = self.client.responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user_message},
                ],
                timeout=self.timeout,
            )
        except OpenAIError as e:
            logger.error("OpenAI chat call failed for session %s: %s", session_id, e)
            raise CollaboratorUnavailable("AI service temporarily unavailable") from e

        reply = extract_output_text(resp)
        if not reply:
            raise CollaboratorUnavailable("No text returned by model")

        return ChatReply(
            content=reply,
            metadata=ChatReplyMetadata(
                session_id=session_id,
                has_project_context=bool(project_context),
                model=self.model,
                timestamp=utcnow(),
            ),
        )

    def generate_code(self, request: CodeGenerationRequest) -> CodeGenerationResult:
        system = CODEGEN_SYSTEM.format(
            tech_stack=", ".join(request.tech_stack or []) or "FastAPI + PostgreSQL + Docker",
            project_type=request.project_type or "Backend API",
            context=request.context or "None",
        )
        try:
            resp = self.client.responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": request.prompt},
                ],
                text={"format": {"type": "json_object"}},
                timeout=self.timeout,
            )
        except OpenAIError as e:
            logger.error("OpenAI code generation call failed: %s", e)
            raise CollaboratorUnavailable("Failed to generate code", details=str(e)) from e

        raw = extract_output_text(resp)
        try:
            return CodeGenerationResult.model_validate(json.loads(raw or "{}"))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Code generation returned an unusable payload: %s", e)
            raise CollaboratorUnavailable("Failed to generate code", details="Model returned malformed output") from e


DEMO_REPLY = """Hello! I'm Code Architect.

No AI API key is configured, so I'm running in demo mode.

Your message: "{message}"

Set OPENAI_API_KEY to enable:
- backend application design from natural language
- automatic code generation
- project structure proposals
- tech stack recommendations"""


class DemoCollaborator(Collaborator):
    """Stands in when no API key is configured."""

    def generate_chat_response(self, user_message, session_id, project_context=None) -> ChatReply:
        return ChatReply(
            content=DEMO_REPLY.format(message=user_message),
            metadata=ChatReplyMetadata(
                session_id=session_id,
                has_project_context=bool(project_context),
                demo_mode=True,
                timestamp=utcnow(),
            ),
        )

    def generate_code(self, request: CodeGenerationRequest) -> CodeGenerationResult:
        raise CollaboratorUnavailable("Code generation requires OPENAI_API_KEY")


@lru_cache(maxsize=1)
def get_collaborator() -> Collaborator:
    if settings.OPENAI_API_KEY:
        return OpenAICollaborator(get_openai())
    logger.warning("OPENAI_API_KEY not set, using the demo collaborator")
    return DemoCollaborator()
