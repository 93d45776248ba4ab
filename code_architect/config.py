# code_architect/config.py
import os

from dotenv import load_dotenv

# Load .env once here
load_dotenv()


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./code_architect.db")

    SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-only-secret-change-me")
    JWT_ALGORITHM = "HS256"
    SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
    SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", "1440"))
    COOKIE_SECURE = _bool(os.getenv("COOKIE_SECURE", "false"))
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    COLLABORATOR_TIMEOUT = float(os.getenv("COLLABORATOR_TIMEOUT", "60"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
