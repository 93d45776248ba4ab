# code_architect/clients.py
from functools import lru_cache

from openai import OpenAI

from .config import settings


@lru_cache(maxsize=1)
def get_openai() -> OpenAI:
    # built on first use so the app can boot without a key (demo mode)
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL or None,
        timeout=settings.COLLABORATOR_TIMEOUT,
        max_retries=1,
    )
