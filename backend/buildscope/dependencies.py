import logging
from collections.abc import Callable
from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, Request
from langchain_core.language_models.chat_models import BaseChatModel
from supabase import create_client, Client

from buildscope.config import Settings
from buildscope.errors import ConfigurationError
from buildscope.services.chat import build_chat_model
from buildscope.services.project_store import ProjectStore
from buildscope.services.storage import StorageUploader

logger = logging.getLogger(__name__)

_supabase_client: Client | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ConfigurationError("Database is not configured")
        _supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_service_key,
        )
    return _supabase_client


def get_project_store(
    supabase: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
) -> ProjectStore:
    return ProjectStore(supabase, conflict_retries=settings.persist_conflict_retries)


def get_optional_project_store(settings: Settings = Depends(get_settings)) -> ProjectStore | None:
    """Project store for best-effort writes; None when the database is not configured."""
    try:
        supabase = get_supabase()
    except ConfigurationError as e:
        logger.warning("Database unavailable: %s", e.detail)
        return None
    return ProjectStore(supabase, conflict_retries=settings.persist_conflict_retries)


def get_storage_uploader(
    supabase: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
) -> StorageUploader:
    return StorageUploader(
        supabase,
        max_attempts=settings.upload_max_attempts,
        backoff_base=settings.upload_backoff_base,
        signed_url_ttl=settings.signed_url_ttl,
    )


def get_llm_factory() -> Callable[[Settings], BaseChatModel]:
    """Return the chat-model factory.

    The chat route calls the factory itself, after body validation, so a
    missing credential surfaces as ConfigurationError rather than
    preempting a 400.
    """
    return build_chat_model


def _decode_user_id(auth_header: str | None, settings: Settings) -> str:
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header missing")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    if not settings.supabase_jwt_secret:
        raise ConfigurationError("Authentication is not configured")

    token = auth_header.removeprefix("Bearer ").strip()

    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Authentication token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    return user_id


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency: validate Supabase JWT and return user_id.

    Extracts the Bearer token from the Authorization header, validates it
    using the Supabase JWT secret, and returns the user's UUID from the
    ``sub`` claim.

    Raises:
        HTTPException 401 for missing, invalid, or expired tokens.
    """
    return _decode_user_id(request.headers.get("Authorization"), settings)


async def get_optional_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Like get_current_user, but anonymous or invalid callers yield None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    try:
        return _decode_user_id(auth_header, settings)
    except (HTTPException, ConfigurationError):
        return None
