from typing import List

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from buildscope.models.chat import ConversationType
from buildscope.prompts import DEFAULT_SYSTEM_PROMPTS

load_dotenv()


class Settings(BaseSettings):
    supabase_url: str = ""                 # will read from .env
    supabase_service_key: str = ""         # will read from .env
    supabase_jwt_secret: str = ""          # will read from .env
    fe_host: str = "http://localhost:3000"
    cors_origins: List[str] = []           # will be set from fe_host if not provided

    chat_provider: str = "anthropic"       # "anthropic" or "openai"
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    chat_model: str = "claude-3-opus-20240229"
    chat_max_tokens: int = 1024
    chat_temperature: float = 0.7
    chat_history_window: int = 10
    chat_stream_timeout: float = 300.0
    system_prompts: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SYSTEM_PROMPTS)
    )
    persist_conflict_retries: int = 3

    documents_bucket: str = "project-documents"
    images_bucket: str = "daily-report-images"
    signed_url_ttl: int = 60 * 60 * 24 * 7
    max_document_bytes: int = 10 * 1024 * 1024
    max_image_bytes: int = 5 * 1024 * 1024
    max_attachment_chars: int = 100_000
    upload_max_attempts: int = 3
    upload_backoff_base: float = 1.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # set cors_origins default to fe_host if empty
        if not self.cors_origins:
            self.cors_origins = [self.fe_host]

    @model_validator(mode="after")
    def _check_prompts(self) -> "Settings":
        missing = [t.value for t in ConversationType if not self.system_prompts.get(t.value)]
        if missing:
            raise ValueError(f"system_prompts missing entries for: {', '.join(missing)}")
        return self

    @property
    def llm_api_key(self) -> str | None:
        if self.chat_provider == "openai":
            return self.openai_api_key
        return self.anthropic_api_key
