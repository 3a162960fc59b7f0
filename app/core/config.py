from functools import lru_cache
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_TIMEZONE = "Asia/Jakarta"
_DEFAULT_PENDING_ACTIONS_PAGE_SIZE = 10


class Settings(BaseSettings):
    app_name: str = "Productivity Chat Actions API"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    actions_store: str = "mongodb"
    domain_records_store: str = "mongodb"
    user_context_store: str = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "productivity_assistant"
    mongodb_actions_collection: str = "ai_actions"
    mongodb_user_contexts_collection: str = "user_contexts"
    mongodb_tasks_collection: str = "tasks"
    mongodb_schedules_collection: str = "schedules"
    mongodb_habits_collection: str = "habits"
    mongodb_notes_collection: str = "notes"
    mongodb_connect_timeout_ms: int = 2000
    pending_actions_page_size: int = _DEFAULT_PENDING_ACTIONS_PAGE_SIZE
    default_timezone: str = _DEFAULT_TIMEZONE

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("actions_store", "domain_records_store", "user_context_store", mode="before")
    @classmethod
    def normalize_store_name(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("pending_actions_page_size", mode="before")
    @classmethod
    def normalize_pending_page_size(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return _DEFAULT_PENDING_ACTIONS_PAGE_SIZE
        return parsed_value

    @field_validator("mongodb_connect_timeout_ms", mode="before")
    @classmethod
    def normalize_mongodb_timeout(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 2000
        return parsed_value

    @field_validator("default_timezone", mode="before")
    @classmethod
    def normalize_default_timezone(cls, value: str) -> str:
        cleaned = str(value).strip()
        if not cleaned:
            return _DEFAULT_TIMEZONE
        try:
            ZoneInfo(cleaned)
        except (ZoneInfoNotFoundError, ValueError):
            return _DEFAULT_TIMEZONE
        return cleaned


@lru_cache
def get_settings() -> Settings:
    return Settings()
