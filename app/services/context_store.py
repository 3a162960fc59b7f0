from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any

from app.core.config import Settings
from app.services.action_models import ContextHints, ContextUnavailableError


class ContextStore(ABC):
    @abstractmethod
    def get_hints(self, owner_id: str) -> ContextHints | None:
        raise NotImplementedError


class InMemoryContextStore(ContextStore):
    def __init__(self) -> None:
        self._hints_by_owner: dict[str, ContextHints] = {}

    def get_hints(self, owner_id: str) -> ContextHints | None:
        return self._hints_by_owner.get(owner_id)

    def save_hints(
        self,
        owner_id: str,
        *,
        recent_topics: Iterable[str] = (),
        preferred_style: str | None = None,
    ) -> ContextHints:
        hints = ContextHints(
            recent_topics=_clean_topics(recent_topics),
            preferred_style=(preferred_style or "").strip() or None,
        )
        self._hints_by_owner[owner_id] = hints
        return hints


class MongoContextStore(ContextStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
        )
        self._collection = self._client[db_name][collection_name]

    def get_hints(self, owner_id: str) -> ContextHints | None:
        from pymongo.errors import PyMongoError

        try:
            record = self._collection.find_one(
                {"userId": owner_id},
                {"conversationHistory.recentTopics": 1, "preferences.responseStyle": 1},
            )
        except PyMongoError as exc:
            raise ContextUnavailableError(f"Unable to read user context: {exc}") from exc
        return _hints_from_document(record)


def _hints_from_document(record: Mapping[str, Any] | None) -> ContextHints | None:
    if not record:
        return None
    history = record.get("conversationHistory")
    preferences = record.get("preferences")
    raw_topics = history.get("recentTopics") if isinstance(history, Mapping) else None
    raw_style = preferences.get("responseStyle") if isinstance(preferences, Mapping) else None
    preferred_style = raw_style.strip() if isinstance(raw_style, str) else ""
    return ContextHints(
        recent_topics=_clean_topics(raw_topics if isinstance(raw_topics, list) else ()),
        preferred_style=preferred_style or None,
    )


def _clean_topics(topics: Iterable[Any]) -> tuple[str, ...]:
    cleaned: list[str] = []
    for topic in topics:
        if not isinstance(topic, str):
            continue
        normalized_topic = topic.strip()
        if normalized_topic and normalized_topic not in cleaned:
            cleaned.append(normalized_topic)
    return tuple(cleaned)


def create_context_store(settings: Settings) -> ContextStore:
    return _create_context_store_cached(
        store_name=settings.user_context_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_collection_name=settings.mongodb_user_contexts_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_context_store_cached(
    *,
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_collection_name: str,
    mongodb_connect_timeout_ms: int,
) -> ContextStore:
    if store_name == "mongodb":
        return MongoContextStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            collection_name=mongodb_collection_name,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryContextStore()


def clear_context_store_cache() -> None:
    _create_context_store_cached.cache_clear()
