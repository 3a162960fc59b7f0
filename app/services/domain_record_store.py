from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from functools import lru_cache
from threading import Lock
from typing import Any

from app.core.config import Settings
from app.services.action_models import (
    DomainStoreError,
    DomainValidationError,
    EntityKind,
    HabitFrequency,
    ScheduleType,
    TaskPriority,
)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

_TITLE_FIELD_BY_ENTITY: dict[EntityKind, str] = {
    EntityKind.task: "title",
    EntityKind.schedule: "title",
    EntityKind.habit: "name",
    EntityKind.note: "title",
}
_ENUM_FIELDS_BY_ENTITY: dict[EntityKind, tuple[tuple[str, type], ...]] = {
    EntityKind.task: (("priority", TaskPriority),),
    EntityKind.schedule: (("type", ScheduleType),),
    EntityKind.habit: (("frequency", HabitFrequency),),
    EntityKind.note: (),
}


def validate_domain_fields(entity_kind: EntityKind, fields: Mapping[str, Any]) -> None:
    label = entity_kind.value.capitalize()
    title_field = _TITLE_FIELD_BY_ENTITY[entity_kind]
    title = fields.get(title_field)
    if not isinstance(title, str) or not title.strip():
        raise DomainValidationError(f"{label} {title_field} is required.")
    if len(title.strip()) > MAX_TITLE_LENGTH:
        raise DomainValidationError(
            f"{label} {title_field} cannot be longer than {MAX_TITLE_LENGTH} characters.",
        )

    description = fields.get("description")
    if isinstance(description, str) and len(description) > MAX_DESCRIPTION_LENGTH:
        raise DomainValidationError(
            f"{label} description cannot be longer than {MAX_DESCRIPTION_LENGTH} characters.",
        )

    for field_name, enum_cls in _ENUM_FIELDS_BY_ENTITY[entity_kind]:
        value = fields.get(field_name)
        if value is None:
            continue
        try:
            enum_cls(value)
        except ValueError as exc:
            raise DomainValidationError(f"{label} {field_name} '{value}' is not supported.") from exc

    if entity_kind == EntityKind.schedule:
        start_time = fields.get("start_time")
        end_time = fields.get("end_time")
        if not isinstance(start_time, datetime):
            raise DomainValidationError("Schedule start_time is required.")
        if not isinstance(end_time, datetime):
            raise DomainValidationError("Schedule end_time is required.")
        if end_time <= start_time:
            raise DomainValidationError("Schedule end_time must be after start_time.")

    if entity_kind == EntityKind.note:
        content = fields.get("content")
        if not isinstance(content, str) or not content.strip():
            raise DomainValidationError("Note content is required.")


class DomainRecordStore(ABC):
    @abstractmethod
    def create(
        self,
        entity_kind: EntityKind,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def get(self, entity_kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        raise NotImplementedError


class InMemoryDomainRecordStore(DomainRecordStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._next_id = 1
        self._records: dict[EntityKind, dict[str, dict[str, Any]]] = {
            entity_kind: {} for entity_kind in EntityKind
        }

    def create(
        self,
        entity_kind: EntityKind,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        validate_domain_fields(entity_kind, fields)
        with self._lock:
            record_id = f"memory-{entity_kind.value}-{self._next_id}"
            self._next_id += 1
            now = datetime.now(UTC)
            record = {
                **fields,
                "id": record_id,
                "owner_id": owner_id,
                "created_at": now,
                "updated_at": now,
            }
            self._records[entity_kind][record_id] = record
            return dict(record)

    def get(self, entity_kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records[entity_kind].get(record_id)
            return dict(record) if record else None


class MongoDomainRecordStore(DomainRecordStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        collection_names: Mapping[EntityKind, str],
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import DESCENDING, MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        database = self._client[db_name]
        self._collections = {
            entity_kind: database[collection_name]
            for entity_kind, collection_name in collection_names.items()
        }
        for collection in self._collections.values():
            collection.create_index([("owner_id", DESCENDING), ("created_at", DESCENDING)])

    def create(
        self,
        entity_kind: EntityKind,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        from pymongo.errors import PyMongoError

        validate_domain_fields(entity_kind, fields)
        now = datetime.now(UTC)
        payload = {
            **fields,
            "owner_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._collections[entity_kind].insert_one(payload)
        except PyMongoError as exc:
            raise DomainStoreError(f"Unable to store {entity_kind.value}: {exc}") from exc
        return _serialize_record({**payload, "_id": insert_result.inserted_id})

    def get(self, entity_kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        from bson import ObjectId
        from bson.errors import InvalidId

        try:
            object_id = ObjectId(record_id)
        except (InvalidId, TypeError):
            return None
        return _serialize_record(self._collections[entity_kind].find_one({"_id": object_id}))


def _serialize_record(record: Any) -> dict[str, Any] | None:
    if not record:
        return None
    payload = dict(record)
    payload["id"] = str(payload.pop("_id", ""))
    return payload


def create_domain_record_store(settings: Settings) -> DomainRecordStore:
    return _create_domain_record_store_cached(
        store_name=settings.domain_records_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_tasks_collection=settings.mongodb_tasks_collection,
        mongodb_schedules_collection=settings.mongodb_schedules_collection,
        mongodb_habits_collection=settings.mongodb_habits_collection,
        mongodb_notes_collection=settings.mongodb_notes_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_domain_record_store_cached(
    *,
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_tasks_collection: str,
    mongodb_schedules_collection: str,
    mongodb_habits_collection: str,
    mongodb_notes_collection: str,
    mongodb_connect_timeout_ms: int,
) -> DomainRecordStore:
    if store_name == "mongodb":
        return MongoDomainRecordStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            collection_names={
                EntityKind.task: mongodb_tasks_collection,
                EntityKind.schedule: mongodb_schedules_collection,
                EntityKind.habit: mongodb_habits_collection,
                EntityKind.note: mongodb_notes_collection,
            },
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryDomainRecordStore()


def clear_domain_record_store_cache() -> None:
    _create_domain_record_store_cached.cache_clear()
