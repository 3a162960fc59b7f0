from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import lru_cache
from threading import Lock
from typing import Any

from app.core.config import Settings


class ActionRecordStore(ABC):
    @abstractmethod
    def insert(self, document: Mapping[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def get(self, record_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def compare_and_set(
        self,
        record_id: str,
        *,
        expected_status: str,
        updates: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Apply ``updates`` only while the record still has ``expected_status``.

        Returns the updated document, or ``None`` when the record is missing or
        its status already moved on.
        """
        raise NotImplementedError

    @abstractmethod
    def list_by_owner(self, owner_id: str, *, status: str, limit: int) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def list_by_conversation(self, conversation_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError


class InMemoryActionRecordStore(ActionRecordStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._next_id = 1
        self._records: dict[str, dict[str, Any]] = {}

    def insert(self, document: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            record = dict(document)
            record["_id"] = f"memory-action-{self._next_id}"
            self._next_id += 1
            self._records[record["_id"]] = record
            return dict(record)

    def get(self, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(record_id)
            return dict(record) if record else None

    def compare_and_set(
        self,
        record_id: str,
        *,
        expected_status: str,
        updates: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(record_id)
            if not record or record.get("status") != expected_status:
                return None
            record.update(updates)
            return dict(record)

    def list_by_owner(self, owner_id: str, *, status: str, limit: int) -> list[dict[str, Any]]:
        with self._lock:
            items = [
                record
                for record in self._records.values()
                if record.get("owner_id") == owner_id and record.get("status") == status
            ]
        return [dict(record) for record in _newest_first(items)[:limit]]

    def list_by_conversation(self, conversation_id: str) -> list[dict[str, Any]]:
        with self._lock:
            items = [
                record
                for record in self._records.values()
                if record.get("conversation_id") == conversation_id
            ]
        return [dict(record) for record in _newest_first(items)]


class MongoActionRecordStore(ActionRecordStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import DESCENDING, MongoClient

        self._desc = DESCENDING
        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        self._collection = self._client[db_name][collection_name]
        self._collection.create_index(
            [("owner_id", self._desc), ("status", self._desc), ("created_at", self._desc)],
        )
        self._collection.create_index([("conversation_id", self._desc), ("created_at", self._desc)])

    def insert(self, document: Mapping[str, Any]) -> dict[str, Any]:
        payload = dict(document)
        insert_result = self._collection.insert_one(payload)
        payload["_id"] = str(insert_result.inserted_id)
        return payload

    def get(self, record_id: str) -> dict[str, Any] | None:
        object_id = _to_object_id(record_id)
        if object_id is None:
            return None
        return _serialize_record(self._collection.find_one({"_id": object_id}))

    def compare_and_set(
        self,
        record_id: str,
        *,
        expected_status: str,
        updates: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(record_id)
        if object_id is None:
            return None
        record = self._collection.find_one_and_update(
            {"_id": object_id, "status": expected_status},
            {"$set": dict(updates)},
            return_document=ReturnDocument.AFTER,
        )
        return _serialize_record(record)

    def list_by_owner(self, owner_id: str, *, status: str, limit: int) -> list[dict[str, Any]]:
        cursor = (
            self._collection.find({"owner_id": owner_id, "status": status})
            .sort("created_at", self._desc)
            .limit(limit)
        )
        return [_serialize_record(record) for record in cursor]

    def list_by_conversation(self, conversation_id: str) -> list[dict[str, Any]]:
        cursor = self._collection.find({"conversation_id": conversation_id}).sort(
            "created_at",
            self._desc,
        )
        return [_serialize_record(record) for record in cursor]


def _newest_first(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Reversed first so that ties on created_at keep the latest insert on top.
    return sorted(reversed(records), key=lambda record: record["created_at"], reverse=True)


def _to_object_id(record_id: str) -> Any | None:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _serialize_record(record: Any) -> dict[str, Any] | None:
    if not record:
        return None
    payload = dict(record)
    payload["_id"] = str(record.get("_id", ""))
    return payload


def create_action_record_store(settings: Settings) -> ActionRecordStore:
    return _create_action_record_store_cached(
        store_name=settings.actions_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_collection_name=settings.mongodb_actions_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_action_record_store_cached(
    *,
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_collection_name: str,
    mongodb_connect_timeout_ms: int,
) -> ActionRecordStore:
    if store_name == "mongodb":
        return MongoActionRecordStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            collection_name=mongodb_collection_name,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryActionRecordStore()


def clear_action_record_store_cache() -> None:
    _create_action_record_store_cached.cache_clear()
