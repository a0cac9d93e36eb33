"""
MongoDB side of the task/user store.

One document per task in ``tasks`` and per user in ``users``; identifiers are
ObjectIds generated by the driver. A malformed id is treated as "no such
record" rather than as an input error, so lookups across stores can probe
this store with ids that belong to the relational one.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from dualtodo.errors import ConflictError, StoreUnavailableError
from .base import Record, TaskUserStore

log = logging.getLogger(__name__)


def _object_id(raw: Any) -> Optional[ObjectId]:
    if isinstance(raw, ObjectId):
        return raw
    if raw is None or not ObjectId.is_valid(str(raw)):
        return None
    return ObjectId(str(raw))


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


def _task_out(doc) -> Record:
    return {"_id": str(doc["_id"]), "title": doc.get("title"), "createdAt": _iso(doc.get("createdAt"))}


def _user_out(doc) -> Record:
    return {
        "id": str(doc["_id"]),
        "username": doc.get("username"),
        "email": doc.get("email"),
        "password": doc.get("password"),
        "oauth_provider": doc.get("oauth_provider") or "local",
        "oauth_id": doc.get("oauth_id"),
        "created_at": _iso(doc.get("createdAt")),
    }


class DocumentStore(TaskUserStore):
    tag = "mongodb"

    def __init__(self, database: Database, tasks_collection: str = "tasks", users_collection: str = "users"):
        self.database = database
        self.tasks = database[tasks_collection]
        self.users = database[users_collection]

    @contextmanager
    def _guard(self, op: str):
        try:
            yield
        except DuplicateKeyError as exc:
            raise ConflictError("User already exists", store=self.tag) from exc
        except PyMongoError as exc:
            log.error("[mongodb] %s failed: %s", op, exc)
            raise StoreUnavailableError(f"MongoDB unavailable: {exc}", store=self.tag) from exc

    def ensure_schema(self) -> None:
        with self._guard("ensure_schema"):
            self.users.create_index("username", unique=True)
            self.users.create_index("email", unique=True)

    def ping(self) -> bool:
        try:
            self.database.command("ping")
            return True
        except PyMongoError as exc:
            log.warning("[mongodb] ping failed: %s", exc)
            return False

    # -- tasks --

    def insert_task(self, title: str) -> Record:
        doc = {"title": title, "createdAt": datetime.now(timezone.utc)}
        with self._guard("insert_task"):
            result = self.tasks.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _task_out(doc)

    def list_tasks(self) -> List[Record]:
        with self._guard("list_tasks"):
            return [_task_out(d) for d in self.tasks.find()]

    def get_task(self, task_id: Any) -> Optional[Record]:
        oid = _object_id(task_id)
        if oid is None:
            return None
        with self._guard("get_task"):
            doc = self.tasks.find_one({"_id": oid})
        return _task_out(doc) if doc else None

    def delete_task(self, task_id: Any) -> Optional[Record]:
        oid = _object_id(task_id)
        if oid is None:
            return None
        with self._guard("delete_task"):
            doc = self.tasks.find_one_and_delete({"_id": oid})
        return _task_out(doc) if doc else None

    def delete_tasks_by_title(self, title: str) -> int:
        with self._guard("delete_tasks_by_title"):
            return self.tasks.delete_many({"title": title}).deleted_count

    # -- users --

    def find_user(self, email: str, username: str) -> Optional[Record]:
        with self._guard("find_user"):
            doc = self.users.find_one({"$or": [{"email": email}, {"username": username}]})
        return _user_out(doc) if doc else None

    def find_user_by_email(self, email: str) -> Optional[Record]:
        with self._guard("find_user_by_email"):
            doc = self.users.find_one({"email": email})
        return _user_out(doc) if doc else None

    def get_user(self, user_id: Any) -> Optional[Record]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        with self._guard("get_user"):
            doc = self.users.find_one({"_id": oid})
        return _user_out(doc) if doc else None

    def insert_user(self, username, email, password_hash, oauth_provider="local", oauth_id=None) -> Record:
        doc = {
            "username": username,
            "email": email,
            "password": password_hash,
            "oauth_provider": oauth_provider,
            "oauth_id": oauth_id,
            "createdAt": datetime.now(timezone.utc),
        }
        with self._guard("insert_user"):
            result = self.users.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _user_out(doc)

    def link_oauth(self, user_id, provider, subject) -> Optional[Record]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        with self._guard("link_oauth"):
            doc = self.users.find_one_and_update(
                {"_id": oid},
                {"$set": {"oauth_provider": provider, "oauth_id": subject}},
                return_document=ReturnDocument.AFTER,
            )
        return _user_out(doc) if doc else None
