"""
SQL side of the task/user store (``tasks_pg`` / ``users_pg``).

Works on a bare SQLAlchemy engine with one short session per call, so the
coordinator can use it from worker threads without a Flask app context.
Transient errors (deadlock, serialization, locked SQLite file) are retried
with backoff before being reported as StoreUnavailableError.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dualtodo.errors import ConflictError, StoreUnavailableError
from dualtodo.extensions import db
from dualtodo.models import TaskRow, UserRow
from dualtodo.utils.db import retry_with_backoff
from .base import Record, TaskUserStore

log = logging.getLogger(__name__)

T = TypeVar("T")

# columnas INTEGER/BIGINT: fuera de este rango el id no puede existir
_MIN_PK, _MAX_PK = -(2 ** 63), 2 ** 63


def _int_id(raw: Any) -> Optional[int]:
    try:
        pk = int(str(raw))
    except (TypeError, ValueError):
        return None
    return pk if _MIN_PK <= pk < _MAX_PK else None


class RelationalStore(TaskUserStore):
    tag = "postgres"

    def __init__(self, engine: Engine, *, retry_attempts: int = 5, retry_base_delay: float = 0.05):
        self.engine = engine
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    def _run(self, op: str, work: Callable[[Session], T]) -> T:
        def _tx():
            with Session(self.engine, expire_on_commit=False) as session:
                with session.begin():
                    return work(session)

        try:
            return retry_with_backoff(_tx, attempts=self.retry_attempts, base_delay=self.retry_base_delay)
        except IntegrityError as exc:
            raise ConflictError("User already exists", store=self.tag) from exc
        except SQLAlchemyError as exc:
            log.error("[postgres] %s failed: %s", op, getattr(exc, "orig", exc))
            raise StoreUnavailableError(f"PostgreSQL unavailable: {getattr(exc, 'orig', exc)}", store=self.tag) from exc

    def ensure_schema(self) -> None:
        try:
            db.metadata.create_all(self.engine, tables=[TaskRow.__table__, UserRow.__table__])
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"PostgreSQL unavailable: {exc}", store=self.tag) from exc

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(sa.text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            log.warning("[postgres] ping failed: %s", exc)
            return False

    # -- tasks --

    def insert_task(self, title: str) -> Record:
        def work(session: Session):
            row = TaskRow(title=title)
            session.add(row)
            session.flush()
            return row.to_dict()

        return self._run("insert_task", work)

    def list_tasks(self) -> List[Record]:
        def work(session: Session):
            rows = session.scalars(sa.select(TaskRow).order_by(TaskRow.id.desc())).all()
            return [r.to_dict() for r in rows]

        return self._run("list_tasks", work)

    def get_task(self, task_id: Any) -> Optional[Record]:
        pk = _int_id(task_id)
        if pk is None:
            return None

        def work(session: Session):
            row = session.get(TaskRow, pk)
            return row.to_dict() if row else None

        return self._run("get_task", work)

    def delete_task(self, task_id: Any) -> Optional[Record]:
        pk = _int_id(task_id)
        if pk is None:
            return None

        def work(session: Session):
            row = session.get(TaskRow, pk)
            if row is None:
                return None
            out = row.to_dict()
            session.delete(row)
            return out

        return self._run("delete_task", work)

    def delete_tasks_by_title(self, title: str) -> int:
        def work(session: Session):
            res = session.execute(sa.delete(TaskRow).where(TaskRow.title == title))
            return res.rowcount or 0

        return self._run("delete_tasks_by_title", work)

    # -- users --

    def find_user(self, email: str, username: str) -> Optional[Record]:
        def work(session: Session):
            stmt = sa.select(UserRow).where(sa.or_(UserRow.email == email, UserRow.username == username)).limit(1)
            row = session.scalars(stmt).first()
            return row.to_record() if row else None

        return self._run("find_user", work)

    def find_user_by_email(self, email: str) -> Optional[Record]:
        def work(session: Session):
            row = session.scalars(sa.select(UserRow).where(UserRow.email == email).limit(1)).first()
            return row.to_record() if row else None

        return self._run("find_user_by_email", work)

    def get_user(self, user_id: Any) -> Optional[Record]:
        pk = _int_id(user_id)
        if pk is None:
            return None

        def work(session: Session):
            row = session.get(UserRow, pk)
            return row.to_record() if row else None

        return self._run("get_user", work)

    def insert_user(self, username, email, password_hash, oauth_provider="local", oauth_id=None) -> Record:
        def work(session: Session):
            row = UserRow(
                username=username,
                email=email,
                password=password_hash,
                oauth_provider=oauth_provider,
                oauth_id=oauth_id,
            )
            session.add(row)
            session.flush()
            return row.to_record()

        return self._run("insert_user", work)

    def link_oauth(self, user_id, provider, subject) -> Optional[Record]:
        pk = _int_id(user_id)
        if pk is None:
            return None

        def work(session: Session):
            row = session.get(UserRow, pk)
            if row is None:
                return None
            row.oauth_provider = provider
            row.oauth_id = subject
            session.flush()
            return row.to_record()

        return self._run("link_oauth", work)
