"""
Dual-write coordination between the document and relational stores.

There is no cross-store transaction. Writes fan out to every active store
concurrently and the caller gets a per-store outcome. The primary store
decides success; secondary failures are logged and left for an operator to
reconcile.

Tasks have no shared key across stores: deleting a task removes the addressed
record, then every task with the same title in the other store.
"""
from __future__ import annotations

import enum
import logging
import secrets
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from dualtodo.config import normalize_mode
from dualtodo.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from dualtodo.repos.base import Record, TaskUserStore
from dualtodo.schemas.tasks import validate_title
from dualtodo.schemas.users import validate_credentials, validate_registration
from .credentials import CredentialService

log = logging.getLogger(__name__)

STORE_ALIASES = {
    "mongodb": "mongodb",
    "mongo": "mongodb",
    "document": "mongodb",
    "postgres": "postgres",
    "postgresql": "postgres",
    "pg": "postgres",
    "relational": "postgres",
}

PUBLIC_USER_FIELDS = ("id", "username", "email", "oauth_provider", "created_at")


class StoreMode(str, enum.Enum):
    DOCUMENT = "document-only"
    RELATIONAL = "relational-only"
    DUAL = "dual"

    @classmethod
    def parse(cls, raw) -> "StoreMode":
        if isinstance(raw, cls):
            return raw
        return cls(normalize_mode(raw))


class OutcomeStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StoreOutcome:
    store: str
    status: OutcomeStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass
class WriteResult:
    """Per-store result of one logical operation."""

    primary: str
    outcomes: Dict[str, StoreOutcome] = field(default_factory=dict)

    @property
    def record(self) -> Any:
        out = self.outcomes.get(self.primary)
        return out.value if out is not None else None

    @property
    def diverged(self) -> bool:
        """True when some store did not apply the change."""
        return any(o.status is OutcomeStatus.FAILED for o in self.outcomes.values())

    def status_of(self, store: str) -> OutcomeStatus:
        out = self.outcomes.get(store)
        return out.status if out is not None else OutcomeStatus.SKIPPED

    def as_dict(self) -> Dict[str, str]:
        return {name: o.status.value for name, o in self.outcomes.items()}


@dataclass
class Registration:
    token: str
    user: Dict[str, Any]
    result: WriteResult


def public_user(record: Mapping[str, Any], store: str) -> Dict[str, Any]:
    user = {k: record.get(k) for k in PUBLIC_USER_FIELDS}
    user["store"] = store
    return user


class DualWriteCoordinator:
    """
    Runs task/user operations against the stores enabled by `mode`.

    The document store is primary in ``dual`` and ``document-only`` modes;
    active stores are always visited document store first.
    """

    def __init__(
        self,
        mode,
        *,
        credentials: CredentialService,
        document: Optional[TaskUserStore] = None,
        relational: Optional[TaskUserStore] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.mode = StoreMode.parse(mode)
        self.credentials = credentials
        self.document = document
        self.relational = relational
        if self.mode in (StoreMode.DOCUMENT, StoreMode.DUAL) and document is None:
            raise ValueError(f"{self.mode.value} mode needs a document store")
        if self.mode in (StoreMode.RELATIONAL, StoreMode.DUAL) and relational is None:
            raise ValueError(f"{self.mode.value} mode needs a relational store")
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="dualwrite")

    # -- topology --

    @property
    def active_stores(self) -> List[TaskUserStore]:
        if self.mode is StoreMode.DOCUMENT:
            return [self.document]
        if self.mode is StoreMode.RELATIONAL:
            return [self.relational]
        return [self.document, self.relational]

    @property
    def primary(self) -> TaskUserStore:
        return self.active_stores[0]

    def secondaries(self, primary: Optional[TaskUserStore] = None) -> List[TaskUserStore]:
        primary = primary or self.primary
        return [s for s in self.active_stores if s is not primary]

    def store(self, selector: Optional[str]) -> TaskUserStore:
        """Resolve a store selector ("mongodb", "postgres", ...) to an active store."""
        if not selector:
            return self.primary
        tag = STORE_ALIASES.get(str(selector).strip().lower())
        for s in self.active_stores:
            if s.tag == tag:
                return s
        raise ValidationError(f"Unknown or inactive store: {selector}")

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    # -- fan-out helpers --

    def _fan_out(self, stores: List[TaskUserStore], op: str, call: Callable[[TaskUserStore], Any]) -> Dict[str, StoreOutcome]:
        """Run `call` on every store concurrently and wait for all of them."""
        log.debug("[dual-write] %s -> %s", op, [s.tag for s in stores])
        futures: Dict[str, Future] = {s.tag: self._executor.submit(call, s) for s in stores}
        wait(list(futures.values()))
        outcomes: Dict[str, StoreOutcome] = {}
        for tag, fut in futures.items():
            exc = fut.exception()
            if exc is None:
                outcomes[tag] = StoreOutcome(tag, OutcomeStatus.SUCCEEDED, value=fut.result())
            else:
                outcomes[tag] = StoreOutcome(tag, OutcomeStatus.FAILED, error=exc)
        return outcomes

    def _log_divergence(self, op: str, result: WriteResult, detail: str) -> None:
        for tag, out in result.outcomes.items():
            if out.status is OutcomeStatus.FAILED:
                log.warning("[dual-write] %s diverged: %s failed (%s) for %s", op, tag, out.error, detail)

    # -- tasks --

    def create_task(self, title) -> WriteResult:
        title = validate_title({"title": title})
        primary = self.primary
        result = WriteResult(primary=primary.tag)
        result.outcomes = self._fan_out(self.active_stores, "create_task", lambda s: s.insert_task(title))

        # sin rollback: si falla un store, el otro conserva la tarea
        self._log_divergence("create_task", result, repr(title))
        head = result.outcomes[primary.tag]
        if not head.ok:
            raise head.error
        return result

    def list_tasks(self) -> Dict[str, List[Record]]:
        """Tasks per active store, each in that store's own order."""
        tasks: Dict[str, List[Record]] = {self.primary.tag: self.primary.list_tasks()}
        for s in self.secondaries():
            try:
                tasks[s.tag] = s.list_tasks()
            except Exception as exc:
                log.warning("[dual-write] list_tasks: %s unavailable (%s), showing primary only", s.tag, exc)
                tasks[s.tag] = []
        return tasks

    def delete_task(self, task_id, store: Optional[str] = None) -> WriteResult:
        addressed = self.store(store)
        result = WriteResult(primary=addressed.tag)

        removed = addressed.delete_task(task_id)
        if removed is None:
            raise NotFoundError("Task not found", store=addressed.tag)
        result.outcomes[addressed.tag] = StoreOutcome(addressed.tag, OutcomeStatus.SUCCEEDED, value=removed)

        title = removed.get("title")
        for other in self.secondaries(addressed):
            try:
                count = other.delete_tasks_by_title(title)
                result.outcomes[other.tag] = StoreOutcome(other.tag, OutcomeStatus.SUCCEEDED, value=count)
                if count > 1:
                    log.info("[dual-write] delete_task removed %d rows titled %r from %s", count, title, other.tag)
            except Exception as exc:
                # el primario ya borró: el fallo del otro store queda como outcome
                result.outcomes[other.tag] = StoreOutcome(other.tag, OutcomeStatus.FAILED, error=exc)
        self._log_divergence("delete_task", result, f"id={task_id!r} title={title!r}")
        return result

    # -- users --

    def _reachable(self, op: str, call: Callable[[TaskUserStore], Any]):
        """
        Visit active stores in order, skipping unavailable ones.
        Yields (store, value). Raises StoreUnavailableError if none answered.
        """
        answered = 0
        last_exc: Optional[StoreUnavailableError] = None
        for s in self.active_stores:
            try:
                value = call(s)
            except StoreUnavailableError as exc:
                log.warning("[dual-write] %s: %s unavailable, skipping (%s)", op, s.tag, exc)
                last_exc = exc
                continue
            answered += 1
            yield s, value
        if not answered:
            raise last_exc or StoreUnavailableError("No store available")

    def register_user(self, username, email, password, *, ttl: Optional[int] = None,
                      missing_message: str = "All fields are required") -> Registration:
        username, email, password = validate_registration(
            {"username": username, "email": email, "password": password}, missing_message
        )

        reachable: List[TaskUserStore] = []
        for s, existing in self._reachable("register_user", lambda s: s.find_user(email, username)):
            if existing is not None:
                raise ConflictError("User already exists", store=s.tag)
            reachable.append(s)

        hashed = self.credentials.hash_password(password)
        result = WriteResult(primary=reachable[0].tag)
        result.outcomes = self._fan_out(reachable, "register_user", lambda s: s.insert_user(username, email, hashed))
        for s in self.active_stores:
            result.outcomes.setdefault(s.tag, StoreOutcome(s.tag, OutcomeStatus.SKIPPED))

        stored = next((s for s in reachable if result.outcomes[s.tag].ok), None)
        head = result.outcomes[reachable[0].tag]
        if stored is None or (not head.ok and isinstance(head.error, ConflictError)):
            raise head.error
        self._log_divergence("register_user", result, f"username={username!r}")

        record = result.outcomes[stored.tag].value
        user = public_user(record, stored.tag)
        token = self.credentials.issue_token(
            record["id"], {"email": email, "username": username, "dbType": stored.tag}, ttl=ttl
        )
        return Registration(token=token, user=user, result=result)

    def authenticate(self, email, password) -> Dict[str, Any]:
        """
        First store holding the email decides; a wrong password there is final.
        Returns the public user (with its store tag).
        """
        email, password = validate_credentials({"email": email, "password": password})
        for s, record in self._reachable("authenticate", lambda s: s.find_user_by_email(email)):
            if record is None:
                continue
            if not self.credentials.verify_password(password, record.get("password")):
                break
            return public_user(record, s.tag)
        raise AuthenticationError("Invalid credentials")

    def issue_session(self, user: Mapping[str, Any], ttl: Optional[int] = None) -> str:
        return self.credentials.issue_token(
            user["id"],
            {"email": user.get("email"), "username": user.get("username"), "dbType": user.get("store")},
            ttl=ttl,
        )

    def find_user(self, user_id, store: Optional[str] = None) -> Dict[str, Any]:
        candidates = self.active_stores
        if store:
            tag = STORE_ALIASES.get(str(store).strip().lower())
            candidates = [s for s in self.active_stores if s.tag == tag] or self.active_stores
        for s in candidates:
            try:
                record = s.get_user(user_id)
            except StoreUnavailableError as exc:
                log.warning("[dual-write] find_user: %s unavailable (%s)", s.tag, exc)
                continue
            if record is not None:
                return public_user(record, s.tag)
        raise NotFoundError("User not found")

    def oauth_login(self, profile: Mapping[str, Any], store: Optional[str] = None) -> Dict[str, Any]:
        """
        Find-or-create the user behind an OAuth profile in one store.

        profile: {"id", "email", "name"} as returned by the provider.
        An existing local account gets the provider linkage attached.
        """
        email = (profile.get("email") or "").strip().lower()
        subject = str(profile.get("id") or "")
        provider = profile.get("provider") or "google"
        if not email or not subject:
            raise ValidationError("OAuth profile has no email")
        target = self.store(store)

        record = target.find_user_by_email(email)
        if record is not None:
            if (record.get("oauth_provider") or "local") == "local":
                record = target.link_oauth(record["id"], provider, subject) or record
            return public_user(record, target.tag)

        username = (profile.get("name") or "").strip() or email.split("@")[0]
        hashed = self.credentials.hash_password(secrets.token_urlsafe(24))
        try:
            record = target.insert_user(username, email, hashed, oauth_provider=provider, oauth_id=subject)
        except ConflictError:
            # username tomado por otra cuenta: sufijo corto
            record = target.insert_user(f"{username}-{secrets.token_hex(3)}", email, hashed,
                                        oauth_provider=provider, oauth_id=subject)
        log.info("[oauth] created %s user %s in %s", provider, email, target.tag)
        return public_user(record, target.tag)

    def health(self) -> Dict[str, Optional[bool]]:
        out: Dict[str, Optional[bool]] = {"mongodb": None, "postgres": None}
        for s in self.active_stores:
            out[s.tag] = s.ping()
        return out
