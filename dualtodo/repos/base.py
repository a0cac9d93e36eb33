from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]


class TaskUserStore(ABC):
    """
    Contract shared by the document and relational stores.

    Task records keep their store-specific shape (``_id``/``createdAt`` for the
    document store, ``id``/``created_at`` for the relational one). User records
    are normalized: ``id`` (str), ``username``, ``email``, ``password`` (hash),
    ``oauth_provider``, ``oauth_id``, ``created_at``.

    Every method raises StoreUnavailableError when the backend cannot be
    reached and ConflictError on unique violations.
    """

    #: tag carried in tokens and in the ``store`` field of public users
    tag: str = ""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables/indexes if missing. Idempotent."""

    @abstractmethod
    def ping(self) -> bool:
        """True if the backend answers."""

    # -- tasks --

    @abstractmethod
    def insert_task(self, title: str) -> Record: ...

    @abstractmethod
    def list_tasks(self) -> List[Record]: ...

    @abstractmethod
    def get_task(self, task_id: Any) -> Optional[Record]: ...

    @abstractmethod
    def delete_task(self, task_id: Any) -> Optional[Record]:
        """Remove one task; return the removed record or None if it did not exist."""

    @abstractmethod
    def delete_tasks_by_title(self, title: str) -> int:
        """Remove every task with exactly this title; return how many went away."""

    # -- users --

    @abstractmethod
    def find_user(self, email: str, username: str) -> Optional[Record]:
        """First user matching the email OR the username."""

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[Record]: ...

    @abstractmethod
    def get_user(self, user_id: Any) -> Optional[Record]: ...

    @abstractmethod
    def insert_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        oauth_provider: str = "local",
        oauth_id: Optional[str] = None,
    ) -> Record: ...

    @abstractmethod
    def link_oauth(self, user_id: Any, provider: str, subject: str) -> Optional[Record]: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} tag={self.tag!r}>"
