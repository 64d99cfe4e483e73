"""Repository interfaces and the container that owns database clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from svcdemo.domain import Book, User


class UserRepository(ABC):
    """Stores users."""

    @abstractmethod
    def create(self, user: User) -> User: ...

    @abstractmethod
    def get_by_id(self, id: str) -> User: ...

    @abstractmethod
    def get_by_username(self, username: str) -> User: ...

    @abstractmethod
    def update(self, user: User) -> User: ...

    @abstractmethod
    def delete(self, id: str) -> None: ...

    @abstractmethod
    def list(self, offset: int = 0, limit: int = 0) -> list[User]: ...


class BookRepository(ABC):
    """Stores books."""

    @abstractmethod
    def create(self, book: Book) -> Book: ...

    @abstractmethod
    def get_by_id(self, id: str) -> Book: ...

    @abstractmethod
    def get_by_bookname(self, bookname: str) -> Book: ...

    @abstractmethod
    def update(self, book: Book) -> Book: ...

    @abstractmethod
    def delete(self, id: str) -> None: ...

    @abstractmethod
    def list(self, offset: int = 0, limit: int = 0) -> list[Book]: ...


class DocumentRepository(ABC):
    """Stores free-form documents keyed by an entity id."""

    @abstractmethod
    def save_document(self, doc_id: str, document: dict[str, Any]) -> None: ...

    @abstractmethod
    def get_document(self, doc_id: str) -> dict[str, Any]: ...

    @abstractmethod
    def delete_document(self, doc_id: str) -> None: ...

    @abstractmethod
    def find_documents(
        self, filter: dict[str, Any], skip: int = 0, limit: int = 0
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    def update_document_fields(self, doc_id: str, fields: dict[str, Any]) -> None: ...


class DataCloseError(Exception):
    """Raised when one or more data clients fail to close."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = errors
        super().__init__(f"failed to close data layer: {[str(e) for e in errors]}")


@dataclass
class DataLayer:
    """Owns the database clients and the repositories built on them."""

    postgres_client: Optional[Any] = None
    mongo_client: Optional[Any] = None
    user_repo: Optional[UserRepository] = None
    user_document_repo: Optional[DocumentRepository] = None
    book_repo: Optional[BookRepository] = None
    book_document_repo: Optional[DocumentRepository] = None
    _closers: list = field(default_factory=list, init=False, repr=False)

    def close(self) -> None:
        """Close MongoDB then PostgreSQL; raise DataCloseError listing any failures."""
        errors: list[Exception] = []
        if self.mongo_client is not None:
            try:
                self.mongo_client.close()
            except Exception as exc:
                errors.append(RuntimeError(f"failed to close mongodb: {exc}"))
        if self.postgres_client is not None:
            closer = getattr(self.postgres_client, "dispose", None) or self.postgres_client.close
            try:
                closer()
            except Exception as exc:
                errors.append(RuntimeError(f"failed to close postgres: {exc}"))
        if errors:
            raise DataCloseError(errors)

    def __enter__(self) -> DataLayer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()