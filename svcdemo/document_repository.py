"""Document storage of users and books in MongoDB collections."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pymongo
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import PyMongoError

from svcdemo.config import MongoSettings
from svcdemo.data import DocumentRepository
from svcdemo.domain import BookNotFoundError, DomainError, UserNotFoundError

COLLECTION_USERS = "users"
COLLECTION_BOOKS = "Books"


class DocumentError(Exception):
    """Raised when a document-store operation fails outside the domain rules."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MongoDocumentRepository(DocumentRepository):
    """Free-form documents keyed by ``_id`` in one collection."""

    not_found: type[DomainError] = DomainError

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    def save_document(self, doc_id: str, document: dict[str, Any]) -> None:
        """Upsert ``document`` under ``doc_id``, stamping creation and update times."""
        body = dict(document)
        body["_id"] = doc_id
        now = _now()
        body.setdefault("created_at", now)
        body["updated_at"] = now
        try:
            self.collection.update_one({"_id": doc_id}, {"$set": body}, upsert=True)
        except PyMongoError as exc:
            raise DocumentError(f"failed to save document: {exc}") from exc

    def get_document(self, doc_id: str) -> dict[str, Any]:
        """Return the document stored under ``doc_id``; raise not-found if absent."""
        try:
            document = self.collection.find_one({"_id": doc_id})
        except PyMongoError as exc:
            raise DocumentError(f"failed to get document: {exc}") from exc
        if document is None:
            raise self.not_found()
        return dict(document)

    def delete_document(self, doc_id: str) -> None:
        """Delete the document under ``doc_id``; raise not-found if nothing was removed."""
        try:
            result = self.collection.delete_one({"_id": doc_id})
        except PyMongoError as exc:
            raise DocumentError(f"failed to delete document: {exc}") from exc
        if result.deleted_count == 0:
            raise self.not_found()

    def find_documents(
        self, filter: dict[str, Any], skip: int = 0, limit: int = 0
    ) -> list[dict[str, Any]]:
        """Return documents matching ``filter``, newest first.

        Non-positive ``skip`` or ``limit`` is ignored.
        """
        try:
            cursor = self.collection.find(
                filter,
                skip=skip if skip > 0 else 0,
                limit=limit if limit > 0 else 0,
                sort=[("created_at", DESCENDING)],
            )
        except PyMongoError as exc:
            raise DocumentError(f"failed to find documents: {exc}") from exc
        try:
            return [dict(document) for document in cursor]
        except PyMongoError as exc:
            raise DocumentError(f"failed to decode documents: {exc}") from exc
        finally:
            close = getattr(cursor, "close", None)
            if callable(close):
                close()

    def update_document_fields(self, doc_id: str, fields: dict[str, Any]) -> None:
        """Set ``fields`` on the document under ``doc_id`` and refresh its update time."""
        changes = dict(fields)
        changes["updated_at"] = _now()
        try:
            result = self.collection.update_one({"_id": doc_id}, {"$set": changes})
        except PyMongoError as exc:
            raise DocumentError(f"failed to update document fields: {exc}") from exc
        if result.matched_count == 0:
            raise self.not_found()


class UserDocumentRepository(MongoDocumentRepository):
    """User documents in the ``users`` collection of a database."""

    not_found = UserNotFoundError

    def __init__(self, database: Any) -> None:
        super().__init__(database[COLLECTION_USERS])


class BookDocumentRepository(MongoDocumentRepository):
    """Book documents in the ``Books`` collection of a database."""

    not_found = BookNotFoundError

    def __init__(self, database: Any) -> None:
        super().__init__(database[COLLECTION_BOOKS])


def _create_indexes(collection: Any, name_field: str) -> None:
    indexes = [
        IndexModel([(name_field, ASCENDING)], unique=True, name=f"idx_{name_field}"),
        IndexModel([("email", ASCENDING)], name="idx_email"),
        IndexModel([("created_at", DESCENDING)], name="idx_created_at"),
    ]
    try:
        collection.create_indexes(indexes)
    except PyMongoError as exc:
        raise DocumentError(f"failed to create indexes: {exc}") from exc


def create_user_indexes(collection: Any) -> None:
    """Create the unique username, email and creation-time indexes."""
    _create_indexes(collection, "username")


def create_book_indexes(collection: Any) -> None:
    """Create the unique bookname, email and creation-time indexes."""
    _create_indexes(collection, "bookname")


def _default_client(settings: MongoSettings) -> Any:
    return pymongo.MongoClient(
        settings.uri,
        maxPoolSize=settings.max_pool_size,
        minPoolSize=settings.min_pool_size,
        connectTimeoutMS=settings.connect_timeout * 1000,
    )


def init_mongo_client(
    settings: MongoSettings,
    create_indexes: Optional[Callable[[Any], None]] = None,
    client_factory: Optional[Callable[[MongoSettings], Any]] = None,
) -> Any:
    """Validate ``settings``, create a client and optionally build indexes.

    ``create_indexes`` receives the configured database. Raises ConfigError for
    unusable settings, ConnectionError when the client cannot be created and
    DocumentError when index creation fails (the client is then closed).
    """
    settings = settings.validated()
    factory = client_factory or _default_client
    try:
        client = factory(settings)
    except Exception as exc:
        raise ConnectionError(f"failed to create mongodb client: {exc}") from exc

    if create_indexes is not None:
        try:
            create_indexes(client[settings.database])
        except Exception as exc:
            client.close()
            raise DocumentError(f"failed to create indexes: {exc}") from exc
    return client