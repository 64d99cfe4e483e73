"""Relational persistence of users and books through SQLAlchemy."""

from __future__ import annotations

import builtins
import uuid
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import DateTime, String, delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from svcdemo.domain import Book, BookNotFoundError, DomainError, User, UserNotFoundError


class RepositoryError(Exception):
    """Raised when a storage operation fails for reasons other than the domain."""


class _Base(DeclarativeBase):
    pass


class UserRecord(_Base):
    """Row of the ``users`` table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_domain(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, user: User) -> UserRecord:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class BookRecord(_Base):
    """Row of the ``Books`` table."""

    __tablename__ = "Books"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    bookname: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_domain(self) -> Book:
        return Book(
            id=self.id,
            bookname=self.bookname,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, book: Book) -> BookRecord:
        return cls(
            id=book.id,
            bookname=book.bookname,
            email=book.email,
            created_at=book.created_at,
            updated_at=book.updated_at,
        )


def create_schema(engine: Engine) -> None:
    """Create the users and books tables if they do not exist."""
    _Base.metadata.create_all(engine)


E = TypeVar("E", User, Book)


class _SqlRepository(Generic[E]):
    _record: Any
    _label: str
    _name_field: str
    _not_found: type[DomainError]

    def __init__(self, engine: Engine) -> None:
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def _create(self, entity: E) -> E:
        if not entity.id:
            entity.id = str(uuid.uuid4())
        entity.validate()

        record = self._record.from_domain(entity)
        now = datetime.now()
        record.created_at = record.created_at or now
        record.updated_at = record.updated_at or now
        try:
            with self._sessions.begin() as session:
                session.add(record)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to create {self._label}: {exc}") from exc

        entity.created_at = record.created_at
        entity.updated_at = record.updated_at
        return entity

    def _get_one(self, column: Any, value: str, what: str) -> E:
        try:
            with self._sessions() as session:
                record = session.scalars(select(self._record).where(column == value).limit(1)).first()
                found = record.to_domain() if record is not None else None
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to get {self._label} by {what}: {exc}") from exc
        if found is None:
            raise self._not_found()
        return found

    def _update(self, entity: E) -> E:
        if not entity.id:
            raise RepositoryError(f"{self._label} id is required for update")
        entity.validate()

        now = datetime.now()
        values = {
            self._name_field: getattr(entity, self._name_field),
            "email": entity.email,
            "updated_at": now,
        }
        try:
            with self._sessions.begin() as session:
                result = session.execute(
                    update(self._record).where(self._record.id == entity.id).values(**values)
                )
                affected = result.rowcount
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to update {self._label}: {exc}") from exc
        if affected == 0:
            raise self._not_found()

        entity.updated_at = now
        return entity

    def _delete(self, id: str) -> None:
        if not id:
            raise RepositoryError(f"{self._label} id is required for delete")
        try:
            with self._sessions.begin() as session:
                result = session.execute(delete(self._record).where(self._record.id == id))
                affected = result.rowcount
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to delete {self._label}: {exc}") from exc
        if affected == 0:
            raise self._not_found()

    def _list(self, offset: int, limit: int) -> builtins.list[E]:
        statement = select(self._record).order_by(self._record.created_at.desc())
        if offset > 0:
            statement = statement.offset(offset)
        if limit > 0:
            statement = statement.limit(limit)
        try:
            with self._sessions() as session:
                return [record.to_domain() for record in session.scalars(statement)]
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to list {self._label}s: {exc}") from exc


class SqlUserRepository(_SqlRepository[User]):
    """User repository over a relational database."""

    _record = UserRecord
    _label = "user"
    _name_field = "username"
    _not_found = UserNotFoundError

    def create(self, user: User) -> User:
        """Insert ``user``, assigning an id and timestamps where missing."""
        return self._create(user)

    def get_by_id(self, id: str) -> User:
        """Return the user with ``id``; raise UserNotFoundError if absent."""
        return self._get_one(UserRecord.id, id, "id")

    def get_by_username(self, username: str) -> User:
        """Return the user named ``username``; raise UserNotFoundError if absent."""
        return self._get_one(UserRecord.username, username, "username")

    def update(self, user: User) -> User:
        """Store the username and email of ``user`` and refresh its update time."""
        return self._update(user)

    def delete(self, id: str) -> None:
        """Remove the user with ``id``; raise UserNotFoundError if absent."""
        self._delete(id)

    def list(self, offset: int = 0, limit: int = 0) -> builtins.list[User]:
        """Return users, newest first; non-positive offset or limit is ignored."""
        return self._list(offset, limit)


class SqlBookRepository(_SqlRepository[Book]):
    """Book repository over a relational database."""

    _record = BookRecord
    _label = "Book"
    _name_field = "bookname"
    _not_found = BookNotFoundError

    def create(self, book: Book) -> Book:
        """Insert ``book``, assigning an id and timestamps where missing."""
        return self._create(book)

    def get_by_id(self, id: str) -> Book:
        """Return the book with ``id``; raise BookNotFoundError if absent."""
        return self._get_one(BookRecord.id, id, "id")

    def get_by_bookname(self, bookname: str) -> Book:
        """Return the book named ``bookname``; raise BookNotFoundError if absent."""
        return self._get_one(BookRecord.bookname, bookname, "Bookname")

    def update(self, book: Book) -> Book:
        """Store the bookname and email of ``book`` and refresh its update time."""
        return self._update(book)

    def delete(self, id: str) -> None:
        """Remove the book with ``id``; raise BookNotFoundError if absent."""
        self._delete(id)

    def list(self, offset: int = 0, limit: int = 0) -> builtins.list[Book]:
        """Return books, newest first; non-positive offset or limit is ignored."""
        return self._list(offset, limit)