"""Domain models and domain errors for users and books."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class DomainError(Exception):
    """Base class for domain-level errors."""

    default_message = "domain error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class InvalidUsernameError(DomainError):
    default_message = "invalid username"


class InvalidBooknameError(DomainError):
    default_message = "invalid Bookname"


class InvalidEmailError(DomainError):
    default_message = "invalid email"


class UserNotFoundError(DomainError):
    default_message = "user not found"


class UserAlreadyExistsError(DomainError):
    default_message = "user already exists"


class BookNotFoundError(DomainError):
    default_message = "Book not found"


class BookAlreadyExistsError(DomainError):
    default_message = "Book already exists"


@dataclass
class User:
    """A user of the system."""

    id: str = ""
    username: str = ""
    email: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self) -> None:
        """Raise a domain error if the user data is incomplete."""
        if not self.username:
            raise InvalidUsernameError()
        if not self.email:
            raise InvalidEmailError()


@dataclass
class Book:
    """A book record."""

    id: str = ""
    bookname: str = ""
    email: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self) -> None:
        """Raise a domain error if the book data is incomplete."""
        if not self.bookname:
            raise InvalidBooknameError()
        if not self.email:
            raise InvalidEmailError()


def new_user(username: str, email: str) -> User:
    """Create a user with both timestamps set to now and no id yet."""
    now = datetime.now()
    return User(username=username, email=email, created_at=now, updated_at=now)


def new_book(bookname: str, email: str) -> Book:
    """Create a book with both timestamps set to now and no id yet."""
    now = datetime.now()
    return Book(bookname=bookname, email=email, created_at=now, updated_at=now)