"""Business logic of the user and book services and their RPC-facing wrappers."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Protocol

from svcdemo.data import DocumentRepository, UserRepository
from svcdemo.domain import User
from svcdemo.messaging import Publisher
from svcdemo.user_cache import UserCache

logger = logging.getLogger(__name__)

ROUTING_KEY_TASK_SAYHELLO_CREATE = "task.sayhello.create"
USER_CACHE_TTL_SECONDS = 60


class BookClient(Protocol):
    """Anything that answers the book service's "just tell me" call."""

    def just_tell_me(self) -> str: ...


class BookUseCase:
    """Book-service business logic."""

    def just_tell_me(self, name: str = "") -> str:
        """Return the book service's message, personalised when ``name`` is given."""
        logger.info("processing JustTellMe request name=%s", name)
        return f"World {name}" if name else "World"


class BookService:
    """Entry point of the book service's remote interface."""

    def __init__(self, use_case: BookUseCase) -> None:
        self._use_case = use_case

    def just_tell_me(self) -> str:
        """Handle a request and return the response message."""
        logger.info("received JustTellMe request")
        try:
            message = self._use_case.just_tell_me("")
        except Exception:
            logger.exception("failed to tell")
            raise
        logger.info("JustTellMe completed message=%s", message)
        return message


def _rfc3339_now() -> str:
    text = datetime.now().astimezone().isoformat(timespec="seconds")
    return text[:-6] + "Z" if text.endswith("+00:00") else text


class UserUseCase:
    """User-service business logic: greets, records the user and queues a task."""

    def __init__(
        self,
        book_client: BookClient,
        user_repo: UserRepository,
        user_doc_repo: DocumentRepository,
        user_cache: UserCache,
        publisher: Publisher,
        routing_key: str = ROUTING_KEY_TASK_SAYHELLO_CREATE,
    ) -> None:
        self._book_client = book_client
        self._user_repo = user_repo
        self._user_doc_repo = user_doc_repo
        self._user_cache = user_cache
        self._publisher = publisher
        self.routing_key = routing_key

    def say_hello(self, name: str = "") -> str:
        """Build, store, cache and announce a user; return its description.

        Failures of the book call, the repositories or the cache propagate;
        a failure to publish the task message is logged and ignored.
        """
        logger.info("processing SayHello request name=%s", name)
        user_message = f"Hello {name}" if name else "Hello from user-service"

        logger.info("calling book-service")
        try:
            book_message = self._book_client.just_tell_me()
        except Exception:
            logger.exception("failed to call book-service")
            raise
        logger.info("received message from book-service message=%s", book_message)

        user = User(id=str(uuid.uuid4()), username=user_message, email=book_message)

        try:
            self._user_repo.create(user)
        except Exception:
            logger.exception("failed to create user")
            raise

        try:
            self._user_doc_repo.save_document(
                user.id, {"username": user.username, "email": user.email}
            )
        except Exception:
            logger.exception("failed to save user document")
            raise

        try:
            self._user_cache.set_user(user, USER_CACHE_TTL_SECONDS)
        except Exception:
            logger.exception("failed to cache user")
            raise

        self._publish_task(user, user_message)

        return f"User{{ID: {user.id}, Username: {user.username}, Email: {user.email}}}"

    def _publish_task(self, user: User, user_message: str) -> None:
        task = {
            "user_id": user.id,
            "username": user.username,
            "task_type": "sayhello",
            "message": user_message,
            "created_at": _rfc3339_now(),
        }
        payload = json.dumps(task, sort_keys=True, ensure_ascii=False).encode("utf-8")
        try:
            self._publisher.publish_with_routing(self.routing_key, payload)
        except Exception:
            logger.exception("failed to publish task message routing_key=%s", self.routing_key)
        else:
            logger.info(
                "task message published successfully routing_key=%s user_id=%s",
                self.routing_key,
                user.id,
            )


class UserService:
    """Entry point of the user service's remote interface."""

    def __init__(self, use_case: UserUseCase) -> None:
        self._use_case = use_case

    def say_hello(self) -> str:
        """Handle a hello request and return the response message."""
        logger.info("received SayHello request")
        try:
            message = self._use_case.say_hello("")
        except Exception:
            logger.exception("failed to say hello")
            raise
        logger.info("SayHello completed message=%s", message)
        return message