"""Asynchronous task messages and their handling in the task worker."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class MessageDecodeError(ValueError):
    """Raised when a received message is not a valid task message."""


class UnknownTaskTypeError(ValueError):
    """Raised when a task message names a task type with no handler."""


@dataclass
class TaskMessage:
    """A queued task as carried on the wire."""

    user_id: str = ""
    username: str = ""
    task_type: str = ""
    message: str = ""
    created_at: str = ""

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> TaskMessage:
        """Decode a JSON object; absent or null fields become empty strings."""
        try:
            raw = json.loads(data)
        except (ValueError, TypeError) as exc:
            raise MessageDecodeError(f"failed to unmarshal message: {exc}") from exc
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise MessageDecodeError("failed to unmarshal message: not a JSON object")
        values = {}
        for spec in fields(cls):
            value = raw.get(spec.name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise MessageDecodeError(
                    f"failed to unmarshal message: field {spec.name} must be a string"
                )
            values[spec.name] = value
        return cls(**values)

    def to_json(self) -> str:
        """Encode as a compact JSON object."""
        return json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))


class TaskUseCase:
    """Business logic for queued tasks."""

    def handle_say_hello_task(self, msg: TaskMessage) -> None:
        """Process a say-hello task."""
        logger.info(
            "processing sayhello task user_id=%s username=%s message=%s",
            msg.user_id,
            msg.username,
            msg.message,
        )
        logger.info("sayhello task processed successfully user_id=%s", msg.user_id)


class HandleService:
    """Decodes incoming messages and routes them by task type."""

    def __init__(self, task_use_case: Optional[TaskUseCase] = None) -> None:
        self._task_use_case = task_use_case if task_use_case is not None else TaskUseCase()

    def _handlers(self) -> dict[str, Callable[[TaskMessage], None]]:
        return {"sayhello": self._task_use_case.handle_say_hello_task}

    def handle_message(self, message: Union[str, bytes]) -> None:
        """Decode ``message`` and dispatch it to the handler of its task type."""
        logger.info("received message raw_message=%r", message)
        try:
            task = TaskMessage.from_json(message)
        except MessageDecodeError:
            logger.exception("failed to unmarshal message")
            raise
        logger.info(
            "parsed task message user_id=%s username=%s task_type=%s message=%s created_at=%s",
            task.user_id,
            task.username,
            task.task_type,
            task.message,
            task.created_at,
        )
        handler = self._handlers().get(task.task_type)
        if handler is None:
            logger.warning("unknown task type task_type=%s", task.task_type)
            raise UnknownTaskTypeError(f"unknown task type: {task.task_type}")
        handler(task)