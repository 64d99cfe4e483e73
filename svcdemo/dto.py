"""Uniform response envelopes for the HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class HelloResponse:
    """Payload of the hello endpoint."""

    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass
class Response:
    """API envelope: code 0 means success; data is omitted when absent."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            to_dict = getattr(self.data, "to_dict", None)
            body["data"] = to_dict() if callable(to_dict) else self.data
        return body


def success_response(data: Any) -> Response:
    """Build a successful envelope around ``data``."""
    return Response(code=0, message="success", data=data)


def error_response(code: int, message: str) -> Response:
    """Build an error envelope without data."""
    return Response(code=code, message=message)