"""HTTP API gateway: routes, request middleware and the user-service facade."""

from __future__ import annotations

import logging
import time
import traceback
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, Protocol, Sequence

from flask import Flask, g, has_app_context, jsonify, request

from svcdemo.dto import HelloResponse, error_response, success_response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_METADATA_KEY = "x-trace-id"
DEFAULT_TIMEOUT_SECONDS = 30.0
USER_SERVICE_ERROR_CODE = 10001

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS, PATCH",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Request-ID, X-Trace-ID",
    "Access-Control-Expose-Headers": "Content-Length, X-Request-ID",
    "Access-Control-Max-Age": "86400",
    "Access-Control-Allow-Credentials": "true",
}


class UserClient(Protocol):
    """Remote user service: answers a hello call carrying request metadata."""

    def say_hello(self, metadata: Sequence[tuple[str, str]]) -> str: ...


class HelloService(Protocol):
    """What the gateway needs from the user domain."""

    def say_hello(self, request_id: str = "") -> str: ...


def trace_metadata(request_id: str) -> list[tuple[str, str]]:
    """Return the call metadata that carries ``request_id`` as the trace id."""
    if not request_id:
        return []
    return [(TRACE_ID_METADATA_KEY, request_id)]


class GatewayUserService:
    """Calls the remote user service, propagating the request's trace id."""

    def __init__(self, client: UserClient) -> None:
        self._client = client

    def say_hello(self, request_id: str = "") -> str:
        """Return the user service's greeting; raise RuntimeError if the call fails."""
        try:
            message = self._client.say_hello(metadata=trace_metadata(request_id))
        except Exception as exc:
            logger.error("failed to call user service request_id=%s error=%s", request_id, exc)
            raise RuntimeError(f"failed to call user service: {exc}") from exc
        logger.info("user service SayHello success request_id=%s message=%s", request_id, message)
        return message


def get_request_id() -> str:
    """Return the id of the current request, or an empty string outside one."""
    if not has_app_context():
        return ""
    value = g.get("request_id", "")
    return value if isinstance(value, str) else ""


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


def _log_request(status: int) -> None:
    started = g.get("start_time")
    latency = time.perf_counter() - started if started is not None else 0.0
    fields: dict[str, Any] = {
        REQUEST_ID_HEADER: get_request_id(),
        "method": request.method,
        "path": request.path,
        "status": status,
        "client_ip": request.remote_addr or "",
        "latency": f"{latency * 1000:.3f}ms",
        "user_agent": request.headers.get("User-Agent", ""),
    }
    error = g.get("panic_error", "")
    if error:
        fields["error"] = error
    text = _format_fields(fields)
    if status >= 500:
        logger.error("HTTP request error %s", text)
    elif status >= 400:
        logger.warning("HTTP request warning %s", text)
    else:
        logger.info("HTTP request %s", text)


def create_app(
    user_service: HelloService,
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
) -> Flask:
    """Build the gateway application around ``user_service``.

    ``timeout`` bounds each call to the user service, in seconds; None disables it.
    """
    app = Flask(__name__)
    executor = ThreadPoolExecutor(thread_name_prefix="gateway-call")

    def call_with_deadline(func: Callable[[str], str], request_id: str) -> str:
        deadline = g.get("deadline")
        if deadline is None:
            return func(request_id)
        remaining = max(deadline - time.monotonic(), 0.0)
        future = executor.submit(func, request_id)
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError as exc:
            future.cancel()
            raise TimeoutError("request deadline exceeded") from exc

    @app.before_request
    def begin_request() -> Any:
        request_id = request.headers.get(REQUEST_ID_HEADER, "") or str(uuid.uuid4())
        g.request_id = request_id
        g.start_time = time.perf_counter()
        if request.method == "OPTIONS":
            return app.response_class(status=204)
        if timeout is not None:
            g.deadline = time.monotonic() + timeout
        return None

    @app.after_request
    def finish_request(response: Any) -> Any:
        response.headers[REQUEST_ID_HEADER] = get_request_id()
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        _log_request(response.status_code)
        return response

    @app.errorhandler(Exception)
    def recover(exc: Exception) -> Any:
        get_response = getattr(exc, "get_response", None)
        if callable(get_response) and hasattr(exc, "description"):
            return get_response()
        request_id = get_request_id()
        formatted = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        stack = [line for line in formatted.split("\n") if line.strip()]
        g.panic_error = str(exc)
        logger.error(
            "Panic recovered %s",
            _format_fields(
                {
                    "request_id": request_id,
                    "panic_error": exc,
                    "method": request.method,
                    "path": request.path,
                    "client_ip": request.remote_addr or "",
                    "user_agent": request.headers.get("User-Agent", ""),
                    "stack_trace": stack,
                }
            ),
        )
        body = {"code": 500, "message": "Internal server error", "request_id": request_id}
        return jsonify(body), 500

    @app.get("/api/v1/user/hello")
    def user_hello() -> Any:
        request_id = get_request_id()
        logger.info("received user hello request request_id=%s", request_id)
        try:
            message = call_with_deadline(user_service.say_hello, request_id)
        except Exception as exc:
            logger.error("failed to call user service request_id=%s error=%s", request_id, exc)
            body = error_response(USER_SERVICE_ERROR_CODE, "failed to call user service")
            return jsonify(body.to_dict()), 500
        logger.info("user hello request completed request_id=%s message=%s", request_id, message)
        return jsonify(success_response(HelloResponse(message=message)).to_dict()), 200

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok"}), 200

    return app