"""Building blocks for demo services: HTTP gateway, user and book logic, storage, and a RabbitMQ task consumer."""

__version__ = "0.1.0"

__all__ = [
    "config",
    "data",
    "document_repository",
    "domain",
    "dto",
    "gateway",
    "messaging",
    "sql_repository",
    "tasks",
    "usecases",
    "user_cache",
]