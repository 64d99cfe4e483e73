"""Service configuration sections and their validation rules."""

from __future__ import annotations

from dataclasses import dataclass, replace


class ConfigError(ValueError):
    """Raised when a configuration section is unusable."""


@dataclass(frozen=True)
class ServerConfig:
    """Where a service listens."""

    name: str = ""
    host: str = ""
    port: int = 0

    def address(self) -> str:
        """Return the ``host:port`` listen address."""
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class PostgresSettings:
    """PostgreSQL connection settings."""

    enabled: bool = False
    host: str = ""
    port: int = 5432
    user: str = ""
    password: str = ""
    dbname: str = ""
    ssl_mode: str = ""
    log_level: str = ""

    def validated(self) -> PostgresSettings:
        """Return a copy with defaults filled in; raise if disabled."""
        if not self.enabled:
            raise ConfigError("postgresql is not enabled in config")
        return replace(
            self,
            ssl_mode=self.ssl_mode or "disable",
            log_level=self.log_level or "warn",
        )


@dataclass(frozen=True)
class MongoSettings:
    """MongoDB connection settings."""

    uri: str = ""
    database: str = ""
    max_pool_size: int = 0
    min_pool_size: int = 0
    connect_timeout: int = 0

    def validated(self) -> MongoSettings:
        """Return a copy with pool and timeout defaults; raise if incomplete."""
        if not self.uri:
            raise ConfigError("mongodb uri is required")
        if not self.database:
            raise ConfigError("mongodb database name is required")
        return replace(
            self,
            max_pool_size=self.max_pool_size or 100,
            min_pool_size=self.min_pool_size or 10,
            connect_timeout=self.connect_timeout or 10,
        )


@dataclass(frozen=True)
class RabbitMQSettings:
    """RabbitMQ connection and routing settings."""

    enabled: bool = False
    url: str = ""
    exchange: str = ""
    exchange_type: str = ""
    queue: str = ""
    routing_key: str = ""

    def validated(self) -> RabbitMQSettings:
        """Return a copy with exchange defaults; raise if disabled or no URL."""
        if not self.enabled:
            raise ConfigError("rabbitmq is not enabled")
        if not self.url:
            raise ConfigError("rabbitmq url is required")
        return replace(
            self,
            exchange_type=self.exchange_type or "topic",
            routing_key=self.routing_key or "#",
        )