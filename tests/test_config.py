import pytest

from svcdemo.config import (
    ConfigError,
    MongoSettings,
    PostgresSettings,
    RabbitMQSettings,
    ServerConfig,
)


def test_server_address_joins_host_and_port():
    cfg = ServerConfig(name="user-service", host="localhost", port=8080)
    assert cfg.address() == "localhost:8080"


def test_server_address_is_parsable_back():
    cfg = ServerConfig(host="0.0.0.0", port=9001)
    host, port = cfg.address().rsplit(":", 1)
    assert (host, int(port)) == (cfg.host, cfg.port)


def test_postgres_disabled_raises():
    with pytest.raises(ConfigError, match="postgresql is not enabled in config"):
        PostgresSettings(enabled=False).validated()


def test_postgres_defaults_are_filled():
    result = PostgresSettings(enabled=True, host="db").validated()
    assert result.ssl_mode == "disable"
    assert result.log_level == "warn"
    assert result.host == "db"


def test_postgres_keeps_explicit_values_and_original():
    original = PostgresSettings(enabled=True, ssl_mode="require", log_level="info")
    result = original.validated()
    assert (result.ssl_mode, result.log_level) == ("require", "info")
    assert PostgresSettings(enabled=True).validated() != PostgresSettings(enabled=True)


def test_mongo_requires_uri():
    with pytest.raises(ConfigError, match="mongodb uri is required"):
        MongoSettings(database="demo").validated()


def test_mongo_requires_database():
    with pytest.raises(ConfigError, match="mongodb database name is required"):
        MongoSettings(uri="mongodb://localhost").validated()


def test_mongo_defaults_are_filled():
    result = MongoSettings(uri="mongodb://localhost", database="demo").validated()
    assert result.max_pool_size == 100
    assert result.min_pool_size == 10
    assert result.connect_timeout == 10


def test_mongo_keeps_explicit_values():
    settings = MongoSettings(
        uri="mongodb://localhost",
        database="demo",
        max_pool_size=7,
        min_pool_size=2,
        connect_timeout=3,
    )
    assert settings.validated() == settings


def test_rabbit_disabled_raises():
    with pytest.raises(ConfigError, match="rabbitmq is not enabled"):
        RabbitMQSettings(url="amqp://localhost").validated()


def test_rabbit_requires_url():
    with pytest.raises(ConfigError, match="rabbitmq url is required"):
        RabbitMQSettings(enabled=True).validated()


def test_rabbit_defaults_are_filled():
    result = RabbitMQSettings(enabled=True, url="amqp://localhost").validated()
    assert result.exchange_type == "topic"
    assert result.routing_key == "#"


def test_rabbit_keeps_explicit_values():
    settings = RabbitMQSettings(
        enabled=True,
        url="amqp://localhost",
        exchange="tasks",
        exchange_type="direct",
        routing_key="task.sayhello.create",
    )
    assert settings.validated() == settings