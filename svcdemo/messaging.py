"""Message publishing and consuming over a RabbitMQ topic exchange."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol

import pika

from svcdemo.config import RabbitMQSettings

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], None]

JSON_CONTENT_TYPE = "application/json"
_PERSISTENT_DELIVERY = 2
_POLL_SECONDS = 1.0


class _StopSignal(Protocol):
    def is_set(self) -> bool: ...


class Publisher(ABC):
    """Sends messages to a broker."""

    @abstractmethod
    def publish(self, message: bytes) -> None:
        """Publish with the default routing key."""

    @abstractmethod
    def publish_with_routing(self, routing_key: str, message: bytes) -> None:
        """Publish with an explicit routing key."""

    @abstractmethod
    def close(self) -> None:
        """Release the publisher's resources."""

    def __enter__(self) -> Publisher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Consumer(ABC):
    """Receives messages from a broker and hands them to a handler."""

    @abstractmethod
    def consume(self, handler: MessageHandler, stop: Optional[_StopSignal] = None) -> None:
        """Deliver messages to ``handler`` until ``stop`` is set or the stream ends."""

    @abstractmethod
    def close(self) -> None:
        """Release the consumer's resources."""

    def __enter__(self) -> Consumer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MessageQueue(ABC):
    """A broker connection that hands out publishers and consumers."""

    @abstractmethod
    def new_publisher(self) -> Publisher:
        """Create a publisher."""

    @abstractmethod
    def new_consumer(self) -> Consumer:
        """Create a consumer."""

    @abstractmethod
    def close(self) -> None:
        """Close the broker connection."""

    @abstractmethod
    def is_healthy(self) -> bool:
        """Report whether the connection is usable."""

    def __enter__(self) -> MessageQueue:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _close_channel(channel: Any) -> None:
    if getattr(channel, "is_open", True):
        channel.close()


class RabbitPublisher(Publisher):
    """Publishes persistent JSON messages to one exchange."""

    def __init__(self, channel: Any, exchange: str = "", routing_key: str = "") -> None:
        self._channel = channel
        self.exchange = exchange
        self.routing_key = routing_key

    def publish(self, message: bytes) -> None:
        self.publish_with_routing(self.routing_key, message)

    def publish_with_routing(self, routing_key: str, message: bytes) -> None:
        properties = pika.BasicProperties(
            content_type=JSON_CONTENT_TYPE,
            delivery_mode=_PERSISTENT_DELIVERY,
        )
        self._channel.basic_publish(
            exchange=self.exchange,
            routing_key=routing_key,
            body=message,
            properties=properties,
        )

    def close(self) -> None:
        _close_channel(self._channel)


class RabbitConsumer(Consumer):
    """Consumes one queue, acknowledging messages the handler accepts."""

    def __init__(self, channel: Any, queue: str) -> None:
        self._channel = channel
        self.queue = queue

    def consume(self, handler: MessageHandler, stop: Optional[_StopSignal] = None) -> None:
        deliveries = self._channel.consume(self.queue, inactivity_timeout=_POLL_SECONDS)
        try:
            for method, _properties, body in deliveries:
                if stop is not None and stop.is_set():
                    break
                if method is None:
                    continue
                try:
                    handler(body)
                except Exception:
                    logger.exception("message handler failed")
                    self._channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
                else:
                    self._channel.basic_ack(delivery_tag=method.delivery_tag)
        finally:
            self._channel.cancel()

    def close(self) -> None:
        _close_channel(self._channel)


class RabbitMessageQueue(MessageQueue):
    """A RabbitMQ connection bound to one exchange, queue and routing key."""

    def __init__(self, connection: Any, settings: RabbitMQSettings) -> None:
        self._connection = connection
        self.settings = settings

    def _declare_exchange(self, channel: Any) -> None:
        if self.settings.exchange:
            channel.exchange_declare(
                exchange=self.settings.exchange,
                exchange_type=self.settings.exchange_type,
                durable=True,
            )

    def new_publisher(self) -> RabbitPublisher:
        channel = self._connection.channel()
        self._declare_exchange(channel)
        return RabbitPublisher(channel, self.settings.exchange, self.settings.routing_key)

    def new_consumer(self) -> RabbitConsumer:
        channel = self._connection.channel()
        self._declare_exchange(channel)
        channel.queue_declare(queue=self.settings.queue, durable=True)
        if self.settings.exchange:
            channel.queue_bind(
                queue=self.settings.queue,
                exchange=self.settings.exchange,
                routing_key=self.settings.routing_key,
            )
        return RabbitConsumer(channel, self.settings.queue)

    def close(self) -> None:
        if self._connection is not None and self._connection.is_open:
            self._connection.close()

    def is_healthy(self) -> bool:
        return self._connection is not None and bool(self._connection.is_open)


def _blocking_connect(url: str) -> Any:
    return pika.BlockingConnection(pika.URLParameters(url))


def init_rabbitmq(
    settings: RabbitMQSettings,
    connect: Optional[Callable[[str], Any]] = None,
) -> RabbitMessageQueue:
    """Validate ``settings``, connect, and return a message queue.

    Raises ConfigError for unusable settings and ConnectionError when the
    broker cannot be reached.
    """
    settings = settings.validated()
    connect = connect or _blocking_connect
    try:
        connection = connect(settings.url)
    except Exception as exc:
        raise ConnectionError(f"failed to create rabbitmq client: {exc}") from exc
    return RabbitMessageQueue(connection, settings)