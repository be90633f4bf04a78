"""
Messaging Strategy Module
=========================
Broker-specific send/receive behind one contract.

This module provides:
- Abstract messaging strategy interface
- RabbitMQ (queue broker) implementation
- Kafka (stream broker) implementation
- In-memory implementation
- Strategy selection by broker type
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.config import BrokerType
from ..core.logging_config import get_logger
from ..core.exceptions import (
    MessageDeliveryError,
    UnsupportedOperationError,
)

from .connections import Connection
from .message import Envelope, MessageModel

logger = get_logger(__name__)


@dataclass
class QueueConfig:
    """Declaration settings for a queue or topic."""

    name: str
    durable: bool = True
    exclusive: bool = False
    auto_delete: bool = False


class MessagingStrategy(ABC):
    """
    Abstract messaging strategy.

    A strategy is bound to exactly one connection at construction and holds
    no other state, so it may be shared by concurrent callers. It never
    closes the connection it was given.
    """

    broker_type: BrokerType

    def __init__(
        self,
        connection: Connection,
        sender: str = "queue-helper",
        use_envelope: bool = True,
        default_priority: int = 1,
        default_delivery_mode: int = 1,
    ):
        """
        Initialize the strategy.

        Args:
            connection: Live connection owned by the ConnectionRegistry
            sender: Tag identifying this application in envelopes
            use_envelope: Wrap content in an Envelope before publishing
            default_priority: Priority used when ``send`` is given none
            default_delivery_mode: Delivery mode used when ``send`` is given none
        """
        self.connection = connection
        self.sender = sender
        self.use_envelope = use_envelope
        self.default_priority = default_priority
        self.default_delivery_mode = default_delivery_mode

    @staticmethod
    def clamp(value: int) -> int:
        """Raise priority/delivery mode values below 1 to 1."""
        return value if value >= 1 else 1

    def encode(self, message: MessageModel) -> bytes:
        if self.use_envelope:
            return Envelope.wrap(message, self.sender).to_bytes()
        return message.content.encode("utf-8")

    async def send(
        self,
        target: str,
        message: MessageModel,
        priority: Optional[int] = None,
        delivery_mode: Optional[int] = None,
    ) -> bool:
        """
        Publish a message to a queue or topic.

        Failures are logged and reported through the return value; they are
        never raised and never retried.

        Args:
            target: Queue or topic name
            message: Payload to publish
            priority: Message priority (defaults to ``default_priority``;
                values below 1 become 1)
            delivery_mode: Delivery mode (defaults to ``default_delivery_mode``;
                values below 1 become 1)

        Returns:
            bool: True if the broker accepted the message
        """
        if priority is None:
            priority = self.default_priority
        if delivery_mode is None:
            delivery_mode = self.default_delivery_mode
        priority = self.clamp(priority)
        delivery_mode = self.clamp(delivery_mode)

        logger.debug(
            f"Sending to {target} via {self.broker_type.value} "
            f"(priority={priority}, delivery_mode={delivery_mode})"
        )
        try:
            await self._publish(target, message, priority, delivery_mode)
        except Exception as e:
            error = MessageDeliveryError(
                f"Failed to publish message to {target}: {str(e)}",
                target=target,
                details={"broker_type": self.broker_type.value},
                cause=e,
            )
            logger.error(error.message, extra={"extra_data": error.to_dict()})
            return False

        logger.info(f"Message sent to {target} via {self.broker_type.value}")
        return True

    @abstractmethod
    async def _publish(
        self,
        target: str,
        message: MessageModel,
        priority: int,
        delivery_mode: int,
    ) -> None:
        """Broker-specific publish; raises on failure."""

    async def receive(self, target: str) -> Optional[Envelope]:
        """
        Fetch a single message from a queue.

        Args:
            target: Queue name

        Returns:
            Optional[Envelope]: Decoded message, or None when the queue is empty

        Raises:
            UnsupportedOperationError: If the broker family cannot pull messages
            MessageDecodeError: If the fetched body is not a valid envelope
        """
        raise UnsupportedOperationError("receive", self.broker_type.value)


class RabbitMQStrategy(MessagingStrategy):
    """
    RabbitMQ messaging strategy.

    Uses aio-pika; every call works on its own short-lived channel.
    """

    broker_type = BrokerType.RABBITMQ

    async def _publish(
        self,
        target: str,
        message: MessageModel,
        priority: int,
        delivery_mode: int,
    ) -> None:
        import aio_pika

        queue = QueueConfig(name=target)
        async with self.connection.channel() as channel:
            await channel.declare_queue(
                queue.name,
                durable=queue.durable,
                exclusive=queue.exclusive,
                auto_delete=queue.auto_delete,
            )

            amqp_message = aio_pika.Message(
                body=self.encode(message),
                priority=priority,
                delivery_mode=delivery_mode,
                content_type="application/json" if self.use_envelope else "text/plain",
            )

            await channel.default_exchange.publish(amqp_message, routing_key=target)

    async def receive(self, target: str) -> Optional[Envelope]:
        queue_config = QueueConfig(name=target)
        async with self.connection.channel() as channel:
            queue = await channel.declare_queue(
                queue_config.name,
                durable=queue_config.durable,
                exclusive=queue_config.exclusive,
                auto_delete=queue_config.auto_delete,
            )
            amqp_message = await queue.get(no_ack=True, fail=False)

        if amqp_message is None:
            return None
        return Envelope.from_bytes(amqp_message.body, target=target)


class KafkaStrategy(MessagingStrategy):
    """
    Kafka messaging strategy.

    Publishes key/value records with the bound producer. Priority and
    delivery mode have no Kafka counterpart and are ignored.
    """

    broker_type = BrokerType.KAFKA

    async def _publish(
        self,
        target: str,
        message: MessageModel,
        priority: int,
        delivery_mode: int,
    ) -> None:
        await self.connection.producer.send_and_wait(
            target,
            value=self.encode(message),
            key=message.destination.encode("utf-8"),
        )


class InMemoryStrategy(MessagingStrategy):
    """In-memory messaging strategy for tests and local development."""

    broker_type = BrokerType.MEMORY

    async def _publish(
        self,
        target: str,
        message: MessageModel,
        priority: int,
        delivery_mode: int,
    ) -> None:
        queue = self.connection.declare(target)
        await queue.put((self.encode(message), {"priority": priority, "delivery_mode": delivery_mode}))

    async def receive(self, target: str) -> Optional[Envelope]:
        queue = self.connection.declare(target)
        if queue.empty():
            return None
        body, _ = queue.get_nowait()
        return Envelope.from_bytes(body, target=target)


_STRATEGIES = {
    BrokerType.RABBITMQ: RabbitMQStrategy,
    BrokerType.KAFKA: KafkaStrategy,
    BrokerType.MEMORY: InMemoryStrategy,
}


def create_strategy(
    broker_type: BrokerType,
    connection: Connection,
    sender: str = "queue-helper",
    use_envelope: bool = True,
    default_priority: int = 1,
    default_delivery_mode: int = 1,
) -> MessagingStrategy:
    """
    Build the strategy matching a broker type.

    Args:
        broker_type: Broker family
        connection: Connection the strategy is bound to
        sender: Envelope sender tag
        use_envelope: Wrap content in an Envelope
        default_priority: Priority for sends that pass none
        default_delivery_mode: Delivery mode for sends that pass none

    Returns:
        MessagingStrategy: Strategy bound to ``connection``
    """
    strategy_class = _STRATEGIES.get(broker_type)
    if strategy_class is None:
        raise ValueError(f"Unknown broker type: {broker_type}")
    return strategy_class(
        connection,
        sender=sender,
        use_envelope=use_envelope,
        default_priority=default_priority,
        default_delivery_mode=default_delivery_mode,
    )
