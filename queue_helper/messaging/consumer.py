"""
Consumer Module
===============
Queue consumer that decodes deliveries and hands them to an observer.
"""

from enum import Enum
from typing import Optional, Any

from ..core.logging_config import get_logger
from ..core.exceptions import ConsumerError, MessageDecodeError

from .broker import QueueConfig
from .connections import Connection
from .message import Envelope
from .observer import MessageObserver

logger = get_logger(__name__)


class ConsumerState(Enum):
    """Consumer lifecycle state."""

    IDLE = "idle"
    LISTENING = "listening"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class RabbitMQConsumer:
    """
    RabbitMQ consumer feeding a MessageObserver.

    Provides message consumption with:
    - Durable queue declaration
    - Automatic acknowledgement (at-most-once)
    - Envelope decoding; malformed deliveries are logged and dropped
    - Listener fan-out through the observer

    Delivery callbacks run on the event loop driving the aio-pika
    connection, not necessarily in the task that started listening.
    """

    def __init__(
        self,
        observer: MessageObserver,
        connection: Connection,
        queue_name: str,
    ):
        """
        Initialize the consumer.

        Args:
            observer: Observer notified with every decoded message
            connection: aio-pika connection owned by the ConnectionRegistry
            queue_name: Queue to consume from
        """
        self.observer = observer
        self.connection = connection
        self.queue_name = queue_name

        self._state = ConsumerState.IDLE
        self._channel: Optional[Any] = None
        self._queue: Optional[Any] = None
        self._consumer_tag: Optional[str] = None
        self._in_flight = 0

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state in (ConsumerState.LISTENING, ConsumerState.DISPATCHING)

    async def __aenter__(self) -> "RabbitMQConsumer":
        await self.start_listening()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start_listening(self, target: Optional[str] = None) -> None:
        """
        Declare the queue and start consuming.

        Args:
            target: Queue to consume from (defaults to the constructor's queue)

        Raises:
            ConsumerError: If the consumer was stopped or the channel could
                not be set up
        """
        if self.is_listening:
            return
        if self._state is ConsumerState.STOPPED:
            raise ConsumerError("Consumer has been stopped", target=self.queue_name)

        if target:
            self.queue_name = target
        queue_config = QueueConfig(name=self.queue_name)

        logger.info(f"Starting consumer for queue: {self.queue_name}")
        try:
            self._channel = await self.connection.channel()
            self._queue = await self._channel.declare_queue(
                queue_config.name,
                durable=queue_config.durable,
                exclusive=queue_config.exclusive,
                auto_delete=queue_config.auto_delete,
            )
            self._consumer_tag = await self._queue.consume(self._on_delivery, no_ack=True)
        except Exception as e:
            self._state = ConsumerState.STOPPED
            logger.critical(f"Error consuming queue {self.queue_name}: {e}")
            raise ConsumerError(
                f"Failed to start consuming {self.queue_name}: {str(e)}",
                target=self.queue_name,
                cause=e,
            )

        self._state = ConsumerState.LISTENING
        logger.info(f"Listening for messages on queue: {self.queue_name}")

    async def _on_delivery(self, amqp_message: Any) -> None:
        """
        Handle one delivery from the broker.

        Args:
            amqp_message: Incoming aio-pika message (already acknowledged)
        """
        if self._state is ConsumerState.STOPPED:
            return

        try:
            envelope = Envelope.from_bytes(amqp_message.body, target=self.queue_name)
        except MessageDecodeError as e:
            logger.error(
                f"Dropping undecodable message on {self.queue_name}: {e.message}",
                extra={"extra_data": e.to_dict()},
            )
            return

        logger.debug(f"Message received on {self.queue_name} from {envelope.sender}")

        self._in_flight += 1
        self._state = ConsumerState.DISPATCHING
        try:
            delivered = await self.observer.notify(envelope)
            logger.debug(f"Message on {self.queue_name} delivered to {delivered} listeners")
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and self._state is ConsumerState.DISPATCHING:
                self._state = ConsumerState.LISTENING

    async def stop(self) -> None:
        """
        Stop consuming and release the channel.

        Dispatches already in progress are allowed to finish.
        """
        if self._state is ConsumerState.STOPPED:
            return
        self._state = ConsumerState.STOPPED

        try:
            if self._queue is not None and self._consumer_tag is not None:
                await self._queue.cancel(self._consumer_tag)
            if self._channel is not None and not self._channel.is_closed:
                await self._channel.close()
        except Exception as e:
            logger.error(f"Error stopping consumer for {self.queue_name}: {e}")
        finally:
            self._queue = None
            self._channel = None
            self._consumer_tag = None

        logger.info(f"Consumer stopped for queue: {self.queue_name}")
