"""
Connection Registry Module
==========================
Process-wide cache of broker connections, one per endpoint key.

This module provides:
- Connection registry with single-creation guarantee per key
- Broker connectors for RabbitMQ, Kafka and the in-memory broker
- Best-effort bulk teardown
"""

import asyncio
from typing import Optional, Dict, Any, Callable, Awaitable, List

from ..core.config import BrokerType, EndpointParams
from ..core.logging_config import get_logger
from ..core.exceptions import BrokerConnectionError

logger = get_logger(__name__)

# A connection is any handle exposing ``is_closed`` and ``async close()``.
# aio-pika connections satisfy this directly; Kafka and the in-memory broker
# get small wrappers below.
Connection = Any
Connector = Callable[[EndpointParams], Awaitable[Connection]]


class KafkaConnection:
    """Started Kafka producer presented as a connection handle."""

    def __init__(self, producer: Any):
        self.producer = producer
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.producer.stop()


class InMemoryConnection:
    """
    In-memory broker connection for tests and local development.

    Holds named asyncio queues without external dependencies.
    """

    def __init__(self, name: str = "localhost"):
        self.name = name
        self._queues: Dict[str, asyncio.Queue] = {}
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def declare(self, queue_name: str) -> asyncio.Queue:
        if self._closed:
            raise ConnectionError(f"In-memory connection {self.name} is closed")
        if queue_name not in self._queues:
            self._queues[queue_name] = asyncio.Queue()
            logger.debug(f"Created in-memory queue: {queue_name}")
        return self._queues[queue_name]

    def queue_names(self) -> List[str]:
        return list(self._queues)

    def drain(self, queue_name: str) -> List[Any]:
        """Remove and return everything currently waiting on a queue."""
        queue = self.declare(queue_name)
        items = []
        while not queue.empty():
            items.append(queue.get_nowait())
        return items

    async def close(self) -> None:
        self._queues.clear()
        self._closed = True


async def connect_rabbitmq(params: EndpointParams) -> Connection:
    """Open a robust aio-pika connection."""
    try:
        import aio_pika
    except ImportError:
        raise BrokerConnectionError(
            "aio-pika is required for RabbitMQ support",
            key=params.key,
            code="MISSING_DEPENDENCY",
        )

    return await aio_pika.connect_robust(
        host=params.host,
        port=params.port,
        login=params.username,
        password=params.password,
        virtualhost=params.virtual_host,
        timeout=params.connection_timeout,
    )


async def connect_kafka(params: EndpointParams) -> Connection:
    """Start an aiokafka producer and wrap it as a connection."""
    try:
        from aiokafka import AIOKafkaProducer
    except ImportError:
        raise BrokerConnectionError(
            "aiokafka is required for Kafka support",
            key=params.key,
            code="MISSING_DEPENDENCY",
        )

    producer = AIOKafkaProducer(
        bootstrap_servers=params.bootstrap_servers,
        client_id=params.client_id,
        request_timeout_ms=int(params.connection_timeout * 1000),
    )
    try:
        await producer.start()
    except Exception:
        await producer.stop()
        raise
    return KafkaConnection(producer)


async def connect_memory(params: EndpointParams) -> Connection:
    return InMemoryConnection(params.host)


DEFAULT_CONNECTORS: Dict[BrokerType, Connector] = {
    BrokerType.RABBITMQ: connect_rabbitmq,
    BrokerType.KAFKA: connect_kafka,
    BrokerType.MEMORY: connect_memory,
}


def _is_open(connection: Optional[Connection]) -> bool:
    return connection is not None and not connection.is_closed


class ConnectionRegistry:
    """
    Cache mapping connection keys to live broker connections.

    At most one connection is created per key, even when many tasks ask for
    the same unseen key at once. Creation is serialized per key only, so
    slow brokers do not block unrelated ones. Construct one registry at
    startup, pass it to whoever needs it and call ``close_all`` at shutdown
    (or use it as an async context manager).
    """

    def __init__(self, connectors: Optional[Dict[BrokerType, Connector]] = None):
        """
        Initialize the registry.

        Args:
            connectors: Connection factories per broker type (defaults to
                RabbitMQ, Kafka and in-memory connectors)
        """
        self._connectors: Dict[BrokerType, Connector] = dict(
            DEFAULT_CONNECTORS if connectors is None else connectors
        )
        self._connections: Dict[str, Connection] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, key: str) -> bool:
        return key in self._connections

    def keys(self) -> List[str]:
        return list(self._connections)

    async def __aenter__(self) -> "ConnectionRegistry":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()

    def get(self, key: str) -> Optional[Connection]:
        """
        Look up a cached connection without creating one.

        Args:
            key: Connection key

        Returns:
            Optional[Connection]: Cached connection, if any
        """
        return self._connections.get(key)

    async def get_or_create(self, key: str, params: EndpointParams) -> Connection:
        """
        Return the open connection for ``key``, creating it if needed.

        Args:
            key: Connection key
            params: Endpoint parameters used when a connection must be opened

        Returns:
            Connection: Live connection shared by every caller of this key

        Raises:
            BrokerConnectionError: If the connection cannot be established
        """
        connection = self._connections.get(key)
        if _is_open(connection):
            return connection

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another task may have finished creating it while we waited
            connection = self._connections.get(key)
            if _is_open(connection):
                return connection

            connector = self._connectors.get(params.broker_type)
            if connector is None:
                raise BrokerConnectionError(
                    f"No connector registered for broker type: {params.broker_type.value}",
                    key=key,
                    code="UNSUPPORTED_BROKER",
                )

            logger.info(f"Connecting to {params.broker_type.value} at {key}")
            try:
                connection = await connector(params)
            except BrokerConnectionError as e:
                logger.critical(f"Failed to connect to {key}: {e.message}")
                raise
            except Exception as e:
                logger.critical(f"Failed to connect to {key}: {e}")
                raise BrokerConnectionError(
                    f"Failed to connect to {params.broker_type.value} at {key}: {str(e)}",
                    key=key,
                    details=params.to_dict(),
                    cause=e,
                )

            self._connections[key] = connection
            logger.info(f"Connection established: {key}")
            return connection

    def evict(self, key: str) -> Optional[Connection]:
        """
        Remove a connection from the cache without closing it.

        The next ``get_or_create`` for ``key`` opens a fresh connection. The
        key's lock is kept, so a creation already in flight stays serialized
        with later callers.

        Args:
            key: Connection key

        Returns:
            Optional[Connection]: The evicted connection, if any
        """
        return self._connections.pop(key, None)

    async def close_connection(self, key: str, connection: Optional[Connection]) -> bool:
        """
        Close a handle that has already been evicted.

        Args:
            key: Connection key the handle was cached under (for logging)
            connection: Handle returned by ``evict``

        Returns:
            bool: False if closing raised, True otherwise
        """
        if not _is_open(connection):
            return True

        try:
            await connection.close()
            logger.info(f"Connection closed: {key}")
            return True
        except Exception as e:
            logger.error(f"Error closing connection {key}: {e}")
            return False

    async def close(self, key: str) -> bool:
        """
        Evict one connection and close it if it is still open.

        A creation in flight for ``key`` is not cancelled; its connection is
        cached when it completes and is released by ``close_all``.

        Args:
            key: Connection key

        Returns:
            bool: False if closing raised, True otherwise
        """
        return await self.close_connection(key, self.evict(key))

    async def close_all(self) -> Dict[str, Exception]:
        """
        Close every open connection and clear the registry.

        Waits for creations in flight so their connections are closed too.
        A failure on one connection is logged and does not stop the others.

        Returns:
            Dict[str, Exception]: Close failures by connection key
        """
        failures: Dict[str, Exception] = {}

        for key in list(self._locks):
            async with self._locks[key]:
                connection = self._connections.pop(key, None)
                if not _is_open(connection):
                    continue
                try:
                    await connection.close()
                    logger.info(f"Connection closed: {key}")
                except Exception as e:
                    logger.critical(f"Error closing connection {key}: {e}")
                    failures[key] = e

        self._connections.clear()
        logger.info("All broker connections closed and registry cleared")
        return failures
