"""Shared fixtures for queue-helper tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from queue_helper.core.config import BrokerType, EndpointParams, MessagingConfig
from queue_helper.messaging.connections import ConnectionRegistry


class FakeConnection:
    """Connection handle that records close calls."""

    def __init__(self, name: str = "fake", fail_on_close: bool = False):
        self.name = name
        self.is_closed = False
        self.close_calls = 0
        self.fail_on_close = fail_on_close

    async def close(self) -> None:
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError(f"close failed for {self.name}")
        self.is_closed = True


class CountingConnector:
    """Connector that yields to the loop before handing out a FakeConnection."""

    def __init__(self, delay: float = 0.01, failures: int = 0):
        self.delay = delay
        self.failures = failures
        self.calls = 0
        self.created = []

    async def __call__(self, params: EndpointParams) -> FakeConnection:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.failures > 0:
            self.failures -= 1
            raise OSError("broker unreachable")
        connection = FakeConnection(params.key)
        self.created.append(connection)
        return connection


@pytest.fixture
def counting_connector() -> CountingConnector:
    return CountingConnector()


@pytest.fixture
def make_connector():
    return CountingConnector


@pytest.fixture
def fake_registry(counting_connector: CountingConnector) -> ConnectionRegistry:
    """Registry whose RabbitMQ connector hands out FakeConnections."""
    return ConnectionRegistry(connectors={BrokerType.RABBITMQ: counting_connector})


@pytest.fixture
def memory_registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def messaging_config() -> MessagingConfig:
    return MessagingConfig(sender="test-app")


@pytest.fixture
def rabbit_params() -> EndpointParams:
    return EndpointParams(broker_type=BrokerType.RABBITMQ, host="rabbit.local")


@pytest.fixture
def make_fake_connection():
    return FakeConnection


@pytest.fixture
def amqp_channel() -> MagicMock:
    """aio-pika channel double with a declared queue mock."""
    channel = MagicMock()
    channel.is_closed = False
    channel.close = AsyncMock()

    queue = MagicMock()
    queue.get = AsyncMock(return_value=None)
    queue.consume = AsyncMock(return_value="ctag-1")
    queue.cancel = AsyncMock()

    channel.declare_queue = AsyncMock(return_value=queue)
    channel.default_exchange.publish = AsyncMock()
    return channel


@pytest.fixture
def amqp_connection(amqp_channel: MagicMock) -> MagicMock:
    """aio-pika connection double whose channel() is an async context manager."""
    channel_context = MagicMock()
    channel_context.__aenter__ = AsyncMock(return_value=amqp_channel)
    channel_context.__aexit__ = AsyncMock(return_value=False)

    connection = MagicMock()
    connection.is_closed = False
    connection.channel = MagicMock(return_value=channel_context)
    connection.close = AsyncMock()
    return connection
