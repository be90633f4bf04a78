"""Tests for the connection registry and broker connectors."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from queue_helper.core.config import BrokerType, EndpointParams
from queue_helper.core.exceptions import BrokerConnectionError
from queue_helper.messaging.connections import (
    ConnectionRegistry,
    InMemoryConnection,
    KafkaConnection,
    connect_kafka,
    connect_rabbitmq,
)


class TestGetOrCreate:
    """Connection creation and caching."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_create_one_connection(
        self, fake_registry, counting_connector, rabbit_params
    ):
        """Many tasks asking for an unseen key share a single connection."""
        results = await asyncio.gather(
            *(fake_registry.get_or_create(rabbit_params.key, rabbit_params) for _ in range(20))
        )

        assert counting_connector.calls == 1
        assert all(result is results[0] for result in results)
        assert len(fake_registry) == 1

    @pytest.mark.asyncio
    async def test_cached_connection_is_reused(self, fake_registry, counting_connector, rabbit_params):
        first = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)
        second = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)

        assert first is second
        assert counting_connector.calls == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_get_distinct_connections(self, fake_registry, counting_connector):
        one = EndpointParams(host="one.local")
        two = EndpointParams(host="two.local")

        first, second = await asyncio.gather(
            fake_registry.get_or_create(one.key, one),
            fake_registry.get_or_create(two.key, two),
        )

        assert first is not second
        assert counting_connector.calls == 2
        assert set(fake_registry.keys()) == {one.key, two.key}

    @pytest.mark.asyncio
    async def test_slow_key_does_not_block_other_keys(self, make_fake_connection):
        """Creation is serialized per key, not across the registry."""
        release = asyncio.Event()

        async def connector(params):
            if params.host == "slow.local":
                await release.wait()
            return make_fake_connection(params.key)

        registry = ConnectionRegistry(connectors={BrokerType.RABBITMQ: connector})
        slow = EndpointParams(host="slow.local")
        fast = EndpointParams(host="fast.local")

        slow_task = asyncio.create_task(registry.get_or_create(slow.key, slow))
        await asyncio.sleep(0)

        fast_connection = await asyncio.wait_for(registry.get_or_create(fast.key, fast), timeout=1)
        assert fast_connection.name == fast.key
        assert not slow_task.done()

        release.set()
        slow_connection = await slow_task
        assert slow_connection.name == slow.key

    @pytest.mark.asyncio
    async def test_closed_connection_is_replaced(self, fake_registry, counting_connector, rabbit_params):
        first = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)
        await first.close()

        second = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)

        assert second is not first
        assert not second.is_closed
        assert counting_connector.calls == 2

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, make_connector, rabbit_params):
        """A failed connect leaves nothing behind and can be retried."""
        connector = make_connector(failures=1)
        registry = ConnectionRegistry(connectors={BrokerType.RABBITMQ: connector})

        with pytest.raises(BrokerConnectionError) as exc_info:
            await registry.get_or_create(rabbit_params.key, rabbit_params)

        assert exc_info.value.code == "CONNECTION_ERROR"
        assert exc_info.value.key == rabbit_params.key
        assert isinstance(exc_info.value.cause, OSError)
        assert "password" not in exc_info.value.details
        assert rabbit_params.key not in registry

        connection = await registry.get_or_create(rabbit_params.key, rabbit_params)
        assert not connection.is_closed
        assert connector.calls == 2

    @pytest.mark.asyncio
    async def test_missing_connector_raises_unsupported_broker(self):
        registry = ConnectionRegistry(connectors={})
        params = EndpointParams(broker_type=BrokerType.KAFKA)

        with pytest.raises(BrokerConnectionError) as exc_info:
            await registry.get_or_create(params.key, params)

        assert exc_info.value.code == "UNSUPPORTED_BROKER"

    @pytest.mark.asyncio
    async def test_get_never_creates(self, fake_registry, counting_connector, rabbit_params):
        assert fake_registry.get(rabbit_params.key) is None
        assert counting_connector.calls == 0


class TestTeardown:
    """Closing single connections and the whole registry."""

    @pytest.mark.asyncio
    async def test_close_evicts_and_closes(self, fake_registry, rabbit_params):
        connection = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)

        assert await fake_registry.close(rabbit_params.key) is True
        assert connection.is_closed
        assert rabbit_params.key not in fake_registry

    @pytest.mark.asyncio
    async def test_close_unknown_key_is_harmless(self, fake_registry):
        assert await fake_registry.close("rabbitmq://nobody@nowhere:5672/") is True

    @pytest.mark.asyncio
    async def test_close_all_is_best_effort(self, make_fake_connection):
        broken = make_fake_connection("broken", fail_on_close=True)
        healthy = make_fake_connection("healthy")
        connections = {"broken.local": broken, "healthy.local": healthy}

        async def connector(params):
            return connections[params.host]

        registry = ConnectionRegistry(connectors={BrokerType.RABBITMQ: connector})
        for host in connections:
            params = EndpointParams(host=host)
            await registry.get_or_create(params.key, params)

        failures = await registry.close_all()

        assert list(failures) == [EndpointParams(host="broken.local").key]
        assert isinstance(failures[EndpointParams(host="broken.local").key], RuntimeError)
        assert broken.close_calls == 1
        assert healthy.is_closed
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_during_slow_creation_keeps_one_connection(self, make_connector, rabbit_params):
        """Closing a key mid-creation does not let a second creation run alongside it."""
        connector = make_connector(delay=0.05)
        registry = ConnectionRegistry(connectors={BrokerType.RABBITMQ: connector})

        first_task = asyncio.create_task(registry.get_or_create(rabbit_params.key, rabbit_params))
        await asyncio.sleep(0.01)
        await registry.close(rabbit_params.key)

        second = await registry.get_or_create(rabbit_params.key, rabbit_params)
        first = await first_task

        assert connector.calls == 1
        assert first is second

        await registry.close_all()
        assert all(connection.is_closed for connection in connector.created)

    @pytest.mark.asyncio
    async def test_close_all_waits_for_creation_in_flight(self, make_connector, rabbit_params):
        connector = make_connector(delay=0.05)
        registry = ConnectionRegistry(connectors={BrokerType.RABBITMQ: connector})

        task = asyncio.create_task(registry.get_or_create(rabbit_params.key, rabbit_params))
        await asyncio.sleep(0.01)
        await registry.close_all()
        connection = await task

        assert connection.is_closed
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_evict_keeps_connection_open(self, fake_registry, rabbit_params):
        connection = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)

        assert fake_registry.evict(rabbit_params.key) is connection
        assert not connection.is_closed
        assert rabbit_params.key not in fake_registry

        assert await fake_registry.close_connection(rabbit_params.key, connection) is True
        assert connection.is_closed

    @pytest.mark.asyncio
    async def test_close_all_on_empty_registry(self):
        registry = ConnectionRegistry()
        assert await registry.close_all() == {}

    @pytest.mark.asyncio
    async def test_close_all_skips_already_closed(self, fake_registry, rabbit_params):
        connection = await fake_registry.get_or_create(rabbit_params.key, rabbit_params)
        await connection.close()

        assert await fake_registry.close_all() == {}
        assert connection.close_calls == 1

    @pytest.mark.asyncio
    async def test_context_manager_closes_everything(self, fake_registry, rabbit_params):
        async with fake_registry as registry:
            connection = await registry.get_or_create(rabbit_params.key, rabbit_params)

        assert connection.is_closed
        assert len(fake_registry) == 0


class TestConnectors:
    """Broker-specific connection factories."""

    @pytest.mark.asyncio
    async def test_connect_rabbitmq_passes_endpoint_settings(self):
        params = EndpointParams(
            host="rabbit.local",
            port=5673,
            username="app",
            password="secret",
            virtual_host="/orders",
            connection_timeout=5.0,
        )
        connection = MagicMock()

        with patch("aio_pika.connect_robust", new=AsyncMock(return_value=connection)) as connect:
            result = await connect_rabbitmq(params)

        assert result is connection
        connect.assert_awaited_once_with(
            host="rabbit.local",
            port=5673,
            login="app",
            password="secret",
            virtualhost="/orders",
            timeout=5.0,
        )

    @pytest.mark.asyncio
    async def test_connect_kafka_starts_producer(self):
        params = EndpointParams(
            broker_type=BrokerType.KAFKA,
            bootstrap_servers="kafka-1:9092,kafka-2:9092",
            client_id="orders",
            connection_timeout=2.5,
        )
        producer = MagicMock()
        producer.start = AsyncMock()
        producer.stop = AsyncMock()

        with patch("aiokafka.AIOKafkaProducer", return_value=producer) as producer_class:
            connection = await connect_kafka(params)

        producer_class.assert_called_once_with(
            bootstrap_servers="kafka-1:9092,kafka-2:9092",
            client_id="orders",
            request_timeout_ms=2500,
        )
        producer.start.assert_awaited_once()
        assert isinstance(connection, KafkaConnection)
        assert connection.producer is producer

    @pytest.mark.asyncio
    async def test_connect_kafka_stops_producer_when_start_fails(self):
        params = EndpointParams(broker_type=BrokerType.KAFKA)
        producer = MagicMock()
        producer.start = AsyncMock(side_effect=OSError("no brokers"))
        producer.stop = AsyncMock()

        with patch("aiokafka.AIOKafkaProducer", return_value=producer):
            with pytest.raises(OSError):
                await connect_kafka(params)

        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_registry_wraps_kafka_start_failure(self):
        params = EndpointParams(broker_type=BrokerType.KAFKA)
        producer = MagicMock()
        producer.start = AsyncMock(side_effect=OSError("no brokers"))
        producer.stop = AsyncMock()
        registry = ConnectionRegistry()

        with patch("aiokafka.AIOKafkaProducer", return_value=producer):
            with pytest.raises(BrokerConnectionError) as exc_info:
                await registry.get_or_create(params.key, params)

        assert exc_info.value.key == "kafka://localhost:9092"
        assert params.key not in registry


class TestWrappers:
    """Kafka and in-memory connection handles."""

    @pytest.mark.asyncio
    async def test_kafka_connection_stops_producer_once(self):
        producer = MagicMock()
        producer.stop = AsyncMock()
        connection = KafkaConnection(producer)

        await connection.close()
        await connection.close()

        assert connection.is_closed
        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_memory_declare_reuses_queue(self):
        connection = InMemoryConnection("local")

        assert connection.declare("jobs") is connection.declare("jobs")
        assert connection.queue_names() == ["jobs"]

    @pytest.mark.asyncio
    async def test_in_memory_closed_connection_rejects_declare(self):
        connection = InMemoryConnection("local")
        await connection.close()

        assert connection.is_closed
        with pytest.raises(ConnectionError):
            connection.declare("jobs")
