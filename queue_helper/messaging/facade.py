"""
Broker Facade Module
====================
Binds human-readable aliases to (strategy, connection) pairs.

This module provides:
- Alias table with connect/send/disconnect per alias
- Reference-aware release of shared connections
- Connecting aliases straight from a configuration source
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Dict, List

from ..core.config import (
    ConfigurationSource,
    EndpointParams,
    MessagingConfig,
    get_config,
)
from ..core.logging_config import get_logger, get_broker_logger
from ..core.exceptions import AliasNotFoundError, BrokerConnectionError

from .broker import MessagingStrategy, create_strategy
from .connections import Connection, ConnectionRegistry
from .message import MessageModel

logger = get_logger(__name__)


@dataclass
class BrokerBinding:
    """Everything held on behalf of one alias."""

    key: str
    params: EndpointParams
    connection: Connection
    strategy: MessagingStrategy


class BrokerFacade:
    """
    Alias-based facade over the connection registry and strategies.

    Several aliases may share one registry connection when they point at the
    same endpoint key; a shared connection is only closed once the last alias
    referencing it goes away.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        config: Optional[MessagingConfig] = None,
    ):
        """
        Initialize the facade.

        Args:
            registry: Connection registry owning the broker connections
            config: Messaging settings (defaults to the global configuration)
        """
        self.registry = registry
        self.config = config or get_config().messaging
        self._bindings: Dict[str, BrokerBinding] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, alias: str) -> bool:
        return alias in self._bindings

    @property
    def aliases(self) -> List[str]:
        return list(self._bindings)

    def _is_referenced(self, key: str) -> bool:
        return any(binding.key == key for binding in self._bindings.values())

    async def connect(self, alias: str, params: EndpointParams) -> MessagingStrategy:
        """
        Bind an alias to a broker endpoint.

        Reuses the registry connection for the endpoint key or opens it.
        Connecting an existing alias replaces its binding; the superseded
        connection is closed only when no other alias still uses it.

        Args:
            alias: Application-chosen name for this broker binding
            params: Endpoint parameters

        Returns:
            MessagingStrategy: Strategy now bound to ``alias``

        Raises:
            BrokerConnectionError: If the connection cannot be established
        """
        log = get_broker_logger(alias, params.broker_type.value)
        key = params.key
        log.info(f"Connecting alias {alias} to {key}")

        while True:
            try:
                connection = await self.registry.get_or_create(key, params)
            except BrokerConnectionError as e:
                log.critical(f"Could not connect alias {alias}: {e.message}")
                raise

            async with self._lock:
                # Evicted by a concurrent disconnect of the last alias on this key
                if self.registry.get(key) is not connection or connection.is_closed:
                    continue

                strategy = create_strategy(
                    params.broker_type,
                    connection,
                    sender=self.config.sender,
                    use_envelope=self.config.use_envelope,
                    default_priority=self.config.default_priority,
                    default_delivery_mode=self.config.default_delivery_mode,
                )
                previous = self._bindings.get(alias)
                self._bindings[alias] = BrokerBinding(key, params, connection, strategy)

                released = None
                if previous is not None and previous.key != key:
                    released = self._release(previous)
            break

        if released is not None:
            log.info(f"Releasing superseded connection {previous.key}")
            await self.registry.close_connection(previous.key, released)

        log.info(f"Alias {alias} connected to {key}")
        return strategy

    async def connect_from_source(
        self,
        alias: str,
        source: ConfigurationSource,
        prefix: str = "rabbitmq",
    ) -> MessagingStrategy:
        """
        Bind an alias using endpoint settings read from a configuration source.

        Args:
            alias: Application-chosen name for this broker binding
            source: Configuration source
            prefix: Key prefix of the endpoint settings

        Returns:
            MessagingStrategy: Strategy now bound to ``alias``
        """
        return await self.connect(alias, EndpointParams.from_source(source, prefix))

    def strategy(self, alias: str) -> MessagingStrategy:
        binding = self._bindings.get(alias)
        if binding is None:
            raise AliasNotFoundError(alias)
        return binding.strategy

    def get(self, alias: str) -> Optional[Connection]:
        """
        Get the connection bound to an alias.

        Args:
            alias: Broker alias

        Returns:
            Optional[Connection]: Bound connection, or None if unknown
        """
        binding = self._bindings.get(alias)
        return binding.connection if binding else None

    async def send(
        self,
        alias: str,
        target: str,
        message: MessageModel,
        priority: Optional[int] = None,
        delivery_mode: Optional[int] = None,
    ) -> bool:
        """
        Send a message through the strategy bound to an alias.

        Args:
            alias: Broker alias
            target: Queue or topic name
            message: Payload to publish
            priority: Message priority (defaults to the configured priority)
            delivery_mode: Delivery mode (defaults to the configured mode)

        Returns:
            bool: True if the broker accepted the message

        Raises:
            AliasNotFoundError: If the alias was never connected
        """
        return await self.strategy(alias).send(target, message, priority, delivery_mode)

    async def disconnect(self, alias: str) -> bool:
        """
        Remove an alias and release what was held for it.

        The connection is closed only if it is still open and no other alias
        references the same endpoint key. Unknown aliases are reported in the
        log and ignored, so repeated calls are harmless.

        Args:
            alias: Broker alias

        Returns:
            bool: True if the alias existed and was removed
        """
        async with self._lock:
            binding = self._bindings.pop(alias, None)
            if binding is None:
                logger.warning(f"Cannot disconnect, alias not found: {alias}")
                return False
            shared = self._is_referenced(binding.key)
            released = self._release(binding)

        log = get_broker_logger(alias, binding.params.broker_type.value)
        if shared:
            log.info(f"Alias {alias} removed, connection {binding.key} still in use")
        elif released is None or released.is_closed:
            log.info(f"Alias {alias} removed, connection was already closed")
        else:
            await self.registry.close_connection(binding.key, released)
            log.info(f"Alias {alias} disconnected from {binding.key}")
        return True

    def _release(self, binding: BrokerBinding) -> Optional[Connection]:
        """
        Evict a binding's connection once no alias references its key.

        Must be called with the alias table lock held. The caller closes the
        returned handle after releasing the lock.
        """
        if self._is_referenced(binding.key):
            return None
        # A different handle means ours was closed and already replaced
        if self.registry.get(binding.key) is not binding.connection:
            return None
        return self.registry.evict(binding.key)

    async def disconnect_all(self) -> None:
        for alias in self.aliases:
            await self.disconnect(alias)
