"""
Messaging Module
================
Broker abstraction layer supporting RabbitMQ and Kafka.

This module provides:
- Connection registry (one connection per endpoint)
- Messaging strategies per broker family
- Alias-based broker facade and single-strategy facade
- Envelope serialization and schema validation
- Consumer with observer fan-out
"""

from .connections import (
    ConnectionRegistry,
    KafkaConnection,
    InMemoryConnection,
)
from .broker import (
    MessagingStrategy,
    RabbitMQStrategy,
    KafkaStrategy,
    InMemoryStrategy,
    QueueConfig,
    create_strategy,
)
from .message import (
    MessageModel,
    TextMessage,
    EmailMessage,
    EmailMessageBuilder,
    SmsMessage,
    Envelope,
    MessagePriority,
    DeliveryMode,
)
from .facade import BrokerFacade, BrokerBinding
from .publisher import MessagingFacade
from .observer import MessageObserver, MessageListener
from .consumer import RabbitMQConsumer, ConsumerState
from .schemas import validate_payload, get_schema, register_schema

__all__ = [
    "ConnectionRegistry",
    "KafkaConnection",
    "InMemoryConnection",
    "MessagingStrategy",
    "RabbitMQStrategy",
    "KafkaStrategy",
    "InMemoryStrategy",
    "QueueConfig",
    "create_strategy",
    "MessageModel",
    "TextMessage",
    "EmailMessage",
    "EmailMessageBuilder",
    "SmsMessage",
    "Envelope",
    "MessagePriority",
    "DeliveryMode",
    "BrokerFacade",
    "BrokerBinding",
    "MessagingFacade",
    "MessageObserver",
    "MessageListener",
    "RabbitMQConsumer",
    "ConsumerState",
    "validate_payload",
    "get_schema",
    "register_schema",
]
