"""
queue-helper Core Module
========================
Core infrastructure shared by the messaging layer.

This module provides:
- Configuration management and configuration sources
- Logging infrastructure
- Exception hierarchy
"""

from .config import (
    Config,
    get_config,
    reload_config,
    BrokerType,
    EndpointParams,
    ConfigurationSource,
    EnvironmentSource,
    PropertiesSource,
)
from .logging_config import setup_logging, get_logger, get_broker_logger
from .exceptions import (
    QueueHelperException,
    BrokerConnectionError,
    AliasNotFoundError,
    UnsupportedOperationError,
    MessageException,
    MessageDeliveryError,
    MessageDecodeError,
    ConsumerError,
    ValidationException,
    MissingFieldError,
)

__all__ = [
    "Config",
    "get_config",
    "reload_config",
    "BrokerType",
    "EndpointParams",
    "ConfigurationSource",
    "EnvironmentSource",
    "PropertiesSource",
    "setup_logging",
    "get_logger",
    "get_broker_logger",
    "QueueHelperException",
    "BrokerConnectionError",
    "AliasNotFoundError",
    "UnsupportedOperationError",
    "MessageException",
    "MessageDeliveryError",
    "MessageDecodeError",
    "ConsumerError",
    "ValidationException",
    "MissingFieldError",
]
