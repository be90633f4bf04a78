"""
Configuration Management Module
===============================
Centralized configuration management with environment variable support.

This module provides:
- Configuration sources (environment, properties files)
- Broker endpoint parameters and connection keys
- Messaging and logging settings with defaults
- Configuration singleton pattern
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from functools import lru_cache

from .exceptions import ValidationException
from .logging_config import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "on"}


class BrokerType(Enum):
    """Supported broker families."""

    RABBITMQ = "rabbitmq"
    KAFKA = "kafka"
    MEMORY = "memory"


class ConfigurationSource(ABC):
    """
    Read-only key/value configuration provider.

    Keys are dotted names such as ``rabbitmq.host``. Missing keys are
    reported as an empty string or ``False``, never as an error.
    """

    @abstractmethod
    def get_string(self, key: str) -> str:
        """Return the value for ``key`` or ``""`` when it is missing."""

    def get_bool(self, key: str) -> bool:
        """Return ``True`` for true/1/yes/on, ``False`` otherwise."""
        return self.get_string(key).strip().lower() in _TRUE_VALUES


class EnvironmentSource(ConfigurationSource):
    """
    Configuration source backed by environment variables.

    ``rabbitmq.host`` is read from ``QUEUE_HELPER_RABBITMQ_HOST``.
    """

    def __init__(self, prefix: str = "QUEUE_HELPER"):
        self.prefix = prefix

    def env_name(self, key: str) -> str:
        name = key.replace(".", "_").replace("-", "_").upper()
        return f"{self.prefix}_{name}" if self.prefix else name

    def get_string(self, key: str) -> str:
        return os.getenv(self.env_name(key), "")


class PropertiesSource(ConfigurationSource):
    """Configuration source backed by an in-memory properties mapping."""

    def __init__(self, properties: Optional[Dict[str, str]] = None):
        self._properties: Dict[str, str] = dict(properties or {})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PropertiesSource":
        """
        Load a ``key=value`` properties file.

        Lines starting with ``#`` or ``!`` are comments. Both ``=`` and ``:``
        are accepted as separators. A missing file yields an empty source.

        Args:
            path: Path to the properties file

        Returns:
            PropertiesSource: Loaded source
        """
        file_path = Path(path)
        if not file_path.is_file():
            logger.warning(f"Properties file not found, using empty configuration: {file_path}")
            return cls()

        properties: Dict[str, str] = {}
        with file_path.open(encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line[0] in "#!":
                    continue
                positions = [i for i in (line.find("="), line.find(":")) if i >= 0]
                if not positions:
                    properties[line] = ""
                    continue
                split_at = min(positions)
                properties[line[:split_at].strip()] = line[split_at + 1:].strip()

        logger.debug(f"Loaded {len(properties)} properties from {file_path}")
        return cls(properties)

    def get_string(self, key: str) -> str:
        return self._properties.get(key, "")

    def set(self, key: str, value: Any) -> None:
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._properties[key] = str(value)


@dataclass
class EndpointParams:
    """Parameters needed to open a connection to one broker endpoint."""

    broker_type: BrokerType = BrokerType.RABBITMQ
    host: str = "localhost"
    port: int = 5672
    username: str = "guest"
    password: str = "guest"
    virtual_host: str = "/"

    # Kafka-specific settings
    bootstrap_servers: str = "localhost:9092"
    client_id: str = "queue-helper"

    connection_timeout: float = 30.0

    @property
    def key(self) -> str:
        """Connection key identifying the endpoint and credentials."""
        if self.broker_type is BrokerType.KAFKA:
            return f"kafka://{self.bootstrap_servers}"
        if self.broker_type is BrokerType.MEMORY:
            return f"memory://{self.host}"
        vhost = self.virtual_host if self.virtual_host.startswith("/") else f"/{self.virtual_host}"
        return f"rabbitmq://{self.username}@{self.host}:{self.port}{vhost}"

    @classmethod
    def from_source(
        cls,
        source: ConfigurationSource,
        prefix: str = "rabbitmq",
    ) -> "EndpointParams":
        """
        Build endpoint parameters from a configuration source.

        Reads ``<prefix>.type``, ``<prefix>.host``, ``<prefix>.port``,
        ``<prefix>.username``, ``<prefix>.password``, ``<prefix>.vhost``,
        ``<prefix>.bootstrap_servers``, ``<prefix>.client_id`` and
        ``<prefix>.timeout``. Missing keys fall back to the defaults.

        Args:
            source: Configuration source to read from
            prefix: Key prefix for this endpoint

        Returns:
            EndpointParams: Populated parameters
        """
        defaults = cls()

        def read(name: str, default: str) -> str:
            return source.get_string(f"{prefix}.{name}") or default

        # a prefix named after a broker family doubles as its type
        type_name = read("type", prefix if prefix in _broker_names() else defaults.broker_type.value)
        try:
            broker_type = BrokerType(type_name.lower())
        except ValueError as e:
            raise ValidationException(
                f"Unknown broker type: {type_name}",
                field=f"{prefix}.type",
                expected=", ".join(_broker_names()),
                cause=e,
            )
        default_port = 9092 if broker_type is BrokerType.KAFKA else defaults.port

        return cls(
            broker_type=broker_type,
            host=read("host", defaults.host),
            port=int(read("port", str(default_port))),
            username=read("username", defaults.username),
            password=read("password", defaults.password),
            virtual_host=read("vhost", defaults.virtual_host),
            bootstrap_servers=read("bootstrap_servers", defaults.bootstrap_servers),
            client_id=read("client_id", defaults.client_id),
            connection_timeout=float(read("timeout", str(defaults.connection_timeout))),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert parameters to dictionary (excluding the password).

        Returns:
            Dict[str, Any]: Parameters as dictionary
        """
        return {
            "broker_type": self.broker_type.value,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "virtual_host": self.virtual_host,
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": self.client_id,
            "connection_timeout": self.connection_timeout,
        }


def _broker_names() -> List[str]:
    return [broker.value for broker in BrokerType]


@dataclass
class MessagingConfig:
    """Settings shared by all messaging strategies."""

    sender: str = "queue-helper"
    use_envelope: bool = True
    default_priority: int = 1
    default_delivery_mode: int = 1


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"  # json or text
    output: str = "stdout"  # stdout, file, both
    file_path: str = "./logs/queue-helper.log"
    max_file_size: int = 10_000_000  # 10MB
    backup_count: int = 5


@dataclass
class Config:
    """
    Main configuration class aggregating all settings.

    Configuration is loaded from environment variables with sensible defaults.
    Broker credentials are never part of this object; they are read per
    endpoint through a ConfigurationSource when an alias is connected.
    """

    environment: str = "development"

    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Environment variables follow the pattern:
        QUEUE_HELPER_{SECTION}_{SETTING} (e.g., QUEUE_HELPER_MESSAGING_SENDER)

        Returns:
            Config: Populated configuration instance
        """
        messaging = MessagingConfig(
            sender=os.getenv("QUEUE_HELPER_MESSAGING_SENDER", "queue-helper"),
            use_envelope=os.getenv("QUEUE_HELPER_MESSAGING_USE_ENVELOPE", "true").lower() in _TRUE_VALUES,
            default_priority=int(os.getenv("QUEUE_HELPER_MESSAGING_DEFAULT_PRIORITY", "1")),
            default_delivery_mode=int(
                os.getenv("QUEUE_HELPER_MESSAGING_DEFAULT_DELIVERY_MODE", "1")
            ),
        )

        file_log_enabled = os.getenv("QUEUE_HELPER_FILELOG_ENABLE", "false").lower() in _TRUE_VALUES
        logging_config = LoggingConfig(
            level=os.getenv("QUEUE_HELPER_LOG_LEVEL", "INFO"),
            format=os.getenv("QUEUE_HELPER_LOG_FORMAT", "json"),
            output=os.getenv("QUEUE_HELPER_LOG_OUTPUT", "both" if file_log_enabled else "stdout"),
            file_path=os.getenv("QUEUE_HELPER_FILELOG_LOCATION", "./logs/queue-helper.log"),
        )

        return cls(
            environment=os.getenv("QUEUE_HELPER_ENVIRONMENT", "development"),
            messaging=messaging,
            logging=logging_config,
        )

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List[str]: List of validation error messages
        """
        issues = []

        if not self.messaging.sender.strip():
            issues.append("Envelope sender tag must not be blank")
        if self.messaging.default_priority < 1:
            issues.append("Default priority must be at least 1")
        if self.messaging.default_delivery_mode < 1:
            issues.append("Default delivery mode must be at least 1")

        if self.logging.format not in ("json", "text"):
            issues.append(f"Unknown log format: {self.logging.format}")
        if self.logging.output not in ("stdout", "file", "both"):
            issues.append(f"Unknown log output: {self.logging.output}")
        if self.logging.output in ("file", "both") and not self.logging.file_path:
            issues.append("Log file path is required when logging to a file")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Dict[str, Any]: Configuration as dictionary
        """
        return {
            "environment": self.environment,
            "messaging": {
                "sender": self.messaging.sender,
                "use_envelope": self.messaging.use_envelope,
                "default_priority": self.messaging.default_priority,
                "default_delivery_mode": self.messaging.default_delivery_mode,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "output": self.logging.output,
            },
        }


# Singleton config instance
_config: Optional[Config] = None


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Config: Global configuration singleton
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reload_config() -> Config:
    """
    Reload configuration from environment.

    Returns:
        Config: New configuration instance
    """
    global _config
    get_config.cache_clear()
    _config = Config.from_env()
    return _config
