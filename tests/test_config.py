"""Tests for configuration sources and settings."""

import pytest

from queue_helper.core.config import (
    BrokerType,
    Config,
    EndpointParams,
    EnvironmentSource,
    PropertiesSource,
    get_config,
    reload_config,
)
from queue_helper.core.exceptions import ValidationException


class TestSources:
    """Key/value configuration sources."""

    def test_environment_source_maps_dotted_keys(self, monkeypatch):
        monkeypatch.setenv("QUEUE_HELPER_RABBITMQ_HOST", "rabbit.internal")
        source = EnvironmentSource()

        assert source.env_name("rabbitmq.host") == "QUEUE_HELPER_RABBITMQ_HOST"
        assert source.get_string("rabbitmq.host") == "rabbit.internal"
        assert source.get_string("rabbitmq.missing") == ""

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("TRUE", True), ("1", True), ("yes", True), ("on", True), ("false", False), ("", False)],
    )
    def test_get_bool(self, value, expected):
        assert PropertiesSource({"flag": value}).get_bool("flag") is expected

    def test_properties_from_file(self, tmp_path):
        path = tmp_path / "application.properties"
        path.write_text(
            "# broker settings\n"
            "! legacy comment\n"
            "rabbitmq.host = rabbit.internal\n"
            "rabbitmq.port: 5673\n"
            "\n"
            "rabbitmq.password=p=ss:word\n",
            encoding="utf-8",
        )

        source = PropertiesSource.from_file(path)

        assert source.get_string("rabbitmq.host") == "rabbit.internal"
        assert source.get_string("rabbitmq.port") == "5673"
        assert source.get_string("rabbitmq.password") == "p=ss:word"

    def test_missing_properties_file_is_empty(self, tmp_path):
        source = PropertiesSource.from_file(tmp_path / "absent.properties")

        assert source.get_string("rabbitmq.host") == ""

    def test_set_normalizes_values(self):
        source = PropertiesSource()
        source.set("filelog.enable", True)
        source.set("rabbitmq.port", 5673)

        assert source.get_bool("filelog.enable") is True
        assert source.get_string("rabbitmq.port") == "5673"


class TestEndpointParams:
    """Endpoint parameters and connection keys."""

    def test_defaults_from_empty_source(self):
        params = EndpointParams.from_source(PropertiesSource())

        assert params.broker_type is BrokerType.RABBITMQ
        assert params.key == "rabbitmq://guest@localhost:5672/"

    def test_rabbitmq_from_source(self):
        source = PropertiesSource(
            {
                "rabbitmq.host": "rabbit.internal",
                "rabbitmq.port": "5673",
                "rabbitmq.username": "app",
                "rabbitmq.password": "secret",
                "rabbitmq.vhost": "orders",
                "rabbitmq.timeout": "5",
            }
        )

        params = EndpointParams.from_source(source)

        assert params.port == 5673
        assert params.connection_timeout == 5.0
        assert params.key == "rabbitmq://app@rabbit.internal:5673/orders"

    def test_kafka_prefix_implies_kafka(self):
        source = PropertiesSource({"kafka.bootstrap_servers": "k1:9092,k2:9092"})

        params = EndpointParams.from_source(source, prefix="kafka")

        assert params.broker_type is BrokerType.KAFKA
        assert params.port == 9092
        assert params.key == "kafka://k1:9092,k2:9092"

    def test_explicit_type_wins_over_prefix(self):
        source = PropertiesSource({"audit.type": "memory", "audit.host": "bus"})

        params = EndpointParams.from_source(source, prefix="audit")

        assert params.broker_type is BrokerType.MEMORY
        assert params.key == "memory://bus"

    def test_unknown_type_raises(self):
        source = PropertiesSource({"rabbitmq.type": "carrier-pigeon"})

        with pytest.raises(ValidationException) as exc_info:
            EndpointParams.from_source(source)

        assert exc_info.value.field == "rabbitmq.type"

    def test_key_depends_on_credentials(self):
        assert EndpointParams(username="a").key != EndpointParams(username="b").key

    def test_to_dict_omits_password(self):
        data = EndpointParams(password="secret").to_dict()

        assert "password" not in data
        assert data["broker_type"] == "rabbitmq"


class TestConfig:
    """Process-wide settings."""

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "QUEUE_HELPER_MESSAGING_SENDER",
            "QUEUE_HELPER_FILELOG_ENABLE",
            "QUEUE_HELPER_LOG_OUTPUT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = Config.from_env()

        assert config.messaging.sender == "queue-helper"
        assert config.messaging.use_envelope is True
        assert config.logging.output == "stdout"
        assert config.validate() == []

    def test_file_logging_flag(self, monkeypatch):
        monkeypatch.delenv("QUEUE_HELPER_LOG_OUTPUT", raising=False)
        monkeypatch.setenv("QUEUE_HELPER_FILELOG_ENABLE", "true")
        monkeypatch.setenv("QUEUE_HELPER_FILELOG_LOCATION", "/var/log/qh.log")

        config = Config.from_env()

        assert config.logging.output == "both"
        assert config.logging.file_path == "/var/log/qh.log"

    def test_validate_reports_issues(self):
        config = Config()
        config.messaging.sender = " "
        config.messaging.default_priority = 0
        config.logging.format = "xml"

        issues = config.validate()

        assert len(issues) == 3

    def test_reload_config(self, monkeypatch):
        monkeypatch.setenv("QUEUE_HELPER_MESSAGING_SENDER", "billing")

        config = reload_config()

        assert config.messaging.sender == "billing"
        assert get_config() is config

        monkeypatch.delenv("QUEUE_HELPER_MESSAGING_SENDER")
        reload_config()
