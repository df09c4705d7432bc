from __future__ import annotations

from pathlib import Path

from provision_ready.config.settings import (
    AGENT_NAME,
    PROTOCOL_VERSION,
    WIRESERVER_ENDPOINT,
    AgentConfig,
    load_config,
)
from provision_ready.utils.result import ConfigError, ExitCode, exit_code_for


def test_defaults_are_protocol_constants():
    config = load_config().unwrap()

    assert config.endpoint == WIRESERVER_ENDPOINT == "http://168.63.129.16"
    assert config.protocol.version == PROTOCOL_VERSION == "2012-11-30"
    assert config.protocol.agent_name == AGENT_NAME == "custom-provisioning"
    assert config.retry.initial_delay == 2.0
    assert config.retry.max_delay == 120.0
    assert config.retry.backoff_factor == 2.0
    assert config.source is None
    assert config.validate().is_ok()


def test_from_yaml_overrides(tmp_path: Path):
    path = tmp_path / "agent.yaml"
    path.write_text(
        "endpoint: http://127.0.0.1:8080\n"
        "protocol:\n"
        "  timeout: 5\n"
        "retry:\n"
        "  initial_delay: 1\n"
        "  max_delay: 10\n"
        "logging:\n"
        "  level: debug\n"
        "  format: json\n",
        encoding="utf-8",
    )

    config = load_config(path).unwrap()

    assert config.endpoint == "http://127.0.0.1:8080"
    assert config.protocol.timeout == 5.0
    assert config.protocol.version == PROTOCOL_VERSION
    assert config.retry.initial_delay == 1.0
    assert config.retry.max_delay == 10.0
    assert config.retry.backoff_factor == 2.0
    assert config.logging.level == "debug"
    assert config.logging.format == "json"
    assert config.source == path


def test_empty_yaml_uses_defaults(tmp_path: Path):
    path = tmp_path / "agent.yaml"
    path.write_text("", encoding="utf-8")

    config = load_config(path).unwrap()

    assert config.endpoint == WIRESERVER_ENDPOINT


def test_missing_file_is_config_error(tmp_path: Path):
    error = load_config(tmp_path / "nope.yaml").unwrap_err()

    assert isinstance(error, ConfigError)
    assert error.field == "path"
    assert exit_code_for(error) == ExitCode.CONFIG_ERROR


def test_invalid_yaml_is_config_error(tmp_path: Path):
    path = tmp_path / "agent.yaml"
    path.write_text("endpoint: [unclosed\n", encoding="utf-8")

    assert load_config(path).unwrap_err().field == "yaml"


def test_non_mapping_yaml_is_config_error(tmp_path: Path):
    path = tmp_path / "agent.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    assert load_config(path).unwrap_err().field == "yaml"


def test_backoff_factor_must_grow():
    error = AgentConfig.from_dict({"retry": {"backoff_factor": 1}}).unwrap_err()

    assert error.field == "retry.backoff_factor"


def test_max_delay_below_initial_delay_is_rejected():
    error = AgentConfig.from_dict(
        {"retry": {"initial_delay": 10, "max_delay": 5}}
    ).unwrap_err()

    assert error.field == "retry.max_delay"


def test_endpoint_must_be_http():
    assert AgentConfig.from_dict({"endpoint": "168.63.129.16"}).unwrap_err().field == "endpoint"


def test_non_numeric_value_is_config_error():
    error = AgentConfig.from_dict({"protocol": {"timeout": "soon"}}).unwrap_err()

    assert error.field == "unknown"


def test_with_endpoint():
    config = AgentConfig()

    assert config.with_endpoint(None).unwrap() is config
    assert config.with_endpoint("http://localhost:9000/").unwrap().endpoint == "http://localhost:9000"
    assert config.endpoint == WIRESERVER_ENDPOINT


def test_with_endpoint_validates_override():
    config = AgentConfig()

    assert config.with_endpoint("168.63.129.16").unwrap_err().field == "endpoint"
    assert config.with_endpoint("http://").unwrap_err().field == "endpoint"
    assert config.endpoint == WIRESERVER_ENDPOINT
