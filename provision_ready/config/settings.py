"""Configuration for the provisioning agent.

The defaults are the fixed WireServer protocol constants, so the agent needs
no configuration file at all. A YAML file passed explicitly on the command
line can override any of them (useful against a local test double).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from provision_ready.utils.result import ConfigError, Err, Ok, Result

WIRESERVER_ENDPOINT = "http://168.63.129.16"
PROTOCOL_VERSION = "2012-11-30"
AGENT_NAME = "custom-provisioning"


@dataclass
class WireProtocolConfig:
    """Headers and timeouts for WireServer requests."""

    version: str = PROTOCOL_VERSION
    agent_name: str = AGENT_NAME
    timeout: float = 30.0


@dataclass
class RetryConfig:
    """Retry and backoff settings."""

    initial_delay: float = 2.0
    max_delay: float = 120.0
    backoff_factor: float = 2.0


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "text"


@dataclass
class AgentConfig:
    """
    Complete agent configuration.

    This is the single source of truth for the endpoint, protocol headers,
    backoff policy and logging.
    """

    endpoint: str = WIRESERVER_ENDPOINT
    protocol: WireProtocolConfig = field(default_factory=WireProtocolConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Set when loaded from a file
    source: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: Path) -> Result["AgentConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Top level of the configuration must be a mapping",
            ))

        return cls.from_dict(data).map(lambda config: replace(config, source=path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["AgentConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            protocol_data = data.get("protocol", {})
            protocol = WireProtocolConfig(
                version=str(protocol_data.get("version", PROTOCOL_VERSION)),
                agent_name=str(protocol_data.get("agent_name", AGENT_NAME)),
                timeout=float(protocol_data.get("timeout", 30.0)),
            )

            retry_data = data.get("retries", data.get("retry", {}))
            retry = RetryConfig(
                initial_delay=float(retry_data.get("initial_delay", 2.0)),
                max_delay=float(retry_data.get("max_delay", 120.0)),
                backoff_factor=float(retry_data.get("backoff_factor", 2.0)),
            )

            logging_data = data.get("logging", {})
            logging_config = LoggingConfig(
                level=str(logging_data.get("level", "info")),
                format=str(logging_data.get("format", "text")),
            )

            config = cls(
                endpoint=str(data.get("endpoint", WIRESERVER_ENDPOINT)),
                protocol=protocol,
                retry=retry,
                logging=logging_config,
            )
        except (AttributeError, TypeError, ValueError) as e:
            return Err(ConfigError(
                field="unknown",
                message=f"Failed to parse configuration: {e}",
            ))

        validation_result = config.validate()
        if validation_result.is_err():
            return Err(validation_result.unwrap_err())
        return Ok(config)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if not self.endpoint.startswith(("http://", "https://")):
            return Err(ConfigError(
                field="endpoint",
                message=f"Must be an http(s) URL, got {self.endpoint!r}",
            ))
        try:
            host = httpx.URL(self.endpoint).host
        except httpx.InvalidURL as e:
            return Err(ConfigError(
                field="endpoint",
                message=f"Invalid URL {self.endpoint!r}: {e}",
            ))
        if not host:
            return Err(ConfigError(
                field="endpoint",
                message=f"Missing host in {self.endpoint!r}",
            ))

        if not self.protocol.version:
            return Err(ConfigError(
                field="protocol.version",
                message="Must not be empty",
            ))
        if self.protocol.timeout <= 0:
            return Err(ConfigError(
                field="protocol.timeout",
                message=f"Must be positive, got {self.protocol.timeout}",
            ))

        if self.retry.initial_delay <= 0:
            return Err(ConfigError(
                field="retry.initial_delay",
                message=f"Must be positive, got {self.retry.initial_delay}",
            ))
        if self.retry.max_delay < self.retry.initial_delay:
            return Err(ConfigError(
                field="retry.max_delay",
                message=(
                    f"Must be at least initial_delay ({self.retry.initial_delay}), "
                    f"got {self.retry.max_delay}"
                ),
            ))
        # A factor of 1 would never reach the ceiling
        if self.retry.backoff_factor <= 1.0:
            return Err(ConfigError(
                field="retry.backoff_factor",
                message=f"Must be greater than 1.0, got {self.retry.backoff_factor}",
            ))

        if self.logging.format not in ("json", "text"):
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be 'json' or 'text', got {self.logging.format!r}",
            ))

        return Ok(None)

    def with_endpoint(self, endpoint: Optional[str]) -> Result["AgentConfig", ConfigError]:
        """
        Return a validated copy pointing at another endpoint.

        Args:
            endpoint: New base URL, or None to keep the current one

        Returns:
            Result with the new config or the validation error
        """
        if not endpoint:
            return Ok(self)
        config = replace(self, endpoint=endpoint.rstrip("/"))
        validation_result = config.validate()
        if validation_result.is_err():
            return Err(validation_result.unwrap_err())
        return Ok(config)


def load_config(path: Optional[Path] = None) -> Result[AgentConfig, ConfigError]:
    """
    Load configuration.

    Without a path the built-in defaults are used; nothing is read from the
    environment or from an implicit location.

    Args:
        path: Optional YAML configuration file

    Returns:
        Result with loaded config or error
    """
    if path is None:
        return Ok(AgentConfig())
    return AgentConfig.from_yaml(path)
