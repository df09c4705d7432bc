"""Configuration module for provision-ready."""

from provision_ready.config.settings import AgentConfig, load_config

__all__ = ["AgentConfig", "load_config"]
