"""Utility modules for provision-ready."""

from provision_ready.utils.logging import (
    configure_logging,
    get_logger,
    new_run_id,
    set_run_context,
    set_stage,
)
from provision_ready.utils.result import (
    ConfigError,
    DecodeError,
    EncodeError,
    Err,
    ExitCode,
    MalformedDocumentError,
    MissingElementError,
    Ok,
    ProtocolError,
    ProvisioningError,
    Result,
    TransportError,
    exit_code_for,
    is_retryable,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "new_run_id",
    "set_run_context",
    "set_stage",
    # Result
    "Ok",
    "Err",
    "Result",
    "ExitCode",
    "exit_code_for",
    "is_retryable",
    # Errors
    "ProvisioningError",
    "TransportError",
    "ProtocolError",
    "DecodeError",
    "MalformedDocumentError",
    "MissingElementError",
    "EncodeError",
    "ConfigError",
]
