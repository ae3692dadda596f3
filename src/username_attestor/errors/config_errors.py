"""Startup configuration errors."""

from __future__ import annotations

from username_attestor.errors.attestor_errors import AttestorError


class ConfigurationError(AttestorError):
    """Fatal misconfiguration detected before the event loop starts."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="configuration-error")
