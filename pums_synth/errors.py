"""Exception hierarchy for the synthetic population pipeline.

Each stage raises its own error kind so a failed run reports where it
stopped and on what input.
"""

from __future__ import annotations


class PumsSynthError(Exception):
    """Base exception for all pipeline failures."""


class ConfigError(PumsSynthError):
    """Raised for invalid run configuration or model parameters."""


class FetchError(PumsSynthError):
    """Raised when the raw feed cannot be obtained."""


class NetworkError(FetchError):
    """Raised for connection failures, timeouts and HTTP errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(NetworkError):
    """Raised when the source rejects the credential."""


class MalformedResponseError(NetworkError):
    """Raised when the source answers with a body that is not a usable CSV."""


class SourceNotFoundError(FetchError):
    """Raised when a local raw dump does not exist."""


class SchemaError(PumsSynthError):
    """Raised for unexpected or missing columns in the raw feed."""


class RecodeError(PumsSynthError):
    """Raised when a code falls outside its documented enumeration."""

    def __init__(self, column: str, value: object, message: str | None = None) -> None:
        super().__init__(message or f"Unmapped code {value!r} in column '{column}'")
        self.column = column
        self.value = value


class SynthesisError(PumsSynthError):
    """Raised for degenerate input or model-fit failures."""

    def __init__(self, message: str, column: str | None = None) -> None:
        super().__init__(message)
        self.column = column


class ExportError(PumsSynthError, OSError):
    """Raised when an output file cannot be written."""
