from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    INVALID_MODEL = 1
    CONFIG_ERROR = 2
    MODEL_ERROR = 3
    EXPORT_ERROR = 4
    RUNTIME_ERROR = 5


class DiagramError(Exception):
    """Base error for the diagram pipeline."""


class ConfigError(DiagramError):
    """Raised for configuration or argument issues."""


class ModelError(DiagramError):
    """Raised when the input does not have the shape of an architecture model."""


class ExportError(DiagramError):
    """Raised when writing or externally validating diagram artifacts fails."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, ModelError):
        return int(ExitCode.MODEL_ERROR)
    if isinstance(exc, ExportError):
        return int(ExitCode.EXPORT_ERROR)
    if isinstance(exc, DiagramError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def require_sequence(value: object, what: str) -> list:
    """
    Return value as a list, failing fast when it is not an iterable collection.
    Strings and mappings are rejected: they iterate, but never hold model entries.
    """
    if isinstance(value, (str, bytes, dict)):
        raise ModelError(f"{what} must be a list, got {type(value).__name__}")
    try:
        return list(value)  # type: ignore[call-overload]
    except TypeError as e:
        raise ModelError(f"{what} must be a list, got {type(value).__name__}") from e
