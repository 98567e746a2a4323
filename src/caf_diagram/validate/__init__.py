from __future__ import annotations

from .sanitizer import (
    ValidationResult,
    ValidationWarning,
    WarningKind,
    validate,
    validate_and_log,
)

__all__ = [
    "ValidationResult",
    "ValidationWarning",
    "WarningKind",
    "validate",
    "validate_and_log",
]
