"""Foundation types for typed_ini.

Provides the exception hierarchy and the ``Diagnostic`` record used for
non-fatal problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IniError(Exception):
    """Base exception for typed_ini errors."""


class SecurityViolation(IniError):
    """Raised when the sandbox refuses to approve a substitution."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Substitution rejected by sandbox: {reason}")


class NumericLiteralInvalid(IniError, ValueError):
    """Raised when a value looks numeric but fits no representation."""

    def __init__(self, literal: str, reason: str) -> None:
        self.literal = literal
        self.reason = reason
        super().__init__(f"Invalid numeric literal {literal!r}: {reason}")


class FileAccessError(IniError, OSError):
    """Raised when a source or target file cannot be opened or written."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot access '{path}': {reason}")


class EvaluationError(IniError):
    """Raised when a reference or sub-expression cannot be evaluated."""


class OperationRefusedError(EvaluationError):
    """Raised when a restricted evaluator is asked to invoke an operation."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Operation '{name}' is not permitted here.")


class UndefinedReferenceError(EvaluationError):
    """Raised by a strict evaluator for a reference with no binding."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Reference '${name}' is not bound.")


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class DiagnosticKind(str, Enum):
    """Non-fatal problem categories."""

    malformed_line = "malformed_line"
    duplicate_key = "duplicate_key"
    numeric_literal_invalid = "numeric_literal_invalid"
    validation_gap = "validation_gap"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found while building or checking a document.

    Attributes:
        kind: Problem category
        message: Human-readable description
        line: 1-based source line number, when the problem has one
        section: Section the problem belongs to, when known
        key: Entry key the problem belongs to, when known
    """

    kind: DiagnosticKind
    message: str
    line: int | None = None
    section: str | None = None
    key: str | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message
