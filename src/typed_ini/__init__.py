"""Typed INI configuration engine.

Parses INI text into an immutable document, resolves ``$references`` in
values through a sandboxed evaluator, infers a primitive type for every
value and writes documents back out.
"""

from ._document import NO_SECTION, Comment, Document, KeyValue, Section
from ._engine import IniEngine
from ._environment import EnvironmentRepository, FakeEnvironment, OsEnvironment
from ._evaluator import BindingEvaluator, Evaluator
from ._logging import Logger, LoguruLogger, LogLevel, NullLogger
from ._parser import Parser
from ._resolver import Resolver
from ._sandbox import Sandbox
from ._serializer import OutputMode, Serializer
from ._settings import EngineSettings
from ._types import (
    Diagnostic,
    DiagnosticKind,
    EvaluationError,
    FileAccessError,
    IniError,
    NumericLiteralInvalid,
    OperationRefusedError,
    SecurityViolation,
    UndefinedReferenceError,
)
from ._typing import NumberFormat, TypedValue, ValueKind, infer_type
from ._validator import validate_required

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "IniEngine",
    "Parser",
    "Resolver",
    "Serializer",
    "OutputMode",
    "Sandbox",
    # Document model
    "Document",
    "Section",
    "Comment",
    "KeyValue",
    "NO_SECTION",
    "TypedValue",
    "ValueKind",
    "NumberFormat",
    "infer_type",
    # Substitution
    "Evaluator",
    "BindingEvaluator",
    "EnvironmentRepository",
    "OsEnvironment",
    "FakeEnvironment",
    # Collaborators
    "Logger",
    "LoguruLogger",
    "NullLogger",
    "LogLevel",
    "validate_required",
    "EngineSettings",
    # Errors
    "IniError",
    "SecurityViolation",
    "NumericLiteralInvalid",
    "FileAccessError",
    "EvaluationError",
    "OperationRefusedError",
    "UndefinedReferenceError",
    "Diagnostic",
    "DiagnosticKind",
]
