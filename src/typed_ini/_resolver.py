"""Re-resolve an existing ``Document`` against the current bindings."""

from __future__ import annotations

from ._document import Comment, Document, DocumentBuilder, KeyValue
from ._environment import EnvironmentRepository, OsEnvironment
from ._evaluator import BindingEvaluator, Evaluator
from ._logging import Logger, LogLevel, safe_log
from ._sandbox import DEFAULT_TIMEOUT, Sandbox
from ._types import Diagnostic, DiagnosticKind, NumericLiteralInvalid
from ._typing import NumberFormat, resolve_value


class Resolver:
    """Recomputes typed values from raw values; never touches ``raw``.

    Resolving twice without changing the bindings in between yields equal
    documents.
    """

    def __init__(
        self,
        evaluator: Evaluator | None = None,
        *,
        environment: EnvironmentRepository | None = None,
        logger: Logger | None = None,
        number_format: NumberFormat | None = None,
        sandbox_timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self.environment = environment or OsEnvironment()
        self.evaluator = evaluator or BindingEvaluator(environment=self.environment)
        self.logger = logger
        self.number_format = number_format
        self.sandbox = Sandbox(
            self.evaluator, self.environment, timeout=sandbox_timeout, logger=logger
        )

    def resolve(self, document: Document, expand_environment: bool = False) -> Document:
        """Return a refreshed copy of *document*.

        Raises ``SecurityViolation`` before any substitution if the sandbox
        rejects the document's raw values.
        """
        self.sandbox.approve_all(document.raw_values(), expand_environment)

        number_format = self.number_format or NumberFormat.current()
        builder = DocumentBuilder()
        changed = 0
        for section_name, section in document.items():
            builder.open_section(section_name)
            for entry_name, entry in section.items():
                if isinstance(entry, Comment):
                    builder.add_entry(section_name, entry_name, entry)
                    continue

                def on_invalid(
                    exc: NumericLiteralInvalid, section_name=section_name, key=entry.key
                ) -> None:
                    diagnostic = Diagnostic(
                        DiagnosticKind.numeric_literal_invalid,
                        f"{exc}; kept as text",
                        section=section_name,
                        key=key,
                    )
                    builder.diagnostics.append(diagnostic)
                    safe_log(self.logger, LogLevel.warn, str(diagnostic))

                typed = resolve_value(
                    entry.raw,
                    self.evaluator,
                    expand_environment=expand_environment,
                    environment=self.environment,
                    number_format=number_format,
                    on_invalid=on_invalid,
                )
                if typed != entry.typed:
                    changed += 1
                    safe_log(
                        self.logger,
                        LogLevel.debug,
                        f"{section_name}.{entry.key} changed to {typed.render()!r}",
                    )
                builder.add_entry(section_name, entry_name, KeyValue(entry.key, entry.raw, typed))

        safe_log(self.logger, LogLevel.info, f"Resolved document, {changed} values changed")
        return builder.build()
