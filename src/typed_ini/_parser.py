"""INI text to ``Document``.

Line grammar, first match wins:

1. blank line: ignored
2. ``[Name]``: opens a section
3. ``;...`` or ``#...``: comment, stored verbatim
4. ``key = value``: key may not contain ``;``, ``#`` or ``=``; everything
   after the first ``=`` is the raw value, kept verbatim
5. anything else: reported as malformed and skipped

Nothing is substituted until the sandbox has approved every raw value of
the document in one trial run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from ._document import NO_SECTION, Document, DocumentBuilder, KeyValue
from ._environment import EnvironmentRepository, OsEnvironment
from ._evaluator import BindingEvaluator, Evaluator
from ._logging import Logger, LogLevel, safe_log
from ._sandbox import DEFAULT_TIMEOUT, Sandbox
from ._types import Diagnostic, DiagnosticKind, FileAccessError, NumericLiteralInvalid
from ._typing import NumberFormat, resolve_value

_SECTION = re.compile(r"^\s*\[(.+)\]\s*$")
_COMMENT = re.compile(r"^\s*[;#]")
_KEY_VALUE = re.compile(r"^([^;#=]+?)\s*=(.*)$")


@dataclass(frozen=True)
class _Line:
    number: int
    section: str
    kind: str  # "section", "comment" or "value"
    text: str
    key: str = ""


def split_lines(text: str) -> list[str]:
    """Split on ``\\n``, ``\\r\\n`` or ``\\r`` only."""
    return re.split(r"\r\n|\r|\n", text)


class Parser:
    """Builds ``Document`` objects from INI text."""

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

    def parse(self, text: str, expand_environment: bool = False) -> Document:
        """Parse *text*.

        Raises ``SecurityViolation`` if the sandbox rejects the document's
        values; malformed lines and invalid numeric literals are recorded
        in ``Document.diagnostics``.
        """
        builder = DocumentBuilder()
        lines = self._classify(text, builder)

        raw_values = [line.text for line in lines if line.kind == "value"]
        self.sandbox.approve_all(raw_values, expand_environment)

        number_format = self.number_format or NumberFormat.current()
        for line in lines:
            if line.kind == "section":
                builder.open_section(line.section)
                safe_log(self.logger, LogLevel.verbose, f"Section [{line.section}]")
            elif line.kind == "comment":
                builder.add_comment(line.section, line.text)
            else:
                typed = resolve_value(
                    line.text,
                    self.evaluator,
                    expand_environment=expand_environment,
                    environment=self.environment,
                    number_format=number_format,
                    on_invalid=lambda exc, line=line: self._invalid_literal(builder, line, exc),
                )
                if not builder.add_entry(line.section, line.key, KeyValue(line.key, line.text, typed)):
                    self._report(
                        builder,
                        Diagnostic(
                            DiagnosticKind.duplicate_key,
                            f"Duplicate key '{line.key}' in [{line.section}]; last value wins",
                            line=line.number,
                            section=line.section,
                            key=line.key,
                        ),
                    )
                safe_log(
                    self.logger,
                    LogLevel.debug,
                    f"{line.section}.{line.key} = {typed.render()!r} ({typed.kind.value})",
                )

        document = builder.build()
        safe_log(
            self.logger,
            LogLevel.info,
            f"Parsed {len(document)} sections, {len(raw_values)} values",
        )
        return document

    def parse_file(
        self,
        path: str | Path,
        encoding: str = "utf-8",
        expand_environment: bool = False,
    ) -> Document:
        """Read and parse the file at *path*."""
        safe_log(self.logger, LogLevel.verbose, f"Reading {path}")
        try:
            text = Path(path).read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError) as exc:
            safe_log(self.logger, LogLevel.error, f"Cannot read {path}: {exc}")
            raise FileAccessError(str(path), str(exc)) from exc
        return self.parse(text, expand_environment)

    # -- helpers ------------------------------------------------------------

    def _classify(self, text: str, builder: DocumentBuilder) -> list[_Line]:
        lines: list[_Line] = []
        section = NO_SECTION
        for number, line in enumerate(split_lines(text), start=1):
            if not line.strip():
                continue

            header = _SECTION.match(line)
            if header is not None:
                section = header.group(1)
                lines.append(_Line(number, section, "section", line))
                continue

            if _COMMENT.match(line):
                lines.append(_Line(number, section, "comment", line))
                continue

            pair = _KEY_VALUE.match(line)
            if pair is not None and pair.group(1).strip():
                lines.append(_Line(number, section, "value", pair.group(2), pair.group(1).strip()))
                continue

            self._report(
                builder,
                Diagnostic(
                    DiagnosticKind.malformed_line,
                    f"Malformed line skipped: {line!r}",
                    line=number,
                    section=section,
                ),
            )
        return lines

    def _invalid_literal(
        self, builder: DocumentBuilder, line: _Line, exc: NumericLiteralInvalid
    ) -> None:
        self._report(
            builder,
            Diagnostic(
                DiagnosticKind.numeric_literal_invalid,
                f"{exc}; kept as text",
                line=line.number,
                section=line.section,
                key=line.key,
            ),
        )

    def _report(self, builder: DocumentBuilder, diagnostic: Diagnostic) -> None:
        builder.diagnostics.append(diagnostic)
        safe_log(self.logger, LogLevel.warn, str(diagnostic))
