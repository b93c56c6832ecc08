"""Required section/key checks."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ._document import Document, KeyValue
from ._logging import Logger, LogLevel, safe_log
from ._types import Diagnostic, DiagnosticKind


def validate_required(
    document: Document,
    required: Mapping[str, Iterable[str]],
    logger: Logger | None = None,
) -> list[Diagnostic]:
    """Report every required section or key missing from *document*.

    A missing section yields one diagnostic for the section itself followed
    by one for each of its required keys. The document is never changed.
    """
    gaps: list[Diagnostic] = []
    for section_name, keys in required.items():
        section = document.get(section_name)
        if section is None:
            gaps.append(
                Diagnostic(
                    DiagnosticKind.validation_gap,
                    f"Required section [{section_name}] is missing",
                    section=section_name,
                )
            )
            section = {}
        for key in keys:
            if not isinstance(section.get(key), KeyValue):
                gaps.append(
                    Diagnostic(
                        DiagnosticKind.validation_gap,
                        f"Required key '{key}' is missing from [{section_name}]",
                        section=section_name,
                        key=key,
                    )
                )

    for gap in gaps:
        safe_log(logger, LogLevel.warn, gap.message)
    return gaps


def parse_requirements(specs: Iterable[str]) -> dict[str, list[str]]:
    """Turn ``"section.key"`` strings into a requirements mapping.

    A bare ``"section"`` requires only the section. The section part runs
    up to the last dot, so section names may contain dots.
    """
    required: dict[str, list[str]] = {}
    for requirement in specs:
        section, dot, key = requirement.rpartition(".")
        if not dot:
            required.setdefault(requirement, [])
            continue
        required.setdefault(section, []).append(key)
    return required
