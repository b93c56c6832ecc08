"""Immutable document model.

A ``Document`` maps section names to ``Section`` objects, which map entry
names to entries. Both keep insertion order and expose only the read-only
``Mapping`` interface; parsers and resolvers build them through
``DocumentBuilder``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union

from ._types import Diagnostic
from ._typing import TypedValue, ValueKind

NO_SECTION = "No-Section"
COMMENT_PREFIX = "Comment"
UNEXPANDED_SUFFIX = "unexpanded"


@dataclass(frozen=True)
class Comment:
    """A comment line, stored verbatim including its ``;`` or ``#``."""

    text: str


@dataclass(frozen=True)
class KeyValue:
    """A ``key=value`` entry.

    Attributes:
        key: Entry name
        raw: Source text after ``=``, never rewritten
        typed: ``raw`` after substitution and type inference
    """

    key: str
    raw: str
    typed: TypedValue

    @property
    def value(self) -> Any:
        return self.typed.value

    @property
    def kind(self) -> ValueKind:
        return self.typed.kind


Entry = Union[Comment, KeyValue]


class Section(Mapping[str, Entry]):
    """Ordered, read-only mapping of entry name to entry."""

    __slots__ = ("name", "_entries")

    def __init__(self, name: str, entries: Mapping[str, Entry] | None = None) -> None:
        self.name = name
        self._entries: dict[str, Entry] = dict(entries or {})

    def __getitem__(self, key: str) -> Entry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Section):
            return self.name == other.name and list(self._entries.items()) == list(
                other._entries.items()
            )
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Section({self.name!r}, {len(self)} entries)"

    def key_values(self) -> list[KeyValue]:
        return [entry for entry in self._entries.values() if isinstance(entry, KeyValue)]

    def comments(self) -> list[Comment]:
        return [entry for entry in self._entries.values() if isinstance(entry, Comment)]


class Document(Mapping[str, Section]):
    """Ordered, read-only mapping of section name to ``Section``.

    ``diagnostics`` lists the non-fatal problems found while the document
    was built; it takes no part in equality.
    """

    __slots__ = ("_sections", "diagnostics")

    def __init__(
        self,
        sections: Mapping[str, Section] | None = None,
        diagnostics: tuple[Diagnostic, ...] = (),
    ) -> None:
        self._sections: dict[str, Section] = dict(sections or {})
        self.diagnostics = tuple(diagnostics)

    def __getitem__(self, name: str) -> Section:
        return self._sections[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Document):
            return list(self._sections.items()) == list(other._sections.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Document({list(self._sections)!r})"

    def raw_values(self) -> list[str]:
        """Every ``raw`` in document order."""
        return [kv.raw for section in self._sections.values() for kv in section.key_values()]

    def get_value(self, section: str, key: str, default: Any = None) -> Any:
        """Typed value of ``section.key``, or *default* if absent."""
        entry = self._sections.get(section, {}).get(key)
        if isinstance(entry, KeyValue):
            return entry.value
        return default

    def flatten(self, include_unexpanded: bool = True) -> dict[str, dict[str, Any]]:
        """Plain nested dict view.

        Each key maps to its typed value; with *include_unexpanded* a
        ``<key>unexpanded`` companion holds the raw text. Comments map to
        their text under their synthetic names.
        """
        result: dict[str, dict[str, Any]] = {}
        for name, section in self._sections.items():
            flat: dict[str, Any] = {}
            for entry_name, entry in section.items():
                if isinstance(entry, Comment):
                    flat[entry_name] = entry.text
                    continue
                flat[entry_name] = entry.value
                if include_unexpanded:
                    flat[entry_name + UNEXPANDED_SUFFIX] = entry.raw
            result[name] = flat
        return result


class DocumentBuilder:
    """Accumulates sections and entries, then freezes them into a ``Document``."""

    def __init__(self) -> None:
        self._sections: dict[str, dict[str, Entry]] = {}
        self._comment_counts: dict[str, int] = {}
        self.diagnostics: list[Diagnostic] = []

    def open_section(self, name: str) -> None:
        self._sections.setdefault(name, {})
        self._comment_counts[name] = 0

    def add_comment(self, section: str, text: str) -> str:
        entries = self._sections.setdefault(section, {})
        count = self._comment_counts.get(section, 0) + 1
        name = f"{COMMENT_PREFIX}{count}"
        while name in entries:
            count += 1
            name = f"{COMMENT_PREFIX}{count}"
        self._comment_counts[section] = count
        entries[name] = Comment(text)
        return name

    def add_entry(self, section: str, name: str, entry: Entry) -> bool:
        """Store *entry*; return ``False`` if it replaced an existing one.

        A key named like an earlier comment takes the name; the comment is
        renumbered in place and kept.
        """
        entries = self._sections.setdefault(section, {})
        if isinstance(entry, KeyValue) and isinstance(entries.get(name), Comment):
            entries = self._rename_comment(section, name)
        replaced = name in entries
        entries[name] = entry
        return not replaced

    def _rename_comment(self, section: str, name: str) -> dict[str, Entry]:
        entries = self._sections[section]
        count = self._comment_counts.get(section, 0)
        fresh = name
        while fresh == name or fresh in entries:
            count += 1
            fresh = f"{COMMENT_PREFIX}{count}"
        self._comment_counts[section] = count
        renamed = {(fresh if key == name else key): entry for key, entry in entries.items()}
        self._sections[section] = renamed
        return renamed

    def build(self) -> Document:
        sections = {name: Section(name, entries) for name, entries in self._sections.items()}
        return Document(sections, tuple(self.diagnostics))
