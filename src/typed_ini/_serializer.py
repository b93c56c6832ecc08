"""``Document`` to INI text.

Output modes:

- ``unexpanded``: ``key=raw``; parsing the output reproduces the document
- ``expanded``: ``key=<typed value>``
- ``all``: the expanded line followed by ``<key>unexpanded=raw``. Reading
  this back does **not** reproduce the document: the companion lines come
  back as ordinary keys and can overwrite real keys of the same name.
"""

from __future__ import annotations

import codecs
from enum import Enum
from pathlib import Path

from ._document import NO_SECTION, UNEXPANDED_SUFFIX, Comment, Document, Section
from ._logging import Logger, LogLevel, safe_log
from ._types import FileAccessError


class OutputMode(str, Enum):
    """Which form of each value to write."""

    unexpanded = "unexpanded"
    expanded = "expanded"
    all = "all"


def check_encoding(encoding: str) -> str:
    """Return the canonical codec name; ``ValueError`` if unknown."""
    try:
        return codecs.lookup(encoding).name
    except LookupError as exc:
        raise ValueError(f"Unknown encoding {encoding!r}") from exc


class Serializer:
    """Renders documents as text or writes them to files."""

    def __init__(self, logger: Logger | None = None, newline: str = "\n") -> None:
        self.logger = logger
        self.newline = newline

    def dumps(self, document: Document, mode: OutputMode | str = OutputMode.unexpanded) -> str:
        mode = OutputMode(mode)
        lines: list[str] = []
        for index, (name, section) in enumerate(document.items()):
            # a headerless block only reads back as No-Section at the top
            if not (name == NO_SECTION and index == 0 and len(section)):
                lines.append(f"[{name}]")
            lines.extend(self._section_lines(section, mode))
            lines.append("")
        return "".join(line + self.newline for line in lines)

    def _section_lines(self, section: Section, mode: OutputMode) -> list[str]:
        lines: list[str] = []
        for entry in section.values():
            if isinstance(entry, Comment):
                lines.append(entry.text)
            elif mode is OutputMode.unexpanded:
                lines.append(f"{entry.key}={entry.raw}")
            elif mode is OutputMode.expanded:
                lines.append(f"{entry.key}={entry.typed.render()}")
            else:
                lines.append(f"{entry.key}={entry.typed.render()}")
                lines.append(f"{entry.key}{UNEXPANDED_SUFFIX}={entry.raw}")
        return lines

    def dump(
        self,
        document: Document,
        path: str | Path,
        mode: OutputMode | str = OutputMode.unexpanded,
        *,
        encoding: str = "utf-8",
        append: bool = False,
        force: bool = False,
    ) -> Path:
        """Write *document* to *path* and return the path written.

        An existing file is only replaced when *force* is set, unless
        *append* is set. Missing parent directories are created.
        Raises ``FileAccessError`` on any I/O problem.
        """
        encoding = check_encoding(encoding)
        target = Path(path)
        text = self.dumps(document, mode)

        if append:
            file_mode = "a"
        elif force:
            file_mode = "w"
        else:
            file_mode = "x"

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, file_mode, encoding=encoding, newline="") as f:
                f.write(text)
        except FileExistsError as exc:
            safe_log(self.logger, LogLevel.error, f"Refusing to overwrite {target}")
            raise FileAccessError(str(target), "file exists (use force to overwrite)") from exc
        except (OSError, UnicodeEncodeError) as exc:
            safe_log(self.logger, LogLevel.error, f"Cannot write {target}: {exc}")
            raise FileAccessError(str(target), str(exc)) from exc

        safe_log(
            self.logger,
            LogLevel.info,
            f"Wrote {len(document)} sections to {target} ({OutputMode(mode).value}, {encoding})",
        )
        return target
