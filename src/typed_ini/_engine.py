"""``IniEngine`` wires settings, bindings and logging into the pipeline.

Usage::

    engine = IniEngine(bindings={"root": "/srv/app"})
    doc = engine.loads("[paths]\\ndata=$root/data\\nsize=4kb\\n")
    doc["paths"]["size"].value      # 4096
    engine.dump(doc, "out.ini", mode="expanded", force=True)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from ._document import Document
from ._environment import EnvironmentRepository, OsEnvironment
from ._evaluator import BindingEvaluator
from ._logging import Logger, LoguruLogger
from ._parser import Parser
from ._resolver import Resolver
from ._serializer import OutputMode, Serializer
from ._settings import EngineSettings
from ._types import Diagnostic
from ._validator import validate_required


class IniEngine:
    """Parse, resolve, validate and export typed INI documents.

    ``bindings`` is read live: changes made to it between ``loads`` and
    ``resolve`` are picked up. ``operations`` are the only callables that
    may act on the outside world; the sandbox refuses documents that would
    invoke them.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        bindings: Mapping[str, Any] | None = None,
        operations: Mapping[str, Callable[..., Any]] | None = None,
        environment: EnvironmentRepository | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.environment = environment or OsEnvironment()
        self.settings = settings or EngineSettings.load(self.environment)
        self.logger = logger or LoguruLogger(
            log_file=self.settings.log_file, level=self.settings.log_level
        )
        self.evaluator = BindingEvaluator(
            bindings, operations, self.environment, strict=self.settings.strict
        )
        number_format = self.settings.number_format()
        self.parser = Parser(
            self.evaluator,
            environment=self.environment,
            logger=self.logger,
            number_format=number_format,
            sandbox_timeout=self.settings.sandbox_timeout,
        )
        self.resolver = Resolver(
            self.evaluator,
            environment=self.environment,
            logger=self.logger,
            number_format=number_format,
            sandbox_timeout=self.settings.sandbox_timeout,
        )
        self.serializer = Serializer(logger=self.logger)

    def _expand(self, expand_environment: bool | None) -> bool:
        if expand_environment is None:
            return self.settings.expand_environment
        return expand_environment

    def loads(self, text: str, *, expand_environment: bool | None = None) -> Document:
        return self.parser.parse(text, self._expand(expand_environment))

    def load(
        self,
        path: str | Path,
        *,
        encoding: str | None = None,
        expand_environment: bool | None = None,
    ) -> Document:
        return self.parser.parse_file(
            path, encoding or self.settings.encoding, self._expand(expand_environment)
        )

    def resolve(self, document: Document, *, expand_environment: bool | None = None) -> Document:
        return self.resolver.resolve(document, self._expand(expand_environment))

    def dumps(self, document: Document, mode: OutputMode | str = OutputMode.unexpanded) -> str:
        return self.serializer.dumps(document, mode)

    def dump(
        self,
        document: Document,
        path: str | Path,
        mode: OutputMode | str = OutputMode.unexpanded,
        *,
        encoding: str | None = None,
        append: bool = False,
        force: bool = False,
    ) -> Path:
        return self.serializer.dump(
            document,
            path,
            mode,
            encoding=encoding or self.settings.encoding,
            append=append,
            force=force,
        )

    def validate(
        self, document: Document, required: Mapping[str, Iterable[str]]
    ) -> list[Diagnostic]:
        return validate_required(document, required, self.logger)
