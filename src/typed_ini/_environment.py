"""Environment variable sources and ``%NAME%`` placeholder expansion."""

from __future__ import annotations

import os
import re
from typing import Protocol, runtime_checkable


@runtime_checkable
class EnvironmentRepository(Protocol):
    """Abstraction over where environment variables come from."""

    def get_env(self, key: str) -> str | None:
        ...


class OsEnvironment:
    """Reads variables from ``os.environ`` at call time."""

    def get_env(self, key: str) -> str | None:
        return os.environ.get(key)


class FakeEnvironment:
    """Dict-backed environment for tests.

    >>> env = FakeEnvironment({"HOME": "/home/test"})
    >>> env.get_env("HOME")
    '/home/test'
    """

    def __init__(self, env: dict[str, str] | None = None) -> None:
        self._env: dict[str, str] = dict(env or {})

    def get_env(self, key: str) -> str | None:
        return self._env.get(key)

    def set_env(self, key: str, value: str) -> None:
        self._env[key] = value

    def unset_env(self, key: str) -> None:
        self._env.pop(key, None)


# ---------------------------------------------------------------------------
# Placeholder expansion
# ---------------------------------------------------------------------------

_PLACEHOLDER = re.compile(r"%([^%\s]+)%")


def expand_placeholders(text: str, environment: EnvironmentRepository) -> str:
    """Replace ``%NAME%`` with the value of ``NAME``.

    Unknown names are left untouched, including their percent signs.
    """

    def _replace(match: re.Match[str]) -> str:
        value = environment.get_env(match.group(1))
        if value is None:
            return match.group(0)
        return value

    return _PLACEHOLDER.sub(_replace, text)
