"""Engine settings using a Pydantic ``BaseModel``.

Values come from ``TYPED_INI_<FIELD>`` environment variables (read through
an ``EnvironmentRepository``) and fall back to the field defaults::

    settings = EngineSettings.load()
    settings.sandbox_timeout    # TYPED_INI_SANDBOX_TIMEOUT, or 10.0
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._environment import EnvironmentRepository, OsEnvironment
from ._logging import LogLevel
from ._sandbox import DEFAULT_TIMEOUT
from ._serializer import check_encoding
from ._typing import NumberFormat


class EngineSettings(BaseModel):
    """Settings shared by the parser, resolver and serializer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    class Meta:
        env_prefix: str = "TYPED_INI"

    expand_environment: bool = False
    locale: str | None = None
    encoding: str = "utf-8"
    log_level: LogLevel = LogLevel.info
    log_file: str | None = None
    sandbox_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    strict: bool = False

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, value: str) -> str:
        return check_encoding(value)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @classmethod
    def load(cls, environment: EnvironmentRepository | None = None) -> "EngineSettings":
        """Read ``{ENV_PREFIX}_{FIELD}`` variables and return a validated instance.

        Unset variables are omitted so Pydantic uses the field default.
        """
        active_env = environment or OsEnvironment()
        env_prefix = getattr(cls.Meta, "env_prefix", "")

        raw_data: dict[str, Any] = {}
        for field_name in cls.model_fields:
            env_key = f"{env_prefix}_{field_name}".upper() if env_prefix else field_name.upper()
            env_val = active_env.get_env(env_key)
            if env_val is not None:
                raw_data[field_name] = env_val

        return cls.model_validate(raw_data)

    def number_format(self) -> NumberFormat:
        if self.locale is None:
            return NumberFormat.current()
        if self.locale.lower() in ("invariant", "c", "posix"):
            return NumberFormat.invariant()
        return NumberFormat.for_locale(self.locale)
