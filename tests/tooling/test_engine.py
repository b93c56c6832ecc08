"""Tests for _engine.py: IniEngine facade end to end."""

import pytest
from loguru import logger as loguru_logger

from typed_ini import (
    EngineSettings,
    FakeEnvironment,
    IniEngine,
    NullLogger,
    OutputMode,
    SecurityViolation,
    UndefinedReferenceError,
    ValueKind,
)


def _engine(bindings=None, operations=None, env=None, **settings) -> IniEngine:
    settings.setdefault("locale", "C")
    return IniEngine(
        EngineSettings(**settings),
        bindings=bindings,
        operations=operations,
        environment=FakeEnvironment(env),
        logger=NullLogger(),
    )


class TestEngine:
    def test_loads_and_resolves(self):
        bindings = {"workers": 4}
        engine = _engine(bindings)
        doc = engine.loads("[pool]\nworkers=$workers\nqueue=$(workers * 2)kb\n")
        assert doc["pool"]["workers"].value == 4
        assert doc["pool"]["queue"].value == 8 * 1024

        bindings["workers"] = 16
        refreshed = engine.resolve(doc)
        assert refreshed["pool"]["workers"].value == 16
        assert refreshed["pool"]["queue"].raw == "$(workers * 2)kb"

    def test_string_binding_multiplied_is_repetition(self):
        doc = _engine({"w": "4"}).loads("q=$(w * 2)")
        assert doc["No-Section"]["q"].value == 44

    def test_expand_environment_from_settings(self):
        engine = _engine(env={"ROOT": "/srv"}, expand_environment=True)
        assert engine.loads("p=%ROOT%")["No-Section"]["p"].value == "/srv"
        assert engine.loads("p=%ROOT%", expand_environment=False)["No-Section"]["p"].value == "%ROOT%"

    def test_strict_setting(self):
        with pytest.raises(SecurityViolation):
            _engine(strict=True).loads("a=$missing")

    def test_strict_evaluator_raises_directly(self):
        engine = _engine(strict=True)
        with pytest.raises(UndefinedReferenceError):
            engine.evaluator.substitute("$missing")

    def test_operations_blocked(self):
        ran = []
        engine = _engine(operations={"wipe": lambda: ran.append(1)})
        with pytest.raises(SecurityViolation):
            engine.loads("x=$(wipe())")
        assert ran == []

    def test_load_dump_round_trip(self, tmp_path):
        source = tmp_path / "in.ini"
        source.write_text("; c\n[a]\nk=0x10\nb=$true\n", encoding="utf-8")
        engine = _engine()
        doc = engine.load(source)
        assert doc["a"]["k"].kind is ValueKind.int32

        target = engine.dump(doc, tmp_path / "out.ini", mode=OutputMode.unexpanded)
        assert engine.load(target) == doc

    def test_dump_uses_settings_encoding(self, tmp_path):
        engine = _engine(encoding="utf-16")
        doc = engine.loads("[a]\nk=v\n")
        target = engine.dump(doc, tmp_path / "out.ini")
        assert target.read_bytes().decode("utf-16").startswith("[a]")

    def test_validate(self):
        engine = _engine()
        doc = engine.loads("[db]\nhost=x\n")
        gaps = engine.validate(doc, {"db": ["host", "port"], "cache": []})
        assert [(g.section, g.key) for g in gaps] == [("db", "port"), ("cache", None)]

    def test_dumps_expanded(self):
        engine = _engine({"n": "7"})
        assert engine.dumps(engine.loads("[s]\nv=$n\n"), "expanded") == "[s]\nv=7\n\n"

    def test_settings_loaded_from_environment(self):
        engine = IniEngine(
            environment=FakeEnvironment({"TYPED_INI_EXPAND_ENVIRONMENT": "1", "X": "y"}),
            logger=NullLogger(),
        )
        assert engine.settings.expand_environment is True
        assert engine.loads("v=%X%")["No-Section"]["v"].value == "y"


class TestEngineLogging:
    def test_log_level_applies_without_log_file(self):
        messages = []
        sink_id = loguru_logger.add(messages.append, level="DEBUG", format="{level} {message}")
        try:
            engine = IniEngine(
                EngineSettings(log_level="ERROR", locale="C"), environment=FakeEnvironment()
            )
            engine.loads("[a]\nx=1\n")
        finally:
            loguru_logger.remove(sink_id)
        assert messages == []
