"""Tests for _logging.py: loguru sink, levels, failure isolation."""

import pytest
from loguru import logger as loguru_logger

from typed_ini._logging import Logger, LoguruLogger, LogLevel, NullLogger, safe_log


@pytest.fixture(autouse=True)
def _close_sinks():
    yield
    LoguruLogger.close_file_sinks()


class TestLoguruLogger:
    def test_writes_to_destination(self, tmp_path):
        target = tmp_path / "pipeline.log"
        LoguruLogger(level=LogLevel.debug).log(LogLevel.warn, "value fell back", target)
        content = target.read_text(encoding="utf-8")
        assert "value fell back" in content
        assert "WARNING" in content
        assert "typed_ini" in content

    def test_default_log_file(self, tmp_path):
        target = tmp_path / "default.log"
        logger = LoguruLogger(log_file=target, level="DEBUG")
        logger.log(LogLevel.verbose, "verbose detail")
        assert "VERBOSE" in target.read_text(encoding="utf-8")

    def test_level_threshold(self, tmp_path):
        target = tmp_path / "errors.log"
        logger = LoguruLogger(log_file=target, level=LogLevel.error)
        logger.log(LogLevel.info, "chatter")
        logger.log(LogLevel.error, "broken")
        content = target.read_text(encoding="utf-8")
        assert "broken" in content
        assert "chatter" not in content

    def test_destinations_are_separate(self, tmp_path):
        first, second = tmp_path / "a.log", tmp_path / "b.log"
        logger = LoguruLogger(level=LogLevel.debug)
        logger.log(LogLevel.info, "to-a", first)
        logger.log(LogLevel.info, "to-b", second)
        assert "to-b" not in first.read_text(encoding="utf-8")
        assert "to-a" not in second.read_text(encoding="utf-8")

    def test_braces_in_message(self, tmp_path):
        target = tmp_path / "braces.log"
        LoguruLogger(level=LogLevel.debug).log(LogLevel.info, "value {not a field}", target)
        assert "{not a field}" in target.read_text(encoding="utf-8")

    def test_verbose_level_registered(self):
        LoguruLogger()
        assert loguru_logger.level("VERBOSE").no == 15

    def test_protocol(self):
        assert isinstance(LoguruLogger(), Logger)
        assert isinstance(NullLogger(), Logger)


class TestSafeLog:
    def test_none_logger(self):
        safe_log(None, LogLevel.info, "ignored")

    def test_failure_reported_not_raised(self, capsys):
        class _Broken:
            def log(self, level, message, destination=None):
                raise OSError("disk full")

        safe_log(_Broken(), LogLevel.error, "x")
        assert "Logging error: disk full" in capsys.readouterr().err

    def test_null_logger(self):
        assert NullLogger().log(LogLevel.debug, "x") is None


@pytest.fixture
def captured():
    messages = []
    sink_id = loguru_logger.add(messages.append, level="DEBUG", format="{level} {message}")
    yield messages
    loguru_logger.remove(sink_id)


class TestThreshold:
    def test_below_level_dropped_without_log_file(self, captured):
        logger = LoguruLogger(level=LogLevel.error)
        logger.log(LogLevel.debug, "detail")
        logger.log(LogLevel.verbose, "section")
        logger.log(LogLevel.info, "summary")
        logger.log(LogLevel.error, "broken")
        assert [m.strip() for m in captured] == ["ERROR broken"]

    def test_verbose_level_passes_info(self, captured):
        logger = LoguruLogger(level=LogLevel.verbose)
        logger.log(LogLevel.debug, "detail")
        logger.log(LogLevel.info, "summary")
        assert [m.strip() for m in captured] == ["INFO summary"]
