"""Tests for _environment.py: repositories and %NAME% expansion."""

import pytest

from typed_ini._environment import (
    EnvironmentRepository,
    FakeEnvironment,
    OsEnvironment,
    expand_placeholders,
)


class TestRepositories:
    def test_fake_lookup(self):
        env = FakeEnvironment({"A": "1"})
        assert env.get_env("A") == "1"
        assert env.get_env("B") is None

    def test_fake_mutation(self):
        env = FakeEnvironment()
        env.set_env("A", "1")
        assert env.get_env("A") == "1"
        env.unset_env("A")
        assert env.get_env("A") is None

    def test_os_environment(self, monkeypatch):
        monkeypatch.setenv("TYPED_INI_TEST_VALUE", "from-os")
        assert OsEnvironment().get_env("TYPED_INI_TEST_VALUE") == "from-os"

    @pytest.mark.parametrize("repo", [FakeEnvironment(), OsEnvironment()])
    def test_protocol(self, repo):
        assert isinstance(repo, EnvironmentRepository)


class TestExpandPlaceholders:
    def test_known_name(self):
        env = FakeEnvironment({"ROOT": "/srv"})
        assert expand_placeholders("%ROOT%/data", env) == "/srv/data"

    def test_unknown_name_kept(self):
        assert expand_placeholders("%NOPE%/x", FakeEnvironment()) == "%NOPE%/x"

    def test_multiple(self):
        env = FakeEnvironment({"A": "1", "B": "2"})
        assert expand_placeholders("%A%-%B%", env) == "1-2"

    def test_lone_percent(self):
        assert expand_placeholders("100% sure", FakeEnvironment()) == "100% sure"
