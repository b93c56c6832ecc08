"""Tests for _evaluator.py: references, escapes, sub-expressions, restriction."""

import pytest

from typed_ini._environment import FakeEnvironment
from typed_ini._evaluator import BindingEvaluator, stringify
from typed_ini._types import EvaluationError, OperationRefusedError, UndefinedReferenceError


def _evaluator(bindings=None, operations=None, env=None, **kwargs) -> BindingEvaluator:
    return BindingEvaluator(bindings, operations, FakeEnvironment(env), **kwargs)


class TestReferences:
    def test_plain_text_unchanged(self):
        assert _evaluator().substitute("hello world") == "hello world"

    def test_dollar_name(self):
        assert _evaluator({"name": "bar"}).substitute("x=$name") == "x=bar"

    def test_braced_name(self):
        assert _evaluator({"name": "bar"}).substitute("${name}baz") == "barbaz"

    def test_name_stops_at_non_word(self):
        assert _evaluator({"dir": "/srv"}).substitute("$dir/data") == "/srv/data"

    def test_unknown_is_empty(self):
        assert _evaluator().substitute("[$missing]") == "[]"

    def test_strict_unknown_raises(self):
        with pytest.raises(UndefinedReferenceError, match="missing"):
            _evaluator(strict=True).substitute("$missing")

    @pytest.mark.parametrize("text, expected", [("$true", "true"), ("$FALSE", "false"), ("$null", "")])
    def test_builtins(self, text, expected):
        assert _evaluator().substitute(text) == expected

    def test_binding_shadows_builtin(self):
        assert _evaluator({"true": "yes"}).substitute("$true") == "yes"

    def test_env_scope(self):
        assert _evaluator(env={"HOME": "/home/me"}).substitute("$env:HOME/x") == "/home/me/x"
        assert _evaluator(env={"HOME": "/home/me"}).substitute("${env:HOME}") == "/home/me"

    def test_lone_dollar_is_literal(self):
        assert _evaluator().substitute("cost: $5 or $") == "cost: $5 or $"

    def test_non_string_bindings_are_stringified(self):
        assert _evaluator({"n": 3, "f": False}).substitute("$n/$f") == "3/false"

    def test_malformed_brace(self):
        with pytest.raises(EvaluationError, match="Malformed reference"):
            _evaluator().substitute("${not closed")

    def test_bindings_read_live(self):
        bindings = {"v": "1"}
        evaluator = _evaluator(bindings)
        assert evaluator.substitute("$v") == "1"
        bindings["v"] = "2"
        assert evaluator.substitute("$v") == "2"


class TestEscapes:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (r"\$name", "$name"),
            (r"a\;b", "a;b"),
            (r"\#tag", "#tag"),
            (r"k\=v", "k=v"),
            (r"back\\slash", "back\\slash"),
            (r"C:\path\to", r"C:\path\to"),
            ("trailing\\", "trailing\\"),
        ],
    )
    def test_escape_rule(self, raw, expected):
        assert _evaluator({"name": "X"}).substitute(raw) == expected


class TestSubExpressions:
    def test_arithmetic(self):
        assert _evaluator().substitute("$(1 + 2 * 3)") == "7"

    def test_bindings_in_expression(self):
        assert _evaluator({"size": 21}).substitute("$(size * 2)") == "42"

    def test_string_concatenation(self):
        assert _evaluator({"name": "b"}).substitute("$('a' + name)") == "ab"

    def test_nested_parentheses(self):
        assert _evaluator().substitute("[$((1 + 2) * (3 + 4))]") == "[21]"

    def test_parenthesis_inside_quotes(self):
        assert _evaluator().substitute("$(')' + '(')") == ")("

    def test_conditional_and_comparison(self):
        evaluator = _evaluator({"debug": True})
        assert evaluator.substitute("$('verbose' if debug else 'quiet')") == "verbose"
        assert evaluator.substitute("$(1 < 2 <= 2)") == "true"

    def test_boolean_operators(self):
        assert _evaluator().substitute("$(0 or 'fallback')") == "fallback"
        assert _evaluator().substitute("$(not 0)") == "true"

    def test_division_by_zero(self):
        with pytest.raises(EvaluationError):
            _evaluator().substitute("$(1 / 0)")

    def test_empty_expression(self):
        assert _evaluator().substitute("a$()b") == "ab"

    @pytest.mark.parametrize(
        "expr",
        [
            "__import__('os')",
            "name.upper()",
            "[1, 2]",
            "lambda: 1",
            "2 ** 10",
            "x[0]",
            "'%s' % 1",
            "{1: 2}",
        ],
    )
    def test_rejected_constructs(self, expr):
        with pytest.raises(EvaluationError):
            _evaluator({"name": "a", "x": "abc"}).substitute(f"$({expr})")

    def test_syntax_error(self):
        with pytest.raises(EvaluationError, match="Invalid sub-expression"):
            _evaluator().substitute("$(1 +)")

    def test_unterminated(self):
        with pytest.raises(EvaluationError, match="Unterminated"):
            _evaluator().substitute("$(1 + 2")

    def test_string_repetition_capped(self):
        with pytest.raises(EvaluationError, match="too large"):
            _evaluator().substitute("$('a' * 100000)")
        assert _evaluator().substitute("$('ab' * 3)") == "ababab"


class TestOperations:
    def test_bare_name_invokes_operation(self):
        assert _evaluator(operations={"stamp": lambda: "S1"}).substitute("$(stamp)") == "S1"

    def test_call_with_arguments(self):
        ops = {"join": lambda a, b: f"{a}-{b}"}
        assert _evaluator(operations=ops).substitute("$(join('x', 1 + 1))") == "x-2"

    def test_unknown_operation(self):
        with pytest.raises(EvaluationError, match="Unknown operation"):
            _evaluator().substitute("$(nothing())")

    def test_operation_failure_wrapped(self):
        def boom():
            raise RuntimeError("disk full")

        with pytest.raises(EvaluationError, match="disk full"):
            _evaluator(operations={"boom": boom}).substitute("$(boom)")

    def test_deferred_binding_called_each_time(self):
        calls = []

        def counter():
            calls.append(1)
            return len(calls)

        evaluator = _evaluator({"tick": counter})
        assert evaluator.substitute("$tick") == "1"
        assert evaluator.substitute("$tick") == "2"


class TestRestricted:
    def test_operation_refused(self):
        called = []
        restricted = _evaluator(operations={"act": lambda: called.append(1)}).restricted()
        with pytest.raises(OperationRefusedError, match="act"):
            restricted.substitute("$(act)")
        assert called == []

    def test_deferred_binding_refused(self):
        restricted = _evaluator({"tick": lambda: 1}).restricted()
        with pytest.raises(OperationRefusedError):
            restricted.substitute("$tick")

    def test_plain_values_still_resolve(self):
        restricted = _evaluator({"a": "1"}, env={"E": "2"}).restricted()
        assert restricted.substitute("$a $env:E $(1 + 1)") == "1 2 2"

    def test_restricted_is_a_snapshot(self):
        bindings = {"a": "1"}
        restricted = _evaluator(bindings).restricted()
        bindings["a"] = "changed"
        assert restricted.substitute("$a") == "1"
        assert restricted.is_restricted


class TestStringify:
    def test_values(self):
        assert stringify(None) == ""
        assert stringify(True) == "true"
        assert stringify(1.5) == "1.5"
        assert stringify(7) == "7"
