"""Reference substitution over an explicit binding table.

Supported forms inside a value:

- ``$name`` and ``${name}``: look up *name* in the bindings
  (``$true``, ``$false`` and ``$null`` are built in)
- ``$env:NAME`` / ``${env:NAME}``: read an environment variable
- ``$( expr )``: evaluate a small expression (arithmetic, comparisons,
  string concatenation, calls to registered operations)
- ``\\$``, ``\\;``, ``\\#``, ``\\=``, ``\\\\``: the literal character

Expressions are parsed with :mod:`ast` and walked against a whitelist, so
attribute access, subscripts, comprehensions, lambdas and imports are all
rejected. A binding whose value is callable is deferred: it is invoked
each time it is referenced.
"""

from __future__ import annotations

import ast
import operator
import re
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from ._environment import EnvironmentRepository, OsEnvironment
from ._types import EvaluationError, IniError, OperationRefusedError, UndefinedReferenceError

ESCAPABLE = frozenset("$;#=\\")
MAX_STRING_LENGTH = 65536

_NAME = re.compile(r"(?:env:)?[A-Za-z_][A-Za-z0-9_]*")
_BUILTINS: dict[str, Any] = {"true": True, "false": False, "null": None}

_BINARY_OPERATORS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_COMPARISONS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


@runtime_checkable
class Evaluator(Protocol):
    """Host substitution capability used by the parser and resolver."""

    def substitute(self, text: str) -> str:
        ...

    def restricted(self) -> "Evaluator":
        ...


def stringify(value: Any) -> str:
    """Render a substituted value back into value text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


class BindingEvaluator:
    """Substitutes references using caller-supplied bindings and operations.

    ``bindings`` is read live, so changes made by the caller between two
    resolutions are picked up. ``operations`` are named callables that may
    have side effects; only an unrestricted evaluator will invoke them.
    """

    def __init__(
        self,
        bindings: Mapping[str, Any] | None = None,
        operations: Mapping[str, Callable[..., Any]] | None = None,
        environment: EnvironmentRepository | None = None,
        *,
        strict: bool = False,
        _restricted: bool = False,
    ) -> None:
        self._bindings: Mapping[str, Any] = bindings if bindings is not None else {}
        self._operations: Mapping[str, Callable[..., Any]] = (
            operations if operations is not None else {}
        )
        self._environment = environment or OsEnvironment()
        self.strict = strict
        self.is_restricted = _restricted

    def restricted(self) -> "BindingEvaluator":
        """Return a snapshot of this evaluator that refuses every invocation."""
        return BindingEvaluator(
            dict(self._bindings),
            dict(self._operations),
            self._environment,
            strict=self.strict,
            _restricted=True,
        )

    # -- scanning -----------------------------------------------------------

    def substitute(self, text: str) -> str:
        out: list[str] = []
        i = 0
        n = len(text)
        while i < n:
            char = text[i]
            if char == "\\" and i + 1 < n and text[i + 1] in ESCAPABLE:
                out.append(text[i + 1])
                i += 2
            elif char == "$" and i + 1 < n and text[i + 1] == "(":
                end = _find_closing_paren(text, i + 2)
                out.append(stringify(self.evaluate(text[i + 2 : end])))
                i = end + 1
            elif char == "$" and i + 1 < n and text[i + 1] == "{":
                end = text.find("}", i + 2)
                name = text[i + 2 : end] if end != -1 else ""
                if end == -1 or not _NAME.fullmatch(name):
                    raise EvaluationError(f"Malformed reference at offset {i}: {text[i:]!r}")
                out.append(stringify(self._lookup(name)))
                i = end + 1
            elif char == "$":
                match = _NAME.match(text, i + 1)
                if match is None:
                    out.append(char)
                    i += 1
                else:
                    out.append(stringify(self._lookup(match.group(0))))
                    i = match.end()
            else:
                out.append(char)
                i += 1
        return "".join(out)

    # -- lookup -------------------------------------------------------------

    def _lookup(self, name: str) -> Any:
        if name.startswith("env:"):
            value = self._environment.get_env(name[4:])
            if value is None and self.strict:
                raise UndefinedReferenceError(name)
            return value
        if name in self._bindings:
            value = self._bindings[name]
            if callable(value):
                return self._invoke(name, value, ())
            return value
        if name.lower() in _BUILTINS:
            return _BUILTINS[name.lower()]
        if self.strict:
            raise UndefinedReferenceError(name)
        return None

    def _invoke(self, name: str, func: Callable[..., Any], args: tuple[Any, ...]) -> Any:
        if self.is_restricted:
            raise OperationRefusedError(name)
        try:
            return func(*args)
        except IniError:
            raise
        except Exception as exc:
            raise EvaluationError(f"Operation '{name}' failed: {exc}") from exc

    # -- expressions --------------------------------------------------------

    def evaluate(self, expression: str) -> Any:
        """Evaluate the body of a ``$( ... )`` sub-expression."""
        if not expression.strip():
            return None
        try:
            tree = ast.parse(expression.strip(), mode="eval")
        except SyntaxError as exc:
            raise EvaluationError(f"Invalid sub-expression {expression!r}: {exc.msg}") from exc
        try:
            return self._eval(tree.body)
        except RecursionError as exc:
            raise EvaluationError(f"Sub-expression too deeply nested: {expression!r}") from exc

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            if node.value is None or isinstance(node.value, (str, int, float, bool)):
                return node.value
            raise EvaluationError(f"Unsupported constant {node.value!r}")

        if isinstance(node, ast.Name):
            return self._eval_name(node.id)

        if isinstance(node, ast.BinOp):
            func = _BINARY_OPERATORS.get(type(node.op))
            if func is None:
                raise EvaluationError(f"Unsupported operator {type(node.op).__name__}")
            left = self._eval(node.left)
            right = self._eval(node.right)
            return _apply_binary(func, left, right)

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, (ast.USub, ast.UAdd)):
                if isinstance(operand, bool) or not isinstance(operand, (int, float)):
                    raise EvaluationError(f"Cannot negate {operand!r}")
                return -operand if isinstance(node.op, ast.USub) else operand
            raise EvaluationError(f"Unsupported operator {type(node.op).__name__}")

        if isinstance(node, ast.BoolOp):
            result = self._eval(node.values[0])
            for value in node.values[1:]:
                if isinstance(node.op, ast.And) and not result:
                    return result
                if isinstance(node.op, ast.Or) and result:
                    return result
                result = self._eval(value)
            return result

        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                func = _COMPARISONS.get(type(op))
                if func is None:
                    raise EvaluationError(f"Unsupported comparison {type(op).__name__}")
                right = self._eval(comparator)
                try:
                    if not func(left, right):
                        return False
                except TypeError as exc:
                    raise EvaluationError(str(exc)) from exc
                left = right
            return True

        if isinstance(node, ast.IfExp):
            return self._eval(node.body) if self._eval(node.test) else self._eval(node.orelse)

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.keywords:
                raise EvaluationError("Only plain calls to named operations are supported")
            name = node.func.id
            args = tuple(self._eval(arg) for arg in node.args)
            if name in self._operations:
                return self._invoke(name, self._operations[name], args)
            if name in self._bindings and callable(self._bindings[name]):
                return self._invoke(name, self._bindings[name], args)
            raise EvaluationError(f"Unknown operation '{name}'")

        raise EvaluationError(f"Unsupported expression element: {type(node).__name__}")

    def _eval_name(self, name: str) -> Any:
        if name in self._bindings:
            return self._lookup(name)
        if name in self._operations:
            return self._invoke(name, self._operations[name], ())
        return self._lookup(name)


def _apply_binary(func: Callable[[Any, Any], Any], left: Any, right: Any) -> Any:
    if func is operator.mod and isinstance(left, str):
        raise EvaluationError("String formatting is not supported")
    if func is operator.mul and (isinstance(left, str) or isinstance(right, str)):
        count = right if isinstance(left, str) else left
        text = left if isinstance(left, str) else right
        if isinstance(count, int) and len(text) * max(count, 0) > MAX_STRING_LENGTH:
            raise EvaluationError("String repetition result is too large")
    try:
        return func(left, right)
    except (TypeError, ZeroDivisionError, OverflowError) as exc:
        raise EvaluationError(str(exc)) from exc


def _find_closing_paren(text: str, start: int) -> int:
    """Return the index of the ``)`` closing a ``$(`` opened before *start*."""
    depth = 1
    quote: str | None = None
    i = start
    while i < len(text):
        char = text[i]
        if quote is not None:
            if char == "\\":
                i += 1
            elif char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise EvaluationError(f"Unterminated sub-expression: {text[start - 2:]!r}")
