"""Value typing engine.

Turns substituted value text into the most specific primitive type:
boolean, one of the fixed-width integers, an arbitrary-precision integer,
a fixed-point decimal, a double, or (when nothing else fits) the text
itself.

Numeric literal grammar (case-insensitive)::

    [sign] 0x<hex> [int-width] [multiplier]
    [sign] [digits][.digits][e[sign]digits] [width] [multiplier]

Width suffixes: ``y`` int8, ``uy`` uint8, ``s`` int16, ``us`` uint16,
``u`` uint32, ``l`` int64, ``ul`` uint64, ``n`` bigint, ``d`` decimal.
``d`` is a hex digit, so hex literals only take the integer widths.
Multipliers ``kb`` .. ``pb`` scale by ``1024 ** 1`` .. ``1024 ** 5``.

Evaluation order is sign, magnitude, multiplier, then the sign is applied
to the scaled magnitude and the result is range-checked against the width.
The multiplier is deliberately applied before the range check rather than
after a width cast, so a width bounds the final scaled value: ``63uskb``
is 64512 and fits uint16, ``64uskb`` does not.
"""

from __future__ import annotations

import locale
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Context, Decimal, MAX_EMAX, MIN_EMIN
from enum import Enum
from typing import Any

from ._environment import EnvironmentRepository, expand_placeholders
from ._evaluator import Evaluator, stringify
from ._types import NumericLiteralInvalid


class ValueKind(str, Enum):
    """Primitive type inferred for a value."""

    string = "string"
    boolean = "boolean"
    int8 = "int8"
    uint8 = "uint8"
    int16 = "int16"
    uint16 = "uint16"
    int32 = "int32"
    uint32 = "uint32"
    int64 = "int64"
    uint64 = "uint64"
    bigint = "bigint"
    decimal = "decimal"
    double = "double"


@dataclass(frozen=True)
class TypedValue:
    """A resolved value together with its inferred kind."""

    kind: ValueKind
    value: Any

    def render(self) -> str:
        """Text form used when writing expanded values."""
        return stringify(self.value)


# ---------------------------------------------------------------------------
# Locale handling
# ---------------------------------------------------------------------------

_locale_lock = threading.Lock()


@dataclass(frozen=True)
class NumberFormat:
    """Decimal and digit-group separators used to read numeric literals."""

    decimal_separator: str = "."
    group_separator: str = ""

    @classmethod
    def invariant(cls) -> "NumberFormat":
        return cls(".", "")

    @classmethod
    def current(cls) -> "NumberFormat":
        """Separators of the caller's current ``LC_NUMERIC`` locale."""
        conv = locale.localeconv()
        return cls(str(conv["decimal_point"]) or ".", str(conv["thousands_sep"]))

    @classmethod
    def for_locale(cls, name: str) -> "NumberFormat":
        """Separators of the named locale (e.g. ``"de_DE.UTF-8"``).

        Raises ``ValueError`` if the locale is not installed.
        """
        with _locale_lock:
            previous = locale.setlocale(locale.LC_NUMERIC)
            try:
                locale.setlocale(locale.LC_NUMERIC, name)
                conv = locale.localeconv()
            except locale.Error as exc:
                raise ValueError(f"Unknown locale {name!r}") from exc
            finally:
                locale.setlocale(locale.LC_NUMERIC, previous)
        return cls(str(conv["decimal_point"]) or ".", str(conv["thousands_sep"]))

    def normalize(self, text: str) -> str | None:
        """Rewrite *text* with ``.`` as the decimal point and no grouping.

        Returns ``None`` when the text uses a separator this format does
        not allow, which means it is not a number in this locale.
        """
        if _HEX_PREFIX.match(text):
            return text
        if self.group_separator:
            group = re.escape(self.group_separator)
            grouped = re.match(rf"([+-]?)(\d{{1,3}}(?:{group}\d{{3}})+)(?!\d)", text)
            if grouped is not None:
                digits = grouped.group(2).replace(self.group_separator, "")
                text = grouped.group(1) + digits + text[grouped.end() :]
        if self.decimal_separator != ".":
            if "." in text:
                return None
            text = text.replace(self.decimal_separator, ".")
        return text


# ---------------------------------------------------------------------------
# Numeric literals
# ---------------------------------------------------------------------------

_HEX_PREFIX = re.compile(r"[+-]?0x", re.IGNORECASE)

_NUMERIC = re.compile(
    r"""
    (?P<sign>[+-])?
    (?:
        0x(?P<hex>[0-9a-f]+)(?P<hex_width>uy|us|ul|u|y|s|l|n)?
      | (?P<int>[0-9]*)(?:\.(?P<frac>[0-9]*))?
        (?:e(?P<exp_sign>[+-])?(?P<exp>[0-9]+))?
        (?P<width>uy|us|ul|u|y|s|l|n|d)?
    )
    (?P<mult>kb|mb|gb|tb|pb)?
    """,
    re.VERBOSE | re.IGNORECASE,
)

_BOOLEAN = re.compile(r"[^A-Za-z0-9]?(true|false)", re.IGNORECASE)

_WIDTHS: dict[str, ValueKind] = {
    "y": ValueKind.int8,
    "uy": ValueKind.uint8,
    "s": ValueKind.int16,
    "us": ValueKind.uint16,
    "u": ValueKind.uint32,
    "l": ValueKind.int64,
    "ul": ValueKind.uint64,
    "n": ValueKind.bigint,
    "d": ValueKind.decimal,
}

_MULTIPLIERS: dict[str, int] = {
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    "tb": 1024**4,
    "pb": 1024**5,
}

INTEGER_RANGES: dict[ValueKind, tuple[int, int]] = {
    ValueKind.int8: (-(2**7), 2**7 - 1),
    ValueKind.uint8: (0, 2**8 - 1),
    ValueKind.int16: (-(2**15), 2**15 - 1),
    ValueKind.uint16: (0, 2**16 - 1),
    ValueKind.int32: (-(2**31), 2**31 - 1),
    ValueKind.uint32: (0, 2**32 - 1),
    ValueKind.int64: (-(2**63), 2**63 - 1),
    ValueKind.uint64: (0, 2**64 - 1),
}

DECIMAL_MAX = Decimal(2**96 - 1)
DECIMAL_MAX_SCALE = 28
DECIMAL_PRECISION = 29
# Largest decimal exponent accepted for arbitrary-precision integers.
BIGINT_MAX_DIGITS = 4300
MAX_EXPONENT = 100_000

_DEFAULT_CANDIDATES = (ValueKind.int32, ValueKind.int64, ValueKind.decimal, ValueKind.double)


def parse_numeric(text: str, number_format: NumberFormat | None = None) -> TypedValue | None:
    """Parse *text* as a numeric literal.

    Returns ``None`` if the text does not match the literal grammar and
    raises ``NumericLiteralInvalid`` if it matches but no representation
    can hold it.
    """
    fmt = number_format or NumberFormat.current()
    stripped = text.strip()
    normalized = fmt.normalize(stripped)
    if normalized is None:
        return None
    match = _NUMERIC.fullmatch(normalized)
    if match is None:
        return None

    hex_digits = match.group("hex")
    if hex_digits is None and not (match.group("int") or match.group("frac")):
        return None

    value = _exact_value(match)
    width = (match.group("hex_width") or match.group("width") or "").lower()
    integral_literal = hex_digits is not None or (
        match.group("frac") is None and match.group("exp") is None
    )

    if width:
        kind = _WIDTHS[width]
        result = _cast(value, kind)
        if result is None:
            raise NumericLiteralInvalid(stripped, f"value does not fit {kind.value}")
        return TypedValue(kind, result)

    for kind in _DEFAULT_CANDIDATES:
        if kind in INTEGER_RANGES and not integral_literal:
            continue
        result = _cast(value, kind)
        if result is not None:
            return TypedValue(kind, result)
    raise NumericLiteralInvalid(stripped, "value does not fit any numeric type")


def _exact_value(match: re.Match[str]) -> Decimal:
    """Compute the literal's exact signed, scaled value."""
    if match.group("hex") is not None:
        magnitude = Decimal(int(match.group("hex"), 16))
        digits = len(str(magnitude))
    else:
        int_part = match.group("int") or "0"
        frac_part = match.group("frac") or "0"
        exponent = int((match.group("exp_sign") or "") + (match.group("exp") or "0"))
        if abs(exponent) > MAX_EXPONENT:
            if not (int_part + frac_part).strip("0"):
                return Decimal(0)
            raise NumericLiteralInvalid(match.group(0), "exponent out of range")
        magnitude = Decimal(f"{int_part}.{frac_part}e{exponent}")
        digits = len(int_part) + len(frac_part)

    ctx = Context(prec=digits + 32, Emax=MAX_EMAX, Emin=MIN_EMIN)
    multiplier = match.group("mult")
    if multiplier:
        magnitude = ctx.multiply(magnitude, Decimal(_MULTIPLIERS[multiplier.lower()]))
    if match.group("sign") == "-":
        return ctx.minus(magnitude)
    return magnitude


def _cast(value: Decimal, kind: ValueKind) -> Any:
    """Convert *value* to *kind*, or return ``None`` when it does not fit."""
    if kind in INTEGER_RANGES or kind is ValueKind.bigint:
        if not value.is_zero() and value.adjusted() > BIGINT_MAX_DIGITS:
            return None
        if value != value.to_integral_value():
            return None
        number = int(value)
        if kind is ValueKind.bigint:
            return number
        low, high = INTEGER_RANGES[kind]
        return number if low <= number <= high else None
    if kind is ValueKind.decimal:
        return _to_fixed_decimal(value)
    if kind is ValueKind.double:
        result = float(value)
        if result in (float("inf"), float("-inf")):
            return None
        if result == 0.0 and not value.is_zero():
            return None
        return result
    raise ValueError(f"Not a numeric kind: {kind}")


def _to_fixed_decimal(value: Decimal) -> Decimal | None:
    if value.copy_abs() > DECIMAL_MAX:
        return None
    ctx = Context(prec=DECIMAL_PRECISION, rounding=ROUND_HALF_EVEN, Emax=MAX_EMAX, Emin=MIN_EMIN)
    result = ctx.plus(value)
    exponent = result.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -DECIMAL_MAX_SCALE:
        result = result.quantize(Decimal(1).scaleb(-DECIMAL_MAX_SCALE), context=ctx)
    if result.copy_abs() > DECIMAL_MAX:
        return None
    if result.is_zero() and not value.is_zero():
        return None
    return result


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def infer_type(
    text: str,
    number_format: NumberFormat | None = None,
    on_invalid: Callable[[NumericLiteralInvalid], None] | None = None,
) -> TypedValue:
    """Classify substituted text, first match wins: boolean, number, string.

    A literal that looks numeric but fits nowhere falls back to the text
    itself; *on_invalid* is told about it.
    """
    boolean = _BOOLEAN.fullmatch(text)
    if boolean is not None:
        return TypedValue(ValueKind.boolean, boolean.group(1).lower() == "true")

    try:
        number = parse_numeric(text, number_format)
    except NumericLiteralInvalid as exc:
        if on_invalid is not None:
            on_invalid(exc)
        return TypedValue(ValueKind.string, text)
    if number is not None:
        return number
    return TypedValue(ValueKind.string, text)


def resolve_value(
    raw: str,
    evaluator: Evaluator,
    *,
    expand_environment: bool = False,
    environment: EnvironmentRepository | None = None,
    number_format: NumberFormat | None = None,
    on_invalid: Callable[[NumericLiteralInvalid], None] | None = None,
) -> TypedValue:
    """Substitute, optionally expand ``%NAME%``, then infer the type.

    Only call this for text the sandbox has already approved.
    """
    text = evaluator.substitute(raw)
    if expand_environment:
        if environment is None:
            raise ValueError("expand_environment requires an environment repository")
        text = expand_placeholders(text, environment)
    return infer_type(text, number_format, on_invalid)
