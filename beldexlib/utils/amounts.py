"""
Exact arithmetic on decimal strings.

Native amounts travel as strings of atomic units ("1500000000"), so every
comparison and subtraction goes through Decimal with a wide context instead
of float.
"""
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Union

Number = Union[str, int, Decimal]

_PRECISION = 100


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise ValueError("Empty amount")
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def to_string(value: Decimal) -> str:
    text = format(value, 'f')
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in {"-0", ""}:
        text = "0"
    return text


def add(a: Number, b: Number) -> str:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return to_string(to_decimal(a) + to_decimal(b))


def sub(a: Number, b: Number) -> str:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return to_string(to_decimal(a) - to_decimal(b))


def div(a: Number, b: Number, places: int = 0) -> str:
    """Divide and truncate to ``places`` decimal places."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        quotient = to_decimal(a) / to_decimal(b)
        quantum = Decimal(1).scaleb(-places)
        return to_string(quotient.quantize(quantum, rounding=ROUND_DOWN))


def eq(a: Number, b: Number) -> bool:
    return to_decimal(a) == to_decimal(b)


def lt(a: Number, b: Number) -> bool:
    return to_decimal(a) < to_decimal(b)


def gte(a: Number, b: Number) -> bool:
    return to_decimal(a) >= to_decimal(b)


def is_negative(value: Number) -> bool:
    return to_decimal(value) < 0
