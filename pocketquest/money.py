from __future__ import annotations

import math
import re
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum


class Currency(str, Enum):
    USD = "USD"
    KRW = "KRW"


MINOR_UNIT_SCALE: dict[Currency, int] = {
    Currency.USD: 100,
    Currency.KRW: 1,
}

CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.USD: "$",
    Currency.KRW: "₩",
}

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


class CurrencyConversionError(ValueError):
    """Raised for an unusable FX rate or an unsupported currency pair."""


def normalize_currency(value: Currency | str | None, fallback: Currency | None = None) -> Currency:
    if isinstance(value, Currency):
        return value
    normalized = (value or "").strip().upper()
    try:
        return Currency(normalized)
    except ValueError as exc:
        if fallback is not None:
            return fallback
        raise ValueError(f"Unsupported currency: {normalized or value!r}") from exc


def minor_unit_scale(currency: Currency | str) -> int:
    return MINOR_UNIT_SCALE[normalize_currency(currency)]


def currency_symbol(currency: Currency | str) -> str:
    return CURRENCY_SYMBOLS[normalize_currency(currency)]


def parse_input_to_minor(text: str | None, currency: Currency | str) -> int:
    """Parse free-form user input into integer minor units.

    Everything except digits, dots and a leading minus sign is dropped, and
    only the first dot acts as the decimal separator. USD rounds to the
    nearest cent, KRW truncates to whole won. Input that still does not read
    as a number parses to 0 so a half-typed field never raises.
    """
    raw = (text or "").strip()
    if not raw:
        return 0

    cleaned = _NON_NUMERIC.sub("", raw)
    negative = cleaned.startswith("-")
    cleaned = cleaned.replace("-", "")
    if "." in cleaned:
        whole, _, fraction = cleaned.partition(".")
        cleaned = f"{whole}.{fraction.replace('.', '')}"
    if cleaned in {"", "."}:
        return 0

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return 0
    if negative:
        value = value.copy_negate()

    normalized = normalize_currency(currency)
    if normalized is Currency.KRW:
        return int(value.to_integral_value(rounding=ROUND_DOWN))
    # Precision grows with the input so long amounts scale exactly.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(cleaned) + 4)
        scaled = value * MINOR_UNIT_SCALE[normalized]
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def format_money(minor: int, currency: Currency | str) -> str:
    normalized = normalize_currency(currency)
    sign = "-" if minor < 0 else ""
    symbol = CURRENCY_SYMBOLS[normalized]
    if normalized is Currency.USD:
        return f"{sign}{symbol}{_usd_major_text(abs(minor))}"
    return f"{sign}{symbol}{abs(minor):,}"


def format_money_no_symbol(minor: int, currency: Currency | str) -> str:
    normalized = normalize_currency(currency)
    return format_money(minor, normalized).replace(CURRENCY_SYMBOLS[normalized], "", 1)


def format_money_number(minor: int, currency: Currency | str) -> str:
    """Plain number text for input fields: no symbol, no grouping."""
    normalized = normalize_currency(currency)
    sign = "-" if minor < 0 else ""
    if normalized is Currency.USD:
        return f"{sign}{_usd_major_text(abs(minor))}"
    return f"{sign}{abs(minor)}"


def format_amount_text(minor: int, currency: Currency | str) -> str:
    return format_money_number(abs(minor), currency)


def placeholder_for(currency: Currency | str) -> str:
    return "0" if normalize_currency(currency) is Currency.KRW else "0.00"


def convert_minor(
    minor: int,
    from_currency: Currency | str,
    to_currency: Currency | str,
    fx_usd_krw: float | Decimal | None,
) -> int:
    """Convert minor units between USD and KRW.

    ``fx_usd_krw`` reads as 1 USD = ``fx_usd_krw`` KRW.
    """
    source = normalize_currency(from_currency)
    target = normalize_currency(to_currency)
    if source is target:
        return minor

    rate = _coerce_rate(fx_usd_krw)
    major = Decimal(minor) / MINOR_UNIT_SCALE[source]
    if source is Currency.USD and target is Currency.KRW:
        converted_major = major * rate
    elif source is Currency.KRW and target is Currency.USD:
        converted_major = major / rate
    else:
        raise CurrencyConversionError(f"Unsupported currency pair: {source.value} -> {target.value}")

    converted = converted_major * MINOR_UNIT_SCALE[target]
    return int(converted.to_integral_value(rounding=ROUND_HALF_UP))


def is_usable_rate(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    try:
        return math.isfinite(value) and value > 0
    except (TypeError, ValueError):
        return False


def clamp01(value: float | Decimal) -> float:
    number = float(value)
    if not math.isfinite(number):
        return 0.0
    return max(0.0, min(1.0, number))


def ratio_to_percent(ratio: float | Decimal, cap_at_100: bool = True) -> int:
    number = float(ratio)
    if not math.isfinite(number):
        number = 0.0
    percent = int(Decimal(str(number * 100)).to_integral_value(rounding=ROUND_HALF_UP))
    if not cap_at_100:
        return percent
    return max(0, min(100, percent))


def _coerce_rate(value: float | Decimal | None) -> Decimal:
    if not is_usable_rate(value):
        raise CurrencyConversionError("fx_usd_krw must be a positive, finite number.")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _usd_major_text(cents: int) -> str:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(str(cents)) + 4)
        major = (Decimal(cents) / MINOR_UNIT_SCALE[Currency.USD]).quantize(Decimal("0.01"))
    return f"{major}"


def abs_minor(value: object) -> int:
    """Absolute integer minor units; anything that is not a finite number is 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, (float, Decimal)) and math.isfinite(value):
        return abs(int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP)))
    return 0
