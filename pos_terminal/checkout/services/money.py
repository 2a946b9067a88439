# checkout/services/money.py

"""
MONEY HELPERS

Rules:
- Amounts are Decimal inside the core, quantized to CURRENCY_DECIMAL_PLACES
  (0 by default: whole pesos, no cents).
- Payloads carry JSON-native numbers (money_to_wire) so a built payload
  serializes identically every time.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

ZERO = Decimal("0")


def _quant() -> Decimal:
    places = int(getattr(settings, "CURRENCY_DECIMAL_PLACES", 0) or 0)
    return Decimal(1).scaleb(-places)


def to_money(value) -> Decimal:
    if value is None or value == "":
        return _quantize(ZERO)

    if isinstance(value, bool):
        raise ValueError("amount must be a number")

    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"invalid amount: {value!r}") from exc

    if not d.is_finite():
        raise ValueError(f"invalid amount: {value!r}")

    return _quantize(d)


def _quantize(d: Decimal) -> Decimal:
    return d.quantize(_quant(), rounding=ROUND_HALF_UP)


def money_to_wire(value):
    d = to_money(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def format_money(value) -> str:
    d = to_money(value)
    sep = getattr(settings, "MONEY_THOUSANDS_SEPARATOR", ",")
    sign = "-" if d < 0 else ""
    places = max(0, -d.as_tuple().exponent)

    whole, _, frac = f"{abs(d):.{places}f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", sep)
    if frac:
        return f"{sign}{grouped}.{frac}"
    return f"{sign}{grouped}"


def percent_of(amount, percent) -> Decimal:
    base = to_money(amount)
    pct = Decimal(str(percent or 0))
    return to_money(base * pct / Decimal("100"))


def sum_money(values) -> Decimal:
    return to_money(sum((to_money(v) for v in values), ZERO))


def compute_change(*, paid, total, deferred: bool) -> Decimal:
    """Overpayment returned to the customer. Deferred orders never give change."""
    if deferred:
        return to_money(ZERO)
    return max(to_money(ZERO), to_money(to_money(paid) - to_money(total)))
