from __future__ import annotations

from decimal import Decimal, InvalidOperation
import math

from sdex_bot.errors import PriceRepresentationError

PRICE_PRECISION = 7


def to_exchange_price(raw: object, precision: int = PRICE_PRECISION) -> float:
    """
    Normalise a price to the exchange's fixed precision:
      "1.05" -> 1.05, 1.123456789 -> 1.1234568
    Raises PriceRepresentationError when the value cannot be represented.
    """
    if isinstance(raw, bool) or raw is None:
        raise PriceRepresentationError(f"invalid price={raw!r}")
    try:
        value = Decimal(str(raw).strip()) if isinstance(raw, str) else Decimal(repr(float(raw)))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise PriceRepresentationError(f"invalid price={raw!r}") from exc
    if not value.is_finite():
        raise PriceRepresentationError(f"non-finite price={raw!r}")
    quantum = Decimal(1).scaleb(-precision)
    try:
        return float(value.quantize(quantum))
    except InvalidOperation as exc:
        raise PriceRepresentationError(f"price={raw!r} exceeds precision={precision}") from exc


def parse_amount(raw: object) -> float:
    try:
        amount = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid amount={raw!r}") from exc
    if not math.isfinite(amount):
        raise ValueError(f"non-finite amount={raw!r}")
    return amount


def tolerance_band(target: float, tolerance: float) -> tuple[float, float]:
    return target - target * tolerance, target + target * tolerance


def within_band(value: float, band: tuple[float, float]) -> bool:
    low, high = band
    return low <= value <= high
