from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from sdex_bot.pricing import parse_amount


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @staticmethod
    def parse(raw: str) -> "Side":
        value = str(raw or "").strip().lower()
        if value in {"sell", "ask", "asks"}:
            return Side.SELL
        if value in {"buy", "bid", "bids"}:
            return Side.BUY
        raise ValueError(f"unsupported side={raw!r}")


@dataclass(frozen=True)
class Level:
    target_price: float
    target_amount: float


@dataclass(frozen=True)
class LiveOffer:
    offer_id: str
    price: Any
    amount: float

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "LiveOffer":
        # Price is kept as received; it is parsed at exchange precision during reconciliation.
        return cls(
            offer_id=str(payload["id"]),
            price=payload.get("price"),
            amount=parse_amount(payload.get("amount")),
        )


@dataclass(frozen=True)
class CapacityCaps:
    max_base: float
    max_quote: float

    @classmethod
    def from_balances(cls, base_balance: float, quote_balance: float) -> "CapacityCaps":
        return cls(max_base=max(0.0, base_balance), max_quote=max(0.0, quote_balance))


@dataclass(frozen=True)
class TolerancePolicy:
    price_tolerance: float
    amount_tolerance: float

    def __post_init__(self) -> None:
        for name in ("price_tolerance", "amount_tolerance"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1), got {value!r}")


@dataclass(frozen=True)
class CreateOffer:
    side: Side
    price: float
    amount: float

    kind = "create"


@dataclass(frozen=True)
class ModifyOffer:
    side: Side
    target: LiveOffer
    price: float
    amount: float

    kind = "modify"


@dataclass(frozen=True)
class DeleteOffer:
    side: Side
    target: LiveOffer

    kind = "delete"


OfferIntent = Union[CreateOffer, ModifyOffer, DeleteOffer]


@dataclass
class CycleReport:
    side: Side
    center_price: float | None
    prune_count: int
    update_count: int
    top_price: float | None
    status: str
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"
