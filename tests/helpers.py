from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sdex_bot.config import load_config  # noqa: E402
from sdex_bot.models import Level, LiveOffer, TolerancePolicy  # noqa: E402


def test_config(**kwargs):
    cfg = load_config()
    return replace(cfg, database_path=":memory:", **kwargs)


@dataclass
class StubFeed:
    price: float = 1.0
    calls: int = 0

    def get_center_price(self) -> float:
        self.calls += 1
        return self.price


@dataclass
class FailingFeed:
    message: str = "feed down"

    def get_center_price(self) -> float:
        raise RuntimeError(self.message)


@dataclass
class StubLevels:
    levels: list[Level] = field(default_factory=list)
    fail: bool = False
    seen_prices: list[float] = field(default_factory=list)

    def get_levels(self, center_price: float) -> list[Level]:
        self.seen_prices.append(center_price)
        if self.fail:
            raise RuntimeError("levels down")
        return list(self.levels)


def ladder(*pairs: tuple[float, float]) -> list[Level]:
    return [Level(target_price=price, target_amount=amount) for price, amount in pairs]


def offers(*pairs: tuple[object, float]) -> list[LiveOffer]:
    return [
        LiveOffer(offer_id=f"o{index}", price=price, amount=amount)
        for index, (price, amount) in enumerate(pairs)
    ]


def tolerance(price: float = 0.01, amount: float = 0.01) -> TolerancePolicy:
    return TolerancePolicy(price_tolerance=price, amount_tolerance=amount)
