from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from sdex_bot.models import Level, Side


class LevelProvider(Protocol):
    def get_levels(self, center_price: float) -> list[Level]:
        ...


@dataclass
class StaticSpreadLevelProvider:
    """
    Fixed ladder shape around the center price. Level i sits at
      sell: center * (1 + spreads[i])
      buy:  center * (1 - spreads[i])
    with amount amounts[i].
    """

    spreads: Sequence[float]
    amounts: Sequence[float]
    side: Side = Side.SELL

    def __post_init__(self) -> None:
        if len(self.spreads) != len(self.amounts):
            raise ValueError(
                f"spreads and amounts differ in length ({len(self.spreads)} != {len(self.amounts)})"
            )
        # A multiplier of zero or less puts the level at or below a zero price.
        for spread in self.spreads:
            if not 1.0 + self._sign * spread > 0:
                raise ValueError(f"spread={spread!r} gives a non-positive {self.side.value} price")

    @property
    def _sign(self) -> float:
        return 1.0 if self.side == Side.SELL else -1.0

    def get_levels(self, center_price: float) -> list[Level]:
        if not center_price > 0:
            raise ValueError(f"center price must be positive, got {center_price!r}")
        return [
            Level(target_price=center_price * (1.0 + self._sign * spread), target_amount=amount)
            for spread, amount in zip(self.spreads, self.amounts)
        ]
