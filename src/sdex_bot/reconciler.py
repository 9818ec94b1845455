from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, Protocol

from sdex_bot.errors import FeedUnavailable, LevelsUnavailable, PriceRepresentationError
from sdex_bot.feeds import PriceFeed
from sdex_bot.levels import LevelProvider
from sdex_bot.models import (
    CreateOffer,
    DeleteOffer,
    Level,
    LiveOffer,
    ModifyOffer,
    OfferIntent,
    Side,
    TolerancePolicy,
)
from sdex_bot.pricing import to_exchange_price, tolerance_band, within_band

LOGGER = logging.getLogger("sdex_bot")


class SideStrategy(Protocol):
    side: Side
    center_price: float | None

    def pre_update(self, max_base: float, max_quote: float) -> None:
        ...

    def prune_existing_offers(self, offers: list[LiveOffer]) -> tuple[list[DeleteOffer], list[LiveOffer]]:
        ...

    def update_with_ops(self, offers: list[LiveOffer]) -> tuple[list[OfferIntent], float | None]:
        ...

    def post_update(self) -> None:
        ...


def _cap_base(amount: float, price: float, max_base: float, max_quote: float) -> float:
    return min(amount, max_base)


def _cap_quote(amount: float, price: float, max_base: float, max_quote: float) -> float:
    if price <= 0:
        return 0.0
    return min(amount, max_quote / price)


def _favors_lower(candidate: float, incumbent: float) -> bool:
    return candidate < incumbent


def _favors_higher(candidate: float, incumbent: float) -> bool:
    return candidate > incumbent


@dataclass(frozen=True)
class SideProfile:
    side: Side
    # True when the candidate price is better placed on the book than the incumbent.
    favors: Callable[[float, float], bool]
    cap_amount: Callable[[float, float, float, float], float]


SELL_PROFILE = SideProfile(side=Side.SELL, favors=_favors_lower, cap_amount=_cap_base)
BUY_PROFILE = SideProfile(side=Side.BUY, favors=_favors_higher, cap_amount=_cap_quote)


class OfferReconciler:
    """
    Converges the live offers of one side of the book toward the ladder computed
    from the current center price.

    Call order per cycle: pre_update, prune_existing_offers, update_with_ops,
    post_update. Matching between ladder levels and live offers is positional.
    """

    def __init__(
        self,
        profile: SideProfile,
        price_feed: PriceFeed,
        levels_provider: LevelProvider,
        tolerance: TolerancePolicy,
        divide_amount_by_price: bool = False,
    ) -> None:
        self.profile = profile
        self.price_feed = price_feed
        self.levels_provider = levels_provider
        self.tolerance = tolerance
        self.divide_amount_by_price = divide_amount_by_price

        self.center_price: float | None = None
        self.current_levels: list[Level] = []
        self.max_base = 0.0
        self.max_quote = 0.0
        self._prepared = False

    @property
    def side(self) -> Side:
        return self.profile.side

    def pre_update(self, max_base: float, max_quote: float) -> None:
        self._prepared = False
        try:
            center_price = self.price_feed.get_center_price()
        except Exception as exc:
            LOGGER.error("side=%s center_price_unavailable error=%s", self.side.value, exc)
            raise FeedUnavailable(f"center price unavailable: {exc}") from exc
        LOGGER.info("side=%s center_price=%.7f", self.side.value, center_price)

        try:
            levels = list(self.levels_provider.get_levels(center_price))
        except Exception as exc:
            LOGGER.error(
                "side=%s levels_unavailable center_price=%.7f error=%s",
                self.side.value,
                center_price,
                exc,
            )
            raise LevelsUnavailable(f"levels unavailable at center price {center_price}: {exc}") from exc

        self.center_price = center_price
        self.current_levels = levels
        self.max_base = max_base
        self.max_quote = max_quote
        self._prepared = True

    def prune_existing_offers(self, offers: list[LiveOffer]) -> tuple[list[DeleteOffer], list[LiveOffer]]:
        self._require_prepared("prune_existing_offers")
        depth = len(self.current_levels)
        prune_ops = [DeleteOffer(side=self.side, target=offer) for offer in offers[depth:]]
        if prune_ops:
            LOGGER.info("side=%s prune count=%s depth=%s", self.side.value, len(prune_ops), depth)
        return prune_ops, list(offers[:depth])

    def update_with_ops(self, offers: list[LiveOffer]) -> tuple[list[OfferIntent], float | None]:
        self._require_prepared("update_with_ops")
        ops: list[OfferIntent] = []
        top_price: float | None = None
        for index in range(len(self.current_levels) - 1, -1, -1):
            op = self._update_level(offers, index)
            if op is None:
                continue
            price = to_exchange_price(op.price)
            if top_price is None or self.profile.favors(price, top_price):
                top_price = price
            ops.append(op)
        return ops, top_price

    def post_update(self) -> None:
        self._prepared = False

    def _require_prepared(self, operation: str) -> None:
        if not self._prepared:
            raise RuntimeError(f"{operation} called before a successful pre_update")

    def _update_level(self, offers: list[LiveOffer], index: int) -> CreateOffer | ModifyOffer | None:
        level = self.current_levels[index]
        target_price = level.target_price
        target_amount = level.target_amount
        if not target_price > 0:
            raise PriceRepresentationError(f"level={index} has non-positive target price={target_price!r}")
        if self.divide_amount_by_price:
            target_amount /= target_price
        target_amount = self.profile.cap_amount(target_amount, target_price, self.max_base, self.max_quote)

        if index >= len(offers):
            LOGGER.info(
                "side=%s create level=%s price=%.7f amount=%.7f",
                self.side.value,
                index,
                target_price,
                target_amount,
            )
            return CreateOffer(side=self.side, price=target_price, amount=target_amount)

        offer = offers[index]
        price_band = tolerance_band(target_price, self.tolerance.price_tolerance)
        amount_band = tolerance_band(target_amount, self.tolerance.amount_tolerance)
        cur_price = to_exchange_price(offer.price)
        cur_amount = float(offer.amount)
        if within_band(cur_price, price_band) and within_band(cur_amount, amount_band):
            return None

        LOGGER.info(
            "side=%s modify level=%s offer=%s cur_price=%.7f price_band=[%.7f, %.7f] cur_amount=%.7f amount_band=[%.7f, %.7f]",
            self.side.value,
            index,
            offer.offer_id,
            cur_price,
            price_band[0],
            price_band[1],
            cur_amount,
            amount_band[0],
            amount_band[1],
        )
        return ModifyOffer(side=self.side, target=offer, price=target_price, amount=target_amount)


def make_side_strategy(
    side: Side,
    price_feed: PriceFeed,
    levels_provider: LevelProvider,
    tolerance: TolerancePolicy,
    divide_amount_by_price: bool = False,
) -> OfferReconciler:
    profile = SELL_PROFILE if side == Side.SELL else BUY_PROFILE
    return OfferReconciler(
        profile=profile,
        price_feed=price_feed,
        levels_provider=levels_provider,
        tolerance=tolerance,
        divide_amount_by_price=divide_amount_by_price,
    )


def make_sell_side(
    price_feed: PriceFeed,
    levels_provider: LevelProvider,
    tolerance: TolerancePolicy,
    divide_amount_by_price: bool = False,
) -> OfferReconciler:
    return make_side_strategy(Side.SELL, price_feed, levels_provider, tolerance, divide_amount_by_price)


def make_buy_side(
    price_feed: PriceFeed,
    levels_provider: LevelProvider,
    tolerance: TolerancePolicy,
    divide_amount_by_price: bool = False,
) -> OfferReconciler:
    return make_side_strategy(Side.BUY, price_feed, levels_provider, tolerance, divide_amount_by_price)
