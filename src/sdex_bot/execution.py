from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable
import uuid

from sdex_bot.errors import ExecutionError
from sdex_bot.models import CreateOffer, DeleteOffer, LiveOffer, ModifyOffer, OfferIntent, Side
from sdex_bot.pricing import to_exchange_price

LOGGER = logging.getLogger("sdex_bot")


@dataclass
class SubmitResult:
    created: int = 0
    modified: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.created + self.modified + self.deleted


class BaseExchange:
    def preflight(self) -> None:
        return

    def live_offers(self, side: Side) -> list[LiveOffer]:
        raise NotImplementedError

    def balances(self) -> tuple[float, float]:
        raise NotImplementedError

    def submit(self, intents: Iterable[OfferIntent]) -> SubmitResult:
        raise NotImplementedError

    def cancel_all(self) -> None:
        raise NotImplementedError


class PaperExchange(BaseExchange):
    """
    In-memory order book for one account. Resting offers never fill; a batch of
    intents is applied all-or-nothing.
    """

    def __init__(self, base_balance: float, quote_balance: float) -> None:
        self.base_balance = base_balance
        self.quote_balance = quote_balance
        self.offers: dict[Side, dict[str, LiveOffer]] = {Side.SELL: {}, Side.BUY: {}}

    def live_offers(self, side: Side) -> list[LiveOffer]:
        # Nearest the center first: ascending asks, descending bids.
        return sorted(
            self.offers[side].values(),
            key=lambda offer: to_exchange_price(offer.price),
            reverse=side == Side.BUY,
        )

    def balances(self) -> tuple[float, float]:
        return self.base_balance, self.quote_balance

    def submit(self, intents: Iterable[OfferIntent]) -> SubmitResult:
        batch = list(intents)
        staged = {side: dict(book) for side, book in self.offers.items()}
        result = SubmitResult()
        for intent in batch:
            book = staged[intent.side]
            if isinstance(intent, CreateOffer):
                offer_id = f"paper-{uuid.uuid4().hex[:12]}"
                book[offer_id] = LiveOffer(
                    offer_id=offer_id,
                    price=to_exchange_price(intent.price),
                    amount=intent.amount,
                )
                result.created += 1
            elif isinstance(intent, ModifyOffer):
                offer_id = intent.target.offer_id
                if offer_id not in book:
                    raise ExecutionError(f"modify of unknown offer={offer_id} side={intent.side.value}")
                book[offer_id] = LiveOffer(
                    offer_id=offer_id,
                    price=to_exchange_price(intent.price),
                    amount=intent.amount,
                )
                result.modified += 1
            elif isinstance(intent, DeleteOffer):
                offer_id = intent.target.offer_id
                if book.pop(offer_id, None) is None:
                    raise ExecutionError(f"delete of unknown offer={offer_id} side={intent.side.value}")
                result.deleted += 1
            else:
                raise ExecutionError(f"unsupported intent={intent!r}")
        self.offers = staged
        LOGGER.debug(
            "paper_submit created=%s modified=%s deleted=%s",
            result.created,
            result.modified,
            result.deleted,
        )
        return result

    def cancel_all(self) -> None:
        for book in self.offers.values():
            book.clear()
