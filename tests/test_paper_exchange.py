from __future__ import annotations

import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sdex_bot.errors import ExecutionError
from sdex_bot.execution import PaperExchange
from sdex_bot.models import CreateOffer, DeleteOffer, LiveOffer, ModifyOffer, Side


class PaperExchangeTests(unittest.TestCase):
    def test_offer_lifecycle_create_modify_delete(self) -> None:
        exchange = PaperExchange(base_balance=500.0, quote_balance=100.0)
        result = exchange.submit(
            [
                CreateOffer(side=Side.SELL, price=1.05, amount=150.0),
                CreateOffer(side=Side.SELL, price=1.02, amount=100.0),
            ]
        )
        self.assertEqual(result.created, 2)
        live = exchange.live_offers(Side.SELL)
        self.assertEqual([offer.price for offer in live], [1.02, 1.05])

        exchange.submit([ModifyOffer(side=Side.SELL, target=live[0], price=1.03, amount=90.0)])
        live = exchange.live_offers(Side.SELL)
        self.assertEqual([offer.price for offer in live], [1.03, 1.05])
        self.assertEqual(live[0].amount, 90.0)

        result = exchange.submit([DeleteOffer(side=Side.SELL, target=live[1])])
        self.assertEqual(result.total, 1)
        self.assertEqual(len(exchange.live_offers(Side.SELL)), 1)

    def test_bids_sorted_nearest_center_first(self) -> None:
        exchange = PaperExchange(base_balance=0.0, quote_balance=100.0)
        exchange.submit(
            [
                CreateOffer(side=Side.BUY, price=0.95, amount=10.0),
                CreateOffer(side=Side.BUY, price=0.98, amount=10.0),
            ]
        )
        self.assertEqual([offer.price for offer in exchange.live_offers(Side.BUY)], [0.98, 0.95])
        self.assertEqual(exchange.live_offers(Side.SELL), [])

    def test_batch_is_all_or_nothing(self) -> None:
        exchange = PaperExchange(base_balance=500.0, quote_balance=100.0)
        ghost = LiveOffer(offer_id="missing", price=1.0, amount=1.0)
        with self.assertRaises(ExecutionError):
            exchange.submit(
                [
                    CreateOffer(side=Side.SELL, price=1.05, amount=150.0),
                    DeleteOffer(side=Side.SELL, target=ghost),
                ]
            )
        self.assertEqual(exchange.live_offers(Side.SELL), [])

    def test_cancel_all(self) -> None:
        exchange = PaperExchange(base_balance=500.0, quote_balance=100.0)
        exchange.submit([CreateOffer(side=Side.SELL, price=1.05, amount=1.0)])
        exchange.cancel_all()
        self.assertEqual(exchange.live_offers(Side.SELL), [])
        self.assertEqual(exchange.balances(), (500.0, 100.0))


if __name__ == "__main__":
    unittest.main()
