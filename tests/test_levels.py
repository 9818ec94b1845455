from __future__ import annotations

import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sdex_bot.levels import StaticSpreadLevelProvider
from sdex_bot.models import Side


class StaticSpreadLevelProviderTests(unittest.TestCase):
    def test_sell_levels_above_center(self) -> None:
        provider = StaticSpreadLevelProvider(spreads=(0.01, 0.05), amounts=(100.0, 150.0))
        levels = provider.get_levels(2.0)
        self.assertEqual(len(levels), 2)
        self.assertAlmostEqual(levels[0].target_price, 2.02, places=9)
        self.assertAlmostEqual(levels[1].target_price, 2.10, places=9)
        self.assertEqual([level.target_amount for level in levels], [100.0, 150.0])

    def test_buy_levels_below_center(self) -> None:
        provider = StaticSpreadLevelProvider(spreads=(0.01, 0.05), amounts=(10.0, 20.0), side=Side.BUY)
        levels = provider.get_levels(2.0)
        self.assertAlmostEqual(levels[0].target_price, 1.98, places=9)
        self.assertAlmostEqual(levels[1].target_price, 1.90, places=9)

    def test_rejects_non_positive_center(self) -> None:
        provider = StaticSpreadLevelProvider(spreads=(0.01,), amounts=(1.0,))
        with self.assertRaises(ValueError):
            provider.get_levels(0.0)

    def test_rejects_mismatched_shape(self) -> None:
        with self.assertRaises(ValueError):
            StaticSpreadLevelProvider(spreads=(0.01, 0.02), amounts=(1.0,))

    def test_rejects_buy_spread_at_or_beyond_center(self) -> None:
        with self.assertRaises(ValueError):
            StaticSpreadLevelProvider(spreads=(0.5, 1.0), amounts=(10.0, 10.0), side=Side.BUY)
        with self.assertRaises(ValueError):
            StaticSpreadLevelProvider(spreads=(1.5,), amounts=(10.0,), side=Side.BUY)
        # Same spread is fine on the sell side.
        provider = StaticSpreadLevelProvider(spreads=(1.0,), amounts=(10.0,))
        self.assertAlmostEqual(provider.get_levels(1.0)[0].target_price, 2.0, places=9)


if __name__ == "__main__":
    unittest.main()
