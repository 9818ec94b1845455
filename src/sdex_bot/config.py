from __future__ import annotations

from dataclasses import dataclass
import os

from sdex_bot.models import Side

DEFAULT_SPREADS = (0.01, 0.02, 0.03)
DEFAULT_AMOUNTS = (100.0, 100.0, 100.0)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return float(raw)


def _env_floats(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return tuple(float(part) for part in raw.split(",") if part.strip())


def _env_sides(name: str, default: tuple[Side, ...]) -> tuple[Side, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return parse_sides(raw)


def parse_sides(raw: str) -> tuple[Side, ...]:
    sides: list[Side] = []
    for part in raw.split(","):
        if not part.strip():
            continue
        side = Side.parse(part)
        if side not in sides:
            sides.append(side)
    if not sides:
        raise ValueError(f"no sides in {raw!r}")
    return tuple(sides)


@dataclass(frozen=True)
class BotConfig:
    mode: str
    sides: tuple[Side, ...]

    feed_kind: str
    feed_url: str
    feed_path: str
    feed_quote_url: str
    feed_ws_url: str
    fixed_price: float
    api_timeout_seconds: float

    level_spreads: tuple[float, ...]
    level_amounts: tuple[float, ...]
    price_tolerance: float
    amount_tolerance: float
    divide_amount_by_price: bool

    paper_base_balance: float
    paper_quote_balance: float

    poll_interval_seconds: float
    database_path: str
    log_level: str

    @property
    def paper_mode(self) -> bool:
        return self.mode.lower() == "paper"


def load_config() -> BotConfig:
    return BotConfig(
        mode=os.getenv("BOT_MODE", "paper").strip().lower(),
        sides=_env_sides("BOT_SIDES", (Side.SELL,)),
        feed_kind=os.getenv("PRICE_FEED", "fixed").strip().lower(),
        feed_url=os.getenv("PRICE_FEED_URL", "https://api.coinbase.com/v2/prices/XLM-USD/spot"),
        feed_path=os.getenv("PRICE_FEED_PATH", "data.amount"),
        feed_quote_url=os.getenv("PRICE_FEED_QUOTE_URL", ""),
        feed_ws_url=os.getenv("PRICE_FEED_WS_URL", "wss://stream.binance.com:9443/ws/xlmusdt@trade"),
        fixed_price=_env_float("FIXED_CENTER_PRICE", 1.0),
        api_timeout_seconds=3.0,
        level_spreads=_env_floats("LEVEL_SPREADS", DEFAULT_SPREADS),
        level_amounts=_env_floats("LEVEL_AMOUNTS", DEFAULT_AMOUNTS),
        price_tolerance=_env_float("PRICE_TOLERANCE", 0.001),
        amount_tolerance=_env_float("AMOUNT_TOLERANCE", 0.001),
        divide_amount_by_price=_env_bool("DIVIDE_AMOUNT_BY_PRICE"),
        paper_base_balance=_env_float("PAPER_BASE_BALANCE", 1000.0),
        paper_quote_balance=_env_float("PAPER_QUOTE_BALANCE", 1000.0),
        poll_interval_seconds=_env_float("POLL_INTERVAL_SECONDS", 5.0),
        database_path=os.getenv("BOT_DB_PATH", "data/bot.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
