from __future__ import annotations

import argparse
import json
import logging
import signal
import time
from dataclasses import replace
from typing import Iterable

from sdex_bot.config import BotConfig, load_config, parse_sides
from sdex_bot.errors import ExecutionError, ReconcileError
from sdex_bot.execution import BaseExchange, PaperExchange
from sdex_bot.feeds import FeedPair, FixedFeed, JsonPriceFeed, PriceFeed, StreamPriceFeed
from sdex_bot.levels import StaticSpreadLevelProvider
from sdex_bot.models import CapacityCaps, CycleReport, OfferIntent, TolerancePolicy
from sdex_bot.reconciler import SideStrategy, make_side_strategy
from sdex_bot.storage import Storage

LOGGER = logging.getLogger("sdex_bot")


def build_price_feed(config: BotConfig) -> PriceFeed:
    kind = config.feed_kind
    if kind == "fixed":
        return FixedFeed(config.fixed_price)
    if kind == "json":
        return JsonPriceFeed(config.feed_url, path=config.feed_path, timeout_seconds=config.api_timeout_seconds)
    if kind == "pair":
        if not config.feed_quote_url:
            raise ValueError("PRICE_FEED=pair requires PRICE_FEED_QUOTE_URL")
        return FeedPair(
            base_feed=JsonPriceFeed(config.feed_url, path=config.feed_path, timeout_seconds=config.api_timeout_seconds),
            quote_feed=JsonPriceFeed(
                config.feed_quote_url, path=config.feed_path, timeout_seconds=config.api_timeout_seconds
            ),
        )
    if kind == "stream":
        return StreamPriceFeed(config.feed_ws_url, max_stale_seconds=max(1.5, config.poll_interval_seconds))
    raise ValueError(f"unsupported price feed={kind!r}")


def build_strategies(config: BotConfig, price_feed: PriceFeed) -> list[SideStrategy]:
    tolerance = TolerancePolicy(
        price_tolerance=config.price_tolerance,
        amount_tolerance=config.amount_tolerance,
    )
    return [
        make_side_strategy(
            side,
            price_feed=price_feed,
            levels_provider=StaticSpreadLevelProvider(config.level_spreads, config.level_amounts, side=side),
            tolerance=tolerance,
            divide_amount_by_price=config.divide_amount_by_price,
        )
        for side in config.sides
    ]


class BotRuntime:
    def __init__(
        self,
        config: BotConfig,
        *,
        exchange: BaseExchange | None = None,
        price_feed: PriceFeed | None = None,
        strategies: list[SideStrategy] | None = None,
        storage: Storage | None = None,
    ) -> None:
        self.config = config
        self.storage = storage if storage is not None else Storage(config.database_path)
        self.exchange = exchange if exchange is not None else PaperExchange(
            base_balance=config.paper_base_balance,
            quote_balance=config.paper_quote_balance,
        )
        self.price_feed = price_feed if price_feed is not None else build_price_feed(config)
        self.strategies = strategies if strategies is not None else build_strategies(config, self.price_feed)
        self._cycle_counter = self.storage.last_cycle()
        self._keep_running = True

    def stop(self) -> None:
        self._keep_running = False

    def preflight(self) -> None:
        self.exchange.preflight()
        if isinstance(self.price_feed, StreamPriceFeed):
            self.price_feed.start()
            self.price_feed.wait_until_ready(timeout_seconds=6.0)

    def run(self, once: bool = False) -> None:
        while self._keep_running:
            started = time.time()
            self.run_cycle()
            if once:
                return
            elapsed = time.time() - started
            sleep_seconds = max(0.0, self.config.poll_interval_seconds - elapsed)
            if sleep_seconds > 0:
                time.sleep(sleep_seconds)

    def close(self) -> None:
        # No resting offers survive shutdown.
        try:
            self.exchange.cancel_all()
        except Exception as exc:
            LOGGER.warning("close_cancel_failed error=%s", exc)
        if isinstance(self.price_feed, StreamPriceFeed):
            self.price_feed.stop()
        self.storage.close()

    def run_cycle(self) -> list[CycleReport]:
        cycle_started = time.time()
        self._cycle_counter += 1
        cycle = self._cycle_counter
        caps = CapacityCaps.from_balances(*self.exchange.balances())

        reports: list[CycleReport] = []
        prune_ops: list[OfferIntent] = []
        update_ops: list[OfferIntent] = []
        failed = False
        try:
            for strategy in self.strategies:
                try:
                    strategy.pre_update(caps.max_base, caps.max_quote)
                    side_prune, offers = strategy.prune_existing_offers(self.exchange.live_offers(strategy.side))
                    side_update, top_price = strategy.update_with_ops(offers)
                except ReconcileError as exc:
                    LOGGER.warning(
                        "cycle=%s side=%s reconcile_failed=%s; skipping cycle",
                        cycle,
                        strategy.side.value,
                        exc,
                    )
                    reports.append(
                        CycleReport(
                            side=strategy.side,
                            center_price=None,
                            prune_count=0,
                            update_count=0,
                            top_price=None,
                            status="error",
                            error=f"{type(exc).__name__}: {exc}",
                        )
                    )
                    failed = True
                    break
                prune_ops.extend(side_prune)
                update_ops.extend(side_update)
                reports.append(
                    CycleReport(
                        side=strategy.side,
                        center_price=strategy.center_price,
                        prune_count=len(side_prune),
                        update_count=len(side_update),
                        top_price=top_price,
                        status="ok",
                    )
                )

            if failed:
                # Nothing reached the book, so sides that reconciled cleanly report no work.
                reports = [
                    replace(r, prune_count=0, update_count=0, top_price=None, status="skipped") if r.ok else r
                    for r in reports
                ]
            else:
                intents = prune_ops + update_ops
                if intents:
                    try:
                        self.exchange.submit(intents)
                    except ExecutionError as exc:
                        LOGGER.error("cycle=%s submit_failed=%s", cycle, exc)
                        reports = [replace(r, status="rejected", error=str(exc)) for r in reports]
                    else:
                        self.storage.record_intents(cycle, intents)
        finally:
            for strategy in self.strategies:
                strategy.post_update()

        for report in reports:
            self.storage.record_cycle(cycle, report)
        LOGGER.info(
            "cycle=%s sides=%s pruned=%s updates=%s status=%s elapsed=%.2fs",
            cycle,
            ",".join(r.side.value for r in reports),
            sum(r.prune_count for r in reports),
            sum(r.update_count for r in reports),
            "error" if failed else ",".join(r.status for r in reports),
            time.time() - cycle_started,
        )
        return reports


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("urllib3", "websocket"):
        logging.getLogger(noisy).setLevel(logging.ERROR)


def _run_command(args: argparse.Namespace) -> int:
    config = load_config()
    if args.mode:
        config = replace(config, mode=args.mode.lower())
    _setup_logging(config.log_level)
    if not config.paper_mode:
        LOGGER.error("Only paper mode is supported, got mode=%s", config.mode)
        return 2
    if args.sides:
        try:
            config = replace(config, sides=parse_sides(args.sides))
        except ValueError as exc:
            LOGGER.error(str(exc))
            return 2

    try:
        runtime = BotRuntime(config)
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    try:
        runtime.preflight()
    except Exception as exc:
        LOGGER.error("Preflight failed: %s", exc)
        runtime.close()
        return 2
    LOGGER.info(
        "Starting bot mode=%s sides=%s feed=%s",
        config.mode,
        ",".join(side.value for side in config.sides),
        config.feed_kind,
    )
    signal_count = {"count": 0}

    def _handle_signal(signum: int, _frame: object) -> None:
        signal_count["count"] += 1
        if signal_count["count"] >= 2:
            LOGGER.error("Received signal %s again, forcing exit now", signum)
            raise SystemExit(130)
        LOGGER.warning("Received signal %s, stopping loop after this cycle", signum)
        runtime.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        runtime.run(once=args.once)
        return 0
    except Exception as exc:
        LOGGER.error("Fatal runtime error: %s", exc)
        return 2
    finally:
        runtime.close()


def _report_command(args: argparse.Namespace) -> int:
    config = load_config()
    _setup_logging(config.log_level)
    storage = Storage(config.database_path)
    try:
        report = storage.report(args.window)
        print(json.dumps(report, indent=2, default=str))
    finally:
        storage.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sdex_bot", description="Offer ladder market-making bot")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run reconciliation loop")
    run.add_argument("--mode", choices=("paper",), default=None)
    run.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    run.add_argument(
        "--sides",
        default=None,
        help="Comma separated sides to quote (e.g. --sides sell,buy)",
    )
    run.set_defaults(func=_run_command)

    report = sub.add_parser("report", help="Print cycle/intent summary from SQLite")
    report.add_argument("--window", type=int, default=24, help="Window in hours")
    report.set_defaults(func=_report_command)
    return parser


def cli(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return int(args.func(args))


def main() -> None:
    raise SystemExit(cli())


if __name__ == "__main__":
    main()
