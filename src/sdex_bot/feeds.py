from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import threading
import time
from typing import Any, Protocol

from sdex_bot.http_utils import get_json, websocket_sslopt

LOGGER = logging.getLogger("sdex_bot")


class PriceFeed(Protocol):
    def get_center_price(self) -> float:
        ...


def _extract_path(payload: Any, path: str) -> Any:
    node = payload
    for part in path.split("."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise KeyError(part)
    return node


def _positive_price(raw: Any, source: str) -> float:
    try:
        price = float(raw)
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"{source}: unparseable price={raw!r}") from exc
    if not price > 0:
        raise RuntimeError(f"{source}: non-positive price={price!r}")
    return price


@dataclass
class FixedFeed:
    price: float

    def get_center_price(self) -> float:
        return _positive_price(self.price, "fixed feed")


@dataclass
class JsonPriceFeed:
    """Polls a JSON ticker endpoint and reads the price at a dotted path, e.g. ``data.amount``."""

    url: str
    path: str = "price"
    timeout_seconds: float = 5.0

    def get_center_price(self) -> float:
        payload = get_json(self.url, timeout=self.timeout_seconds)
        try:
            raw = _extract_path(payload, self.path)
        except KeyError as exc:
            raise RuntimeError(f"Unable to find {self.path!r} in response from {self.url}") from exc
        return _positive_price(raw, self.url)


@dataclass
class FeedPair:
    """Center price of BASE/QUOTE derived from two feeds quoted in a common unit."""

    base_feed: PriceFeed
    quote_feed: PriceFeed

    def get_center_price(self) -> float:
        base_price = self.base_feed.get_center_price()
        quote_price = self.quote_feed.get_center_price()
        if quote_price == 0:
            raise RuntimeError("quote feed returned zero price")
        return base_price / quote_price


class StreamPriceFeed:
    def __init__(self, ws_url: str, max_stale_seconds: float = 5.0) -> None:
        self.ws_url = ws_url
        self.max_stale_seconds = max_stale_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._latest_price = 0.0
        self._latest_ts = 0.0
        self._connected = False
        self._fatal_error: str | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        with self._lock:
            self._connected = False
            self._fatal_error = None
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="price-ws", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None

    def get_center_price(self) -> float:
        with self._lock:
            fatal_error = self._fatal_error
            connected = self._connected
            price = self._latest_price
            ts = self._latest_ts
        if fatal_error:
            raise RuntimeError(f"Price WS failed: {fatal_error}")
        if not connected:
            raise RuntimeError("Price WS not connected")
        age = time.time() - ts if ts > 0 else float("inf")
        if price > 0 and age <= self.max_stale_seconds:
            return price
        raise RuntimeError(f"Price WS stale (age={age:.2f}s)")

    def wait_until_ready(self, timeout_seconds: float = 5.0) -> None:
        deadline = time.time() + timeout_seconds
        while time.time() < deadline:
            with self._lock:
                if self._fatal_error:
                    raise RuntimeError(f"Price WS failed: {self._fatal_error}")
                ready = self._connected and self._latest_ts > 0
            if ready:
                return
            time.sleep(0.05)
        raise RuntimeError("Price WS did not produce a tick within startup timeout")

    def _run_loop(self) -> None:
        try:
            from websocket import WebSocketApp

            app = WebSocketApp(
                self.ws_url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
            app.run_forever(ping_interval=15, ping_timeout=8, sslopt=websocket_sslopt())
        except Exception as exc:
            self._mark_fatal(str(exc))

    def _on_open(self, _ws) -> None:
        with self._lock:
            self._connected = True

    def _on_message(self, _ws, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            return
        if not isinstance(payload, dict):
            return
        price_raw = payload.get("p") or payload.get("price")
        if price_raw is None:
            return
        try:
            price = float(price_raw)
        except (TypeError, ValueError):
            return
        if price <= 0:
            return
        ts_ms = payload.get("E") or payload.get("T")
        ts = float(ts_ms) / 1000.0 if isinstance(ts_ms, (int, float)) else time.time()
        with self._lock:
            self._latest_price = price
            self._latest_ts = ts

    def _on_error(self, _ws, error) -> None:
        self._mark_fatal(str(error))

    def _on_close(self, _ws, status_code, msg) -> None:
        with self._lock:
            self._connected = False
        if not self._stop_event.is_set():
            self._mark_fatal(f"closed code={status_code} msg={msg}")

    def _mark_fatal(self, message: str) -> None:
        with self._lock:
            if self._fatal_error is not None:
                return
            self._fatal_error = message
            self._connected = False
        LOGGER.error("Price WS fatal: %s", message)
