from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sqlite3
from typing import Any, Iterable

from sdex_bot.models import CreateOffer, CycleReport, DeleteOffer, ModifyOffer, OfferIntent


class Storage:
    def __init__(self, database_path: str) -> None:
        if database_path != ":memory:":
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(database_path)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()

    def _create_schema(self) -> None:
        cursor = self.conn.cursor()
        cursor.executescript(
            """
            CREATE TABLE IF NOT EXISTS cycles (
              ts TEXT NOT NULL,
              cycle INTEGER NOT NULL,
              side TEXT NOT NULL,
              center_price REAL,
              prune_count INTEGER NOT NULL,
              update_count INTEGER NOT NULL,
              top_price REAL,
              status TEXT NOT NULL,
              error TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS intents (
              ts TEXT NOT NULL,
              cycle INTEGER NOT NULL,
              side TEXT NOT NULL,
              kind TEXT NOT NULL,
              offer_id TEXT NOT NULL,
              price REAL,
              amount REAL
            );
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def record_cycle(self, cycle: int, report: CycleReport) -> None:
        self.conn.execute(
            """
            INSERT INTO cycles (
              ts, cycle, side, center_price, prune_count, update_count,
              top_price, status, error
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                datetime.now(tz=timezone.utc).isoformat(),
                cycle,
                report.side.value,
                report.center_price,
                report.prune_count,
                report.update_count,
                report.top_price,
                report.status,
                report.error,
            ),
        )
        self.conn.commit()

    def record_intents(self, cycle: int, intents: Iterable[OfferIntent]) -> None:
        now = datetime.now(tz=timezone.utc).isoformat()
        rows = []
        for intent in intents:
            offer_id = ""
            price: float | None = None
            amount: float | None = None
            if isinstance(intent, (ModifyOffer, DeleteOffer)):
                offer_id = intent.target.offer_id
            if isinstance(intent, (CreateOffer, ModifyOffer)):
                price = intent.price
                amount = intent.amount
            rows.append((now, cycle, intent.side.value, intent.kind, offer_id, price, amount))
        self.conn.executemany(
            """
            INSERT INTO intents (ts, cycle, side, kind, offer_id, price, amount)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        self.conn.commit()

    def last_cycle(self) -> int:
        row = self.conn.execute("SELECT MAX(cycle) AS cycle FROM cycles").fetchone()
        if row is None or row["cycle"] is None:
            return 0
        return int(row["cycle"])

    def report(self, window_hours: int) -> dict[str, Any]:
        cutoff = (datetime.now(tz=timezone.utc) - timedelta(hours=window_hours)).isoformat()
        per_side: dict[str, dict[str, Any]] = {}

        cycle_rows = self.conn.execute(
            """
            SELECT side, status, COUNT(*) AS n, MIN(top_price) AS min_top, MAX(top_price) AS max_top
            FROM cycles
            WHERE ts >= ?
            GROUP BY side, status
            """,
            (cutoff,),
        ).fetchall()
        for row in cycle_rows:
            metric = per_side.setdefault(
                str(row["side"]),
                {"cycles": 0, "failed_cycles": 0, "min_top_price": None, "max_top_price": None, "intents": {}},
            )
            metric["cycles"] += int(row["n"])
            if row["status"] != "ok":
                metric["failed_cycles"] += int(row["n"])
            if row["min_top"] is not None:
                current = metric["min_top_price"]
                metric["min_top_price"] = row["min_top"] if current is None else min(current, row["min_top"])
            if row["max_top"] is not None:
                current = metric["max_top_price"]
                metric["max_top_price"] = row["max_top"] if current is None else max(current, row["max_top"])

        intent_rows = self.conn.execute(
            """
            SELECT side, kind, COUNT(*) AS n
            FROM intents
            WHERE ts >= ?
            GROUP BY side, kind
            """,
            (cutoff,),
        ).fetchall()
        for row in intent_rows:
            metric = per_side.setdefault(
                str(row["side"]),
                {"cycles": 0, "failed_cycles": 0, "min_top_price": None, "max_top_price": None, "intents": {}},
            )
            metric["intents"][str(row["kind"])] = int(row["n"])

        return {
            "window_hours": window_hours,
            "generated_at": datetime.now(tz=timezone.utc).isoformat(),
            "sides": per_side,
        }
