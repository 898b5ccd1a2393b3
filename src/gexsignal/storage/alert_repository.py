"""
Trade Alert Repository with Delta Lake Persistence

Stores generated credit spread alerts and their settlement outcome.

Key patterns:
- Delta Lake table with an explicit PyArrow schema
- Idempotent inserts: anti-join on alert id, so repeated cycles on an
  unchanged chain persist each alert once
- Per-alert writes: one failing alert is logged and does not block the rest
- Polars for querying and for the settlement read-modify-overwrite

Alert lifecycle:
1. TradeSignalGenerator creates alert -> insert_if_absent()
2. Alert stays ACTIVE / WATCH until settled
3. settle() records WIN / LOSS, realized P&L and closing price (status EXPIRED)
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import polars as pl
import pyarrow as pa
from deltalake import DeltaTable, write_deltalake
from loguru import logger

from gexsignal.signals.models import AlertStatus, TradeAlert, TradeResult

ALERT_SCHEMA = pa.schema([
    ("id", pa.string()),
    ("strategy", pa.string()),
    ("underlying", pa.string()),
    ("expiration", pa.string()),
    ("alert_date", pa.string()),          # Trading day of generated_at (YYYY-MM-DD)
    ("generated_at", pa.string()),        # ISO-8601
    ("status", pa.string()),
    ("net_credit", pa.float64()),
    ("max_loss", pa.float64()),
    ("quality_score", pa.int64()),
    ("quality_level", pa.string()),
    ("risk_level", pa.string()),
    ("alert_data", pa.string()),          # JSON TradeAlert
    ("quality_metadata", pa.string()),    # JSON QualityAssessment
    ("exit_criteria", pa.string()),       # JSON
    ("result", pa.string()),
    ("realized_pnl", pa.float64()),
    ("closed_at_price", pa.float64()),
    ("settled_at", pa.string()),
])

PROFIT_TARGET_PCT = 50
STOP_LOSS_MULTIPLE = 2.0
TIME_EXIT = "15:45"


def exit_criteria(alert: TradeAlert) -> dict[str, Any]:
    """Exit plan stored alongside the alert."""
    breach = {leg.type.value: leg.strike for leg in alert.legs if leg.action.value == "SELL"}
    return {
        "profit_target": round(alert.net_credit * PROFIT_TARGET_PCT / 100, 2),
        "stop_loss": round(alert.net_credit * STOP_LOSS_MULTIPLE, 2),
        "breach_strikes": breach,
        "time_exit": TIME_EXIT,
        "valid_until": alert.valid_until.isoformat(),
    }


def alert_to_row(alert: TradeAlert) -> dict[str, Any]:
    return {
        "id": alert.id,
        "strategy": alert.strategy.value,
        "underlying": alert.underlying,
        "expiration": alert.expiration,
        "alert_date": alert.generated_at.date().isoformat(),
        "generated_at": alert.generated_at.isoformat(),
        "status": alert.status.value,
        "net_credit": alert.net_credit,
        "max_loss": alert.max_loss,
        "quality_score": alert.quality_score,
        "quality_level": alert.quality_level.value if alert.quality_level else None,
        "risk_level": alert.risk_level.value if alert.risk_level else None,
        "alert_data": json.dumps(alert.to_dict()),
        "quality_metadata": json.dumps(alert.quality.to_dict() if alert.quality else {}),
        "exit_criteria": json.dumps(exit_criteria(alert)),
        "result": None,
        "realized_pnl": None,
        "closed_at_price": None,
        "settled_at": None,
    }


class AlertRepository:
    """
    Delta Lake repository for trade alerts.

    Attributes:
        table_path: Path to Delta Lake table

    Example:
        ```python
        repo = AlertRepository("data/lake/trade_alerts")
        await repo.initialize()
        inserted = await repo.insert_if_absent(alerts)
        await repo.settle(alert.id, TradeResult.WIN, 85.0, 5811.25)
        ```
    """

    def __init__(self, table_path: str = "data/lake/trade_alerts"):
        """
        Initialize alert repository.

        Args:
            table_path: Path to Delta Lake table (default: data/lake/trade_alerts)
        """
        self.table_path = Path(table_path)

    async def initialize(self) -> None:
        """Create the Delta Lake table if it doesn't exist."""
        if DeltaTable.is_deltatable(str(self.table_path)):
            logger.info(f"✓ Loaded existing Delta Lake table: {self.table_path}")
            return

        self.table_path.parent.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pylist([], schema=ALERT_SCHEMA)
        write_deltalake(str(self.table_path), table, mode="overwrite")
        logger.info(f"✓ Created Delta Lake table: {self.table_path}")

    def _read(self) -> pl.DataFrame:
        if not DeltaTable.is_deltatable(str(self.table_path)):
            return pl.from_arrow(pa.Table.from_pylist([], schema=ALERT_SCHEMA))
        return pl.from_arrow(DeltaTable(str(self.table_path)).to_pyarrow_table())

    async def insert_if_absent(self, alerts: Iterable[TradeAlert]) -> int:
        """
        Persist alerts whose id is not stored yet.

        Deduplication key: id (anti-join against the table, then within the batch).

        Args:
            alerts: Alerts to persist (warning alerts are skipped)

        Returns:
            int: Number of alerts written
        """
        rows = []
        for alert in alerts:
            if alert.is_warning:
                continue
            try:
                rows.append(alert_to_row(alert))
            except Exception as e:
                logger.error(f"Failed to serialize alert {alert.id}: {e}")

        if not rows:
            return 0

        await self.initialize()

        new_ids = pl.DataFrame({"id": [row["id"] for row in rows]}).unique(subset=["id"], keep="first", maintain_order=True)
        existing = self._read().select("id")
        to_insert = set(new_ids.join(existing, on="id", how="anti")["id"].to_list())

        written = 0
        for row in rows:
            if row["id"] not in to_insert:
                continue
            to_insert.discard(row["id"])
            try:
                table = pa.Table.from_pylist([row], schema=ALERT_SCHEMA)
                write_deltalake(str(self.table_path), table, mode="append")
                written += 1
            except Exception as e:
                logger.error(f"Failed to persist alert {row['id']}: {e}")

        if written:
            logger.info(f"✓ Wrote {written} alerts to {self.table_path}")
        return written

    async def settle(
        self,
        alert_id: str,
        result: TradeResult,
        realized_pnl: float,
        closed_at_price: float,
    ) -> bool:
        """
        Record the outcome of an alert.

        Returns:
            bool: False when no alert with this id exists
        """
        df = self._read()
        if df.filter(pl.col("id") == alert_id).is_empty():
            logger.warning(f"Cannot settle unknown alert: {alert_id}")
            return False

        matches = pl.col("id") == alert_id
        settled_at = datetime.now(timezone.utc).isoformat()
        updated = df.with_columns(
            pl.when(matches).then(pl.lit(AlertStatus.EXPIRED.value)).otherwise(pl.col("status")).alias("status"),
            pl.when(matches).then(pl.lit(TradeResult(result).value)).otherwise(pl.col("result")).alias("result"),
            pl.when(matches).then(pl.lit(float(realized_pnl))).otherwise(pl.col("realized_pnl")).alias("realized_pnl"),
            pl.when(matches).then(pl.lit(float(closed_at_price))).otherwise(pl.col("closed_at_price")).alias("closed_at_price"),
            pl.when(matches).then(pl.lit(settled_at)).otherwise(pl.col("settled_at")).alias("settled_at"),
        )

        table = updated.select(ALERT_SCHEMA.names).to_arrow().cast(ALERT_SCHEMA)
        write_deltalake(str(self.table_path), table, mode="overwrite")
        logger.info(f"✓ Settled alert {alert_id}: {TradeResult(result).value} {realized_pnl:+.2f}")
        return True

    async def get_alert_row(self, alert_id: str) -> Optional[dict[str, Any]]:
        """Stored row for an alert (includes settlement columns), or None."""
        df = self._read().filter(pl.col("id") == alert_id)
        if df.is_empty():
            return None
        return df.row(0, named=True)

    async def get_alert(self, alert_id: str) -> Optional[TradeAlert]:
        row = await self.get_alert_row(alert_id)
        if row is None:
            return None
        return TradeAlert.from_dict(json.loads(row["alert_data"]))

    async def get_alerts_for_day(self, day: str, symbol: Optional[str] = None) -> list[TradeAlert]:
        """
        Alerts generated on one trading day, newest first.

        Args:
            day: Trading day (YYYY-MM-DD)
            symbol: Optional underlying filter
        """
        df = self._read().filter(pl.col("alert_date") == day)
        if symbol:
            df = df.filter(pl.col("underlying") == symbol)

        df = df.sort("generated_at", descending=True)
        return [TradeAlert.from_dict(json.loads(data)) for data in df["alert_data"].to_list()]

    async def get_stats(self) -> dict[str, Any]:
        """Alert counts by status and result."""
        df = self._read()
        if df.is_empty():
            return {"total_alerts": 0, "by_status": {}, "by_result": {}}

        by_status = df.group_by("status").len().sort("status")
        settled = df.filter(pl.col("result").is_not_null())
        by_result = settled.group_by("result").len().sort("result")
        return {
            "total_alerts": len(df),
            "by_status": dict(zip(by_status["status"].to_list(), by_status["len"].to_list())),
            "by_result": dict(zip(by_result["result"].to_list(), by_result["len"].to_list())),
        }
