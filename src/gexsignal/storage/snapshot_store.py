"""
Option Snapshot Store

Delta Lake persistence for full option chain snapshots, used by the data
recorder (writes) and the backtest engine (reads).

Key features:
- SnapshotStore: Delta Lake table with an explicit PyArrow schema
- Partitioned by symbol
- Idempotent writes using symbol+snapshot_time+strike+type+expiration deduplication
- Snapshot listing, per-snapshot reads and table statistics
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import polars as pl
import pyarrow as pa
from deltalake import DeltaTable, write_deltalake
from loguru import logger

from gexsignal.core.chain_parser import parse_chain
from gexsignal.core.models import OptionContract, OptionsChain

SNAPSHOT_SCHEMA = pa.schema([
    ("symbol", pa.string()),
    ("snapshot_time", pa.string()),       # ISO-8601, UTC
    ("underlying_price", pa.float64()),
    ("strike", pa.float64()),
    ("type", pa.string()),                # CALL / PUT
    ("bid", pa.float64()),
    ("ask", pa.float64()),
    ("last", pa.float64()),
    ("volume", pa.int64()),
    ("open_interest", pa.int64()),
    ("delta", pa.float64()),
    ("gamma", pa.float64()),
    ("theta", pa.float64()),
    ("vega", pa.float64()),
    ("implied_volatility", pa.float64()),
    ("expiration_date", pa.string()),
])

DEDUP_KEY = ["symbol", "snapshot_time", "strike", "type", "expiration_date"]


def format_snapshot_time(moment: Union[str, datetime]) -> str:
    """Normalize a snapshot time to an ISO-8601 UTC string."""
    if isinstance(moment, str):
        return moment
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def snapshot_to_chain(symbol: str, underlying_price: float, rows: Iterable[dict[str, Any]]) -> Optional[OptionsChain]:
    """Rebuild an OptionsChain from stored rows (via the flat payload shape)."""
    calls, puts = [], []
    for row in rows:
        (calls if row["type"] == "CALL" else puts).append(row)
    return parse_chain(
        {"symbol": symbol, "underlyingPrice": underlying_price, "calls": calls, "puts": puts},
        symbol,
    )


class SnapshotStore:
    """
    Delta Lake table for option chain snapshots with idempotent writes.

    Schema: see SNAPSHOT_SCHEMA. One snapshot = all rows sharing
    (symbol, snapshot_time); underlying_price is repeated on every row.

    Partitioning:
    - symbol: Partition by underlying symbol
    """

    def __init__(self, table_path: str = "data/lake/option_snapshots"):
        """
        Initialize snapshot store.

        Args:
            table_path: Path to Delta Lake table (default: data/lake/option_snapshots)
        """
        self.table_path = Path(table_path)

    async def initialize(self) -> None:
        """Create table if it doesn't exist."""
        if DeltaTable.is_deltatable(str(self.table_path)):
            return

        self.table_path.parent.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pylist([], schema=SNAPSHOT_SCHEMA)
        write_deltalake(str(self.table_path), table, mode="overwrite", partition_by=["symbol"])
        logger.info(f"✓ Created Delta Lake table: {self.table_path}")

    def _read(self, symbol: Optional[str] = None) -> pl.DataFrame:
        if not DeltaTable.is_deltatable(str(self.table_path)):
            df = pl.from_arrow(pa.Table.from_pylist([], schema=SNAPSHOT_SCHEMA))
        else:
            df = pl.from_arrow(DeltaTable(str(self.table_path)).to_pyarrow_table())
        if symbol is not None:
            df = df.filter(pl.col("symbol") == symbol)
        return df

    async def write_snapshot(
        self,
        symbol: str,
        snapshot_time: Union[str, datetime],
        underlying_price: float,
        contracts: Iterable[OptionContract],
    ) -> int:
        """
        Write one chain snapshot with idempotent deduplication.

        Deduplication key: symbol + snapshot_time + strike + type + expiration_date

        Returns:
            int: Number of rows written (after deduplication)
        """
        time_key = format_snapshot_time(snapshot_time)
        rows = [
            {"symbol": symbol, "snapshot_time": time_key, "underlying_price": float(underlying_price), **_contract_row(c)}
            for c in contracts
        ]
        if not rows:
            return 0

        await self.initialize()

        batch = pl.from_arrow(pa.Table.from_pylist(rows, schema=SNAPSHOT_SCHEMA)).unique(
            subset=DEDUP_KEY, keep="first", maintain_order=True
        )
        existing = self._read(symbol).filter(pl.col("snapshot_time") == time_key).select(DEDUP_KEY)
        new_rows = batch.join(existing, on=DEDUP_KEY, how="anti") if len(existing) > 0 else batch

        if len(new_rows) == 0:
            logger.debug(f"No new snapshot rows for {symbol} @ {time_key} (all duplicates)")
            return 0

        table = new_rows.select(SNAPSHOT_SCHEMA.names).to_arrow().cast(SNAPSHOT_SCHEMA)
        write_deltalake(str(self.table_path), table, mode="append", partition_by=["symbol"])
        logger.info(f"✓ Wrote {len(new_rows)} snapshot rows for {symbol} @ {time_key}")
        return len(new_rows)

    async def list_snapshots(self, symbol: str) -> list[tuple[str, float]]:
        """Distinct (snapshot_time, underlying_price) for a symbol, ascending by time."""
        df = self._read(symbol)
        if df.is_empty():
            return []

        snapshots = (
            df.select(["snapshot_time", "underlying_price"])
            .unique(subset=["snapshot_time"], keep="first", maintain_order=True)
            .sort("snapshot_time")
        )
        return list(snapshots.iter_rows())

    async def read_snapshot(self, symbol: str, snapshot_time: str) -> list[dict[str, Any]]:
        """All contract rows of one snapshot, ordered by type then strike."""
        df = self._read(symbol).filter(pl.col("snapshot_time") == snapshot_time)
        return df.sort(["type", "strike"]).to_dicts()

    async def get_stats(self, symbol: Optional[str] = None) -> dict[str, Any]:
        """
        Table statistics.

        Returns:
            Dict with total_records, total_snapshots, first_snapshot,
            last_snapshot and symbols
        """
        df = self._read(symbol)
        if df.is_empty():
            return {
                "total_records": 0,
                "total_snapshots": 0,
                "first_snapshot": None,
                "last_snapshot": None,
                "symbols": [],
            }

        times = df.select(["symbol", "snapshot_time"]).unique()
        return {
            "total_records": len(df),
            "total_snapshots": len(times),
            "first_snapshot": df["snapshot_time"].min(),
            "last_snapshot": df["snapshot_time"].max(),
            "symbols": sorted(df["symbol"].unique().to_list()),
        }


def _contract_row(contract: OptionContract) -> dict[str, Any]:
    row = contract.to_dict()
    return {name: row[name] for name in SNAPSHOT_SCHEMA.names if name in row}
