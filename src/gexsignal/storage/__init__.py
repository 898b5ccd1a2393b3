"""Delta Lake persistence for option snapshots and trade alerts."""

from gexsignal.storage.alert_repository import AlertRepository
from gexsignal.storage.snapshot_store import SnapshotStore, snapshot_to_chain

__all__ = ["AlertRepository", "SnapshotStore", "snapshot_to_chain"]
