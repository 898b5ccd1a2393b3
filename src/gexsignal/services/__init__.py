"""Long-running services: snapshot recorder and signal scheduler."""

from gexsignal.services.recorder import DataRecorder, is_active_contract
from gexsignal.services.scheduler import SignalScheduler

__all__ = ["DataRecorder", "SignalScheduler", "is_active_contract"]
