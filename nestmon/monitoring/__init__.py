"""Background camera monitoring: per-user workers and their supervisor."""

from .runtime import MonitorRuntime, build_runtime
from .supervisor import MonitorSupervisor
from .worker import CycleReport, UserMonitorWorker, WorkerState

__all__ = [
    "CycleReport",
    "MonitorRuntime",
    "MonitorSupervisor",
    "UserMonitorWorker",
    "WorkerState",
    "build_runtime",
]
