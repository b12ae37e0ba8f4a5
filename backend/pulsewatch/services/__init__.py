"""Services for probing, scheduling, and alerting."""
from .probe import ProbeExecutor
from .recorder import CheckRecorder
from .transitioner import StatusTransitioner
from .dispatcher import NotificationDispatcher
from .check_service import CheckService
from .scheduler import SchedulerService
from .pruner import RetentionPruner
from .heartbeat import HeartbeatRecorder

__all__ = [
    "ProbeExecutor",
    "CheckRecorder",
    "StatusTransitioner",
    "NotificationDispatcher",
    "CheckService",
    "SchedulerService",
    "RetentionPruner",
    "HeartbeatRecorder",
]
