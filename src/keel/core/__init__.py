"""
Keel core primitives.

- ``keel.core.guard``: cross-process single-instance guard
- ``keel.core.scheduling``: self-rescheduling recurring task and loop executors
- ``keel.core.errors`` / ``logging`` / ``settings``: shared plumbing
"""

from keel.core.errors import (
    ConfigError,
    InvalidConfigError,
    KeelError,
    SchedulingError,
    TaskStateError,
    ValidationError,
)
from keel.core.guard import InstanceClaim, InstanceGuard, instance_exists, single_instance
from keel.core.scheduling import (
    AsyncioExecutor,
    ContinueFlag,
    RecurringTask,
    TaskState,
    ThreadLoopExecutor,
    start_recurring,
)
from keel.core.settings import KeelSettings, get_settings

__all__ = [
    # Guard
    "InstanceGuard",
    "InstanceClaim",
    "single_instance",
    "instance_exists",
    # Scheduling
    "RecurringTask",
    "ContinueFlag",
    "TaskState",
    "start_recurring",
    "AsyncioExecutor",
    "ThreadLoopExecutor",
    # Settings
    "KeelSettings",
    "get_settings",
    # Errors
    "KeelError",
    "ValidationError",
    "ConfigError",
    "InvalidConfigError",
    "SchedulingError",
    "TaskStateError",
]
