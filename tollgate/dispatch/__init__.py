"""Deduplicated, supersession-aware dispatch of validation runs."""

from __future__ import annotations

from .config import DispatchConfig, DispatchMode
from .deduplicator import (
    AdmissionDecision,
    AdmissionResult,
    DispatchDeduplicator,
    load_record,
)
from .errors import (
    DispatchConfigError,
    DispatchError,
    DispatchNotFoundError,
    DispatchPersistError,
    DispatchTimeoutError,
    InvalidTransitionError,
)
from .locks import KeyedLocks
from .observability import (
    DispatchEventLogger,
    DispatchEventType,
    ErrorCategory,
    categorize_error,
)
from .orchestrator import (
    CallbackStatus,
    DispatchOrchestrator,
    OrchestratorDependencies,
    SweepReport,
)
from .scheduler import (
    DispatchScheduler,
    DispatchSweeper,
    DramatiqDispatchScheduler,
    TaskDispatchScheduler,
)
from .states import ALLOWED_TRANSITIONS, DispatchState, can_transition
from .storage import (
    Base,
    DispatchRecord,
    UTCDateTime,
    ValidationResultRecord,
    init_dispatch_storage,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AdmissionDecision",
    "AdmissionResult",
    "Base",
    "CallbackStatus",
    "DispatchConfig",
    "DispatchConfigError",
    "DispatchDeduplicator",
    "DispatchError",
    "DispatchEventLogger",
    "DispatchEventType",
    "DispatchMode",
    "DispatchNotFoundError",
    "DispatchOrchestrator",
    "DispatchPersistError",
    "DispatchRecord",
    "DispatchScheduler",
    "DispatchState",
    "DispatchSweeper",
    "DispatchTimeoutError",
    "DramatiqDispatchScheduler",
    "ErrorCategory",
    "InvalidTransitionError",
    "KeyedLocks",
    "OrchestratorDependencies",
    "SweepReport",
    "TaskDispatchScheduler",
    "UTCDateTime",
    "ValidationResultRecord",
    "can_transition",
    "categorize_error",
    "init_dispatch_storage",
    "load_record",
]
