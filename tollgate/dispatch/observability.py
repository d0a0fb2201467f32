"""Structured lifecycle events for dispatch records.

Every state change of a dispatch record is logged as one line tagged with a
:class:`DispatchEventType`, so log aggregators can follow a dispatch key from
admission to its published outcome.

Usage
-----
>>> event_logger = DispatchEventLogger()
>>> event_logger.log_admitted(key, event_id="72d3162e", superseded=())

"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from tollgate.credentials.errors import CredentialConfigError, CredentialError
from tollgate.logging import get_logger, log_error, log_info, log_warning
from tollgate.validation.errors import InvocationError, ValidatorConfigError

from .errors import DispatchTimeoutError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tollgate.common.keys import DispatchKey
    from tollgate.validation.models import Severity

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class DispatchEventType(enum.StrEnum):
    """Structured log event types for the dispatch lifecycle."""

    ADMITTED = "dispatch.admitted"
    DUPLICATE = "dispatch.duplicate"
    SUPERSEDED = "dispatch.superseded"
    DISPATCHING = "dispatch.dispatching"
    RUNNING = "dispatch.running"
    COMPLETED = "dispatch.completed"
    FAILED = "dispatch.failed"
    DISCARDED = "dispatch.discarded"
    PUBLISH_DEFERRED = "dispatch.publish_deferred"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    CREDENTIALS = "credentials"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (CredentialConfigError, ErrorCategory.CONFIGURATION),
    (ValidatorConfigError, ErrorCategory.CONFIGURATION),
    (CredentialError, ErrorCategory.CREDENTIALS),
    (DispatchTimeoutError, ErrorCategory.TIMEOUT),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes."""
    # Validator HTTP errors split on status code: 5xx and transport are transient.
    if isinstance(exc, InvocationError):
        if exc.status_code is None or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class DispatchEventLogger:
    """Emit structured dispatch events via femtologging."""

    def log_admitted(
        self,
        key: DispatchKey,
        *,
        event_id: str,
        superseded: cabc.Sequence[DispatchKey],
    ) -> None:
        """Log a newly admitted dispatch key."""
        log_info(
            logger,
            "[%s] key=%s event_id=%s superseded=%d",
            DispatchEventType.ADMITTED,
            key,
            event_id,
            len(superseded),
        )
        for older in superseded:
            log_info(
                logger,
                "[%s] key=%s superseded_by=%s",
                DispatchEventType.SUPERSEDED,
                older,
                key.head_sha,
            )

    def log_duplicate(self, key: DispatchKey, *, event_id: str, state: str) -> None:
        """Log a redelivered or replayed event for a known key."""
        log_info(
            logger,
            "[%s] key=%s event_id=%s state=%s",
            DispatchEventType.DUPLICATE,
            key,
            event_id,
            state,
        )

    def log_dispatching(self, key: DispatchKey, *, contract_ids: cabc.Sequence[str]) -> None:
        """Log the start of a dispatch for resolved contracts."""
        log_info(
            logger,
            "[%s] key=%s contracts=%s",
            DispatchEventType.DISPATCHING,
            key,
            ",".join(contract_ids),
        )

    def log_running(self, key: DispatchKey, *, invocation_id: str, attempts: int) -> None:
        """Log that the validator accepted the request."""
        log_info(
            logger,
            "[%s] key=%s invocation_id=%s attempts=%d",
            DispatchEventType.RUNNING,
            key,
            invocation_id,
            attempts,
        )

    def log_completed(
        self, key: DispatchKey, *, severity: Severity, finding_count: int
    ) -> None:
        """Log a completed validation run."""
        log_info(
            logger,
            "[%s] key=%s severity=%s findings=%d",
            DispatchEventType.COMPLETED,
            key,
            severity,
            finding_count,
        )

    def log_failed(
        self, key: DispatchKey, *, reason: str, error: BaseException | None = None
    ) -> None:
        """Log a failed dispatch with error categorisation."""
        category = categorize_error(error) if error is not None else ErrorCategory.UNKNOWN
        log_error(
            logger,
            "[%s] key=%s error_type=%s error_category=%s reason=%s",
            DispatchEventType.FAILED,
            key,
            type(error).__name__ if error is not None else "None",
            category,
            reason,
        )

    def log_discarded(self, key: DispatchKey, *, reason: str) -> None:
        """Log an event or result dropped as stale."""
        log_info(
            logger,
            "[%s] key=%s reason=%s",
            DispatchEventType.DISCARDED,
            key,
            reason,
        )

    def log_publish_deferred(self, key: DispatchKey, *, error: BaseException) -> None:
        """Log a publication left pending for the sweep to retry."""
        log_warning(
            logger,
            "[%s] key=%s error_type=%s error_message=%s",
            DispatchEventType.PUBLISH_DEFERRED,
            key,
            type(error).__name__,
            str(error),
        )
