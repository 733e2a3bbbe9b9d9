"""
Reliability Utilities.

Includes the store-call timeout/translation seam and the ordered
fallback pipeline used by read aggregations.
"""

import asyncio
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError

from adera_backend.app.core.config import settings
from adera_backend.app.core.exceptions import PersistenceError, TransientError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_timeout_override: ContextVar[Optional[float]] = ContextVar("query_timeout", default=None)


@contextmanager
def query_timeout(seconds: Optional[float]):
    """
    Apply a caller-supplied timeout to every store call made inside the block.

    Usage:
        with query_timeout(2.0):
            page = await ParcelService.paginate_parcels(db, user_id)

    ``None`` keeps the configured default.
    """
    if seconds is not None and seconds <= 0:
        raise ValidationError("Timeout must be positive", details={"field": "timeout"})
    token = _timeout_override.set(seconds)
    try:
        yield
    finally:
        _timeout_override.reset(token)


async def run_query(awaitable: Awaitable[T], operation: str, timeout: Optional[float] = None) -> T:
    """
    Await a store call with a timeout and translate its failures.

    Args:
        awaitable: The pending store call (e.g. ``db.execute(stmt)``)
        operation: Short name used in error details and logs
        timeout: Seconds to wait; defaults to the enclosing ``query_timeout``
            block, then ``settings.query_timeout_seconds``

    Raises:
        TransientError: On timeout or connectivity failure
        PersistenceError: On any other SQLAlchemy failure
    """
    limit = timeout
    if limit is None:
        limit = _timeout_override.get()
    if limit is None:
        limit = settings.query_timeout_seconds
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except asyncio.TimeoutError as e:
        raise TransientError(
            f"Timed out after {limit}s during {operation}",
            details={"operation": operation, "timeout_seconds": limit}
        ) from e
    except (OperationalError, InterfaceError, DisconnectionError) as e:
        raise TransientError(
            f"Store unavailable during {operation}",
            details={"operation": operation}
        ) from e
    except SQLAlchemyError as e:
        raise PersistenceError(
            f"Store rejected {operation}",
            details={"operation": operation, "reason": type(e).__name__}
        ) from e


@dataclass
class FallbackStage(Generic[T]):
    """One named strategy in an ordered fallback list."""
    name: str
    run: Callable[[], Awaitable[T]]


@dataclass
class FallbackOutcome(Generic[T]):
    """Result of a pipeline run and the stage that produced it."""
    value: T
    stage: str
    failures: List[str]

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


async def run_fallbacks(
    operation: str,
    stages: Sequence[FallbackStage],
    default: Any,
    on_failure: Optional[Callable[[], Awaitable[None]]] = None,
) -> FallbackOutcome:
    """
    Evaluate stages in order until one succeeds.

    Only PersistenceError and TransientError move the pipeline to the next
    stage; every other exception propagates unchanged. When every stage
    fails, ``default`` is returned with stage name ``"default"``.

    Args:
        operation: Name used in log records
        stages: Ordered strategies, most specific first
        default: Value returned when all stages fail
        on_failure: Awaited after each failed stage (e.g. session rollback)
    """
    failures: List[str] = []

    for stage in stages:
        try:
            value = await stage.run()
        except (PersistenceError, TransientError) as e:
            failures.append(stage.name)
            logger.warning(
                "Fallback stage failed",
                extra={
                    "operation": operation,
                    "stage": stage.name,
                    "error_code": e.error_code,
                    "error": e.message,
                }
            )
            if on_failure is not None:
                await on_failure()
            continue

        logger.debug(
            "Fallback stage succeeded",
            extra={"operation": operation, "stage": stage.name, "skipped": failures}
        )
        return FallbackOutcome(value=value, stage=stage.name, failures=failures)

    logger.warning(
        "All fallback stages failed, returning default",
        extra={"operation": operation, "failed_stages": failures}
    )
    return FallbackOutcome(value=default, stage="default", failures=failures)


async def rollback_session(db) -> None:
    """Roll back after a failed read so the next stage starts clean."""
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.warning("Session rollback failed after read error", exc_info=True)
