from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from cellreports.core.business_metrics import BusinessMetric, MetricCategory
from cellreports.core.config import settings
from cellreports.core.errors import ConflictError, UnavailableError
from cellreports.core.metrics import emit_business_metric

logger = logging.getLogger(__name__)

engine = create_engine(settings.postgres_url, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

T = TypeVar("T")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block as one unit of work: commit on success, roll back on any error.

    Connection-level failures are re-raised as UnavailableError so callers can
    decide whether a retry is safe. Every other exception propagates unchanged
    after the rollback.
    """
    try:
        yield db
        db.commit()
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        logger.warning(f"Transaction aborted by the database: {e}")
        raise UnavailableError() from e
    except Exception:
        db.rollback()
        raise


def lock_for_update(stmt):
    """
    Apply row-level locking to a select.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; PostgreSQL honors it.
    """
    return stmt.with_for_update()


def run_with_retry(
    db: Session,
    func: Callable[[], T],
    *,
    operation: str,
    attempts: int | None = None,
    backoff_base: float = 0.05,
) -> T:
    """
    Execute a unit of work, re-running it when it loses a unique-key race.

    ``func`` must be safe to run again from scratch: it re-reads whatever it
    checked before inserting, so the second pass sees the winner's row and
    takes the read/update path. The session is rolled back between attempts.

    Raises:
        ConflictError: If every attempt lost the race
    """
    attempts = attempts or settings.conflict_retry_attempts
    for attempt in range(attempts):
        try:
            return func()
        except IntegrityError as exc:
            db.rollback()
            if attempt >= attempts - 1:
                logger.warning(
                    f"{operation}: unique constraint still contended after {attempts} attempts"
                )
                raise ConflictError(
                    "Concurrent update did not settle; re-fetch and retry",
                    details={"operation": operation},
                ) from exc
            logger.info(
                f"{operation}: lost unique-key race, retrying (attempt {attempt + 1})"
            )
            emit_business_metric(
                BusinessMetric.UNIQUE_RACE_RECOVERED,
                category=MetricCategory.REPORT,
                operation=operation,
            )
            time.sleep(backoff_base * (2 ** attempt))
    raise ConflictError("Concurrent update did not settle; re-fetch and retry")
