"""
Shared batch-and-claim pattern for the job processors.

Export and deletion requests are separate state machines, but both are
picked up the same way: a bounded batch of candidates, oldest first, each
claimed with a compare-and-set on ``(status, started_at)`` so overlapping
runs never process the same request twice.

A request left in ``processing`` by a crashed run becomes claimable again
once its ``started_at`` is older than ``stale_processing_minutes``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.config import settings

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one processor run."""

    processed: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }


def stale_cutoff(now: datetime) -> datetime | None:
    if settings.stale_processing_minutes <= 0:
        return None
    return now - timedelta(minutes=settings.stale_processing_minutes)


def claimable(model, queued, processing, now: datetime, include_unstarted: bool = False):
    """
    Filter for requests a run may pick up.

    ``include_unstarted`` also admits ``processing`` rows that were never
    started, which is how an expedited deletion reaches the processor.
    """
    in_processing = []
    if include_unstarted:
        in_processing.append(model.started_at.is_(None))
    cutoff = stale_cutoff(now)
    if cutoff is not None:
        in_processing.append(model.started_at < cutoff)

    if not in_processing:
        return model.status == queued
    return or_(model.status == queued, and_(model.status == processing, or_(*in_processing)))


async def claim(session: AsyncSession, model, row, processing, now: datetime) -> bool:
    """
    Move ``row`` to ``processing`` only if nobody changed it since it was read.

    Returns True when this run owns the request. A ``processing`` row is only
    taken over when it was never started or has gone stale.
    """
    if row.status == processing and row.started_at is not None:
        cutoff = stale_cutoff(now)
        if cutoff is None or row.started_at >= cutoff:
            logger.info(f"Request {row.id} is already being processed")
            return False

    started_at = model.started_at.is_(None) if row.started_at is None else model.started_at == row.started_at
    result = await session.execute(
        update(model)
        .where(model.id == row.id, model.status == row.status, started_at)
        .values(status=processing, started_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    if result.rowcount != 1:
        logger.info(f"Request {row.id} was claimed by another run")
        return False

    if row.status == processing and row.started_at is not None:
        logger.warning(f"Reclaimed stale request {row.id} (started {row.started_at})")
    await session.refresh(row)
    return True
