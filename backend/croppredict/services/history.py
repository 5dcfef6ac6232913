# backend/croppredict/services/history.py
"""
Estimation history: the result sink and its read side.

Writes are scheduled as detached background tasks so storage latency or
failure never touches the estimation response.
"""
import json
import asyncio
import logging
import datetime as dt
from typing import List, Optional, Set

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from croppredict.errors import PersistenceError
from croppredict.schemas import (
    ConfidenceInterval,
    CoreFields,
    EstimationHistoryRecord,
    EstimationResult,
    PersistOutcome,
)

log = logging.getLogger("croppredict.history")

Base = declarative_base()


class EstimationRow(Base):
    __tablename__ = "estimations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, index=True, nullable=False)  # UTC
    crop_type = Column(String(120), nullable=False)
    plot_size = Column(Float, nullable=False)
    estimated_yield = Column(Float, nullable=False)
    ci_lower = Column(Float, nullable=False)
    ci_upper = Column(Float, nullable=False)
    market_price_per_kg = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False)
    price_unit = Column(String(16), nullable=False)
    estimated_total_value = Column(Float, nullable=False)
    explanation = Column(Text, nullable=False)
    suggestions = Column(Text, nullable=False, default="[]")  # JSON list


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class HistoryStore:
    def __init__(self, url: str):
        kwargs = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, or every thread sees its own empty DB
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        self._Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def _write(self, result: EstimationResult, core: CoreFields) -> int:
        row = EstimationRow(
            created_at=_utcnow(),
            crop_type=core.crop_type,
            plot_size=core.plot_size,
            estimated_yield=result.estimated_yield,
            ci_lower=result.confidence_interval.lower,
            ci_upper=result.confidence_interval.upper,
            market_price_per_kg=result.market_price_per_kg,
            currency=result.currency,
            price_unit=result.price_unit,
            estimated_total_value=result.estimated_total_value,
            explanation=result.explanation,
            suggestions=json.dumps(list(result.suggestions)),
        )
        try:
            with self._Session.begin() as session:
                session.add(row)
                session.flush()
                return row.id
        except SQLAlchemyError as e:
            raise PersistenceError() from e

    def persist(self, result: EstimationResult, core: CoreFields) -> PersistOutcome:
        """Append one result to history. Never raises."""
        try:
            row_id = self._write(result, core)
        except PersistenceError as e:
            log.error("Error saving estimation to history store: %s", e.__cause__, exc_info=e)
            return PersistOutcome(success=False, error=e.user_message)
        log.info("Saved estimation %s (%s, %s acres)", row_id, core.crop_type, core.plot_size)
        return PersistOutcome(success=True)

    def list_history(self, limit: Optional[int] = None) -> List[EstimationHistoryRecord]:
        """Most recent first."""
        with self._Session() as session:
            q = session.query(EstimationRow).order_by(
                EstimationRow.created_at.desc(), EstimationRow.id.desc()
            )
            if limit:
                q = q.limit(limit)
            rows = q.all()
        return [_to_record(r) for r in rows]


def _to_record(row: EstimationRow) -> EstimationHistoryRecord:
    created = row.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=dt.timezone.utc)
    return EstimationHistoryRecord(
        id=str(row.id),
        created_at=created,
        crop_type=row.crop_type,
        plot_size=row.plot_size,
        estimated_yield=row.estimated_yield,
        confidence_interval=ConfidenceInterval(lower=row.ci_lower, upper=row.ci_upper),
        market_price_per_kg=row.market_price_per_kg,
        currency=row.currency,
        price_unit=row.price_unit,
        estimated_total_value=row.estimated_total_value,
        explanation=row.explanation,
        suggestions=json.loads(row.suggestions or "[]"),
    )


# ---------- fire-and-forget scheduling ----------

_pending: Set[asyncio.Task] = set()


def _log_outcome(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        log.warning("History write cancelled")
        return
    exc = task.exception()
    if exc is not None:
        log.error("History write crashed", exc_info=exc)
    elif not task.result().success:
        log.warning("History write failed: %s", task.result().error)


def schedule_persist(store: HistoryStore, result: EstimationResult, core: CoreFields) -> asyncio.Task:
    """Start the history write in a worker thread and return without awaiting it."""
    task = asyncio.create_task(asyncio.to_thread(store.persist, result, core))
    _pending.add(task)
    task.add_done_callback(_log_outcome)
    return task


async def drain_pending() -> None:
    """Wait for in-flight history writes (shutdown and tests)."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
