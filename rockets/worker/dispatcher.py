"""Event dispatcher — the background worker pool that drains pending events.

``Dispatcher.start()`` launches ``worker_count`` asyncio tasks.  Each worker
wakes every ``poll_interval`` seconds and runs one ``tick()``:

1. reclaim: hand ``processing`` rows older than ``claim_timeout`` back to
   ``pending`` (skipped when ``claim_timeout`` is 0)
2. fetch: read up to ``batch_size`` pending rows, oldest first
3. claim: move each row ``pending -> processing`` and re-read it, so a
   payload replaced since the fetch is the one processed; rows another
   worker claimed first are dropped from this batch
4. process: apply each claimed row in order, one transaction per row

A failure on one row is logged and the batch carries on.  Workers share no
in-memory rocket state; all coordination happens in the store.

``stop()`` is cooperative: workers finish their current tick, then exit.

Public surface used by ``rockets.main`` lifespan:
- ``Dispatcher.start()`` / ``Dispatcher.stop()``
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.config import Settings
from rockets.db.database import AsyncSessionLocal
from rockets.db.models import EventRecord, utc_now
from rockets.services import event_store
from rockets.services.processor import ProcessOutcome, process_event

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class DispatcherState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class DispatcherConfig:
    """Worker pool sizing and cadence."""

    poll_interval: float = 1.0
    batch_size: int = 10
    worker_count: int = 2
    # Seconds before a "processing" row is considered abandoned; 0 disables.
    claim_timeout: float = 300.0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if self.claim_timeout < 0:
            raise ValueError("claim_timeout must not be negative")

    @classmethod
    def from_settings(cls, settings: Settings) -> DispatcherConfig:
        return cls(
            poll_interval=settings.polling_interval_seconds,
            batch_size=settings.polling_batch_size,
            worker_count=settings.polling_worker_count,
            claim_timeout=settings.claim_timeout_seconds,
        )


@dataclass
class TickResult:
    """Counters for a single worker tick."""

    worker_id: int
    reclaimed: int = 0
    fetched: int = 0
    claimed: int = 0
    errors: int = 0
    outcomes: dict[ProcessOutcome, int] = field(
        default_factory=lambda: {o: 0 for o in ProcessOutcome}
    )

    @property
    def completed(self) -> int:
        """Records that reached a terminal status during this tick."""
        return sum(self.outcomes.values())


class Dispatcher:
    """Fixed-size pool of polling workers.

    Usage:
        dispatcher = Dispatcher(DispatcherConfig.from_settings(settings))
        await dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        config: DispatcherConfig | None = None,
        *,
        session_factory: SessionFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config or DispatcherConfig()
        self._session_factory = session_factory or AsyncSessionLocal
        self._clock = clock
        self._state = DispatcherState.STOPPED
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def config(self) -> DispatcherConfig:
        return self._config

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is DispatcherState.RUNNING

    async def start(self) -> None:
        """Spawn the workers.  No-op if already running."""
        async with self._lock:
            if self._state is DispatcherState.RUNNING:
                return
            self._stop_event = asyncio.Event()
            self._tasks = [
                asyncio.create_task(self._run_worker(worker_id), name=f"rockets-worker-{worker_id}")
                for worker_id in range(self._config.worker_count)
            ]
            self._state = DispatcherState.RUNNING
            logger.info(
                "✅ Event processor started (workers=%d, interval=%.2fs, batch=%d)",
                self._config.worker_count,
                self._config.poll_interval,
                self._config.batch_size,
            )

    async def stop(self) -> None:
        """Signal the workers and wait for them to finish.  No-op if stopped."""
        async with self._lock:
            if self._state is DispatcherState.STOPPED:
                return
            logger.info("Stopping event processor")
            self._stop_event.set()
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for worker_id, res in enumerate(results):
                if isinstance(res, BaseException) and not isinstance(res, asyncio.CancelledError):
                    logger.error("❌ Worker %d exited with error: %s", worker_id, res)
            self._tasks = []
            self._state = DispatcherState.STOPPED
            logger.info("✅ Event processor stopped")

    async def _run_worker(self, worker_id: int) -> None:
        logger.debug("Worker %d started", worker_id)
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.poll_interval)
            except asyncio.TimeoutError:
                pass
            else:
                break
            try:
                await self.tick(worker_id)
            except Exception:
                logger.exception("❌ Worker %d tick failed", worker_id)
        logger.debug("Worker %d stopping", worker_id)

    async def tick(self, worker_id: int = 0) -> TickResult:
        """Run one reclaim/fetch/claim/process cycle.

        This is the unit of work for each worker loop and the function to
        call directly in tests to drain the store without sleeping.
        """
        result = TickResult(worker_id=worker_id)

        if self._config.claim_timeout > 0:
            result.reclaimed = await self._reclaim(worker_id)

        try:
            async with self._session_factory() as session:
                records = await event_store.fetch_pending_batch(session, self._config.batch_size)
        except SQLAlchemyError as exc:
            logger.error("❌ Worker %d failed to fetch pending events: %s", worker_id, exc)
            result.errors += 1
            return result

        result.fetched = len(records)
        if not records:
            return result
        logger.debug("Worker %d fetched %d event(s)", worker_id, len(records))

        claimed: list[EventRecord] = []
        for record in records:
            try:
                won = await self._claim(record)
                if won is not None:
                    claimed.append(won)
            except SQLAlchemyError as exc:
                logger.error("❌ Worker %d failed to claim event %d: %s", worker_id, record.id, exc)
                result.errors += 1
        result.claimed = len(claimed)

        for record in claimed:
            try:
                outcome = await self._process(record)
            except SQLAlchemyError as exc:
                logger.error(
                    "❌ Worker %d failed to process event %d: %s", worker_id, record.id, exc
                )
                result.errors += 1
                continue
            except Exception:
                logger.exception("❌ Worker %d failed to process event %d", worker_id, record.id)
                result.errors += 1
                continue
            result.outcomes[outcome] += 1

        logger.debug(
            "Worker %d finished batch: claimed=%d completed=%d errors=%d",
            worker_id, result.claimed, result.completed, result.errors,
        )
        return result

    async def _reclaim(self, worker_id: int) -> int:
        cutoff = self._clock() - timedelta(seconds=self._config.claim_timeout)
        try:
            async with self._session_factory() as session:
                count = await event_store.reclaim_stale(session, cutoff)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("❌ Worker %d failed to reclaim stale events: %s", worker_id, exc)
            return 0
        return count

    async def _claim(self, record: EventRecord) -> EventRecord | None:
        # Process the claimed copy: a re-ingestion may have replaced the
        # payload between fetch and claim.
        async with self._session_factory() as session:
            won = await event_store.claim_event(session, record.id)
            await session.commit()
        return won

    async def _process(self, record: EventRecord) -> ProcessOutcome:
        started = self._clock()
        async with self._session_factory() as session:
            try:
                outcome = await process_event(session, record, now=started)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.info(
            "Event %d (%s#%d, %s) %s in %.3fs",
            record.id, record.entity_id, record.sequence_number, record.event_type,
            outcome.value, (self._clock() - started).total_seconds(),
        )
        return outcome
