"""
Periodic sync scheduler.

Each cycle walks:
    IDLE -> FETCHING_REMOTE -> RECONCILING -> PERSISTING -> PUSHING_LOCAL -> IDLE
and drops to FAILED (then IDLE) on any error. At most one cycle runs at a
time; ticks or manual triggers that arrive mid-cycle are dropped, not queued.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import NetworkError, StaleSnapshotError, StorageError
from ..store import QuoteStore
from .notifications import Notification, NotificationKind, NotificationSink, log_notification
from .reconciler import ReconcileResult, reconcile
from .remote import PushReport, PushResult, RemoteSource

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0  # seconds

# Failures that are expected in normal operation and reported as warnings
EXPECTED_FAILURES = (NetworkError, StorageError, StaleSnapshotError)


class SyncPhase(Enum):
    """Where the scheduler is within a cycle."""
    IDLE = "idle"
    FETCHING_REMOTE = "fetching_remote"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"
    PUSHING_LOCAL = "pushing_local"
    FAILED = "failed"


@dataclass
class CycleReport:
    """What happened during one sync cycle."""
    started_at: datetime
    finished_at: datetime | None = None
    success: bool = False
    discarded: bool = False
    error: str | None = None
    phases: list[SyncPhase] = field(default_factory=list)
    result: ReconcileResult | None = None
    push: PushReport | None = None

    @property
    def added(self) -> int:
        return len(self.result.added) if self.result else 0

    @property
    def conflicts(self) -> int:
        return len(self.result.conflicting) if self.result else 0

    @property
    def pushed(self) -> int:
        return len(self.push.pushed) if self.push else 0


class SyncScheduler:
    """
    Runs reconciliation cycles between a QuoteStore and a RemoteSource.

    Usage:
        scheduler = SyncScheduler(store, remote, interval=30)
        await scheduler.start()      # first cycle fires immediately
        ...
        await scheduler.shutdown()   # stops ticking, lets an in-flight cycle finish
    """

    def __init__(
        self,
        store: QuoteStore,
        remote: RemoteSource,
        *,
        interval: float = DEFAULT_INTERVAL,
        sink: NotificationSink = log_notification,
    ):
        if interval <= 0:
            raise ValueError(f"Sync interval must be positive, got {interval}")
        self.store = store
        self.remote = remote
        self.interval = interval
        self.sink = sink

        self.history: list[CycleReport] = []
        self.dropped_triggers = 0

        self._phase = SyncPhase.IDLE
        self._current: CycleReport | None = None
        self._inflight: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None
        self._closed = False

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def running(self) -> bool:
        """True while the interval timer is active."""
        return self._ticker is not None and not self._ticker.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_phase(self, phase: SyncPhase):
        if phase != self._phase:
            logger.debug(f"Sync phase {self._phase.value} -> {phase.value}")
        self._phase = phase
        if self._current is not None:
            self._current.phases.append(phase)

    def _notify(self, kind: NotificationKind, message: str):
        try:
            self.sink(Notification(kind, message))
        except Exception as e:
            logger.error(f"Notification sink failed: {e}")

    # -- lifecycle ---------------------------------------------------------

    async def start(self):
        """Start the interval timer. The first cycle is triggered immediately."""
        if self._closed:
            raise RuntimeError("Scheduler has been shut down")
        if self.running:
            return
        self._ticker = asyncio.create_task(self._tick_loop(), name="quotesync-ticker")
        logger.info(f"Sync scheduler started (every {self.interval:g}s)")

    async def _tick_loop(self):
        while not self._closed:
            self.tick()
            await asyncio.sleep(self.interval)

    async def shutdown(self):
        """
        Stop the interval timer.

        A cycle already in flight is allowed to finish; if its fetch completes
        after shutdown the result is discarded.
        """
        self._closed = True
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)
        logger.info("Sync scheduler stopped")

    async def __aenter__(self) -> "SyncScheduler":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    # -- cycles ------------------------------------------------------------

    def tick(self) -> asyncio.Task | None:
        """
        Start a cycle unless one is already running.

        The phase leaves IDLE before this returns, so a second call in the
        same event loop iteration is dropped.
        """
        if self._closed:
            logger.debug("Scheduler closed, ignoring sync trigger")
            return None
        if self._phase != SyncPhase.IDLE:
            self.dropped_triggers += 1
            logger.info(f"Sync already in progress ({self._phase.value}), dropping trigger")
            return None

        self._current = CycleReport(started_at=datetime.now())
        self._set_phase(SyncPhase.FETCHING_REMOTE)
        self._inflight = asyncio.create_task(
            self._run_cycle(self._current), name="quotesync-cycle"
        )
        return self._inflight

    async def trigger(self) -> CycleReport | None:
        """
        Run a cycle now.

        Returns:
            The cycle report, or None if the trigger was dropped
        """
        task = self.tick()
        if task is None:
            return None
        return await asyncio.shield(task)

    async def _run_cycle(self, report: CycleReport) -> CycleReport:
        try:
            remote_records = await self.remote.fetch_snapshot()
            if self._closed:
                logger.info("Scheduler shut down during fetch, discarding remote snapshot")
                report.discarded = True
                return report

            self._set_phase(SyncPhase.RECONCILING)
            local_records, version = self.store.snapshot()
            result = reconcile(local_records, remote_records)
            report.result = result

            self._set_phase(SyncPhase.PERSISTING)
            self.store.replace_all(result.merged, base_version=version)
            try:
                self.store.mark_synced()
            except StorageError as e:
                logger.warning(f"Merged, but could not record sync time: {e}")
            self._announce_merge(result)

            if result.push_candidates:
                self._set_phase(SyncPhase.PUSHING_LOCAL)
                report.push = await self._push(result)
                self._announce_push(report.push)

            report.success = True

        except EXPECTED_FAILURES as e:
            self._fail(report, e)
            self._notify(NotificationKind.WARNING, f"Sync failed: {e}")

        except Exception as e:
            logger.exception("Unexpected error during sync cycle")
            self._fail(report, e)
            self._notify(NotificationKind.ERROR, f"Sync failed unexpectedly: {e}")

        finally:
            report.finished_at = datetime.now()
            self.history.append(report)
            self._set_phase(SyncPhase.IDLE)
            self._current = None
            self._inflight = None

        return report

    async def _push(self, result: ReconcileResult) -> PushReport:
        """Push local-only records. Failures never touch local state."""
        try:
            return await self.remote.push(result.push_candidates)
        except NetworkError as e:
            logger.warning(f"Push failed: {e}")
            return PushReport(results=[
                PushResult(record_id=r.id, success=False, error=str(e))
                for r in result.push_candidates
            ])

    def _fail(self, report: CycleReport, error: Exception):
        self._set_phase(SyncPhase.FAILED)
        report.error = str(error) or type(error).__name__
        logger.warning(f"Sync cycle failed: {report.error}")

    def _announce_merge(self, result: ReconcileResult):
        added = len(result.added)
        conflicts = len(result.conflicting)
        message = f"Synced with server: {added} new quote{'s' if added != 1 else ''}"
        if conflicts:
            message += (
                f", {conflicts} conflict{'s' if conflicts != 1 else ''} resolved "
                f"(server version kept)"
            )
            self._notify(NotificationKind.WARNING, message)
        else:
            self._notify(NotificationKind.SUCCESS, message)

    def _announce_push(self, report: PushReport):
        pushed = len(report.pushed)
        if report.success:
            self._notify(NotificationKind.SUCCESS, f"Pushed {pushed} local quote(s) to server")
        else:
            self._notify(
                NotificationKind.WARNING,
                f"Pushed {pushed} of {len(report.results)} local quote(s); "
                f"the rest will be retried next sync",
            )
