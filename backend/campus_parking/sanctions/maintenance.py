"""
Scheduled Maintenance

Runs the expiration sweeps as one job: registrations first, then
sanctions. The two are isolated; a failure in one is reported next to
the other's result instead of preventing it.

MaintenanceService optionally runs the job in-process on an interval.
External schedulers (cron, platform jobs) call run_maintenance_jobs()
through scripts/run_maintenance.py or POST /api/maintenance/run-all.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import structlog
from pydantic import ValidationError as DocumentValidationError

from campus_parking.database import StoreError
from .errors import SanctionError, SweepIncompleteError
from .expiration import ExpirationSweeper, SweepReport

logger = structlog.get_logger(__name__)


@dataclass
class MaintenanceRunResult:
    """Both sweep outcomes of one maintenance run"""
    registrations: Optional[SweepReport] = None
    sanctions: Optional[SweepReport] = None
    errors: Dict[str, str] = field(default_factory=dict)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "registrations": self.registrations.to_dict() if self.registrations else None,
            "sanctions": self.sanctions.to_dict() if self.sanctions else None,
            "errors": dict(self.errors),
            "durationSeconds": round(self.finished_at - self.started_at, 3),
        }


def _run_sweep(name: str, sweep: Callable[[], SweepReport], result: MaintenanceRunResult) -> Optional[SweepReport]:
    try:
        return sweep()
    except SweepIncompleteError as exc:
        result.errors[name] = exc.detail
        return exc.report
    except (SanctionError, StoreError) as exc:
        logger.error("maintenance_sweep_failed", sweep=name, reason=str(exc), exc_info=True)
        result.errors[name] = str(exc)
        return None
    except DocumentValidationError as exc:
        # A stored document that no longer fits its model
        logger.error("maintenance_sweep_malformed_document", sweep=name, reason=str(exc))
        result.errors[name] = f"Malformed document: {exc.error_count()} invalid field(s)"
        return None


def run_maintenance_jobs(sweeper: ExpirationSweeper, now: Optional[float] = None) -> MaintenanceRunResult:
    """
    Run the registration sweep, then the sanction sweep

    Registration results are committed independently of the sanction
    sweep; check result.success / result.errors for failures.
    """
    result = MaintenanceRunResult(started_at=time.time())
    logger.info("maintenance_started")

    result.registrations = _run_sweep("registrations", lambda: sweeper.sweep_registrations(now), result)
    result.sanctions = _run_sweep("sanctions", lambda: sweeper.sweep_sanctions(now), result)

    result.finished_at = time.time()
    logger.info(
        "maintenance_finished",
        success=result.success,
        registrations=result.registrations.processed_count if result.registrations else None,
        sanctions=result.sanctions.processed_count if result.sanctions else None,
    )
    return result


class MaintenanceService:
    """
    In-process periodic maintenance

    Runs run_maintenance_jobs() every interval_seconds on a worker
    thread so store calls never block the event loop.
    """

    def __init__(self, sweeper: ExpirationSweeper, interval_seconds: float = 3600):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds

        self.running = False
        self._task: Optional[asyncio.Task] = None

        # Statistics
        self.total_runs = 0
        self.failed_runs = 0
        self.last_result: Optional[MaintenanceRunResult] = None

    async def start(self):
        """Start the periodic loop"""
        if self.running:
            logger.warning("maintenance_service_already_running")
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("maintenance_service_started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the periodic loop"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("maintenance_service_stopped")

    async def run_once(self) -> MaintenanceRunResult:
        result = await asyncio.to_thread(run_maintenance_jobs, self.sweeper)
        self.total_runs += 1
        if not result.success:
            self.failed_runs += 1
        self.last_result = result
        return result

    async def _loop(self):
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception:
                self.failed_runs += 1
                logger.exception("maintenance_run_crashed")
            await asyncio.sleep(self.interval_seconds)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "intervalSeconds": self.interval_seconds,
            "totalRuns": self.total_runs,
            "failedRuns": self.failed_runs,
            "lastRun": self.last_result.to_dict() if self.last_result else None,
        }
