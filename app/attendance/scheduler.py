from __future__ import annotations

import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from django.conf import settings
from django.db import close_old_connections

from attendance.services.absence_sweep import mark_absent_for_ended_events
from attendance.services.auto_checkout import auto_checkout_ended_events
from attendance.services.rate_limit import check_in_rate_limiter

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 5
DEFAULT_LOOKBACK_MINUTES = 30
DEFAULT_CATCHUP_LOOKBACK_MINUTES = 7 * 24 * 60
RATE_LIMIT_PRUNE_MINUTES = 10


class SweepGuard:
    """Re-entrancy flag for one sweep within one process."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def running(self) -> bool:
        return self._lock.locked()


def run_guarded(guard: SweepGuard, sweep, **kwargs):
    """Run ``sweep`` unless a previous pass is still running; a busy guard makes this a no-op."""
    if not guard.acquire():
        logger.info("Skipping sweep tick, previous pass still running", extra={"sweep": guard.name})
        return None

    close_old_connections()
    try:
        return sweep(**kwargs)
    except Exception:  # noqa: BLE001
        logger.exception("Sweep failed", extra={"sweep": guard.name})
        return None
    finally:
        close_old_connections()
        guard.release()


class SweepScheduler:
    """Drives the absence and auto-checkout sweeps.

    ``start()`` queues an immediate catch-up pass of each sweep over the
    catch-up lookback, then runs both on a fixed interval with the short
    lookback. ``stop()`` only prevents future ticks.
    """

    def __init__(self, scheduler=None):
        self.scheduler = scheduler or BackgroundScheduler(
            timezone=settings.TIME_ZONE,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
        )
        self.absence_guard = SweepGuard("absence")
        self.checkout_guard = SweepGuard("auto_checkout")
        self.interval_minutes = int(getattr(settings, "ATTENDANCE_SWEEP_INTERVAL_MINUTES", DEFAULT_INTERVAL_MINUTES))
        self.lookback_minutes = int(getattr(settings, "ATTENDANCE_SWEEP_LOOKBACK_MINUTES", DEFAULT_LOOKBACK_MINUTES))
        self.catchup_lookback_minutes = int(
            getattr(settings, "ATTENDANCE_CATCHUP_LOOKBACK_MINUTES", DEFAULT_CATCHUP_LOOKBACK_MINUTES)
        )

    def run_absence_sweep(self, lookback_minutes: int | None = None):
        return run_guarded(
            self.absence_guard,
            mark_absent_for_ended_events,
            lookback_minutes=lookback_minutes or self.lookback_minutes,
        )

    def run_auto_checkout(self, lookback_minutes: int | None = None):
        return run_guarded(
            self.checkout_guard,
            auto_checkout_ended_events,
            lookback_minutes=lookback_minutes or self.lookback_minutes,
        )

    def register_jobs(self) -> None:
        catchup = {"lookback_minutes": self.catchup_lookback_minutes}
        self.scheduler.add_job(self.run_absence_sweep, "date", kwargs=catchup, id="absence_catchup")
        self.scheduler.add_job(self.run_auto_checkout, "date", kwargs=catchup, id="auto_checkout_catchup")
        self.scheduler.add_job(
            self.run_absence_sweep,
            "interval",
            minutes=self.interval_minutes,
            id="absence_sweep",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_auto_checkout,
            "interval",
            minutes=self.interval_minutes,
            id="auto_checkout_sweep",
            replace_existing=True,
        )
        self.scheduler.add_job(
            check_in_rate_limiter.prune,
            "interval",
            minutes=RATE_LIMIT_PRUNE_MINUTES,
            id="rate_limit_prune",
            replace_existing=True,
        )

    def start(self) -> None:
        self.register_jobs()
        logger.info(
            "Starting attendance sweeps",
            extra={
                "interval_minutes": self.interval_minutes,
                "lookback_minutes": self.lookback_minutes,
                "catchup_lookback_minutes": self.catchup_lookback_minutes,
            },
        )
        self.scheduler.start()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Attendance sweeps stopped")
