"""Fixed-interval loop that replays the update check on asyncio."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

from owid_watch.errors import UpdateCheckError
from owid_watch.observability.metrics import MetricsRegistry
from owid_watch.orchestrator.update_checker import CheckResult
from owid_watch.settings import WatchSettings

LOGGER = structlog.get_logger(__name__)

CycleRunner = Callable[[WatchSettings, MetricsRegistry], CheckResult]


async def run_schedule_loop(
    settings: WatchSettings,
    *,
    interval_seconds: Optional[int] = None,
    ticks: Optional[int] = None,
    run_cycle: Optional[CycleRunner] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> MetricsRegistry:
    """Run one update cycle per tick; a cycle never overlaps the next one."""
    if run_cycle is None:
        from owid_watch.main import run_check_cycle

        run_cycle = run_check_cycle
    metrics = metrics or MetricsRegistry()
    interval = settings.scheduler.interval_seconds if interval_seconds is None else interval_seconds

    tick = 0
    while ticks is None or tick < ticks:
        structlog.contextvars.bind_contextvars(tick=tick)
        try:
            result = await asyncio.to_thread(run_cycle, settings, metrics)
        except UpdateCheckError as exc:
            metrics.incr("check_failures")
            LOGGER.error("check_failed", error_kind=type(exc).__name__, reason=str(exc))
        except Exception as exc:
            metrics.incr("check_failures")
            LOGGER.error("check_failed", error_kind=type(exc).__name__, reason=str(exc), exc_info=True)
        else:
            LOGGER.info("check_completed", outcome=result.outcome, has_update=result.has_update)
        finally:
            structlog.contextvars.clear_contextvars()
        tick += 1
        if ticks is None or tick < ticks:
            await asyncio.sleep(interval)
    return metrics
