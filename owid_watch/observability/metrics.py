"""Per-process counters for update cycles."""
from __future__ import annotations

import contextlib
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import orjson
import structlog

LOGGER = structlog.get_logger(__name__)

_OUTCOME_COUNTERS = {
    "unavailable": "source_unavailable",
    "first_run": "first_runs",
    "updated": "updates_found",
    "unchanged": "no_updates",
}


class MetricsRegistry:
    """Counts check outcomes, downloads and failures for the current process."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = dict.fromkeys(
            ["checks", *_OUTCOME_COUNTERS.values(), "datasets_fetched", "dataset_bytes", "check_failures", "check_duration_ms"],
            0,
        )
        self.last_outcome: Optional[str] = None

    def incr(self, name: str, value: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    def record_outcome(self, outcome: str) -> None:
        """Count a finished cycle under the counter for its outcome."""
        self.incr(_OUTCOME_COUNTERS[outcome])
        self.last_outcome = outcome

    def record_download(self, csv_text: str) -> None:
        self.incr("datasets_fetched")
        self.incr("dataset_bytes", len(csv_text.encode("utf-8")))

    def export(self, *, path: Path, run_id: str) -> Path:
        """Write the counters and the last outcome as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "run_id": run_id,
            "last_outcome": self.last_outcome,
            "counters": dict(self._counters),
            "generated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        return path


@contextlib.contextmanager
def record_duration(registry: MetricsRegistry, metric_name: str):
    """Add the elapsed milliseconds of the block to a counter."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        registry.incr(metric_name, elapsed_ms)
        LOGGER.debug("timer_stop", metric=metric_name, duration_ms=elapsed_ms)
