"""Decide whether the published dataset changed and download it when it did.

One call to :meth:`UpdateChecker.check` is one update cycle:

* no page snapshot means the source could not be reached, so nothing happens;
* no stored checkpoint means this is the first run, so the dataset is
  bootstrapped unconditionally;
* otherwise the page's "last updated" date is compared with the checkpoint and
  the dataset is downloaded only when the page is strictly newer.

The checkpoint always records the day the check ran, never the page date.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

import structlog

from owid_watch.errors import FetchError
from owid_watch.fetch.page import SnapshotProvider
from owid_watch.observability.metrics import MetricsRegistry, record_duration
from owid_watch.orchestrator.listeners import UpdateListener
from owid_watch.parse.page_date import DateRule, extract_page_date
from owid_watch.storage.checkpoint_store import LAST_DOWNLOADED_KEY, CheckpointHandle, CheckpointStore

LOGGER = structlog.get_logger(__name__)

UNAVAILABLE = "unavailable"
FIRST_RUN = "first_run"
UPDATED = "updated"
UNCHANGED = "unchanged"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one update cycle along with the downloaded text, if any."""

    outcome: str
    csv_text: str = ""
    page_date: Optional[date] = None
    checkpoint: Optional[date] = None

    @property
    def has_update(self) -> bool:
        return bool(self.csv_text)


class UpdateChecker:
    """Compares the source page with the local checkpoint once per call."""

    def __init__(
        self,
        *,
        snapshot_provider: SnapshotProvider,
        store: CheckpointStore,
        dataset_url: str,
        fetch: Callable[[str], str],
        date_rule: Optional[DateRule] = None,
        listener: Optional[UpdateListener] = None,
        today: Callable[[], date] = date.today,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._snapshot_provider = snapshot_provider
        self._store = store
        self._dataset_url = dataset_url
        self._fetch = fetch
        self._date_rule = date_rule or DateRule()
        self._listener = listener
        self._today = today
        self.metrics = metrics or MetricsRegistry()

    def check(self) -> str:
        """Run one cycle; return the new dataset text, or ``""`` if there is none."""
        return self.run().csv_text

    def run(self) -> CheckResult:
        self.metrics.incr("checks")
        with record_duration(self.metrics, "check_duration_ms"):
            result = self._run_once()
        self.metrics.record_outcome(result.outcome)
        return result

    def _run_once(self) -> CheckResult:
        snapshot = self._snapshot_provider()
        if snapshot is None:
            LOGGER.warning("source_unavailable", detail="page snapshot missing, skipping the change check")
            return CheckResult(outcome=UNAVAILABLE)

        with self._store.open() as handle:
            last_downloaded = handle.get(LAST_DOWNLOADED_KEY)

            if last_downloaded is None:
                LOGGER.info("first_run", detail="no checkpoint stored, downloading the dataset")
                csv_text = self._download()
                today = self._write_checkpoint(handle)
                return CheckResult(outcome=FIRST_RUN, csv_text=csv_text, checkpoint=today)

            page_date = extract_page_date(snapshot, self._date_rule)
            if page_date > last_downloaded:
                LOGGER.info(
                    "update_found",
                    page_date=page_date.isoformat(),
                    last_downloaded=last_downloaded.isoformat(),
                )
                csv_text = self._download()
                today = self._write_checkpoint(handle)
                try:
                    self._notify(csv_text)
                except Exception:
                    # Restore the previous checkpoint so the next cycle downloads again.
                    handle.put(LAST_DOWNLOADED_KEY, last_downloaded)
                    LOGGER.warning("checkpoint_restored", checkpoint=last_downloaded.isoformat())
                    raise
                return CheckResult(outcome=UPDATED, csv_text=csv_text, page_date=page_date, checkpoint=today)

            if page_date < last_downloaded:
                LOGGER.info(
                    "page_date_regressed",
                    page_date=page_date.isoformat(),
                    last_downloaded=last_downloaded.isoformat(),
                )
            LOGGER.info("no_update", page_date=page_date.isoformat(), last_downloaded=last_downloaded.isoformat())
            return CheckResult(outcome=UNCHANGED, page_date=page_date, checkpoint=last_downloaded)

    def _download(self) -> str:
        csv_text = self._fetch(self._dataset_url)
        if not csv_text:
            # An empty body would be indistinguishable from "no update".
            raise FetchError("Dataset download returned an empty body", url=self._dataset_url)
        self.metrics.record_download(csv_text)
        return csv_text

    def _write_checkpoint(self, handle: CheckpointHandle) -> date:
        today = self._today()
        handle.put(LAST_DOWNLOADED_KEY, today)
        LOGGER.info("checkpoint_written", checkpoint=today.isoformat())
        return today

    def _notify(self, csv_text: str) -> None:
        if self._listener is None:
            return
        self._listener.on_update_available(csv_text)
