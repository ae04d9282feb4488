"""Command-line entrypoints for the dataset watcher."""
from __future__ import annotations

import argparse
import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import orjson
import structlog
from dotenv import load_dotenv

from owid_watch.errors import UpdateCheckError
from owid_watch.fetch.dataset import fetch_dataset
from owid_watch.fetch.page import page_provider
from owid_watch.fetch.session import HttpSession, create_http_session
from owid_watch.observability.log import configure_logging
from owid_watch.observability.metrics import MetricsRegistry
from owid_watch.orchestrator.listeners import CsvArchiveListener, UpdateListener
from owid_watch.orchestrator.schedule_loop import run_schedule_loop
from owid_watch.orchestrator.update_checker import CheckResult, UpdateChecker
from owid_watch.parse.page_date import DateRule, load_date_rule
from owid_watch.settings import DEFAULT_SETTINGS_PATH, WatchSettings, load_settings
from owid_watch.storage.checkpoint_store import LAST_DOWNLOADED_KEY, CheckpointStore

LOGGER = structlog.get_logger(__name__)


def _load_rule(settings: WatchSettings) -> DateRule:
    rule_path = settings.parse.date_rule
    if rule_path is None or not rule_path.exists():
        return DateRule()
    return load_date_rule(rule_path)


def build_checker(
    settings: WatchSettings,
    session: HttpSession,
    *,
    listener: Optional[UpdateListener] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> UpdateChecker:
    """Wire an `UpdateChecker` from settings around an open HTTP session."""
    timeout = settings.fetch.timeout_seconds
    return UpdateChecker(
        snapshot_provider=page_provider(session, settings.source.page_url, timeout=timeout),
        store=CheckpointStore(settings.storage.checkpoint_path),
        dataset_url=settings.source.dataset_url,
        fetch=lambda url: fetch_dataset(session, url, timeout=timeout),
        date_rule=_load_rule(settings),
        listener=listener,
        metrics=metrics,
    )


def run_check_cycle(settings: WatchSettings, metrics: MetricsRegistry) -> CheckResult:
    """Open a session, run one check, and archive any new release."""
    listener = CsvArchiveListener(settings.storage.archive_dir)
    with create_http_session(
        user_agent=settings.fetch.user_agent,
        timeout=settings.fetch.timeout_seconds,
    ) as session:
        checker = build_checker(settings, session, listener=listener, metrics=metrics)
        result = checker.run()
    if result.outcome == "first_run":
        # The checker only notifies on updates; keep the bootstrap copy as well.
        try:
            listener.on_update_available(result.csv_text)
        except Exception:
            with CheckpointStore(settings.storage.checkpoint_path).open() as handle:
                handle.delete(LAST_DOWNLOADED_KEY)
            LOGGER.warning("checkpoint_cleared", reason="bootstrap copy was not archived")
            raise
    return result


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="owid-watch", description="Download new releases of a published dataset")
    parser.add_argument("--config", default=str(DEFAULT_SETTINGS_PATH), help="Path to settings TOML")
    parser.add_argument("--logging", default="config/logging.yaml", help="Path to logging YAML")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", help="Run a single update check")

    schedule = sub.add_parser("schedule", help="Run update checks at a fixed interval")
    schedule.add_argument("--ticks", type=int, help="Number of iterations to execute")
    schedule.add_argument("--interval", type=int, help="Seconds between ticks")

    sub.add_parser("status", help="Show the stored checkpoint")
    sub.add_parser("reset", help="Forget the checkpoint so the next check downloads again")

    return parser


def _print_json(payload: object) -> None:
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def cmd_check(settings: WatchSettings) -> int:
    metrics = MetricsRegistry()
    run_id = datetime.utcnow().strftime("%Y%m%dT%H%M%S")
    try:
        result = run_check_cycle(settings, metrics)
    except UpdateCheckError as exc:
        metrics.incr("check_failures")
        LOGGER.error("check_failed", error_kind=type(exc).__name__, reason=str(exc))
        _print_json({"outcome": "failed", "error": type(exc).__name__, "detail": str(exc)})
        return 1
    finally:
        metrics.export(path=settings.storage.metrics_dir / f"check_{run_id}.json", run_id=run_id)
    _print_json({
        "outcome": result.outcome,
        "bytes": len(result.csv_text.encode("utf-8")),
        "page_date": result.page_date.isoformat() if result.page_date else None,
        "checkpoint": result.checkpoint.isoformat() if result.checkpoint else None,
    })
    return 0


def cmd_schedule(settings: WatchSettings, args: argparse.Namespace) -> int:
    metrics = asyncio.run(
        run_schedule_loop(
            settings,
            interval_seconds=args.interval,
            ticks=args.ticks,
        )
    )
    run_id = datetime.utcnow().strftime("%Y%m%dT%H%M%S")
    metrics.export(path=settings.storage.metrics_dir / f"schedule_{run_id}.json", run_id=run_id)
    return 0


def cmd_status(settings: WatchSettings) -> int:
    store = CheckpointStore(settings.storage.checkpoint_path)
    last = store.last_downloaded()
    _print_json({
        "checkpoint_path": str(store.path),
        "last_downloaded": last.isoformat() if last else None,
    })
    return 0


def cmd_reset(settings: WatchSettings) -> int:
    store = CheckpointStore(settings.storage.checkpoint_path)
    with store.open() as handle:
        removed = handle.delete(LAST_DOWNLOADED_KEY)
    _print_json({"checkpoint_path": str(store.path), "removed": removed})
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(Path(args.logging))
    try:
        settings = load_settings(Path(args.config))
    except ValueError as exc:
        raise SystemExit(f"Failed to load settings: {exc}")

    if args.command == "check":
        code = cmd_check(settings)
    elif args.command == "schedule":
        code = cmd_schedule(settings, args)
    elif args.command == "status":
        code = cmd_status(settings)
    else:
        code = cmd_reset(settings)
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
