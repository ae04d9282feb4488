"""Locate and parse the "last updated" date on the source page."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import yaml
from dateutil import parser as dateparser

from owid_watch.errors import DateParseError
from owid_watch.fetch.snapshot import PageSnapshot


@dataclass(frozen=True)
class DateRule:
    """Where the date lives in the page markup and how it is written."""

    selector: str = ".last-updated > :first-child > :first-child"
    date_format: Optional[str] = "%d %B %Y"
    pattern: Optional[str] = None


def load_date_rule(path: Path) -> DateRule:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    defaults = DateRule()
    return DateRule(
        selector=data.get("selector", defaults.selector),
        date_format=data.get("date_format", defaults.date_format),
        pattern=data.get("pattern"),
    )


def _isolate(text: str, pattern: Optional[str]) -> str:
    if not pattern:
        return text
    match = re.search(pattern, text)
    if match is None:
        raise DateParseError(f"Date pattern {pattern!r} not found in {text!r}", text=text)
    isolated = match.group(1) if match.groups() else None
    return isolated if isolated is not None else match.group(0)


def parse_date_text(text: str, rule: DateRule) -> date:
    """Parse the raw element text according to the rule."""
    candidate = " ".join(_isolate(text, rule.pattern).split())
    if rule.date_format:
        try:
            return datetime.strptime(candidate, rule.date_format).date()
        except ValueError as exc:
            raise DateParseError(
                f"{candidate!r} does not match date format {rule.date_format!r}", text=text
            ) from exc
    try:
        return dateparser.parse(candidate, dayfirst=True, fuzzy=True).date()
    except (dateparser.ParserError, OverflowError) as exc:
        raise DateParseError(f"Could not read a date from {candidate!r}", text=text) from exc


def extract_page_date(snapshot: PageSnapshot, rule: DateRule) -> date:
    """Return the page-reported update date, raising `DateParseError` on failure."""
    element = snapshot.document.select_one(rule.selector)
    if element is None:
        raise DateParseError(f"No element matches {rule.selector!r} on {snapshot.url}")
    text = element.get_text(" ", strip=True)
    if not text:
        raise DateParseError(f"Element {rule.selector!r} on {snapshot.url} is empty", text=text)
    return parse_date_text(text, rule)
