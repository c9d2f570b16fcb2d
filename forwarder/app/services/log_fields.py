"""
RKHunter log field extraction.

Turns the free-form text of an RKHunter scan log into an ordered list of
Discord embed fields.

IMPORTANT:
- Extraction is a pure function of the input text.
- Every pass reads the same raw report; no pass sees another's output.
- Pass order is frozen in EXTRACTION_PASSES and defines field order.
- Absence of a match is never an error; the field is simply omitted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Callable, List, Optional, Pattern, Protocol, Tuple

from forwarder.app.schemas.embed import (
    EmbedField,
    FIELD_VALUE_LIMIT,
    MAX_EMBED_FIELDS,
)

logger = logging.getLogger("forwarder.log_fields")

FINDING_LINE_LIMIT = 5
DISABLED_TESTS_LIMIT = 10


# ---------------------------------------------------------------------------
# Input model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanReport:
    """Raw scan log text, split into lines once."""

    text: str
    lines: Tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.text.split("\n")))


def _field(name: str, value: str, inline: bool) -> EmbedField:
    return EmbedField(name=name, value=value[:FIELD_VALUE_LIMIT], inline=inline)


# ---------------------------------------------------------------------------
# Pass interface
# ---------------------------------------------------------------------------

class ExtractionPass(Protocol):
    """
    A single independent scan of the report.

    A pass:
    - produces zero or more fields
    - MUST NOT raise for non-matching input
    - MUST NOT depend on other passes
    """

    name: str

    def extract(self, report: ScanReport) -> List[EmbedField]:
        ...


@dataclass(frozen=True)
class MarkerCountPass:
    """Count the lines containing a marker. Always emits one field."""

    name: str
    pattern: Pattern[str]

    def extract(self, report: ScanReport) -> List[EmbedField]:
        count = sum(1 for line in report.lines if self.pattern.search(line))
        return [_field(self.name, str(count), inline=True)]


@dataclass(frozen=True)
class FirstMatchPass:
    """First match of ``pattern`` wins; group 1 is trimmed and transformed."""

    name: str
    pattern: Pattern[str]
    inline: bool = False
    transform: Optional[Callable[[str], str]] = None

    def extract(self, report: ScanReport) -> List[EmbedField]:
        match = self.pattern.search(report.text)
        if not match:
            return []

        value = match.group(1).strip()
        if self.transform is not None:
            value = self.transform(value)

        # Discord rejects empty field values
        if not value:
            return []

        return [_field(self.name, value, self.inline)]


@dataclass(frozen=True)
class LineFilterPass:
    """
    Collect lines satisfying ``predicate``.

    Only the first five lines are kept. They are newline-joined and then
    cut at the field value limit, so the last line may be partial.
    """

    name: str
    predicate: Callable[[str], bool]

    def extract(self, report: ScanReport) -> List[EmbedField]:
        matched = [line for line in report.lines if self.predicate(line)]
        if not matched:
            return []

        value = "\n".join(matched[:FINDING_LINE_LIMIT])[:FIELD_VALUE_LIMIT]
        return [_field(self.name, value, inline=False)]


# ---------------------------------------------------------------------------
# Scan timing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanTimestamps:
    """Resolved scan timing. All attributes are None when unresolved."""

    start: Optional[str] = None
    end: Optional[str] = None
    duration: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.start and self.end and self.duration)


_START_DATE = re.compile(r"Start date is (.+)")
_END_DATE = re.compile(r"End date is (.+)")

# Timezone abbreviations are dropped; every timestamp is read as UTC.
_TZ_TOKEN = re.compile(r"\b(?!AM\b|PM\b)[A-Z]{2,5}\b")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%a %b %d %H:%M:%S %Y",      # date(1): Sun Jan  1 12:00:00 UTC 2023
    "%a %d %b %Y %I:%M:%S %p",   # locale:  Sun 01 Jan 2023 12:00:00 PM UTC
    "%a %d %b %Y %H:%M:%S",
    "%d %b %Y %H:%M:%S",
)


def _parse_scan_date(raw: str) -> datetime:
    cleaned = " ".join(_TZ_TOKEN.sub(" ", raw).split())

    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)

    raise ValueError(f"unrecognised scan date '{raw.strip()}'")


def format_duration(seconds: int) -> str:
    """``"<N> sec"`` under a minute, ``"<M>m <S>s"`` otherwise."""
    if seconds < 60:
        return f"{seconds} sec"
    return f"{seconds // 60}m {seconds % 60}s"


def extract_scan_timestamps(text: str) -> ScanTimestamps:
    """
    Locate the scan start/end lines and compute the elapsed time.

    Missing lines and unparsable dates both yield an empty result.
    """
    start_match = _START_DATE.search(text)
    end_match = _END_DATE.search(text)

    if not start_match or not end_match:
        return ScanTimestamps()

    try:
        start = _parse_scan_date(start_match.group(1))
        end = _parse_scan_date(end_match.group(1))
    except ValueError as exc:
        logger.debug("scan_timestamp_parse_failed", extra={"reason": str(exc)})
        return ScanTimestamps()

    elapsed = int(round((end - start).total_seconds()))

    return ScanTimestamps(
        start=format_datetime(start, usegmt=True),
        end=format_datetime(end, usegmt=True),
        duration=format_duration(elapsed),
    )


@dataclass(frozen=True)
class ScanTimingPass:
    """Emit Started At / Ended At / Duration as a group, or nothing."""

    name: str = "Scan Timing"

    def extract(self, report: ScanReport) -> List[EmbedField]:
        timing = extract_scan_timestamps(report.text)
        if not timing.complete:
            return []

        return [
            _field("Started At", timing.start, inline=False),
            _field("Ended At", timing.end, inline=False),
            _field("Duration", timing.duration, inline=True),
        ]


# ---------------------------------------------------------------------------
# Finding predicates
# ---------------------------------------------------------------------------

_WARNING_TAG = "[ Warning ]"
_ERROR_TAG = "[ Error ]"

_SUID_SGID = re.compile(r"suid|sgid", re.IGNORECASE)
_HIDDEN = re.compile(r"hidden file|hidden directory", re.IGNORECASE)
_NETWORK = re.compile(r"port|connect|listen|network", re.IGNORECASE)


def _is_possible_rootkit(line: str) -> bool:
    lowered = line.lower()
    return "rootkit" in lowered and "possible" in lowered


def _is_changed_file(line: str) -> bool:
    return "File:" in line and "changed" in line.lower()


def _is_suid_sgid_warning(line: str) -> bool:
    return _WARNING_TAG in line and bool(_SUID_SGID.search(line))


def _is_hidden_entry_warning(line: str) -> bool:
    return _WARNING_TAG in line and bool(_HIDDEN.search(line))


def _is_uid_zero_entry(line: str) -> bool:
    return "UID 0" in line


def _is_network_alert(line: str) -> bool:
    return (_WARNING_TAG in line or _ERROR_TAG in line) and bool(
        _NETWORK.search(line)
    )


def shorten_test_list(value: str) -> str:
    """Keep the first ten test names, comma separated, with a trailing '...'."""
    tests = value.split()
    shortened = ", ".join(tests[:DISABLED_TESTS_LIMIT])
    if len(tests) > DISABLED_TESTS_LIMIT:
        shortened += "..."
    return shortened


# ---------------------------------------------------------------------------
# Pipeline (ordered, frozen)
# ---------------------------------------------------------------------------

EXTRACTION_PASSES: Tuple[ExtractionPass, ...] = (
    # Counts
    MarkerCountPass("Warnings", re.compile(r"warning", re.IGNORECASE)),
    MarkerCountPass("Errors", re.compile(r"\[\s*Error\s*\]", re.IGNORECASE)),
    # Identification
    FirstMatchPass(
        "Hostname",
        re.compile(r"Rootkit Hunter.*on\s+(.+)", re.IGNORECASE),
        inline=True,
    ),
    FirstMatchPass("OS", re.compile(r"Found O/S name: (.+)"), inline=True),
    FirstMatchPass(
        "OS Type",
        re.compile(r"Detected operating system is\s+'(.+)'"),
        inline=True,
    ),
    FirstMatchPass(
        "Version",
        re.compile(r"Rootkit Hunter version\s+([0-9.]+)", re.IGNORECASE),
        inline=True,
    ),
    # Configuration metadata
    FirstMatchPass(
        "Config File", re.compile(r"Using configuration file\s+'(.+)'")
    ),
    FirstMatchPass(
        "Email Notifications",
        re.compile(r"Emailing warnings to\s+'(.+)'\s+using"),
    ),
    FirstMatchPass(
        "Database Dir",
        re.compile(r"Using\s+'(.+)'\s+as the database directory"),
    ),
    # Timing
    ScanTimingPass(),
    # Findings
    LineFilterPass("Rootkits", _is_possible_rootkit),
    LineFilterPass("Changed Files", _is_changed_file),
    LineFilterPass("Suspicious SUID/SGID", _is_suid_sgid_warning),
    LineFilterPass("Hidden Files/Dirs", _is_hidden_entry_warning),
    LineFilterPass("UID 0 entries", _is_uid_zero_entry),
    LineFilterPass("Suspicious Network", _is_network_alert),
    # Test configuration
    FirstMatchPass("Enabled Tests", re.compile(r"Enabled tests are:\s+(.+)")),
    FirstMatchPass(
        "Disabled Tests",
        re.compile(r"Disabled tests are:\s+(.+)"),
        transform=shorten_test_list,
    ),
)


def extract_fields(
    log_text: str,
    passes: Tuple[ExtractionPass, ...] = EXTRACTION_PASSES,
) -> List[EmbedField]:
    """
    Run every extraction pass in order and cap the result at 25 fields.

    Never raises for any input text.
    """
    report = ScanReport(log_text or "")

    fields: List[EmbedField] = []
    for extraction_pass in passes:
        fields.extend(extraction_pass.extract(report))

    # Discord embed limit; silent truncation
    return fields[:MAX_EMBED_FIELDS]
