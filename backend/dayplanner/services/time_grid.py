"""Canonical daily time grid: fixed named blocks, each split into four quartiles.

This module is the single source of truth for block names and boundaries. The
scheduler, the candidate aggregator and the ``/time-blocks`` endpoint all read
from ``TIME_BLOCKS`` so server and client derive the same grid.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time
from typing import Dict, List, Optional, Tuple, Union

QUARTILES_PER_BLOCK = 4
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class TimeBlock:
    name: str
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return _hhmm_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        # "24:00" closes the day; keep it as 1440 rather than wrapping to 0.
        return _hhmm_to_minutes(self.end) or MINUTES_PER_DAY

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def contains(self, minutes: int) -> bool:
        return self.start_minutes <= minutes < self.end_minutes


TIME_BLOCKS: Tuple[TimeBlock, ...] = (
    TimeBlock("Recover", "00:00", "07:00"),
    TimeBlock("PHYSICAL MENTAL", "07:00", "09:00"),
    TimeBlock("CHIEF PROJECT", "09:00", "11:00"),
    TimeBlock("HOUR OF POWER", "11:00", "12:00"),
    TimeBlock("PRODUCTION WORK", "12:00", "14:00"),
    TimeBlock("COMPANY BLOCK", "14:00", "16:00"),
    TimeBlock("BUSINESS AUTOMATION", "16:00", "18:00"),
    TimeBlock("ENVIRONMENTAL", "18:00", "20:00"),
    TimeBlock("FLEXIBLE BLOCK", "20:00", "22:00"),
    TimeBlock("WIND DOWN", "22:00", "24:00"),
)

DEFAULT_BLOCK_NAME = "FLEXIBLE BLOCK"
BLOCKS_BY_NAME: Dict[str, TimeBlock] = {block.name: block for block in TIME_BLOCKS}
BLOCK_ORDER: Dict[str, int] = {block.name: index for index, block in enumerate(TIME_BLOCKS)}

WEEKDAY_TOKENS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_QUARTILE_KEYWORDS: Tuple[Tuple[int, Tuple[str, ...]], ...] = (
    (1, ("1st", "first", "q1", "one")),
    (2, ("2nd", "second", "q2", "two")),
    (3, ("3rd", "third", "q3", "three")),
    (4, ("4th", "fourth", "q4", "four", "last")),
)

_MERIDIEM = r"(am|pm|a\.m\.|p\.m\.)"
_CLOCK_RE = re.compile(r"(\d{1,2})(?:[:.h](\d{2}))?\s*" + _MERIDIEM + "?", re.IGNORECASE)
_RANGE_RE = re.compile(
    r"(\d{1,2})(?:[:.h](\d{2}))?\s*" + _MERIDIEM + r"?\s*(?:-|\u2013|to)\s*"
    r"(\d{1,2})(?:[:.h](\d{2}))?\s*" + _MERIDIEM + "?",
    re.IGNORECASE,
)
_PAREN_RE = re.compile(r"\(.*?\)")

ClockValue = Union[str, time, None]


def resolve_block_for_clock_time(value: ClockValue) -> str:
    """Return the block whose [start, end) contains ``value``.

    Accepts ``"9:00"``, ``"09:30"``, ``"9am"``, ``"9:30 PM"`` or a ``datetime.time``.
    Upstream data is untrusted, so anything unparseable falls back to
    ``DEFAULT_BLOCK_NAME`` instead of raising.
    """
    minutes = clock_to_minutes(value)
    if minutes is None:
        return DEFAULT_BLOCK_NAME
    return _block_for_minutes(minutes)


def clock_to_minutes(value: ClockValue) -> Optional[int]:
    """Parse the first clock reading in ``value`` into minutes after midnight."""
    if value is None:
        return None
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    match = _CLOCK_RE.search(str(value))
    if not match:
        return None
    return _to_minutes(match.group(1), match.group(2), match.group(3))


def _range_start_minutes(label: str) -> Optional[int]:
    """Start of a ``start-end`` range whose am/pm marker sits only on the end.

    ``"6-8PM"`` starts at 18:00 and ``"11-1pm"`` at 11:00: the start takes the
    end's marker unless that would put it after the end. None when ``label`` is
    not such a range.
    """
    match = _RANGE_RE.search(label)
    if not match or match.group(3) or not match.group(6):
        return None
    meridiem = match.group(6)
    end = _to_minutes(match.group(4), match.group(5), meridiem)
    start = _to_minutes(match.group(1), match.group(2), meridiem)
    if start is None or end is None:
        return None
    if end == 0:
        end = MINUTES_PER_DAY
    if start > end and _meridiem(meridiem) == "pm":
        start = _to_minutes(match.group(1), match.group(2), "am")
    return start


def quartile_span(block_name: str) -> List[Tuple[str, str]]:
    """Return the four equal (start, end) sub-intervals of a block as HH:MM strings.

    Display and duration math only; quartile identity is always the 1-4 index.
    """
    block = BLOCKS_BY_NAME.get(block_name) or BLOCKS_BY_NAME[DEFAULT_BLOCK_NAME]
    step = block.duration_minutes / QUARTILES_PER_BLOCK
    spans: List[Tuple[str, str]] = []
    for index in range(QUARTILES_PER_BLOCK):
        start = block.start_minutes + round(step * index)
        end = block.start_minutes + round(step * (index + 1))
        spans.append((_minutes_to_hhmm(start), _minutes_to_hhmm(end)))
    return spans


def quartile_duration_minutes(block_name: str) -> int:
    block = BLOCKS_BY_NAME.get(block_name) or BLOCKS_BY_NAME[DEFAULT_BLOCK_NAME]
    return block.duration_minutes // QUARTILES_PER_BLOCK


def resolve_block_label(label: Optional[str]) -> Optional[str]:
    """Map a human block label to a canonical block name.

    Handles exact names in any case, labels with a parenthesised time hint
    (``"PHYSICAL MENTAL (7-9AM)"``), underscore/hyphen spellings
    (``"physical_mental"``) and, failing those, a clock reading inside the label.
    Returns None when nothing matches.
    """
    if not label or not isinstance(label, str):
        return None
    normalized = _normalize_label(label)
    if not normalized:
        return _block_from_clock_label(label)
    for block in TIME_BLOCKS:
        if _normalize_label(block.name) == normalized:
            return block.name
    if len(normalized) >= 3:
        for block in TIME_BLOCKS:
            canonical = _normalize_label(block.name)
            if canonical in normalized or normalized in canonical:
                return block.name
    return _block_from_clock_label(label)


def is_canonical_block(name: Optional[str]) -> bool:
    return bool(name) and name in BLOCKS_BY_NAME


def parse_quartile_label(label: object) -> int:
    """Turn a loose quartile label into 1-4; unrecognized labels mean quartile 1."""
    if isinstance(label, bool):
        return 1
    if isinstance(label, int):
        return label if 1 <= label <= QUARTILES_PER_BLOCK else 1
    if not isinstance(label, str):
        return 1
    text = label.strip().lower()
    if text.isdigit():
        number = int(text)
        return number if 1 <= number <= QUARTILES_PER_BLOCK else 1
    tokens = re.split(r"[^a-z0-9]+", text)
    for quartile, keywords in _QUARTILE_KEYWORDS:
        if any(keyword in tokens for keyword in keywords):
            return quartile
    # Bare digits only after words; "fourth (1:15-1:30)" carries a clock hint.
    for token in tokens:
        if token.isdigit() and 1 <= int(token) <= QUARTILES_PER_BLOCK:
            return int(token)
    return 1


def weekday_token(day: date) -> str:
    """Lower-case English weekday name as stored in ``days_of_week``."""
    return WEEKDAY_TOKENS[day.weekday()]


def iter_slots() -> List[Tuple[str, int]]:
    """Every (block, quartile) of the grid in display order."""
    return [
        (block.name, quartile)
        for block in TIME_BLOCKS
        for quartile in range(1, QUARTILES_PER_BLOCK + 1)
    ]


def _normalize_label(label: str) -> str:
    stripped = _PAREN_RE.sub(" ", label)
    stripped = re.sub(r"[_\-]+", " ", stripped)
    return " ".join(stripped.upper().split())


def _block_from_clock_label(label: str) -> Optional[str]:
    minutes = _range_start_minutes(label)
    if minutes is None:
        minutes = clock_to_minutes(label)
    if minutes is None:
        return None
    return _block_for_minutes(minutes)


def _block_for_minutes(minutes: int) -> str:
    for block in TIME_BLOCKS:
        if block.contains(minutes):
            return block.name
    return DEFAULT_BLOCK_NAME


def _meridiem(value: Optional[str]) -> str:
    return (value or "").lower().replace(".", "")


def _to_minutes(hours_text: str, minutes_text: Optional[str], meridiem: Optional[str]) -> Optional[int]:
    hours = int(hours_text)
    minutes = int(minutes_text or 0)
    marker = _meridiem(meridiem)
    if marker == "pm" and hours < 12:
        hours += 12
    elif marker == "am" and hours == 12:
        hours = 0
    if hours == 24 and minutes == 0:
        hours = 0
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def _hhmm_to_minutes(value: str) -> int:
    hours, minutes = (int(part) for part in value.split(":"))
    return (hours * 60 + minutes) % MINUTES_PER_DAY


def _minutes_to_hhmm(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"
