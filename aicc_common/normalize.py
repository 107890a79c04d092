from __future__ import annotations

import math
import re
from datetime import timedelta
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, List, Optional

import pandas as pd

AFFIRMATIVE_VALUES = frozenset({"y", "yes", "true", "1", "required", "mandatory"})
NEGATIVE_VALUES = frozenset({"n", "no", "false", "0", "optional"})

# Up to three digit groups separated by colons: "H", "H:MM", "H:MM:SS.fff", ":MM".
HMS_RE = re.compile(r"^(\d+)?(?::(\d+))?(?::(\d+(?:[.,]\d+)?))?$")
SECONDS_RE = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)$")
# Fixed-length ISO-8601 durations only; calendar years and months have no fixed size.
ISO_DURATION_RE = re.compile(
    r"^[-+]?P(?=[\dT])(?:\d+D)?(?:T(?=\d)(?:\d+H)?(?:\d+M)?(?:\d+(?:[.,]\d+)?S)?)?$",
    re.IGNORECASE,
)


def is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def normalize_mastery_score(raw: str | None) -> Optional[float]:
    """
    Convert an authored mastery score into the 0..1 range.

    "85", "85%" and "0.85" all become 0.85. Values above 1 are read as
    percentages even without a "%" sign. Anything unparsable, or a result
    outside 0..1, yields None.
    """
    if is_blank(raw):
        return None
    cleaned = str(raw).strip()
    if cleaned.endswith("%"):
        cleaned = cleaned[:-1].strip()
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    if value > 1:
        value = value / 100
    if value < 0 or value > 1:
        return None
    return value


def _parse_hhmmss(text: str) -> timedelta:
    """Parse HH:MM:SS style durations; raises ValueError when the text does not fit."""

    if text == "::":
        return timedelta(0)
    if SECONDS_RE.match(text):
        return timedelta(seconds=int(float(text)))

    match = HMS_RE.match(text)
    if not match:
        raise ValueError(f"Invalid HH:MM:SS duration: {text}")
    hours, minutes, seconds = match.groups()
    duration = timedelta(hours=int(hours or 0), minutes=int(minutes or 0))
    if seconds:
        try:
            exact = Decimal(seconds.replace(",", "."))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid HH:MM:SS duration: {text}") from exc
        whole = int(exact)
        micros = int(((exact - whole) * 1_000_000).quantize(Decimal(1), rounding=ROUND_DOWN))
        duration += timedelta(seconds=whole, microseconds=micros)
    return duration


def _parse_iso_duration(text: str) -> timedelta:
    """Parse an ISO-8601 duration such as PT1H30M via pandas; raises ValueError on failure."""

    if not ISO_DURATION_RE.match(text):
        raise ValueError(f"Not an ISO-8601 duration: {text}")
    value = pd.Timedelta(text.upper().replace(",", "."))
    if pd.isna(value):
        raise ValueError(f"Not an ISO-8601 duration: {text}")
    return value.to_pytimedelta()


def parse_duration(raw: str | None) -> Optional[timedelta]:
    """Parse "01:30:00" or "PT1H30M" style durations; None when neither format fits."""
    if is_blank(raw):
        return None
    text = str(raw).strip()
    try:
        return _parse_hhmmss(text)
    except (ValueError, OverflowError):
        pass
    try:
        return _parse_iso_duration(text)
    except (ValueError, OverflowError):
        return None


def parse_time_limit_action(raw: str | None) -> List[str]:
    """Split "exit,message;continue" into ["EXIT", "MESSAGE", "CONTINUE"]."""
    if is_blank(raw):
        return []
    actions: List[str] = []
    for part in str(raw).replace(";", ",").split(","):
        token = part.strip()
        if not token:
            continue
        actions.append(token.upper())
    return actions


def parse_affirmative(raw: str | None) -> Optional[bool]:
    """
    Read a yes/no style flag.

    Unrecognized text counts as affirmative unless it starts with "n" or "0";
    blank input yields None.
    """
    if is_blank(raw):
        return None
    normalized = str(raw).strip().lower()
    if normalized in AFFIRMATIVE_VALUES:
        return True
    if normalized in NEGATIVE_VALUES:
        return False
    return not (normalized.startswith("n") or normalized.startswith("0"))
