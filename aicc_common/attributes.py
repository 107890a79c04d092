"""
Parsing of the free-form course structure "attributes" cell and the fixed
alias table that maps its keys onto assignable unit fields.

Cells look like ``MS=80;TL=exit,message;CA=exit`` but authoring tools vary:
some use commas between pairs, some emit bare flags (``REQUIRED``) with no
value at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .normalize import is_blank, parse_affirmative


class AttributeField(str, Enum):
    MASTERY_SCORE = "mastery_score"
    MAX_TIME_ALLOWED = "max_time_allowed"
    TIME_LIMIT_ACTION = "time_limit_action"
    COMPLETION_ACTION = "completion_action"
    COMPLETION_LESSON_STATUS = "completion_lesson_status"
    COMPLETION_RESULT_STATUS = "completion_result_status"
    MANDATORY = "mandatory"
    OPTIONAL = "optional"


# Accepted spellings per field, in lookup priority order.
KEY_ALIASES: Mapping[AttributeField, Tuple[str, ...]] = MappingProxyType(
    {
        AttributeField.MASTERY_SCORE: ("MASTERY_SCORE", "MS", "MASTERYSCORE"),
        AttributeField.MAX_TIME_ALLOWED: ("MT", "MAXTIME", "MAX_TIME", "MAX_TIME_ALLOWED"),
        AttributeField.TIME_LIMIT_ACTION: ("TIME_LIMIT_ACTION", "TL", "TLA"),
        AttributeField.COMPLETION_ACTION: ("CA",),
        AttributeField.COMPLETION_LESSON_STATUS: ("CL",),
        AttributeField.COMPLETION_RESULT_STATUS: ("CR",),
        AttributeField.MANDATORY: ("MANDATORY", "REQUIRED", "REQ"),
        AttributeField.OPTIONAL: ("OPTIONAL",),
    }
)

_FIELD_BY_KEY: Mapping[str, AttributeField] = MappingProxyType(
    {alias: fld for fld, aliases in KEY_ALIASES.items() for alias in aliases}
)

KNOWN_ATTRIBUTE_KEYS = frozenset(_FIELD_BY_KEY)
MANDATORY_KEYS = frozenset(KEY_ALIASES[AttributeField.MANDATORY])
OPTIONAL_KEYS = frozenset(KEY_ALIASES[AttributeField.OPTIONAL])
COMPLETION_FIELDS = (
    AttributeField.COMPLETION_ACTION,
    AttributeField.COMPLETION_LESSON_STATUS,
    AttributeField.COMPLETION_RESULT_STATUS,
)


@dataclass(frozen=True)
class KnownAttribute:
    field: AttributeField
    key: str
    value: Optional[str]


@dataclass(frozen=True)
class UnknownAttribute:
    key: str
    value: Optional[str]


Attribute = Union[KnownAttribute, UnknownAttribute]


def normalize_key(key: str) -> str:
    return key.strip().upper()


def _store_pair(text: str, parsed: Dict[str, Optional[str]]) -> None:
    if not text.strip():
        return
    key, sep, value = text.partition("=")
    key = normalize_key(key)
    if not key:
        return
    # No "=" means a bare flag; keep None so it differs from "KEY=".
    parsed[key] = value.strip() if sep else None


def parse_attribute_cell(raw: str | None) -> Dict[str, Optional[str]]:
    """
    Parse one attributes cell into upper-cased keys and trimmed values.

    Segments are separated by ``;``. A segment holding several ``=`` and a
    comma is treated as comma-joined pairs. Within a single cell a repeated
    key overwrites the earlier value.
    """
    parsed: Dict[str, Optional[str]] = {}
    if raw is None:
        return parsed

    for segment in str(raw).split(";"):
        if not segment.strip():
            continue
        if segment.count("=") > 1 and "," in segment:
            for part in segment.split(","):
                _store_pair(part, parsed)
        else:
            _store_pair(segment, parsed)
    return parsed


def merge_attribute_cells(cells: Iterable[str | None]) -> Dict[str, Optional[str]]:
    """Parse several cells for one row; the first cell to define a key wins."""

    merged: Dict[str, Optional[str]] = {}
    for cell in cells:
        for key, value in parse_attribute_cell(cell).items():
            merged.setdefault(key, value)
    return merged


def resolve_key(key: str) -> Optional[AttributeField]:
    """Return the canonical field for an attribute key, or None if unknown."""
    return _FIELD_BY_KEY.get(normalize_key(key))


def classify_attributes(attributes: Mapping[str, Optional[str]]) -> List[Attribute]:
    classified: List[Attribute] = []
    for key, value in attributes.items():
        fld = resolve_key(key)
        if fld is None:
            classified.append(UnknownAttribute(key, value))
        else:
            classified.append(KnownAttribute(fld, key, value))
    return classified


def unknown_attributes(attributes: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
    return {item.key: item.value for item in classify_attributes(attributes) if isinstance(item, UnknownAttribute)}


def first_attribute(attributes: Mapping[str, Optional[str]], fld: AttributeField) -> Optional[str]:
    """Return the first non-blank value among the field's aliases, in priority order."""

    if not attributes:
        return None
    for alias in KEY_ALIASES[fld]:
        value = attributes.get(alias)
        if not is_blank(value):
            return value
    return None


def _read_flag(attributes: Mapping[str, Optional[str]], fld: AttributeField) -> Optional[bool]:
    for alias in KEY_ALIASES[fld]:
        if alias not in attributes:
            continue
        value = attributes[alias]
        if value is None:
            return True
        if not is_blank(value):
            return parse_affirmative(value)
    return None


def extract_mandatory_flag(attributes: Mapping[str, Optional[str]]) -> Optional[bool]:
    """
    Work out an explicit mandatory/optional override.

    MANDATORY/REQUIRED/REQ are read first; otherwise OPTIONAL is read and
    negated. A bare flag counts as affirmative, an empty value is ignored.
    """
    if not attributes:
        return None

    mandatory = _read_flag(attributes, AttributeField.MANDATORY)
    if mandatory is not None:
        return mandatory

    optional = _read_flag(attributes, AttributeField.OPTIONAL)
    if optional is not None:
        return not optional
    return None
