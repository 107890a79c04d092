from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .attributes import (
    COMPLETION_FIELDS,
    AttributeField,
    extract_mandatory_flag,
    first_attribute,
    unknown_attributes,
)
from .normalize import is_blank
from .schema import AssignableUnit, CompletionCriteria, CourseStructure, Descriptor

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# Structure attributes that fill an empty unit field.
_UNIT_FIELDS = (
    AttributeField.MASTERY_SCORE,
    AttributeField.MAX_TIME_ALLOWED,
    AttributeField.TIME_LIMIT_ACTION,
)


def index_first(items: Iterable[Optional[T]], key: Callable[[T], Optional[str]], *, table: str = "") -> Dict[str, T]:
    """
    Build an ordered key -> record lookup; the first record for a key wins.

    Records without a key are skipped. Later duplicates are dropped.
    """

    index: Dict[str, T] = {}
    for item in items:
        if item is None:
            continue
        value = key(item)
        if is_blank(value):
            continue
        if value in index:
            LOGGER.debug("Dropping duplicate %s row for key %r", table or "table", value)
            continue
        index[value] = item
    return index


def create_completion_criteria(attributes: Dict[str, Optional[str]]) -> Optional[CompletionCriteria]:
    values = {fld: first_attribute(attributes, fld) for fld in COMPLETION_FIELDS}
    if all(is_blank(value) for value in values.values()):
        return None
    return CompletionCriteria(
        completion_action=_strip(values[AttributeField.COMPLETION_ACTION]),
        completion_lesson_status=_strip(values[AttributeField.COMPLETION_LESSON_STATUS]),
        completion_result_status=_strip(values[AttributeField.COMPLETION_RESULT_STATUS]),
        additional_rules=unknown_attributes(attributes),
    )


def _strip(value: Optional[str]) -> Optional[str]:
    return None if is_blank(value) else value.strip()


def apply_course_structure(unit: AssignableUnit, structure: Optional[CourseStructure]) -> AssignableUnit:
    """
    Return a copy of ``unit`` supplemented with data from its structure row.

    Structure values never override what the unit record already carries.
    """
    if structure is None:
        return unit

    changes: Dict[str, object] = {}
    if is_blank(unit.prerequisites_expression) and not is_blank(structure.prerequisites):
        changes["prerequisites_expression"] = structure.prerequisites.strip()

    attributes = structure.attributes
    if attributes:
        for fld in _UNIT_FIELDS:
            value = first_attribute(attributes, fld)
            if is_blank(getattr(unit, fld.value)) and not is_blank(value):
                changes[fld.value] = value.strip()

        mandatory = extract_mandatory_flag(attributes)
        if mandatory is not None:
            changes["prerequisites_mandatory_override"] = mandatory

        criteria = create_completion_criteria(attributes)
        if criteria is not None:
            changes["completion_criteria"] = criteria

    if not changes:
        return unit
    return dataclasses.replace(unit, **changes)


@dataclass(frozen=True)
class JoinResult:
    assignable_units: List[AssignableUnit]
    units_by_id: Dict[str, AssignableUnit]
    descriptors_by_id: Dict[str, Descriptor]
    structures_by_member: Dict[str, CourseStructure]
    unmatched_members: List[str]


def join_tables(
    assignable_units: Iterable[Optional[AssignableUnit]],
    descriptors: Iterable[Optional[Descriptor]],
    course_structures: Iterable[Optional[CourseStructure]],
) -> JoinResult:
    """Cross-link units with their descriptor and structure row."""

    units_by_id = index_first(assignable_units, lambda au: au.system_id, table="assignable unit")
    descriptors_by_id = index_first(descriptors, lambda d: d.system_id, table="descriptor")
    structures = [cs for cs in course_structures if cs is not None]
    structures_by_member = index_first(
        structures,
        lambda cs: cs.member.strip() if cs.member else None,
        table="course structure",
    )

    enriched: List[AssignableUnit] = []
    for system_id, unit in units_by_id.items():
        descriptor = descriptors_by_id.get(system_id)
        if descriptor is not None:
            unit = dataclasses.replace(unit, descriptor=descriptor)
        enriched.append(apply_course_structure(unit, structures_by_member.get(system_id)))

    # Members may name other blocks rather than units.
    blocks = {cs.block.strip().upper() for cs in structures if cs.block}
    unmatched = [
        member for member in structures_by_member if member not in units_by_id and member.upper() not in blocks
    ]
    return JoinResult(
        assignable_units=enriched,
        units_by_id={unit.system_id: unit for unit in enriched},
        descriptors_by_id=descriptors_by_id,
        structures_by_member=structures_by_member,
        unmatched_members=unmatched,
    )
