"""
Assembly of the AICC course manifest.

Control flow: join the tables, apply course-wide defaults, resolve the root
unit and launch URL, then freeze everything into a ``Manifest``. Assembly is
all-or-nothing: structural problems are collected into a ``ValidationResult``
and raised as one ``ManifestParseError``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from requests.structures import CaseInsensitiveDict

from .defaults import finalize_assignable_units
from .join import index_first, join_tables
from .normalize import is_blank
from .schema import AssignableUnit, Course, CourseStructure, Descriptor
from .validation import (
    AICC_AU_NOT_FOUND,
    AICC_INVALID_AU_REFERENCE,
    AICC_NO_ROOT_AU,
    AICC_ROOT_FALLBACK,
    ValidationIssue,
    ValidationResult,
)

LOGGER = logging.getLogger(__name__)

ROOT_BLOCK = "ROOT"
BUILD_FAILURE = "Failed to build AICC manifest"

Row = Mapping[str, Optional[str]]


def find_root_structure(structures: Sequence[Optional[CourseStructure]]) -> Tuple[Optional[CourseStructure], bool]:
    """
    Return the root structure row and whether it was chosen positionally.

    The first row whose block is ROOT (any case) wins; without one the first
    row of the table is used.
    """

    rows = [cs for cs in structures if cs is not None]
    for cs in rows:
        if (cs.block or "").strip().upper() == ROOT_BLOCK:
            return cs, False
    if not rows:
        return None, False
    return rows[0], True


def resolve_root(
    structures: Sequence[Optional[CourseStructure]],
    units_by_id: Mapping[str, AssignableUnit],
    *,
    strict_root: bool = False,
) -> Tuple[AssignableUnit, ValidationResult]:
    """Find the root unit; raises ManifestParseError, returns any warnings otherwise."""

    root, fell_back = find_root_structure(structures)
    issues: List[ValidationIssue] = []

    if root is None:
        issues.append(ValidationIssue.error(AICC_NO_ROOT_AU, "No root assignable unit found", "CourseStructure"))
        raise ValidationResult(tuple(issues)).to_exception(BUILD_FAILURE)

    if fell_back:
        if strict_root:
            issues.append(
                ValidationIssue.error(
                    AICC_NO_ROOT_AU,
                    "Course structure has no ROOT block",
                    "CourseStructure",
                    "Add a row with Block=ROOT to the .cst file",
                )
            )
            raise ValidationResult(tuple(issues)).to_exception(BUILD_FAILURE)
        LOGGER.warning("No ROOT block in course structure; using first row (member %r)", root.member)
        issues.append(
            ValidationIssue.warning(
                AICC_ROOT_FALLBACK,
                f"No ROOT block found; first course structure row (block {root.block!r}) used as root",
                "CourseStructure",
            )
        )

    root_id = (root.member or "").strip()
    if not root_id:
        issues.append(ValidationIssue.error(AICC_NO_ROOT_AU, "No root assignable unit found", "CourseStructure"))
        raise ValidationResult(tuple(issues)).to_exception(BUILD_FAILURE)

    unit = units_by_id.get(root_id)
    if unit is None:
        issues.append(
            ValidationIssue.error(
                AICC_AU_NOT_FOUND,
                f"No assignable unit found with ID: {root_id}",
                "AssignableUnit list",
            )
        )
        raise ValidationResult(tuple(issues)).to_exception(BUILD_FAILURE)

    return unit, ValidationResult(tuple(issues))


def _case_insensitive_rows(rows: Optional[Iterable[Row]]) -> Optional[Tuple[Row, ...]]:
    if rows is None:
        return None
    # Read-only views; lookups stay case-insensitive.
    return tuple(MappingProxyType(CaseInsensitiveDict(row)) for row in rows)


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class Manifest:
    """The assembled course: enriched units plus the launch entry point."""

    course: Course
    assignable_units: Tuple[AssignableUnit, ...]
    descriptors: Tuple[Descriptor, ...]
    course_structures: Tuple[CourseStructure, ...]
    launch_url: Optional[str]
    prerequisites_table: Optional[Tuple[Row, ...]] = None
    objectives_relation_table: Optional[Tuple[Row, ...]] = None
    issues: ValidationResult = field(default_factory=ValidationResult.valid)

    @property
    def title(self) -> Optional[str]:
        return self.course.course_title if self.course else None

    @property
    def identifier(self) -> Optional[str]:
        return self.course.course_id if self.course else None

    @property
    def version(self) -> Optional[str]:
        return self.course.version if self.course else None

    @property
    def duration(self) -> timedelta:
        # AICC carries no authored duration.
        return timedelta(0)

    @property
    def root_assignable_unit(self) -> Optional[AssignableUnit]:
        """The unit launched by ``launch_url``; falls back to the first unit."""
        for unit in self.assignable_units:
            if unit.file_name is not None and unit.file_name == self.launch_url:
                return unit
        return self.assignable_units[0] if self.assignable_units else None

    @property
    def description(self) -> Optional[str]:
        """Root unit descriptor description first, then the .crs course description."""
        unit = self.root_assignable_unit
        if unit is not None and unit.descriptor is not None and not is_blank(unit.descriptor.description):
            return unit.descriptor.description
        return self.course.description if self.course else None

    def get_assignable_unit(self, system_id: str) -> Optional[AssignableUnit]:
        for unit in self.assignable_units:
            if unit.system_id == system_id:
                return unit
        return None

    def get_descriptor(self, system_id: str) -> Optional[Descriptor]:
        for descriptor in self.descriptors:
            if descriptor.system_id == system_id:
                return descriptor
        return None

    def get_course_structure(self, member: str) -> Optional[CourseStructure]:
        for cs in self.course_structures:
            if cs.member and cs.member.strip() == member.strip():
                return cs
        return None

    def structures_for_block(self, block: str) -> List[CourseStructure]:
        wanted = block.strip().upper()
        return [cs for cs in self.course_structures if (cs.block or "").strip().upper() == wanted]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "identifier": self.identifier,
            "version": self.version,
            "launch_url": self.launch_url,
            "duration": self.duration.total_seconds(),
            "course": _jsonable(self.course),
            "assignable_units": [_jsonable(unit) for unit in self.assignable_units],
            "descriptors": [_jsonable(d) for d in self.descriptors],
            "course_structures": [
                {**_jsonable(cs), "attributes": dict(cs.attributes), "additional_columns": dict(cs.additional_columns)}
                for cs in self.course_structures
            ],
            "prerequisites_table": _jsonable(self.prerequisites_table),
            "objectives_relation_table": _jsonable(self.objectives_relation_table),
            "issues": [_jsonable(issue) for issue in self.issues.issues],
        }


def build_manifest(
    course: Course,
    assignable_units: Iterable[Optional[AssignableUnit]],
    descriptors: Iterable[Optional[Descriptor]],
    course_structures: Iterable[Optional[CourseStructure]],
    prerequisites_table: Optional[Iterable[Row]] = None,
    objectives_relation_table: Optional[Iterable[Row]] = None,
    *,
    strict_root: bool = False,
) -> Manifest:
    """
    Join, default, resolve and freeze the AICC tables into a Manifest.

    Raises ManifestParseError (AICC_NO_ROOT_AU / AICC_AU_NOT_FOUND) when no
    launchable root unit can be determined.
    """

    units = list(assignable_units)
    descriptor_list = [d for d in descriptors if d is not None]
    structures = [cs for cs in course_structures if cs is not None]

    joined = join_tables(units, descriptor_list, structures)
    behavior = course.behavior if course is not None else None
    finalized = finalize_assignable_units(joined.assignable_units, behavior)
    units_by_id = index_first(finalized, lambda au: au.system_id)

    root, root_issues = resolve_root(structures, units_by_id, strict_root=strict_root)

    reference_issues = [
        ValidationIssue.warning(
            AICC_INVALID_AU_REFERENCE,
            f"Course structure member {member!r} does not match any assignable unit",
            "CourseStructure",
        )
        for member in joined.unmatched_members
    ]

    manifest = Manifest(
        course=course,
        assignable_units=tuple(finalized),
        descriptors=tuple(descriptor_list),
        course_structures=tuple(structures),
        launch_url=root.file_name,
        prerequisites_table=_case_insensitive_rows(prerequisites_table),
        objectives_relation_table=_case_insensitive_rows(objectives_relation_table),
        issues=root_issues.merge(ValidationResult(tuple(reference_issues))),
    )
    LOGGER.info(
        "Built AICC manifest %r: %d unit(s), launch URL %r",
        manifest.identifier,
        len(finalized),
        manifest.launch_url,
    )
    return manifest
