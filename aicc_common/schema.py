from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .attributes import KNOWN_ATTRIBUTE_KEYS, merge_attribute_cells

if TYPE_CHECKING:
    from .prerequisites import PrerequisiteExpression


def clean_header_name(name: str | None) -> str:
    """
    Normalize a raw AICC table header into a lookup key.

    Authoring tools disagree on quoting, case and spacing ("System_ID",
    "system id", "SYSTEM_ID SYSTEM_ID"), so headers are stripped of quotes,
    repeated words are collapsed and the result is lower-cased with spaces
    turned into underscores.
    """
    if not name:
        return ""

    tokens = str(name).strip().strip('"').strip("'").split()
    n_tokens = len(tokens)
    if n_tokens == 0:
        return ""

    # Detect repeated phrases (e.g., "System_ID SYSTEM_ID" -> "System_ID").
    for chunk_size in range(1, n_tokens // 2 + 1):
        if n_tokens % chunk_size != 0:
            continue
        chunks = [tokens[i : i + chunk_size] for i in range(0, n_tokens, chunk_size)]
        first_norm = [x.lower() for x in chunks[0]]
        if all([x.lower() for x in c] == first_norm for c in chunks[1:]):
            tokens = chunks[0]
            break

    return "_".join(token.lower() for token in tokens)


@dataclass(frozen=True)
class TableSchema:
    """Canonical schema definition for one AICC table."""

    name: str
    extension: str
    columns: Mapping[str, Tuple[str, ...]]  # canonical -> accepted raw headers
    keys: Sequence[str]
    required: Sequence[str] = ()


COURSE_COLS: Mapping[str, Tuple[str, ...]] = {
    "course_id": ("Course_ID",),
    "course_title": ("Course_Title",),
    "course_creator": ("Course_Creator",),
    "course_system": ("Course_System",),
    "level": ("Level",),
    "version": ("Version",),
    "total_aus": ("Total_AUs",),
    "total_blocks": ("Total_Blocks",),
    "total_objectives": ("Total_Objectives",),
    "total_complex_obj": ("Total_Complex_Obj",),
    "max_fields_cst": ("Max_Fields_CST",),
    "max_fields_ort": ("Max_Fields_ORT",),
}

BEHAVIOR_COLS: Mapping[str, Tuple[str, ...]] = {
    "max_normal": ("Max_Normal",),
    "mastery_score": ("Mastery_Score",),
    "max_time_allowed": ("Max_Time_Allowed",),
    "time_limit_action": ("Time_Limit_Action",),
}

AU_COLS: Mapping[str, Tuple[str, ...]] = {
    "system_id": ("System_ID",),
    "type": ("Type",),
    "command_line": ("Command_Line",),
    "file_name": ("File_Name",),
    "max_score": ("Max_Score",),
    "mastery_score": ("Mastery_Score",),
    "max_time_allowed": ("Max_Time_Allowed",),
    "time_limit_action": ("Time_Limit_Action",),
    "system_vendor": ("System_Vendor",),
    "core_vendor": ("Core_Vendor",),
    "web_launch": ("Web_Launch",),
    "au_password": ("AU_Password",),
    "prerequisites_expression": ("Prerequisites", "Prerequisite"),
}

DES_COLS: Mapping[str, Tuple[str, ...]] = {
    "system_id": ("System_ID",),
    "developer_id": ("Developer_ID",),
    "title": ("Title",),
    "description": ("Description",),
}

CST_COLS: Mapping[str, Tuple[str, ...]] = {
    "block": ("Block",),
    "member": ("Member",),
    "prerequisites": ("Prerequisites", "Prerequisite"),
    "attributes": ("Attributes", "Attribute", "AU_Attributes"),
}


def _table_schema() -> Dict[str, TableSchema]:
    """Build immutable table schema map."""

    return {
        "au": TableSchema("au", ".au", AU_COLS, keys=("system_id",), required=("system_id",)),
        "des": TableSchema("des", ".des", DES_COLS, keys=("system_id",), required=("system_id",)),
        "cst": TableSchema("cst", ".cst", CST_COLS, keys=("member",), required=("block", "member")),
    }


TABLE_SCHEMAS: Dict[str, TableSchema] = _table_schema()


def merge_column_mappings(
    overrides: Mapping[str, Mapping[str, Iterable[str]]] | None,
    base: Mapping[str, Mapping[str, Sequence[str]]] | None = None,
) -> Dict[str, Dict[str, Tuple[str, ...]]]:
    """
    Merge extra header spellings into the canonical table column maps.

    Overrides are canonical -> raw headers per table and are appended after the
    defaults, so callers only need to specify the deltas.
    """

    mapping: Dict[str, Dict[str, Tuple[str, ...]]] = {
        table: {canon: tuple(raws) for canon, raws in cols.items()} for table, cols in (base or {}).items()
    }
    if not mapping:
        mapping = {name: dict(schema.columns) for name, schema in TABLE_SCHEMAS.items()}

    if overrides:
        for table, cols in overrides.items():
            target = mapping.setdefault(table, {})
            for canon, raws in cols.items():
                if isinstance(raws, str):
                    raws = [raws]
                existing = list(target.get(str(canon), ()))
                for raw in raws:
                    if str(raw) not in existing:
                        existing.append(str(raw))
                target[str(canon)] = tuple(existing)
    return mapping


def header_lookup(columns: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """Invert a canonical column map into cleaned raw header -> canonical name."""

    lookup: Dict[str, str] = {}
    for canon, raws in columns.items():
        for raw in (canon, *raws):
            lookup.setdefault(clean_header_name(raw), canon)
    return lookup


DEFAULT_COLUMN_MAPS: Dict[str, Dict[str, Tuple[str, ...]]] = merge_column_mappings(None)


@dataclass(frozen=True)
class CourseBehavior:
    """Course-wide defaults from the [Course_Behavior] section."""

    max_normal: Optional[str] = None
    mastery_score: Optional[str] = None
    max_time_allowed: Optional[str] = None
    time_limit_action: Optional[str] = None


@dataclass(frozen=True)
class Course:
    """Top-level course record from the .crs file."""

    course_id: Optional[str] = None
    course_title: Optional[str] = None
    course_creator: Optional[str] = None
    course_system: Optional[str] = None
    level: Optional[str] = None
    version: Optional[str] = None
    total_aus: Optional[str] = None
    total_blocks: Optional[str] = None
    total_objectives: Optional[str] = None
    total_complex_obj: Optional[str] = None
    max_fields_cst: Optional[str] = None
    max_fields_ort: Optional[str] = None
    behavior: CourseBehavior = field(default_factory=CourseBehavior)
    description: Optional[str] = None


@dataclass(frozen=True)
class Descriptor:
    system_id: str
    developer_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CompletionCriteria:
    """Completion attributes (CA/CL/CR) found on a course structure row."""

    completion_action: Optional[str] = None
    completion_lesson_status: Optional[str] = None
    completion_result_status: Optional[str] = None
    additional_rules: Mapping[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "additional_rules", MappingProxyType(dict(self.additional_rules)))


@dataclass(frozen=True)
class CourseStructure:
    """
    One block -> member edge from the .cst table.

    ``raw_attributes`` holds every free-text attribute cell found for the row.
    ``attributes`` is the parsed, upper-cased mapping (first cell wins per key)
    and ``additional_columns`` keeps only the keys no alias recognizes.
    """

    block: str
    member: str
    prerequisites: Optional[str] = None
    raw_attributes: Tuple[str, ...] = ()
    attributes: Mapping[str, Optional[str]] = field(init=False, repr=False, compare=False)
    additional_columns: Mapping[str, Optional[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.raw_attributes, str):
            object.__setattr__(self, "raw_attributes", (self.raw_attributes,))
        else:
            object.__setattr__(self, "raw_attributes", tuple(self.raw_attributes))
        parsed = merge_attribute_cells(self.raw_attributes)
        object.__setattr__(self, "attributes", MappingProxyType(parsed))
        object.__setattr__(
            self,
            "additional_columns",
            MappingProxyType({key: value for key, value in parsed.items() if key not in KNOWN_ATTRIBUTE_KEYS}),
        )


@dataclass(frozen=True)
class AssignableUnit:
    """
    One launchable learning unit from the .au table.

    The raw per-unit fields are what the tables (or the structure attributes)
    carried; the ``*_normalized`` fields and ``prerequisite_model`` are filled
    by the finalization pass.
    """

    system_id: str
    file_name: Optional[str] = None
    command_line: Optional[str] = None
    type: Optional[str] = None
    core_vendor: Optional[str] = None
    system_vendor: Optional[str] = None
    web_launch: Optional[str] = None
    au_password: Optional[str] = None
    max_score: Optional[str] = None
    mastery_score: Optional[str] = None
    max_time_allowed: Optional[str] = None
    time_limit_action: Optional[str] = None
    prerequisites_expression: Optional[str] = None
    descriptor: Optional[Descriptor] = None
    completion_criteria: Optional[CompletionCriteria] = None
    mastery_score_normalized: Optional[float] = None
    max_time_allowed_normalized: Optional[timedelta] = None
    time_limit_action_normalized: Tuple[str, ...] = ()
    prerequisites_mandatory_override: Optional[bool] = None
    prerequisite_model: Optional["PrerequisiteExpression"] = None

    @property
    def is_prerequisites_mandatory(self) -> bool:
        if self.prerequisites_mandatory_override is not None:
            return self.prerequisites_mandatory_override
        return self.prerequisite_model is not None and self.prerequisite_model.mandatory

    @property
    def prerequisite_optional_au_ids(self) -> List[str]:
        if self.prerequisite_model is None:
            return []
        return list(self.prerequisite_model.optional_au_ids)
