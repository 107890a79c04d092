"""
AICC course manifest engine: table records, attribute and prerequisite
parsing, the join/defaults passes and manifest assembly.
"""

from .schema import (  # noqa: F401
    DEFAULT_COLUMN_MAPS,
    TABLE_SCHEMAS,
    AssignableUnit,
    CompletionCriteria,
    Course,
    CourseBehavior,
    CourseStructure,
    Descriptor,
    clean_header_name,
    merge_column_mappings,
)

from .normalize import (  # noqa: F401
    normalize_mastery_score,
    parse_affirmative,
    parse_duration,
    parse_time_limit_action,
)

from .attributes import (  # noqa: F401
    AttributeField,
    extract_mandatory_flag,
    first_attribute,
    parse_attribute_cell,
)

from .prerequisites import PrerequisiteExpression, parse_prerequisites  # noqa: F401

from .validation import (  # noqa: F401
    ManifestParseError,
    Severity,
    ValidationIssue,
    ValidationResult,
    validate_manifest,
)

from .join import apply_course_structure, create_completion_criteria, join_tables  # noqa: F401
from .defaults import finalize_assignable_unit, finalize_assignable_units  # noqa: F401
from .manifest import Manifest, build_manifest  # noqa: F401
from .config import ConfigError, Settings, load_settings  # noqa: F401
from .tables import PackageError, load_course_package, units_frame  # noqa: F401

__all__ = [
    "DEFAULT_COLUMN_MAPS",
    "TABLE_SCHEMAS",
    "AssignableUnit",
    "CompletionCriteria",
    "Course",
    "CourseBehavior",
    "CourseStructure",
    "Descriptor",
    "clean_header_name",
    "merge_column_mappings",
    "normalize_mastery_score",
    "parse_affirmative",
    "parse_duration",
    "parse_time_limit_action",
    "AttributeField",
    "extract_mandatory_flag",
    "first_attribute",
    "parse_attribute_cell",
    "PrerequisiteExpression",
    "parse_prerequisites",
    "ManifestParseError",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "validate_manifest",
    "apply_course_structure",
    "create_completion_criteria",
    "join_tables",
    "finalize_assignable_unit",
    "finalize_assignable_units",
    "Manifest",
    "build_manifest",
    "ConfigError",
    "Settings",
    "load_settings",
    "PackageError",
    "load_course_package",
    "units_frame",
]
