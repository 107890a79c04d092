from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from .normalize import is_blank

if TYPE_CHECKING:
    from .manifest import Manifest

AICC_NO_ROOT_AU = "AICC_NO_ROOT_AU"
AICC_AU_NOT_FOUND = "AICC_AU_NOT_FOUND"
AICC_ROOT_FALLBACK = "AICC_ROOT_FALLBACK"
AICC_INVALID_AU_REFERENCE = "AICC_INVALID_AU_REFERENCE"
AICC_MISSING_COURSE = "AICC_MISSING_COURSE"
AICC_MISSING_COURSE_ID = "AICC_MISSING_COURSE_ID"
AICC_MISSING_TITLE = "AICC_MISSING_TITLE"
AICC_MISSING_LAUNCH_URL = "AICC_MISSING_LAUNCH_URL"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    severity: Severity
    code: str
    message: str
    location: Optional[str] = None
    suggested_fix: Optional[str] = None

    @classmethod
    def error(cls, code: str, message: str, location: str | None = None, suggested_fix: str | None = None) -> "ValidationIssue":
        return cls(Severity.ERROR, code, message, location, suggested_fix)

    @classmethod
    def warning(cls, code: str, message: str, location: str | None = None, suggested_fix: str | None = None) -> "ValidationIssue":
        return cls(Severity.WARNING, code, message, location, suggested_fix)


@dataclass(frozen=True)
class ValidationResult:
    """Immutable collection of coded issues."""

    issues: Tuple[ValidationIssue, ...] = ()

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def of(cls, *issues: ValidationIssue) -> "ValidationResult":
        return cls(tuple(issues))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(self.issues + other.issues)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]

    def format_errors(self) -> str:
        if not self.has_errors:
            return "No errors"
        return _format_issues(self.errors, "error(s)")

    def format_warnings(self) -> str:
        if not self.has_warnings:
            return "No warnings"
        return _format_issues(self.warnings, "warning(s)")

    def to_exception(self, context: str) -> "ManifestParseError":
        return ManifestParseError(context, self)


def _format_issues(issues: Iterable[ValidationIssue], label: str) -> str:
    issues = list(issues)
    lines = [f"{len(issues)} {label} found"]
    for number, issue in enumerate(issues, start=1):
        lines.append(f"  {number}. [{issue.code}] {issue.message}")
        if issue.location:
            lines.append(f"     Location: {issue.location}")
        if issue.suggested_fix:
            lines.append(f"     Suggestion: {issue.suggested_fix}")
    return "\n".join(lines)


class ManifestParseError(ValueError):
    """Raised when the tables cannot be assembled into a launchable manifest."""

    def __init__(self, message: str, result: ValidationResult) -> None:
        self.result = result
        super().__init__(f"{message}\n{result.format_errors()}")

    @property
    def codes(self) -> List[str]:
        return self.result.codes()


def validate_manifest(manifest: "Manifest") -> ValidationResult:
    """Post-assembly checks on the course record and the computed launch URL."""

    issues: List[ValidationIssue] = []
    if manifest.course is None:
        issues.append(
            ValidationIssue.error(AICC_MISSING_COURSE, "AICC manifest must contain course information", "course.crs")
        )
        return ValidationResult(tuple(issues))

    if is_blank(manifest.title):
        issues.append(
            ValidationIssue.error(
                AICC_MISSING_TITLE,
                "AICC course must have a title",
                "course.crs",
                "Add a Course_Title field to the [Course] section of the .crs file",
            )
        )
    if is_blank(manifest.identifier):
        issues.append(
            ValidationIssue.warning(
                AICC_MISSING_COURSE_ID,
                "AICC course has no Course_ID",
                "course.crs",
                "Add a Course_ID field to the [Course] section of the .crs file",
            )
        )
    if is_blank(manifest.launch_url):
        issues.append(
            ValidationIssue.error(
                AICC_MISSING_LAUNCH_URL,
                "AICC course must have a launch URL",
                "assignable_unit",
                "Ensure the root assignable unit has a File_Name",
            )
        )
    return ValidationResult(tuple(issues))
