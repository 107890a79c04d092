"""
Reading an unpacked AICC course directory into engine records.

The .au/.des/.cst/.pre/.ort tables are comma-separated with a header row and
are read with Polars as all-string columns. The .crs file is INI-like with a
free-text [Course_Description] section.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import polars as pl
from requests.structures import CaseInsensitiveDict

from .config import DEFAULT_ENCODING, Settings
from .manifest import Manifest, build_manifest
from .schema import (
    BEHAVIOR_COLS,
    COURSE_COLS,
    DEFAULT_COLUMN_MAPS,
    TABLE_SCHEMAS,
    AssignableUnit,
    Course,
    CourseBehavior,
    CourseStructure,
    Descriptor,
    clean_header_name,
    header_lookup,
    merge_column_mappings,
)

LOGGER = logging.getLogger(__name__)

Source = Union[str, Path, bytes, BinaryIO]

SECTION_RE = re.compile(r"^\s*\[([^\]]+)\]\s*$")
CRS_EXTENSION = ".crs"
AU_EXTENSION = TABLE_SCHEMAS["au"].extension
DES_EXTENSION = TABLE_SCHEMAS["des"].extension
CST_EXTENSION = TABLE_SCHEMAS["cst"].extension
PRE_EXTENSION = ".pre"
ORT_EXTENSION = ".ort"


class PackageError(FileNotFoundError):
    """Raised when a required AICC file is missing from the package directory."""


@dataclass
class RawTable:
    """Header row and data rows of one AICC table, blanks already turned into None."""

    headers: List[str]
    rows: List[Tuple[Optional[str], ...]] = field(default_factory=list)


def _read_bytes(source: Source) -> bytes:
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    # File-like inputs may arrive with the cursor at EOF.
    if hasattr(source, "seek"):
        source.seek(0)
    data = source.read()
    return data.encode("utf-8") if isinstance(data, str) else data


def _decode(data: bytes, encoding: str) -> str:
    if encoding.lower().replace("-", "") in {"utf8", "utf8lossy"}:
        return data.decode("utf-8-sig", errors="replace")
    return data.decode(encoding, errors="replace")


def _make_blank_to_null_expr(column: str) -> pl.Expr:
    stripped = pl.col(column).str.strip_chars()
    return (
        pl.when(pl.col(column).is_null() | (stripped.str.len_chars() == 0))
        .then(pl.lit(None, dtype=pl.Utf8))
        .otherwise(stripped)
        .alias(column)
    )


def read_table(source: Source, encoding: str = DEFAULT_ENCODING) -> RawTable:
    """Read one comma-separated AICC table; every column is kept as a string."""

    data = _read_bytes(source)
    if not data.strip():
        return RawTable(headers=[])

    frame = pl.read_csv(
        io.BytesIO(data),
        has_header=False,
        infer_schema_length=0,
        encoding=encoding,
        truncate_ragged_lines=True,
    )
    frame = frame.with_columns([_make_blank_to_null_expr(col) for col in frame.columns])
    rows = frame.rows()
    if not rows:
        return RawTable(headers=[])

    headers = [(value or "").lstrip("﻿").strip().strip('"') for value in rows[0]]
    body = [row for row in rows[1:] if any(value is not None for value in row)]
    return RawTable(headers=headers, rows=body)


def rows_as_mappings(table: RawTable) -> List[CaseInsensitiveDict]:
    """Key each row by its header; the first of several same-named columns wins."""

    mapped: List[CaseInsensitiveDict] = []
    for row in table.rows:
        record: CaseInsensitiveDict = CaseInsensitiveDict()
        for header, value in zip(table.headers, row):
            if header and header not in record:
                record[header] = value
        mapped.append(record)
    return mapped


def _canonical_cells(
    table: RawTable, columns: Mapping[str, Sequence[str]]
) -> List[Tuple[Dict[str, List[Optional[str]]], List[Optional[str]]]]:
    """Split each row into canonical -> values (in column order) and unmapped cells."""

    lookup = header_lookup(columns)
    canonical_headers = [lookup.get(clean_header_name(header)) for header in table.headers]
    result = []
    for row in table.rows:
        mapped: Dict[str, List[Optional[str]]] = {}
        unmapped: List[Optional[str]] = []
        for canon, value in zip(canonical_headers, row):
            if canon is None:
                unmapped.append(value)
            else:
                mapped.setdefault(canon, []).append(value)
        result.append((mapped, unmapped))
    return result


def _first(mapped: Mapping[str, List[Optional[str]]], canon: str) -> Optional[str]:
    values = mapped.get(canon) or [None]
    return values[0]


def _record_values(mapped: Mapping[str, List[Optional[str]]], record_type: type) -> Dict[str, Optional[str]]:
    # Aliases configured for unknown canonical names are ignored.
    names = {f.name for f in fields(record_type) if f.init}
    values = {canon: _first(mapped, canon) for canon in mapped if canon in names}
    values["system_id"] = values.get("system_id") or ""
    return values


def assignable_units_from_rows(
    table: RawTable, columns: Mapping[str, Sequence[str]] | None = None
) -> List[AssignableUnit]:
    columns = columns or DEFAULT_COLUMN_MAPS["au"]
    units: List[AssignableUnit] = []
    for mapped, _ in _canonical_cells(table, columns):
        values = _record_values(mapped, AssignableUnit)
        units.append(AssignableUnit(**values))
    return units


def descriptors_from_rows(table: RawTable, columns: Mapping[str, Sequence[str]] | None = None) -> List[Descriptor]:
    columns = columns or DEFAULT_COLUMN_MAPS["des"]
    descriptors: List[Descriptor] = []
    for mapped, _ in _canonical_cells(table, columns):
        values = _record_values(mapped, Descriptor)
        descriptors.append(Descriptor(**values))
    return descriptors


def course_structures_from_rows(
    table: RawTable, columns: Mapping[str, Sequence[str]] | None = None
) -> List[CourseStructure]:
    """
    Build structure edges; a row with several Member columns yields one edge per member.

    Unmapped cells that look like ``KEY=value`` pairs are kept as extra attribute cells.
    """

    columns = columns or DEFAULT_COLUMN_MAPS["cst"]
    structures: List[CourseStructure] = []
    for mapped, unmapped in _canonical_cells(table, columns):
        block = _first(mapped, "block") or ""
        cells = [value for value in mapped.get("attributes", []) if value is not None]
        cells.extend(value for value in unmapped if value is not None and "=" in value)
        members = [value for value in mapped.get("member", []) if value is not None] or [""]
        for member in members:
            structures.append(
                CourseStructure(
                    block=block,
                    member=member,
                    prerequisites=_first(mapped, "prerequisites"),
                    raw_attributes=tuple(cells),
                )
            )
    return structures


def _section_values(lines: Sequence[str], columns: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    lookup = header_lookup(columns)
    values: Dict[str, str] = {}
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(";") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        canon = lookup.get(clean_header_name(key))
        if canon is not None and canon not in values:
            values[canon] = value.strip().strip('"')
    return values


def read_course_file(source: Source, encoding: str = DEFAULT_ENCODING) -> Course:
    """Parse the INI-like .crs file into a Course record."""

    text = _decode(_read_bytes(source), encoding)
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        match = SECTION_RE.match(line)
        if match:
            current = clean_header_name(match.group(1))
            sections.setdefault(current, [])
            continue
        if current is not None:
            sections[current].append(line)

    course_values = _section_values(sections.get("course", []), COURSE_COLS)
    behavior_values = _section_values(sections.get("course_behavior", []), BEHAVIOR_COLS)
    description = "\n".join(line.rstrip() for line in sections.get("course_description", [])).strip()

    return Course(
        **{canon: value or None for canon, value in course_values.items()},
        behavior=CourseBehavior(**{canon: value or None for canon, value in behavior_values.items()}),
        description=description or None,
    )


def find_table_file(directory: Path, extension: str) -> Optional[Path]:
    """First file (sorted by name) whose extension matches, ignoring case."""

    suffix = extension.lower()
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.name.lower().endswith(suffix):
            return path
    return None


def _require(directory: Path, extension: str) -> Path:
    path = find_table_file(directory, extension)
    if path is None:
        raise PackageError(f"Required AICC file with extension {extension} not found in {directory}")
    return path


def load_course_package(directory: Path, settings: Settings | None = None) -> Manifest:
    """Read every AICC table in ``directory`` and assemble the manifest."""

    settings = settings or Settings()
    directory = Path(directory)
    if not directory.is_dir():
        raise PackageError(f"AICC package directory not found: {directory}")

    mapping = merge_column_mappings(settings.column_aliases, base=DEFAULT_COLUMN_MAPS)
    encoding = settings.encoding

    course = read_course_file(_require(directory, CRS_EXTENSION), encoding)
    units = assignable_units_from_rows(read_table(_require(directory, AU_EXTENSION), encoding), mapping["au"])

    des_path = find_table_file(directory, DES_EXTENSION)
    descriptors = descriptors_from_rows(read_table(des_path, encoding), mapping["des"]) if des_path else []

    cst_path = find_table_file(directory, CST_EXTENSION)
    structures = course_structures_from_rows(read_table(cst_path, encoding), mapping["cst"]) if cst_path else []

    pre_path = find_table_file(directory, PRE_EXTENSION)
    ort_path = find_table_file(directory, ORT_EXTENSION)
    prerequisites = rows_as_mappings(read_table(pre_path, encoding)) if pre_path else None
    objectives = rows_as_mappings(read_table(ort_path, encoding)) if ort_path else None

    LOGGER.info(
        "Loaded AICC tables from %s: %d unit(s), %d descriptor(s), %d structure row(s)",
        directory,
        len(units),
        len(descriptors),
        len(structures),
    )
    return build_manifest(
        course,
        units,
        descriptors,
        structures,
        prerequisites,
        objectives,
        strict_root=settings.strict_root,
    )


def units_frame(manifest: Manifest) -> pl.DataFrame:
    """One row per assignable unit with the normalized values, for reports."""

    schema = {
        "system_id": pl.Utf8,
        "file_name": pl.Utf8,
        "title": pl.Utf8,
        "mastery_score": pl.Float64,
        "max_time_seconds": pl.Float64,
        "time_limit_action": pl.Utf8,
        "completion": pl.Utf8,
        "mandatory": pl.Boolean,
        "prerequisites": pl.Utf8,
    }
    data: Dict[str, list] = {name: [] for name in schema}
    for unit in manifest.assignable_units:
        criteria = unit.completion_criteria
        data["system_id"].append(unit.system_id)
        data["file_name"].append(unit.file_name)
        data["title"].append(unit.descriptor.title if unit.descriptor else None)
        data["mastery_score"].append(unit.mastery_score_normalized)
        max_time = unit.max_time_allowed_normalized
        data["max_time_seconds"].append(max_time.total_seconds() if max_time is not None else None)
        data["time_limit_action"].append(", ".join(unit.time_limit_action_normalized))
        data["completion"].append(
            "/".join(
                value or "-"
                for value in (
                    criteria.completion_action,
                    criteria.completion_lesson_status,
                    criteria.completion_result_status,
                )
            )
            if criteria
            else None
        )
        data["mandatory"].append(unit.is_prerequisites_mandatory)
        data["prerequisites"].append(unit.prerequisites_expression)
    return pl.DataFrame(data, schema=schema)
