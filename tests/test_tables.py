from io import BytesIO
from pathlib import Path

import polars as pl
import pytest

from aicc_common.config import Settings
from aicc_common.tables import (
    PackageError,
    course_structures_from_rows,
    find_table_file,
    load_course_package,
    read_course_file,
    read_table,
    rows_as_mappings,
    units_frame,
)


def test_read_course_file_sections(course_dir: Path):
    course = read_course_file(course_dir / "course.crs")

    assert course.course_id == "CRS-100"
    assert course.course_title == "Safety Basics"
    assert course.total_aus == "2"
    assert course.behavior.mastery_score == "80"
    assert course.behavior.time_limit_action == "exit,message"
    assert course.description == "Introductory safety course.\nCovers hazard reporting."


def test_read_table_turns_blanks_into_none(course_dir: Path):
    table = read_table(course_dir / "course.au")

    assert table.headers[:4] == ["System_ID", "Type", "Command_Line", "File_Name"]
    assert len(table.rows) == 2
    assert table.rows[0][3] == "lessons/intro.html"
    assert table.rows[0][5] is None


def test_read_table_rewinds_bytesio():
    """BytesIO inputs may arrive with the cursor at EOF; ensure we rewind before reading."""

    buffer = BytesIO(b"Structure_Element,Prerequisite\nA002,A001\n")
    buffer.read()

    rows = rows_as_mappings(read_table(buffer))

    assert rows[0]["structure_element"] == "A002"
    assert rows[0]["PREREQUISITE"] == "A001"


def test_read_table_empty_input():
    table = read_table(b"   \n")

    assert table.headers == []
    assert table.rows == []


def test_multiple_member_columns_expand_to_edges():
    table = read_table(b'"Block","Member","Member","Member"\n"B1","A001","A002",""\n')

    structures = course_structures_from_rows(table)

    assert [(cs.block, cs.member) for cs in structures] == [("B1", "A001"), ("B1", "A002")]


def test_unmapped_key_value_cells_become_attributes():
    table = read_table(b"Block,Member,Notes,Comment\nROOT,A001,MS=75;CA=exit,free text\n")

    (structure,) = course_structures_from_rows(table)

    assert structure.attributes == {"MS": "75", "CA": "exit"}
    assert structure.raw_attributes == ("MS=75;CA=exit",)


def test_find_table_file_ignores_case(tmp_path: Path):
    (tmp_path / "b.CST").write_text("Block,Member\n", encoding="utf-8")
    (tmp_path / "A.cst").write_text("Block,Member\n", encoding="utf-8")

    assert find_table_file(tmp_path, ".cst").name == "A.cst"
    assert find_table_file(tmp_path, ".ort") is None


def test_load_course_package_builds_manifest(course_dir: Path):
    manifest = load_course_package(course_dir)

    assert manifest.title == "Safety Basics"
    assert manifest.launch_url == "lessons/intro.html"
    assert manifest.description == "Welcome to the course"
    assert manifest.issues.issues == ()

    intro = manifest.get_assignable_unit("A001")
    assert intro.descriptor.title == "Introduction"
    assert intro.mastery_score == "80"
    assert intro.time_limit_action_normalized == ("EXIT", "MESSAGE")
    assert manifest.get_assignable_unit("A002").mastery_score_normalized == pytest.approx(0.9)


def test_structure_attributes_win_over_course_defaults(course_dir: Path):
    (course_dir / "course.cst").write_text(
        '"Block","Member","Attributes"\n"ROOT","A001","MS=75;CA=exit;CR=passed"\n"ROOT","A002",""\n',
        encoding="utf-8",
    )

    manifest = load_course_package(course_dir)

    intro = manifest.get_assignable_unit("A001")
    assert intro.mastery_score_normalized == pytest.approx(0.75)
    assert intro.completion_criteria.completion_result_status == "passed"


def test_configured_column_aliases(course_dir: Path):
    (course_dir / "course.au").write_text(
        "System_ID,Launch_File\nA001,lessons/intro.html\nA002,lessons/quiz.html\n",
        encoding="utf-8",
    )
    settings = Settings(column_aliases={"au": {"file_name": ["Launch_File"]}})

    manifest = load_course_package(course_dir, settings)

    assert manifest.launch_url == "lessons/intro.html"


def test_optional_tables_are_carried_through(course_dir: Path):
    (course_dir / "course.pre").write_text("Structure_Element,Prerequisite\nA002,A001\n", encoding="utf-8")

    manifest = load_course_package(course_dir)

    assert manifest.prerequisites_table[0]["Structure_Element"] == "A002"
    assert manifest.objectives_relation_table is None


def test_missing_required_file_raises(course_dir: Path):
    (course_dir / "course.au").unlink()

    with pytest.raises(PackageError, match=r"\.au"):
        load_course_package(course_dir)


def test_units_frame_reports_normalized_values(course_dir: Path):
    frame = units_frame(load_course_package(course_dir))

    assert frame.height == 2
    assert frame["system_id"].to_list() == ["A001", "A002"]
    assert frame["max_time_seconds"].to_list() == [3600.0, 1800.0]
    assert frame["mastery_score"].to_list() == pytest.approx([0.8, 0.9])
    assert frame.schema["mandatory"] == pl.Boolean
