import json
from pathlib import Path

import aicc_inspect


def test_validate_clean_package(course_dir: Path, capsys):
    status = aicc_inspect.main(["validate", str(course_dir)])

    out = capsys.readouterr().out
    assert status == 0
    assert "No errors" in out
    assert "No warnings" in out


def test_validate_reports_assembly_failure(course_dir: Path, capsys):
    (course_dir / "course.cst").write_text("Block,Member\nROOT,MISSING\n", encoding="utf-8")

    status = aicc_inspect.main(["validate", str(course_dir)])

    assert status == 1
    assert "AICC_AU_NOT_FOUND" in capsys.readouterr().out


def test_inspect_json_dump(course_dir: Path, capsys):
    status = aicc_inspect.main(["inspect", str(course_dir), "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert status == 0
    assert payload["launch_url"] == "lessons/intro.html"
    assert [unit["system_id"] for unit in payload["assignable_units"]] == ["A001", "A002"]


def test_inspect_summary(course_dir: Path, capsys):
    status = aicc_inspect.main(["inspect", str(course_dir)])

    out = capsys.readouterr().out
    assert status == 0
    assert "Safety Basics" in out
    assert "lessons/intro.html" in out


def test_missing_package_and_bad_config(tmp_path: Path):
    assert aicc_inspect.main(["validate", str(tmp_path / "nowhere")]) == 2
    assert aicc_inspect.main(["--config", str(tmp_path / "absent.yaml"), "validate", str(tmp_path)]) == 2
    assert aicc_inspect.main([]) == 2
