from pathlib import Path

import pytest

CRS = """[Course]
Course_Creator=Acme Learning
Course_ID=CRS-100
Course_System=Authorware
Course_Title=Safety Basics
Level=1
Max_Fields_CST=3
Total_AUs=2
Total_Blocks=1
Version=2.0
[Course_Behavior]
Max_Normal=99
Mastery_Score=80
Max_Time_Allowed=01:00:00
Time_Limit_Action=exit,message
[Course_Description]
Introductory safety course.
Covers hazard reporting.
"""

AU = """"System_ID","Type","Command_Line","File_Name","Max_Score","Mastery_Score","Max_Time_Allowed","Time_Limit_Action","System_Vendor","Core_Vendor","Web_Launch","AU_Password"
"A001","lesson","","lessons/intro.html","100","","","","","","",""
"A002","lesson","","lessons/quiz.html","100","90","00:30:00","","","","",""
"""

DES = """"System_ID","Developer_ID","Title","Description"
"A001","intro","Introduction","Welcome to the course"
"A002","quiz","Final Quiz",""
"""

CST = """"Block","Member","Member"
"ROOT","A001","A002"
"""


@pytest.fixture
def course_dir(tmp_path: Path) -> Path:
    """A minimal two-unit AICC package on disk."""

    package = tmp_path / "course"
    package.mkdir()
    (package / "course.crs").write_text(CRS, encoding="utf-8")
    (package / "course.au").write_text(AU, encoding="utf-8")
    (package / "course.des").write_text(DES, encoding="utf-8")
    (package / "course.cst").write_text(CST, encoding="utf-8")
    return package


@pytest.fixture(autouse=True)
def _clear_aicc_env(monkeypatch):
    for key in ("AICC_CONFIG", "AICC_STRICT_ROOT", "AICC_ENCODING", "AICC_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
