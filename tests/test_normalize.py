from datetime import timedelta

import pytest

from aicc_common.normalize import (
    normalize_mastery_score,
    parse_affirmative,
    parse_duration,
    parse_time_limit_action,
)


@pytest.mark.parametrize("raw", ["85", "85%", " 85 % ", "0.85"])
def test_mastery_score_accepts_percent_and_fraction(raw):
    assert normalize_mastery_score(raw) == pytest.approx(0.85)


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "150", "-5", "nan", "inf"])
def test_mastery_score_rejects_unusable_values(raw):
    assert normalize_mastery_score(raw) is None


def test_mastery_score_keeps_one_as_full_mastery():
    assert normalize_mastery_score("1") == 1.0
    assert normalize_mastery_score("100") == 1.0


def test_parse_duration_hhmmss_forms():
    assert parse_duration("01:30:00") == timedelta(hours=1, minutes=30)
    assert parse_duration("1:2") == timedelta(hours=1, minutes=2)
    assert parse_duration("00:00:01.5") == timedelta(seconds=1, microseconds=500000)
    assert parse_duration("::") == timedelta(0)


def test_parse_duration_plain_number_is_seconds():
    assert parse_duration("90") == timedelta(seconds=90)


def test_parse_duration_iso_8601():
    assert parse_duration("PT1H30M") == timedelta(hours=1, minutes=30)
    assert parse_duration("pt45m") == timedelta(minutes=45)


@pytest.mark.parametrize("raw", [None, "", "soon", "1:2:3:4"])
def test_parse_duration_returns_none_when_unparsable(raw):
    assert parse_duration(raw) is None


def test_time_limit_action_splits_and_uppercases():
    assert parse_time_limit_action("exit,message;continue") == ["EXIT", "MESSAGE", "CONTINUE"]
    assert parse_time_limit_action(" Exit , , no message ") == ["EXIT", "NO MESSAGE"]
    assert parse_time_limit_action(" , ") == []
    assert parse_time_limit_action(None) == []


def test_parse_affirmative_known_and_permissive_values():
    assert parse_affirmative("Yes") is True
    assert parse_affirmative("REQUIRED") is True
    assert parse_affirmative("no") is False
    assert parse_affirmative("optional") is False
    # Unrecognized text is affirmative unless it starts with n or 0.
    assert parse_affirmative("maybe") is True
    assert parse_affirmative("N/A") is False
    assert parse_affirmative("00") is False
    assert parse_affirmative("  ") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Y", True), ("y", True), ("1", True), ("0", False), ("N", False)],
)
def test_parse_affirmative_single_character_flags(raw, expected):
    assert parse_affirmative(raw) is expected


@pytest.mark.parametrize("raw", ["0.5", "50", "85%", "1", "100", "0"])
def test_mastery_score_is_idempotent(raw):
    once = normalize_mastery_score(raw)

    assert normalize_mastery_score(str(once)) == pytest.approx(once)


def test_mastery_score_fraction_is_kept():
    assert normalize_mastery_score("0.5") == 0.5


@pytest.mark.parametrize("raw", ["P1M", "P1Y", "P1DT", "PT", "P", "PT5", "P1W"])
def test_parse_duration_rejects_calendar_and_incomplete_iso(raw):
    assert parse_duration(raw) is None


def test_parse_duration_iso_comma_decimal_seconds():
    assert parse_duration("PT1,5S") == timedelta(seconds=1, microseconds=500000)
    assert parse_duration("PT1.5S") == timedelta(seconds=1, microseconds=500000)
