from datetime import date, datetime

import pytest

from models import (
    ClassExamMetadata,
    EmptyRosterError,
    Roster,
    RosterKind,
    Student,
    Subject,
    compute_duration,
    normalize_time,
    parse_exam_date,
    school_level_for_class,
    semester_for_year,
)


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("09:00", "12:30", "3h 30m"),
        ("10:00", "10:45", "45m"),
        ("14:00", "17:00", "3h"),
        ("23:00", "01:00", "2h"),
        ("10:00", "10:00", None),
        ("", "10:00", None),
        ("10:00", "", None),
    ],
)
def test_compute_duration(start, end, expected):
    assert compute_duration(start, end) == expected


def test_parse_exam_date_accepts_iso_day_first_and_date_objects():
    assert parse_exam_date("2025-06-12") == date(2025, 6, 12)
    assert parse_exam_date("12/06/2025") == date(2025, 6, 12)
    assert parse_exam_date(datetime(2025, 6, 12, 9, 30)) == date(2025, 6, 12)
    assert parse_exam_date(date(2025, 1, 2)) == date(2025, 1, 2)


def test_parse_exam_date_returns_none_for_blank_or_garbage():
    assert parse_exam_date(None) is None
    assert parse_exam_date("   ") is None
    assert parse_exam_date("not a date") is None


def test_normalize_time():
    assert normalize_time("9:30 AM") == "09:30"
    assert normalize_time("2:00 PM") == "14:00"
    assert normalize_time("14:05") == "14:05"
    assert normalize_time("TBA") == "TBA"
    assert normalize_time(None) == ""


def test_subject_validity_needs_name_and_code():
    assert Subject(name="Physics", code="PHY101").is_valid
    assert not Subject(name="Physics").is_valid
    assert not Subject(code="PHY101").is_valid
    assert not Subject(name="  ", code="PHY101").is_valid


def test_student_valid_subjects_keeps_order():
    student = Student(
        identifier="1",
        name="A",
        subjects=(
            Subject(name="Maths", code="M1"),
            Subject(name="Orphan"),
            Subject(name="Physics", code="P1"),
        ),
    )
    assert [s.name for s in student.valid_subjects] == ["Maths", "Physics"]


def test_subject_duration():
    assert Subject(name="X", code="Y", start_time="09:30", end_time="12:30").duration == "3h"


def test_roster_kind_parse():
    assert RosterKind.parse("engineering") is RosterKind.COLLEGE
    assert RosterKind.parse(None) is RosterKind.COLLEGE
    assert RosterKind.parse("School") is RosterKind.SCHOOL
    assert RosterKind.parse(RosterKind.GENERAL) is RosterKind.GENERAL
    with pytest.raises(ValueError):
        RosterKind.parse("university")


def test_roster_survives_json_shape():
    roster = Roster(
        kind=RosterKind.SCHOOL,
        students=(
            Student(
                identifier="R-12",
                name="Ravi",
                admission_number="ADM1",
                father_name="Mohan",
                subjects=(Subject(name="Maths", code="M1", exam_date=date(2025, 3, 1),
                                  start_time="10:00", end_time="13:00"),),
            ),
        ),
    )
    assert Roster.from_dict(roster.to_dict()) == roster


def test_metadata_from_camel_case_form():
    metadata = ClassExamMetadata.from_dict(
        {"institutionName": "  City College ", "examMonthYear": "June 2025", "examType": "mid-term",
         "unknownField": "ignored"}
    )
    assert metadata.institution_name == "City College"
    assert metadata.session_label == "June 2025"
    assert metadata.exam_type_label == "Mid Term"


def test_metadata_defaults_for_blank_titles():
    metadata = ClassExamMetadata(institution_name=" ", exam_title="")
    assert metadata.display_institution_name == "Institution Name"
    assert metadata.display_exam_title == "Examination"


def test_center_label_falls_back_to_name_then_address():
    assert ClassExamMetadata(center_code="C01", center_name="Main").center_label == "C01"
    assert ClassExamMetadata(center_name="Main").center_label == "Main"
    assert ClassExamMetadata(address="Road 1").center_label == "Road 1"


def test_semester_and_school_level_helpers():
    assert semester_for_year("3") == "5th"
    assert semester_for_year("9") == "1st"
    assert school_level_for_class("7") == "Middle School"
    assert school_level_for_class("12") == "Senior Secondary"
    assert school_level_for_class("KG") == "School"


def test_empty_roster_error_message():
    assert str(EmptyRosterError()) == "No student data available! Please add students first."
