import logging
from dataclasses import replace

from models import Roster, ScheduleEntry, Subject, clean_text, normalize_time, parse_exam_date

logger = logging.getLogger(__name__)


def schedule_from_records(records):
    """Build schedule entries from the bulk-subject form rows, one entry per subject slot."""
    entries = []
    for record in records:
        entries.append(
            ScheduleEntry(
                name=clean_text(record.get("name") or record.get("subject")),
                code=clean_text(record.get("code")),
                exam_date=parse_exam_date(record.get("date")),
                start_time=normalize_time(record.get("startTime") or record.get("start_time")),
                end_time=normalize_time(record.get("endTime") or record.get("end_time")),
            )
        )
    return entries


def _overlay(subject, entry):
    return replace(
        subject,
        name=subject.name or entry.name,
        code=subject.code or entry.code,
        exam_date=entry.exam_date or subject.exam_date,
        start_time=entry.start_time or subject.start_time,
        end_time=entry.end_time or subject.end_time,
    )


def merge_schedule(roster, entries):
    """
    Apply a shared schedule to every student by subject position.

    Slot i of the schedule only enriches an existing subject i: timing fields
    come from the schedule when it has them, name/code typed for the student
    are kept and only blanks are filled. No subjects are added, so merging
    the same schedule twice gives the same roster.
    """
    entries = list(entries)
    students = []
    for student in roster:
        subjects = tuple(
            _overlay(subject, entries[i]) if i < len(entries) else subject
            for i, subject in enumerate(student.subjects)
        )
        students.append(replace(student, subjects=subjects))
    logger.info(f"Applied {len(entries)} scheduled subjects to {len(students)} students")
    return Roster(kind=roster.kind, students=tuple(students))


def expand_subject_slots(roster, count):
    """Pad every student with blank subject slots up to `count` (the table widening done before a merge)."""
    students = []
    for student in roster:
        missing = count - len(student.subjects)
        if missing > 0:
            student = replace(student, subjects=student.subjects + (Subject(),) * missing)
        students.append(student)
    return Roster(kind=roster.kind, students=tuple(students))
