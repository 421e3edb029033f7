import logging
import os
import re

import pandas as pd

from models import (
    ImportReport,
    Roster,
    RosterImportError,
    RosterKind,
    Student,
    Subject,
    clean_text,
    normalize_time,
    parse_exam_date,
)

logger = logging.getLogger(__name__)

SUBJECT_ROLES = ("subject", "code", "date", "start_time", "end_time", "time")

# normalized header (lower-case, no spaces/punctuation/slot numbers) -> role
COMMON_SYNONYMS = {
    "name": "name",
    "studentname": "name",
    "candidatename": "name",
    "fullname": "name",
    "admission": "admission_number",
    "admissionno": "admission_number",
    "admissionnumber": "admission_number",
    "subject": "subject",
    "subjectname": "subject",
    "sub": "subject",
    "subname": "subject",
    "course": "subject",
    "coursename": "subject",
    "code": "code",
    "subjectcode": "code",
    "subcode": "code",
    "coursecode": "code",
    "date": "date",
    "examdate": "date",
    "subjectdate": "date",
    "starttime": "start_time",
    "start": "start_time",
    "from": "start_time",
    "endtime": "end_time",
    "end": "end_time",
    "to": "end_time",
    "time": "time",
    "examtime": "time",
    "timing": "time",
}

COLLEGE_IDENTIFIERS = ("usn", "universityno", "universitynumber", "universityseatno", "seatno")

KIND_SYNONYMS = {
    RosterKind.COLLEGE: {key: "identifier" for key in COLLEGE_IDENTIFIERS},
    RosterKind.GENERAL: {
        key: "identifier"
        for key in COLLEGE_IDENTIFIERS + ("regno", "registerno", "registrationno", "registrationnumber")
    },
    RosterKind.SCHOOL: {
        "roll": "identifier",
        "rollno": "identifier",
        "rollnumber": "identifier",
        "fathername": "father_name",
        "fathersname": "father_name",
        "father": "father_name",
    },
}

# column headers written by export_roster, per roster kind
EXPORT_IDENTIFIER_HEADERS = {
    RosterKind.COLLEGE: "USN",
    RosterKind.GENERAL: "USN",
    RosterKind.SCHOOL: "Roll Number",
}


def normalize_header(header):
    # slot numbers can sit anywhere: "Subject 1", "Subject 1 Code", "Code-1"
    return re.sub(r"[\s\W_\d]+", "", clean_text(header).lower())


IDENTIFIER_FRAGMENTS = {
    RosterKind.COLLEGE: ("usn", "universityno", "seatno"),
    RosterKind.GENERAL: ("usn", "universityno", "seatno", "regno", "registerno", "registrationno"),
    RosterKind.SCHOOL: ("roll",),
}

_SUBJECT_FRAGMENT = re.compile(r"subject|sub|course|code|date|time")


def guess_role(text, kind):
    """Substring match for headers the synonym table does not know, e.g. "Student USN"."""
    if any(fragment in text for fragment in IDENTIFIER_FRAGMENTS[kind]):
        return "identifier"
    if "admission" in text:
        return "admission_number"
    if "father" in text:
        return "father_name" if kind is RosterKind.SCHOOL else None
    if _SUBJECT_FRAGMENT.search(text):
        if "code" in text:
            return "code"
        if "date" in text:
            return "date"
        if "start" in text:
            return "start_time"
        if "end" in text:
            return "end_time"
        if "time" in text:
            return "time"
        return "subject"
    if "name" in text:
        return "name"
    return None


def resolve_column_roles(headers, kind=RosterKind.COLLEGE):
    """
    Map column positions to roles. Single-valued roles keep their first
    column; subject roles keep every column, in sheet order.
    """
    synonyms = dict(COMMON_SYNONYMS)
    synonyms.update(KIND_SYNONYMS[kind])
    columns = {role: [] for role in SUBJECT_ROLES}
    for index, header in enumerate(headers):
        text = normalize_header(header)
        # pandas names blank header cells "Unnamed: 3"
        if not text or text.startswith("unnamed"):
            continue
        role = synonyms.get(text) or guess_role(text, kind)
        if role is None:
            continue
        if role in SUBJECT_ROLES:
            columns[role].append(index)
        elif role not in columns:
            columns[role] = index
    return columns


def _cell(row, index):
    if index is None or index >= len(row):
        return ""
    return clean_text(row[index])


def _row_subjects(row, columns):
    slots = max(len(columns[role]) for role in SUBJECT_ROLES)
    subjects = []
    for i in range(slots):
        values = {
            role: _cell(row, columns[role][i]) if i < len(columns[role]) else ""
            for role in SUBJECT_ROLES
        }
        if not any(values.values()):
            continue
        subjects.append(
            Subject(
                name=values["subject"],
                code=values["code"],
                exam_date=parse_exam_date(values["date"]),
                start_time=normalize_time(values["start_time"]),
                end_time=normalize_time(values["end_time"]),
                time=values["time"],
            )
        )
    return tuple(subjects)


def _build_student(kind, identifier, name, admission_number="", father_name="", subjects=()):
    identifier = clean_text(identifier)
    name = clean_text(name)
    if not identifier or not name:
        return None
    return Student(
        identifier=identifier,
        name=name,
        admission_number=clean_text(admission_number),
        father_name=clean_text(father_name) if kind is RosterKind.SCHOOL else "",
        subjects=tuple(subjects),
    )


def collect_roster(headers, rows, kind=RosterKind.COLLEGE):
    """Build a roster from tabular rows; rows missing identifier or name are skipped and counted."""
    kind = RosterKind.parse(kind)
    columns = resolve_column_roles(headers, kind)
    report = ImportReport(columns=columns)
    students = []
    for position, row in enumerate(rows, start=1):
        row = list(row)
        student = _build_student(
            kind,
            _cell(row, columns.get("identifier")),
            _cell(row, columns.get("name")),
            _cell(row, columns.get("admission_number")),
            _cell(row, columns.get("father_name")),
            _row_subjects(row, columns),
        )
        if student is None:
            report.skipped += 1
            logger.info(f"Skipping row {position}: missing identifier or name")
            continue
        students.append(student)
        report.accepted += 1
        report.max_subjects = max(report.max_subjects, len(student.subjects))
    logger.info(f"Collected {report.accepted} students ({report.skipped} rows skipped)")
    return Roster(kind=kind, students=tuple(students)), report


def collect_manual_entries(entries, kind=RosterKind.COLLEGE):
    """Same validation as collect_roster, for rows typed into the on-screen table."""
    kind = RosterKind.parse(kind)
    report = ImportReport()
    students = []
    for position, entry in enumerate(entries, start=1):
        student = _build_student(
            kind,
            entry.get("identifier") or entry.get("usn") or entry.get("rollNumber"),
            entry.get("name"),
            entry.get("admissionNumber") or entry.get("admissionNo"),
            entry.get("fatherName"),
            (Subject.from_dict(s) for s in entry.get("subjects") or []),
        )
        if student is None:
            report.skipped += 1
            logger.info(f"Skipping entry {position}: missing identifier or name")
            continue
        students.append(student)
        report.accepted += 1
        report.max_subjects = max(report.max_subjects, len(student.subjects))
    return Roster(kind=kind, students=tuple(students)), report


def supported_columns_message(kind):
    if kind is RosterKind.SCHOOL:
        return (
            "File must contain Roll Number and Name columns for school students. "
            "Supported column names: Roll Number, Roll No, Student Name, Name, "
            "Father Name (optional), Admission No (optional), Subject 1, Code 1, Subject 2, Code 2, etc."
        )
    return (
        "File must contain USN and Name columns. "
        "Supported column names: USN, University No, Name, Student Name, "
        "Admission No (optional), Subject 1, Code 1, Subject 2, Code 2, etc."
    )


def read_roster_file(source, kind=RosterKind.COLLEGE, filename=None):
    """
    Read a roster from an .xlsx/.xls/.csv path or file object.

    `filename` decides the parser when `source` is a stream (uploads).
    """
    kind = RosterKind.parse(kind)
    if filename is None and isinstance(source, (str, os.PathLike)):
        filename = os.fspath(source)
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(source, dtype=str, keep_default_na=False)
        else:
            engine = "xlrd" if name.endswith(".xls") else "openpyxl"
            df = pd.read_excel(source, engine=engine, dtype=str, keep_default_na=False)
    except Exception as e:
        raise RosterImportError(f"Error reading file. Please make sure it's a valid Excel or CSV file. ({e})") from e

    headers = [str(c) for c in df.columns]
    columns = resolve_column_roles(headers, kind)
    if "identifier" not in columns or "name" not in columns:
        raise RosterImportError(supported_columns_message(kind))

    roster, report = collect_roster(headers, df.itertuples(index=False, name=None), kind)
    logger.info(f"Imported {report.accepted} students from {os.path.basename(name) or 'upload'}")
    return roster, report


def roster_to_dataframe(roster):
    slots = max((len(s.subjects) for s in roster), default=0)
    records = []
    for number, student in enumerate(roster, start=1):
        record = {
            "S.No": number,
            EXPORT_IDENTIFIER_HEADERS[roster.kind]: student.identifier,
            "Name": student.name,
        }
        if roster.kind is RosterKind.SCHOOL:
            record["Father Name"] = student.father_name
        record["Admission No"] = student.admission_number
        for i in range(slots):
            subject = student.subjects[i] if i < len(student.subjects) else Subject()
            record[f"Subject {i + 1}"] = subject.name
            record[f"Code {i + 1}"] = subject.code
        records.append(record)
    return pd.DataFrame(records)


def export_roster(roster, destination):
    """Write the roster to an Excel sheet that read_roster_file can import again."""
    df = roster_to_dataframe(roster)
    with pd.ExcelWriter(destination, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Student Data", index=False)
    logger.info(f"Exported {len(roster)} students")
    return destination
