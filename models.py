import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from dateutil import parser

logger = logging.getLogger(__name__)


# ============================================================
# ERRORS
# ============================================================
class HallTicketError(Exception):
    """Base class for every error raised by the hall ticket pipeline."""


class RosterImportError(HallTicketError):
    pass


class AssetLoadError(HallTicketError):
    pass


class AssetResolutionError(HallTicketError):
    """Image bytes that cannot be embedded as the format they claim to be."""


class EmptyRosterError(HallTicketError):
    def __init__(self, message="No student data available! Please add students first."):
        super().__init__(message)


class SelectionError(HallTicketError):
    pass


class GenerationCancelled(HallTicketError):
    def __init__(self, message="Hall ticket generation was cancelled."):
        super().__init__(message)


# ============================================================
# DATE / TIME HELPERS
# ============================================================
def clean_text(value):
    if value is None:
        return ""
    if isinstance(value, float) and value != value:
        return ""
    return str(value).strip()


def parse_exam_date(raw):
    """Accepts date/datetime objects, ISO strings and day-first strings like 12/06/2025."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = clean_text(raw)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable exam date {text!r}")
        return None


def normalize_time(raw):
    """Returns HH:MM for anything dateutil reads as a time of day, else the trimmed text."""
    text = clean_text(raw)
    if not text:
        return ""
    try:
        return parser.parse(text, default=datetime(1970, 1, 1)).strftime("%H:%M")
    except (ValueError, OverflowError):
        return text


def compute_duration(start_time, end_time):
    """Duration between two HH:MM times as '2h 30m'; an end before the start rolls into the next day."""
    if not start_time or not end_time:
        return None
    try:
        start = datetime.strptime(normalize_time(start_time), "%H:%M")
        end = datetime.strptime(normalize_time(end_time), "%H:%M")
    except ValueError:
        return None
    if end < start:
        end += timedelta(days=1)
    minutes = int((end - start).total_seconds() // 60)
    if minutes <= 0:
        return None
    hours, minutes = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def semester_for_year(year_id):
    return {"1": "1st", "2": "3rd", "3": "5th", "4": "7th"}.get(clean_text(year_id), "1st")


def school_level_for_class(class_number):
    try:
        num = int(clean_text(class_number))
    except ValueError:
        return "School"
    if 1 <= num <= 5:
        return "Primary School"
    if 6 <= num <= 8:
        return "Middle School"
    if 9 <= num <= 10:
        return "Secondary School"
    if 11 <= num <= 12:
        return "Senior Secondary"
    return "School"


# ============================================================
# ROSTER
# ============================================================
class RosterKind(Enum):
    COLLEGE = "college"
    SCHOOL = "school"
    GENERAL = "general"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        text = clean_text(value).lower()
        if text in ("engineering", "college", ""):
            return cls.COLLEGE
        return cls(text)


@dataclass(frozen=True)
class Subject:
    name: str = ""
    code: str = ""
    exam_date: Optional[date] = None
    start_time: str = ""
    end_time: str = ""
    time: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.name.strip()) and bool(self.code.strip())

    @property
    def duration(self) -> Optional[str]:
        return compute_duration(self.start_time, self.end_time)

    def to_dict(self):
        return {
            "name": self.name,
            "code": self.code,
            "date": self.exam_date.isoformat() if self.exam_date else "",
            "startTime": self.start_time,
            "endTime": self.end_time,
            "time": self.time,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=clean_text(data.get("name")),
            code=clean_text(data.get("code")),
            exam_date=parse_exam_date(data.get("date") or data.get("exam_date")),
            start_time=normalize_time(data.get("startTime") or data.get("start_time")),
            end_time=normalize_time(data.get("endTime") or data.get("end_time")),
            time=clean_text(data.get("time")),
        )


@dataclass(frozen=True)
class Student:
    identifier: str
    name: str
    admission_number: str = ""
    father_name: str = ""
    subjects: Tuple[Subject, ...] = ()

    @property
    def valid_subjects(self) -> Tuple[Subject, ...]:
        return tuple(s for s in self.subjects if s.is_valid)

    def to_dict(self):
        return {
            "identifier": self.identifier,
            "name": self.name,
            "admissionNumber": self.admission_number,
            "fatherName": self.father_name,
            "subjects": [s.to_dict() for s in self.subjects],
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            identifier=clean_text(data.get("identifier") or data.get("usn") or data.get("rollNumber")),
            name=clean_text(data.get("name")),
            admission_number=clean_text(data.get("admissionNumber") or data.get("admissionNo")),
            father_name=clean_text(data.get("fatherName")),
            subjects=tuple(Subject.from_dict(s) for s in data.get("subjects") or []),
        )


@dataclass(frozen=True)
class Roster:
    kind: RosterKind = RosterKind.COLLEGE
    students: Tuple[Student, ...] = ()

    def __len__(self):
        return len(self.students)

    def __iter__(self):
        return iter(self.students)

    def __getitem__(self, index):
        return self.students[index]

    def to_dict(self):
        return {"kind": self.kind.value, "students": [s.to_dict() for s in self.students]}

    @classmethod
    def from_dict(cls, data):
        return cls(
            kind=RosterKind.parse(data.get("kind")),
            students=tuple(Student.from_dict(s) for s in data.get("students") or []),
        )


@dataclass(frozen=True)
class ScheduleEntry:
    name: str = ""
    code: str = ""
    exam_date: Optional[date] = None
    start_time: str = ""
    end_time: str = ""

    @property
    def duration(self) -> Optional[str]:
        return compute_duration(self.start_time, self.end_time)


# ============================================================
# CLASS / EXAM METADATA
# ============================================================
DEFAULT_INSTITUTION_NAME = "Institution Name"
DEFAULT_EXAM_TITLE = "Examination"

EXAM_TYPE_LABELS = {
    "mid-term": "Mid Term",
    "end-term": "End Term",
    "practical": "Practical",
    "internal": "Internal",
    "viva": "Viva",
    "project": "Project",
}


@dataclass(frozen=True)
class ClassExamMetadata:
    institution_name: str = ""
    exam_title: str = ""
    exam_type: str = ""
    academic_session: str = ""
    semester: str = ""
    exam_month_year: str = ""
    center_code: str = ""
    center_name: str = ""
    address: str = ""
    exam_time: str = ""
    exam_duration: str = ""
    special_instructions: str = ""
    department: str = ""
    school_class: str = ""
    school_board: str = ""

    @property
    def display_institution_name(self) -> str:
        return self.institution_name.strip() or DEFAULT_INSTITUTION_NAME

    @property
    def display_exam_title(self) -> str:
        return self.exam_title.strip() or DEFAULT_EXAM_TITLE

    @property
    def exam_type_label(self) -> str:
        key = self.exam_type.strip()
        return EXAM_TYPE_LABELS.get(key.lower(), key.replace("-", " "))

    @property
    def session_label(self) -> str:
        return self.exam_month_year.strip() or self.academic_session.strip()

    @property
    def center_label(self) -> str:
        return self.center_code.strip() or self.center_name.strip() or self.address.strip()

    def to_dict(self):
        return {f: getattr(self, f) for f in self.__dataclass_fields__}

    @classmethod
    def from_dict(cls, data):
        # form posts use camelCase keys (institutionName, examMonthYear, ...)
        normalized = {re.sub(r"(?<!^)(?=[A-Z])", "_", str(k)).lower(): v for k, v in data.items()}
        known = {f: clean_text(normalized[f]) for f in cls.__dataclass_fields__ if f in normalized}
        return cls(**known)


@dataclass
class ImportReport:
    accepted: int = 0
    skipped: int = 0
    columns: dict = field(default_factory=dict)
    max_subjects: int = 0

    @property
    def total(self) -> int:
        return self.accepted + self.skipped
