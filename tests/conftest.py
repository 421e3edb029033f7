import io
from datetime import date

import pdfplumber
import pytest
from PIL import Image

from models import Roster, RosterKind, Student, Subject


@pytest.fixture
def image_bytes():
    def make(fmt="PNG", size=(40, 50), color=(200, 30, 30)):
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()
    return make


@pytest.fixture
def corrupt_jpeg():
    buffer = io.BytesIO()
    Image.effect_noise((120, 160), 64).convert("RGB").save(buffer, format="JPEG")
    data = buffer.getvalue()
    return data[: len(data) // 2]


@pytest.fixture
def make_student():
    def make(identifier="1XX21CS001", name="Asha Rao", subjects=3, **kwargs):
        if isinstance(subjects, int):
            subjects = tuple(
                Subject(name=f"Subject {i + 1}", code=f"SUB{i + 1:03d}") for i in range(subjects)
            )
        return Student(identifier=identifier, name=name, subjects=tuple(subjects), **kwargs)
    return make


@pytest.fixture
def three_subject_student():
    return Student(
        identifier="1XX21CS001",
        name="Asha Rao",
        subjects=(
            Subject(name="Mathematics", code="MAT101", exam_date=date(2025, 6, 12),
                    start_time="09:30", end_time="12:30"),
            Subject(name="Physics", code="PHY101"),
            Subject(name="Chemistry", code="CHE101"),
        ),
    )


@pytest.fixture
def roster_of(make_student):
    def make(count, kind=RosterKind.COLLEGE, subjects=3):
        return Roster(
            kind=kind,
            students=tuple(
                make_student(identifier=f"1XX21CS{i + 1:03d}", name=f"Student {i + 1}", subjects=subjects)
                for i in range(count)
            ),
        )
    return make


@pytest.fixture
def pdf_pages():
    """Extracted text per page of a PDF byte string."""
    def read(data):
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return [page.extract_text() or "" for page in pdf.pages]
    return read
