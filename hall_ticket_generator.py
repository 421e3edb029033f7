import io
import logging
import re
import zipfile
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, List, Optional

from fpdf import FPDF

from customization import Customization
from models import (
    ClassExamMetadata,
    EmptyRosterError,
    GenerationCancelled,
    Roster,
    RosterKind,
    SelectionError,
    Student,
    Subject,
)
from ticket_layout import Box, OverflowPolicy, Picture, Region, Rule, TextRun, TicketCopy, TicketLayoutEngine

logger = logging.getLogger(__name__)

COPY_GAP = 5
PAGE_MARGIN = 5
FULL_PAGE_MARGIN = 10


class DocumentMode(Enum):
    SAME_STUDENT = "same-student"  # student copy + office copy of one student per page
    PAIRS = "pairs"  # two different students per page
    SINGLE = "single"  # one full-page ticket per student


@dataclass
class GenerationContext:
    """Everything one generation run reads. Nothing here is modified while rendering."""

    roster: Roster
    metadata: ClassExamMetadata = field(default_factory=ClassExamMetadata)
    customization: Customization = field(default_factory=Customization)
    photo_lookup: Optional[Callable] = None
    logo_lookup: Optional[Callable] = None
    generated_on: Optional[date] = None
    cancel_event: Optional[object] = None  # threading.Event

    @property
    def cancelled(self):
        return self.cancel_event is not None and self.cancel_event.is_set()


@dataclass
class RenderedDocument:
    data: bytes
    page_count: int
    copies: List[TicketCopy]


# ============================================================
# PAGE GEOMETRY
# ============================================================
def half_page_regions(page_w, page_h):
    copy_h = (page_h - 3 * PAGE_MARGIN) / 2
    return tuple(
        Region(PAGE_MARGIN, PAGE_MARGIN + i * (copy_h + COPY_GAP), page_w - 2 * PAGE_MARGIN, copy_h)
        for i in range(2)
    )


def full_page_region(page_w, page_h):
    return Region(FULL_PAGE_MARGIN, FULL_PAGE_MARGIN, page_w - 2 * FULL_PAGE_MARGIN, page_h - 2 * FULL_PAGE_MARGIN)


def select_students(roster, selection=None):
    if selection is None:
        return list(roster.students)
    students = []
    for index in selection:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(roster):
            raise SelectionError(f"No student at position {index!r} (roster has {len(roster)})")
        students.append(roster[index])
    return students


def plan_pages(students, mode, page_size):
    """Yields one list of (student, region, copy label) slots per page."""
    if mode is DocumentMode.SINGLE:
        region = full_page_region(*page_size)
        for student in students:
            yield [(student, region, None)]
        return
    top, bottom = half_page_regions(*page_size)
    if mode is DocumentMode.SAME_STUDENT:
        for student in students:
            yield [(student, top, "STUDENT COPY"), (student, bottom, "OFFICE COPY")]
        return
    for i in range(0, len(students), 2):
        slots = [(students[i], top, None)]
        if i + 1 < len(students):
            slots.append((students[i + 1], bottom, None))
        yield slots


# ============================================================
# RENDERING
# ============================================================
def _draw_isolated(pdf, engine, student, region, policy, label, base_page):
    """Lay out and draw one copy; any failure leaves an error box in its region instead."""
    try:
        copy = engine.layout(student, region, policy, copy_label=label)
        _replay(pdf, copy, base_page)
        return copy
    except Exception:
        logger.exception(f"Could not generate hall ticket for {student.identifier}")
    pdf.page = base_page
    copy = engine.failure_copy(
        student.identifier, region, f"Hall ticket for {student.identifier} could not be generated"
    )
    _replay(pdf, copy, base_page)
    return copy


def _replay(pdf, copy, base_page):
    for op in copy.operations:
        while pdf.page < base_page + op.page:
            pdf.add_page()
        if isinstance(op, TextRun):
            pdf.set_font(op.family, op.style, op.size)
            pdf.set_text_color(*op.color)
            pdf.text(op.x, op.y, op.text)
        elif isinstance(op, Rule):
            pdf.set_draw_color(*op.color)
            pdf.set_line_width(op.width)
            if op.dashed:
                pdf.set_dash_pattern(dash=1.5, gap=1)
            pdf.line(op.x1, op.y1, op.x2, op.y2)
            if op.dashed:
                pdf.set_dash_pattern()
        elif isinstance(op, Box):
            pdf.set_draw_color(*op.draw_color)
            pdf.set_line_width(op.width)
            if op.fill_color:
                pdf.set_fill_color(*op.fill_color)
            if op.dashed:
                pdf.set_dash_pattern(dash=1.5, gap=1)
            pdf.rect(op.x, op.y, op.w, op.h, style=op.style)
            if op.dashed:
                pdf.set_dash_pattern()
        elif isinstance(op, Picture):
            pdf.image(op.image, x=op.x, y=op.y, w=op.w, h=op.h)


def _new_document(context):
    pdf = FPDF(orientation="P", unit="mm", format=context.customization.page_size)
    pdf.set_auto_page_break(auto=False)
    pdf.set_margins(0, 0, 0)
    pdf.set_creator("hallticket")
    pdf.set_title(context.metadata.display_exam_title)
    return pdf


def render_document(context, mode=DocumentMode.SAME_STUDENT, selection=None):
    """
    Lay out and draw the hall tickets for the roster (or the selected
    positions in it) and return the finished PDF.

    Raises EmptyRosterError before any page is written when there is no
    student to print, and GenerationCancelled when the context's cancel
    event is set; a cancelled run produces no bytes.
    """
    mode = DocumentMode(mode)
    students = select_students(context.roster, selection)
    if not students:
        raise EmptyRosterError()

    engine = TicketLayoutEngine(
        context.metadata,
        context.customization,
        kind=context.roster.kind,
        photo_lookup=context.photo_lookup,
        logo_lookup=context.logo_lookup,
        generated_on=context.generated_on,
    )
    policy = OverflowPolicy.PAGINATE if mode is DocumentMode.SINGLE else OverflowPolicy.TRUNCATE
    pdf = _new_document(context)
    copies = []

    for slots in plan_pages(students, mode, context.customization.page_size):
        if context.cancelled:
            logger.info(f"Generation cancelled after {pdf.page} pages")
            raise GenerationCancelled()
        pdf.add_page()
        base_page = pdf.page
        for student, region, label in slots:
            copies.append(_draw_isolated(pdf, engine, student, region, policy, label, base_page))

    truncated = sum(1 for c in copies if c.truncated_subjects)
    if truncated:
        logger.warning(f"{truncated} ticket copies could not show every subject")
    logger.info(f"Generated {pdf.page} pages for {len(students)} students ({mode.value})")
    return RenderedDocument(data=bytes(pdf.output()), page_count=pdf.page, copies=copies)


def generate_document(context, mode=DocumentMode.SAME_STUDENT, selection=None):
    return render_document(context, mode, selection).data


SAMPLE_STUDENT = Student(
    identifier="SAMPLE123",
    name="Sample Student",
    admission_number="ADM2025001",
    father_name="Sample Father",
    subjects=(
        Subject(name="Mathematics", code="MATH101"),
        Subject(name="Physics", code="PHY101"),
        Subject(name="Chemistry", code="CHEM101"),
    ),
)


def preview_single(metadata, customization, logo_lookup=None, kind=RosterKind.COLLEGE, generated_on=None):
    """One-page PDF with a sample student, drawn exactly as a real run would."""
    context = GenerationContext(
        roster=Roster(kind=RosterKind.parse(kind), students=(SAMPLE_STUDENT,)),
        metadata=metadata,
        customization=customization,
        logo_lookup=logo_lookup,
        generated_on=generated_on,
    )
    return render_document(context, DocumentMode.PAIRS)


def archive_name(identifier, taken):
    base = "hall_ticket_" + (re.sub(r"[^A-Za-z0-9_-]+", "_", identifier).strip("_") or "student")
    name = base + ".pdf"
    n = 2
    while name in taken:
        name = f"{base}_{n}.pdf"
        n += 1
    taken.add(name)
    return name


def generate_ticket_archive(context, mode=DocumentMode.SAME_STUDENT, selection=None):
    """ZIP with one PDF per student, named after the student's identifier."""
    students = select_students(context.roster, selection)
    if not students:
        raise EmptyRosterError()
    buffer = io.BytesIO()
    taken = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
        for student in students:
            single = replace(context, roster=Roster(kind=context.roster.kind, students=(student,)))
            zipf.writestr(archive_name(student.identifier, taken), generate_document(single, mode))
    logger.info(f"Created archive with {len(students)} hall tickets")
    return buffer.getvalue()
