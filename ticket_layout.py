"""
Geometry for a single hall ticket copy.

The engine never touches the output document: it records draw operations
(text runs, rules, boxes, pictures) for one student inside a rectangular
region, measuring text with fpdf's core-font metrics. The composer replays
the operations onto real pages. All positions are in millimetres, y grows
downwards and text y is the baseline, as in fpdf.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, List, NamedTuple, Optional, Tuple

from fpdf import FPDF

from assets import decode_image
from customization import Customization
from models import AssetResolutionError, ClassExamMetadata, RosterKind

logger = logging.getLogger(__name__)

PT_TO_MM = 25.4 / 72

HEADER_HEIGHT = 25
LOGO_SIZE = 18
PHOTO_SIZE = 30
QR_SIZE = 20
RESERVED_BOTTOM = 25
TABLE_GUTTER = 50
CELL_PADDING = 1.5
PLACEHOLDER_RGB = (100, 100, 100)
ROW_SHADE_RGB = (245, 245, 245)

# (header, share of the table width)
TABLE_COLUMNS = (
    ("DATE", 0.14),
    ("TIME", 0.20),
    ("SUBJECT NAME", 0.36),
    ("SUBJECT CODE", 0.17),
    ("SIGN", 0.13),
)

INSTRUCTIONS = (
    "- Please verify the eligibility of candidate before issuing the admission ticket.",
    "- This is an electronically generated admission ticket; carry it with a valid photo ID.",
)


class OverflowPolicy(Enum):
    TRUNCATE = "truncate"  # half-page copies: rows past the reserved block are dropped
    PAGINATE = "paginate"  # full-page tickets: the table continues on a new page


class Spacing(NamedTuple):
    """Vertical gaps (mm) between the lines above the subjects table."""

    identity: float  # header band -> identification line
    name: float  # identification line -> candidate name
    summary: float  # candidate name -> exam summary
    heading: float  # exam summary -> "SUBJECTS APPLIED"
    table: float  # heading -> table top


STANDARD_SPACING = Spacing(7, 8, 12, 6, 8)
TIGHT_SPACING = Spacing(6, 7, 10, 5, 5)
# Letter half pages (about 132 mm) need the tight gaps for five subjects to fit
TIGHT_REGION_HEIGHT = 140


def spacing_for(region):
    return TIGHT_SPACING if region.h < TIGHT_REGION_HEIGHT else STANDARD_SPACING


class TableTier(NamedTuple):
    row_height: float
    font_size: float
    header_font_size: float


def table_tier(subject_count):
    if subject_count > 6:
        return TableTier(6, 6, 7)
    if subject_count == 6:
        return TableTier(7, 7, 7)
    return TableTier(8, 8, 8)


class KindProfile(NamedTuple):
    identifier_label: str
    logo_label: Tuple[str, str]
    signatures: Tuple[str, str, str]


KIND_PROFILES = {
    RosterKind.COLLEGE: KindProfile(
        "UNIVERSITY SEAT NO",
        ("COLLEGE", "LOGO"),
        ("Signature of the Candidate", "Signature of HOD", "Signature of Principal"),
    ),
    RosterKind.SCHOOL: KindProfile(
        "ROLL NUMBER",
        ("SCHOOL", "LOGO"),
        ("Signature of the Candidate", "Signature of Invigilator", "Signature of Superintendent"),
    ),
    RosterKind.GENERAL: KindProfile(
        "REGISTER NO",
        ("COLLEGE", "LOGO"),
        ("Signature of the Candidate", "Signature of Invigilator", "Signature of Superintendent"),
    ),
}


def department_line(kind, metadata):
    if kind is RosterKind.SCHOOL:
        parts = [p.upper() for p in (metadata.school_class, metadata.school_board) if p and p != "N/A"]
        return " - ".join(parts)
    if not metadata.department:
        return ""
    if kind is RosterKind.COLLEGE:
        return f"DEPARTMENT OF {metadata.department.upper()}"
    return metadata.department.upper()


def summary_line(metadata):
    parts = []
    for label, value in (
        ("Type", metadata.exam_type_label),
        ("Sem", metadata.semester.strip()),
        ("Session", metadata.session_label),
        ("Time", metadata.exam_time.strip()),
        ("Center", metadata.center_label),
        ("Duration", metadata.exam_duration.strip()),
    ):
        if value:
            parts.append(f"{label}: {value}")
    return "  ".join(parts)


def tint(rgb, amount):
    return tuple(int(round(c + (255 - c) * amount)) for c in rgb)


def latin1(text):
    # core PDF fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


# ============================================================
# DRAW OPERATIONS
# ============================================================
@dataclass(frozen=True)
class Region:
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self):
        return self.x + self.w

    @property
    def bottom(self):
        return self.y + self.h


@dataclass(frozen=True)
class TextRun:
    page: int
    x: float
    y: float
    text: str
    family: str
    style: str
    size: float
    color: Tuple[int, int, int]


@dataclass(frozen=True)
class Rule:
    page: int
    x1: float
    y1: float
    x2: float
    y2: float
    width: float
    color: Tuple[int, int, int]
    dashed: bool = False


@dataclass(frozen=True)
class Box:
    page: int
    x: float
    y: float
    w: float
    h: float
    style: str
    width: float = 0.2
    draw_color: Tuple[int, int, int] = (0, 0, 0)
    fill_color: Optional[Tuple[int, int, int]] = None
    dashed: bool = False


@dataclass(frozen=True, eq=False)
class Picture:
    page: int
    x: float
    y: float
    w: float
    h: float
    image: Any


@dataclass
class TicketCopy:
    identifier: str
    region: Region
    operations: List[Any] = field(default_factory=list)
    cursor_y: float = 0.0
    reserved_top: float = 0.0
    pages: int = 1
    rendered_subjects: int = 0
    truncated_subjects: int = 0
    photo_status: str = "hidden"

    def texts(self, page=None):
        return [op.text for op in self.operations if isinstance(op, TextRun) and (page is None or op.page == page)]


# ============================================================
# TEXT METRICS / WRAPPING
# ============================================================
class TextMetrics:
    """String widths for the core fonts, taken from a scratch fpdf document."""

    def __init__(self):
        self._pdf = FPDF(unit="mm")
        self._cache = {}

    def width(self, text, family, style, size):
        key = (text, family, style, size)
        if key not in self._cache:
            self._pdf.set_font(family, style, size)
            self._cache[key] = self._pdf.get_string_width(latin1(text))
        return self._cache[key]


def _split_long_word(word, width_of, cell_width):
    lines = []
    current = ""
    for ch in word:
        if current and width_of(current + ch) > cell_width:
            lines.append(current)
            current = ch
        else:
            current += ch
    lines.append(current)
    return lines


def wrap_text(text, width_of, cell_width):
    """
    Word-wrap `text` to `cell_width` using measured widths. Words wider than
    the cell break at hyphens when they have any, otherwise per character.
    """
    lines = []
    current = ""
    for word in text.split():
        candidate = word if not current else current + " " + word
        if width_of(candidate) <= cell_width:
            current = candidate
            continue
        if current:
            lines.append(current)
            current = ""
        if width_of(word) <= cell_width:
            current = word
            continue
        pieces = []
        if "-" in word:
            parts = word.split("-")
            piece = parts[0]
            for part in parts[1:]:
                if width_of(piece + "-" + part) <= cell_width:
                    piece = piece + "-" + part
                else:
                    pieces.append(piece + "-")
                    piece = part
            pieces.append(piece)
        else:
            pieces = [word]
        for piece in pieces:
            if width_of(piece) <= cell_width:
                lines.append(piece)
            else:
                lines.extend(_split_long_word(piece, width_of, cell_width))
        current = lines.pop() if lines else ""
    if current:
        lines.append(current)
    return lines or [""]


class _Recorder:
    def __init__(self, metrics, family, text_rgb):
        self.metrics = metrics
        self.family = family
        self.text_rgb = text_rgb
        self.page = 0
        self.ops = []

    def width(self, text, size, style=""):
        return self.metrics.width(text, self.family, style, size)

    def fit(self, text, max_width, size, style="", min_size=None):
        """Shrink the font up to 2pt, then cut with an ellipsis, until `text` fits."""
        text = latin1(text)
        min_size = max(4, size - 2) if min_size is None else min_size
        while size > min_size and self.width(text, size, style) > max_width:
            size = max(min_size, size - 0.5)
        if self.width(text, size, style) <= max_width:
            return text, size
        while text and self.width(text + "...", size, style) > max_width:
            text = text[:-1]
        return (text.rstrip() + "..." if text else ""), size

    def text(self, x, y, text, size, style="", color=None, align="L", max_width=None):
        if max_width is not None:
            text, size = self.fit(text, max_width, size, style)
        else:
            text = latin1(text)
        if not text:
            return
        if align == "C":
            x -= self.width(text, size, style) / 2
        elif align == "R":
            x -= self.width(text, size, style)
        self.ops.append(TextRun(self.page, x, y, text, self.family, style, size, color or self.text_rgb))

    def line(self, x1, y1, x2, y2, width=0.2, color=None, dashed=False):
        self.ops.append(Rule(self.page, x1, y1, x2, y2, width, color or self.text_rgb, dashed))

    def rect(self, x, y, w, h, style="D", width=0.2, color=None, fill=None, dashed=False):
        self.ops.append(Box(self.page, x, y, w, h, style, width, color or self.text_rgb, fill, dashed))

    def picture(self, image, x, y, box_w, box_h):
        # fit inside the box keeping the aspect ratio, centred
        px_w, px_h = image.size
        scale = min(box_w / px_w, box_h / px_h)
        w, h = px_w * scale, px_h * scale
        self.ops.append(Picture(self.page, x + (box_w - w) / 2, y + (box_h - h) / 2, w, h, image))


# ============================================================
# LAYOUT ENGINE
# ============================================================
class TicketLayoutEngine:
    """
    Lays out hall ticket copies for one generation run.

    Metadata, customization and the lookups are shared by every copy the
    engine produces; `photo_lookup(identifier)` and `logo_lookup(kind)`
    return an ImageAsset or None.
    """

    def __init__(
        self,
        metadata: ClassExamMetadata,
        customization: Customization,
        kind=RosterKind.COLLEGE,
        photo_lookup=None,
        logo_lookup=None,
        generated_on: Optional[date] = None,
        metrics: Optional[TextMetrics] = None,
    ):
        self.metadata = metadata
        self.customization = customization
        self.kind = kind
        self.profile = KIND_PROFILES[kind]
        self.photo_lookup = photo_lookup
        self.logo_lookup = logo_lookup
        self.generated_on = generated_on or date.today()
        self.metrics = metrics or TextMetrics()
        self.sizes = customization.font_sizes
        self._logos = {}

    # ------------------------------------------------------------
    def layout(self, student, region, policy=OverflowPolicy.TRUNCATE, copy_label=None):
        rec = _Recorder(self.metrics, self.customization.font_family, self.customization.secondary_rgb)
        copy = TicketCopy(identifier=student.identifier, region=region)
        copy.reserved_top = region.bottom - RESERVED_BOTTOM

        self._draw_borders(rec, region)
        self._draw_header(rec, region, copy_label)
        spacing = spacing_for(region)
        name_y = self._draw_identity(rec, copy, student, region, spacing)
        cursor = self._draw_summary(rec, region, name_y + spacing.summary) + spacing.heading
        self._draw_qr_placeholder(rec, region, name_y - 5 + PHOTO_SIZE, copy.reserved_top)
        copy.cursor_y = self._draw_subjects(rec, copy, student, region, cursor, policy, spacing.table)
        self._draw_signatures(rec, region)
        self._draw_instructions(rec, region)
        self._draw_footer(rec, region)

        copy.operations = rec.ops
        copy.pages = rec.page + 1
        return copy

    def failure_copy(self, identifier, region, message):
        """Bordered box with an explanation, used when a ticket could not be laid out."""
        rec = _Recorder(self.metrics, self.customization.font_family, self.customization.secondary_rgb)
        # blank out anything a failed replay already drew in the region
        rec.rect(region.x, region.y, region.w, region.h, style="F", fill=(255, 255, 255))
        self._draw_borders(rec, region)
        rec.text(region.x + region.w / 2, region.y + region.h / 2, message, self.sizes["body"], "B",
                 align="C", max_width=region.w - 10)
        return TicketCopy(identifier=identifier, region=region, operations=rec.ops,
                          cursor_y=region.y, reserved_top=region.bottom - RESERVED_BOTTOM,
                          photo_status="error")

    # ------------------------------------------------------------
    def _draw_borders(self, rec, region):
        c = self.customization
        outer = 0.5 * c.border_width
        inner = outer if c.border_style == "double" else 0.5
        dashed = c.border_style == "dashed"
        rec.rect(region.x, region.y, region.w, region.h, width=outer, dashed=dashed)
        rec.rect(region.x + 2, region.y + 2, region.w - 4, region.h - 4, width=inner, dashed=dashed)

    def _logo(self, kind):
        if kind not in self._logos:
            asset = self.logo_lookup(kind) if self.logo_lookup else None
            image = None
            if asset is not None:
                try:
                    image = decode_image(asset)
                except AssetResolutionError as e:
                    logger.warning(f"{kind} logo not usable, drawing placeholder: {e}")
            self._logos[kind] = image
        return self._logos[kind]

    def _draw_logo_box(self, rec, kind, x, y, labels):
        rec.rect(x, y, LOGO_SIZE, LOGO_SIZE, width=0.5)
        image = self._logo(kind)
        if image is not None:
            rec.picture(image, x, y, LOGO_SIZE, LOGO_SIZE)
            return
        for offset, label in zip((7, 11), labels):
            rec.text(x + LOGO_SIZE / 2, y + offset, label, 6, color=PLACEHOLDER_RGB, align="C",
                     max_width=LOGO_SIZE - 1)

    def _draw_header(self, rec, region, copy_label):
        x, y, w = region.x, region.y, region.w
        rec.rect(x + 2, y + 2, w - 4, HEADER_HEIGHT, width=0.5)
        self._draw_logo_box(rec, "primary", x + 5, y + 5, self.profile.logo_label)
        self._draw_logo_box(rec, "secondary", region.right - LOGO_SIZE - 5, y + 5, ("GOVT", "EMBLEM"))

        centre = x + w / 2
        text_width = w - 2 * (LOGO_SIZE + 8)
        rec.text(centre, y + 8, self.metadata.display_institution_name.upper(), self.sizes["title"], "B",
                 color=self.customization.primary_rgb, align="C", max_width=text_width)
        department = department_line(self.kind, self.metadata)
        if department:
            rec.text(centre, y + 14, department, self.sizes["heading"], "B", align="C", max_width=text_width)
        rec.text(centre, y + 23, self.metadata.display_exam_title, self.sizes["caption"], align="C",
                 max_width=text_width)
        if copy_label:
            rec.text(region.right - 5, y + 26, copy_label, self.sizes["micro"], "B", align="R")

    def _draw_identity(self, rec, copy, student, region, spacing):
        x, w = region.x, region.w
        body = self.sizes["body"]
        id_y = region.y + HEADER_HEIGHT + spacing.identity
        name_y = id_y + spacing.name
        photo_x = region.right - PHOTO_SIZE - 5
        text_right = (photo_x if self.customization.show_photo else region.right - 2) - 3

        # line 1: identifier, admission number, generation date
        date_text = self.generated_on.strftime("%d/%m/%Y")
        date_x = region.right - 5 - rec.width(date_text, body)
        rec.text(date_x, id_y, date_text, body)
        date_label_x = date_x - 1.5 - rec.width("Date:", body, "B")
        rec.text(date_label_x, id_y, "Date:", body, "B")

        admission_x = x + w * 0.48
        label = f"1. {self.profile.identifier_label}:"
        rec.text(x + 5, id_y, label, body, "B", max_width=admission_x - x - 25)
        value_x = x + 5 + min(rec.width(label, body, "B"), admission_x - x - 25) + 2
        rec.text(value_x, id_y, student.identifier, body, max_width=admission_x - 3 - value_x)

        rec.text(admission_x, id_y, "ADMISSION NO:", body, "B")
        adm_value_x = admission_x + rec.width("ADMISSION NO:", body, "B") + 2
        rec.text(adm_value_x, id_y, student.admission_number or "Not provided", body,
                 max_width=date_label_x - 3 - adm_value_x)

        # line 2: candidate name (+ father's name for schools)
        label = "2. NAME OF THE CANDIDATE:"
        rec.text(x + 5, name_y, label, body, "B")
        value_x = x + 5 + rec.width(label, body, "B") + 2
        rec.text(value_x, name_y, student.name.upper(), body, max_width=text_right - value_x)
        if self.kind is RosterKind.SCHOOL:
            label = "FATHER'S NAME:"
            rec.text(x + 5, name_y + 6, label, body, "B")
            value_x = x + 5 + rec.width(label, body, "B") + 2
            rec.text(value_x, name_y + 6, (student.father_name or "-").upper(), body,
                     max_width=text_right - value_x)

        if self.customization.show_photo:
            copy.photo_status = self._draw_photo(rec, student, photo_x, name_y - 5)
        return name_y

    def _draw_photo(self, rec, student, x, y):
        rec.rect(x, y, PHOTO_SIZE, PHOTO_SIZE, width=0.5)
        centre = x + PHOTO_SIZE / 2
        asset = self.photo_lookup(student.identifier) if self.photo_lookup else None
        if asset is None:
            rec.text(centre, y + 13, "Affix Recent", 6, color=PLACEHOLDER_RGB, align="C")
            rec.text(centre, y + 17, "Passport Photo", 6, color=PLACEHOLDER_RGB, align="C")
            return "placeholder"
        try:
            image = decode_image(asset)
        except AssetResolutionError as e:
            logger.warning(f"Photo for {student.identifier} not embedded: {e}")
            rec.text(centre, y + 13, "Photo Error", 6, color=PLACEHOLDER_RGB, align="C")
            rec.text(centre, y + 17, "Check Format", 6, color=PLACEHOLDER_RGB, align="C")
            return "error"
        rec.picture(image, x, y, PHOTO_SIZE, PHOTO_SIZE)
        return "embedded"

    def _draw_summary(self, rec, region, cursor):
        right = region.right - PHOTO_SIZE - 8 if self.customization.show_photo else region.right - 5
        text = summary_line(self.metadata)
        if text:
            rec.text(region.x + 5, cursor, text, self.sizes["caption"], max_width=right - region.x - 5)
        return cursor

    def _draw_qr_placeholder(self, rec, region, photo_bottom, reserved_top):
        if not self.customization.show_qr_code:
            return
        x = region.right - QR_SIZE - 7
        y = photo_bottom + 5
        if y + QR_SIZE > reserved_top:
            return
        rec.rect(x, y, QR_SIZE, QR_SIZE, color=(200, 200, 200))
        rec.text(x + QR_SIZE / 2, y + QR_SIZE / 2 + 1, "QR", 8, color=PLACEHOLDER_RGB, align="C")

    # ------------------------------------------------------------
    def _draw_subjects(self, rec, copy, student, region, cursor, policy, table_gap=8):
        rec.text(region.x + 5, cursor, "3. SUBJECTS APPLIED:", self.sizes["body"], "B")
        cursor += table_gap
        subjects = student.valid_subjects
        if not subjects:
            rec.text(region.x + 5, cursor + 5, "No subjects registered", 8)
            return cursor + 15

        tier = table_tier(len(subjects))
        table_x = region.x + 5
        table_w = region.w - TABLE_GUTTER
        widths = [table_w * share for _, share in TABLE_COLUMNS]
        line_h = tier.font_size * PT_TO_MM * 1.15
        name_width = widths[2] - 2 * CELL_PADDING

        def name_width_of(text):
            return rec.width(text, tier.font_size)

        rows = []
        for subject in subjects:
            lines = wrap_text(subject.name, name_width_of, name_width)
            rows.append((subject, lines, max(tier.row_height, len(lines) * line_h + 2 * CELL_PADDING)))

        limit = copy.reserved_top
        if cursor + tier.row_height > limit:
            copy.truncated_subjects = len(rows)
            logger.warning(f"No room for the subjects table of {student.identifier}; "
                           f"{len(rows)} subjects not shown")
            return cursor

        segment_top = cursor
        cursor = self._draw_table_header(rec, table_x, cursor, widths, tier)
        for index, (subject, lines, row_h) in enumerate(rows):
            if cursor + row_h > limit:
                if policy is OverflowPolicy.TRUNCATE:
                    copy.truncated_subjects = len(rows) - index
                    logger.warning(
                        f"Subjects table for {student.identifier} is full: "
                        f"{copy.truncated_subjects} of {len(rows)} subjects not shown"
                    )
                    break
                rec.rect(table_x, segment_top, table_w, cursor - segment_top, width=0.5)
                cursor = self._continue_on_new_page(rec, region)
                segment_top = cursor
                cursor = self._draw_table_header(rec, table_x, cursor, widths, tier)
                if cursor + row_h > limit:
                    # a single row taller than a whole page: keep the lines that fit
                    max_lines = max(1, int((limit - cursor - 2 * CELL_PADDING) // line_h))
                    lines = lines[:max_lines]
                    lines[-1] = rec.fit(lines[-1] + "...", name_width, tier.font_size)[0]
                    row_h = min(row_h, limit - cursor)
            self._draw_row(rec, index, subject, lines, table_x, cursor, widths, row_h, tier, line_h)
            cursor += row_h
            copy.rendered_subjects += 1
        rec.rect(table_x, segment_top, table_w, cursor - segment_top, width=0.5)
        return cursor

    def _continue_on_new_page(self, rec, region):
        rec.page += 1
        self._draw_borders(rec, region)
        rec.text(region.x + 5, region.y + 10, "3. SUBJECTS APPLIED (contd.):", self.sizes["body"], "B")
        return region.y + 14

    def _draw_table_header(self, rec, x, y, widths, tier):
        h = tier.row_height
        rec.rect(x, y, sum(widths), h, style="F", fill=tint(self.customization.primary_rgb, 0.85))
        baseline = y + h / 2 + tier.header_font_size * PT_TO_MM * 0.35
        cell_x = x
        for (title, _), width in zip(TABLE_COLUMNS, widths):
            rec.rect(cell_x, y, width, h)
            rec.text(cell_x + CELL_PADDING, baseline, title, tier.header_font_size, "B",
                     max_width=width - 2 * CELL_PADDING)
            cell_x += width
        return y + h

    def _draw_row(self, rec, index, subject, lines, x, y, widths, row_h, tier, line_h):
        if index % 2 == 0:
            rec.rect(x, y, sum(widths), row_h, style="F", fill=ROW_SHADE_RGB)
        size = tier.font_size
        baseline = y + row_h / 2 + size * PT_TO_MM * 0.35

        if subject.exam_date:
            date_text = subject.exam_date.strftime("%d/%m/%y")
        else:
            date_text = "-"
        if subject.start_time and subject.end_time:
            time_text = f"{subject.start_time[:5]} - {subject.end_time[:5]}"
        else:
            time_text = subject.time or "-"

        cells = (date_text, time_text, None, subject.code, "")
        cell_x = x
        for width, value in zip(widths, cells):
            rec.rect(cell_x, y, width, row_h)
            if value is None:
                first = y + (row_h - len(lines) * line_h) / 2 + line_h * 0.75
                for n, line in enumerate(lines):
                    rec.text(cell_x + CELL_PADDING, first + n * line_h, line, size)
            elif value:
                rec.text(cell_x + CELL_PADDING, baseline, value, size, max_width=width - 2 * CELL_PADDING)
            cell_x += width

    # ------------------------------------------------------------
    def _draw_signatures(self, rec, region):
        if not self.customization.show_signature_area:
            return
        sig_y = region.bottom - 22
        area_x = region.x + 10
        slot_w = (region.w - 20) / 3
        line_len = slot_w - 12
        for i, caption in enumerate(self.profile.signatures):
            slot_x = area_x + i * slot_w
            rec.line(slot_x + 6, sig_y + 2, slot_x + 6 + line_len, sig_y + 2)
            rec.text(slot_x + slot_w / 2, sig_y + 6, caption, self.sizes["caption"], align="C",
                     max_width=slot_w - 2)

    def _draw_instructions(self, rec, region):
        style = self.customization.layout_style
        lines = list(INSTRUCTIONS)
        if style == "compact":
            lines = lines[:1]
        elif style == "detailed" and self.metadata.special_instructions.strip():
            lines[1] = "- " + " ".join(self.metadata.special_instructions.split())
        for offset, line in zip((11, 6), lines):
            rec.text(region.x + 5, region.bottom - offset, line, self.sizes["note"], max_width=region.w - 10)

    def _draw_footer(self, rec, region):
        rec.text(region.x + region.w / 2, region.bottom - 3, self.customization.footer_text,
                 self.sizes["micro"], align="C", max_width=region.w - 10)
