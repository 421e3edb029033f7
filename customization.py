import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from models import clean_text

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_RGB = (59, 130, 246)
DEFAULT_SECONDARY_RGB = (31, 41, 55)
DEFAULT_FOOTER_TEXT = "Note: This hall ticket must be preserved until the end of the examination"

FONT_FAMILIES = ("helvetica", "times", "courier")
BORDER_STYLES = ("solid", "double", "dashed")
LAYOUT_STYLES = ("standard", "compact", "detailed")

# point sizes used on the ticket, per font size tier
FONT_SIZE_TIERS = {
    "small": {"title": 10, "heading": 7, "body": 8, "caption": 6, "note": 5.5, "micro": 4.5},
    "medium": {"title": 11, "heading": 8, "body": 9, "caption": 7, "note": 6, "micro": 5},
    "large": {"title": 12, "heading": 9, "body": 10, "caption": 7.5, "note": 6.5, "micro": 5.5},
}

# portrait page sizes in mm
PAPER_SIZES = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
}

_HEX_COLOR = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def hex_to_rgb(value, default):
    match = _HEX_COLOR.match(clean_text(value))
    if not match:
        if clean_text(value):
            logger.warning(f"Malformed colour {value!r}, using default {default}")
        return default
    return tuple(int(part, 16) for part in match.groups())


def rgb_to_hex(rgb):
    return "#{:02x}{:02x}{:02x}".format(*rgb)


@dataclass(frozen=True)
class Customization:
    primary_rgb: Tuple[int, int, int] = DEFAULT_PRIMARY_RGB
    secondary_rgb: Tuple[int, int, int] = DEFAULT_SECONDARY_RGB
    font_family: str = "helvetica"
    font_size: str = "medium"
    border_style: str = "solid"
    border_width: int = 2
    layout_style: str = "standard"
    paper_size: str = "a4"
    footer_text: str = DEFAULT_FOOTER_TEXT
    show_photo: bool = True
    show_signature_area: bool = True
    show_qr_code: bool = False

    @property
    def font_sizes(self):
        return FONT_SIZE_TIERS[self.font_size]

    @property
    def page_size(self):
        return PAPER_SIZES[self.paper_size]

    def to_settings(self):
        """The raw (form-shaped) settings this customization resolves from."""
        return {
            "primaryColor": rgb_to_hex(self.primary_rgb),
            "secondaryColor": rgb_to_hex(self.secondary_rgb),
            "fontFamily": self.font_family,
            "fontSize": self.font_size,
            "borderStyle": self.border_style,
            "borderWidth": str(self.border_width),
            "layoutStyle": self.layout_style,
            "paperSize": self.paper_size,
            "footerText": self.footer_text,
            "showPhoto": self.show_photo,
            "showSignatureArea": self.show_signature_area,
            "showQRCode": self.show_qr_code,
        }


def _choice(value, allowed, default):
    text = clean_text(value).lower()
    return text if text in allowed else default


def _flag(value, default):
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _border_width(value, default=2):
    try:
        width = int(float(clean_text(value)))
    except (ValueError, OverflowError):
        return default
    return min(max(width, 1), 5)


def resolve_customization(settings=None):
    """Turns raw form/JSON settings into a Customization; every blank or bad field gets its default."""
    settings = settings or {}
    defaults = Customization()
    return Customization(
        primary_rgb=hex_to_rgb(settings.get("primaryColor"), DEFAULT_PRIMARY_RGB),
        secondary_rgb=hex_to_rgb(settings.get("secondaryColor"), DEFAULT_SECONDARY_RGB),
        font_family=_choice(settings.get("fontFamily"), FONT_FAMILIES, defaults.font_family),
        font_size=_choice(settings.get("fontSize"), FONT_SIZE_TIERS, defaults.font_size),
        border_style=_choice(settings.get("borderStyle"), BORDER_STYLES, defaults.border_style),
        border_width=_border_width(settings.get("borderWidth"), defaults.border_width),
        layout_style=_choice(settings.get("layoutStyle"), LAYOUT_STYLES, defaults.layout_style),
        paper_size=_choice(settings.get("paperSize"), PAPER_SIZES, defaults.paper_size),
        footer_text=clean_text(settings.get("footerText")) or defaults.footer_text,
        show_photo=_flag(settings.get("showPhoto"), defaults.show_photo),
        show_signature_area=_flag(settings.get("showSignatureArea"), defaults.show_signature_area),
        show_qr_code=_flag(settings.get("showQRCode"), defaults.show_qr_code),
    )


# ============================================================
# TEMPLATE PRESETS
# ============================================================
TEMPLATES = {
    "vtu": {
        "institutionName": "VISVESVARAYA TECHNOLOGICAL UNIVERSITY, BELAGAVI",
        "examTitle": "ADMISSION TICKET FOR B.E EXAMINATION JUNE / JULY 2025",
        "primaryColor": "#1e40af",
        "secondaryColor": "#1f2937",
        "fontFamily": "helvetica",
        "fontSize": "medium",
        "layoutStyle": "standard",
        "borderStyle": "solid",
        "borderWidth": "2",
        "showPhoto": True,
        "showSignatureArea": True,
        "footerText": "This is a computer-generated hall ticket and does not require signature",
    },
    "modern": {
        "institutionName": "Modern University",
        "examTitle": "DIGITAL EXAMINATION HALL TICKET 2025",
        "primaryColor": "#7c3aed",
        "secondaryColor": "#374151",
        "fontFamily": "helvetica",
        "fontSize": "medium",
        "layoutStyle": "compact",
        "borderStyle": "solid",
        "borderWidth": "1",
        "showPhoto": True,
        "showSignatureArea": False,
        "footerText": "Generated digitally - No signature required",
    },
    "classic": {
        "institutionName": "Classic Education Institute",
        "examTitle": "TRADITIONAL EXAMINATION HALL TICKET",
        "primaryColor": "#059669",
        "secondaryColor": "#1f2937",
        "fontFamily": "times",
        "fontSize": "large",
        "layoutStyle": "detailed",
        "borderStyle": "double",
        "borderWidth": "3",
        "showPhoto": True,
        "showSignatureArea": True,
        "footerText": "This hall ticket is valid for the specified examination only",
    },
}


def apply_template(name, settings=None):
    """Overlays a preset on existing raw settings; unknown names raise KeyError."""
    template = TEMPLATES[name]
    merged = dict(settings or {})
    merged.update(template)
    return merged


def dump_customization(settings, timestamp=None):
    payload = {
        "settings": settings,
        "timestamp": (timestamp or datetime.now()).isoformat(),
    }
    return json.dumps(payload, indent=2)


def load_customization(text):
    """Reads a saved template file; returns the raw settings dict."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid template file: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("settings"), dict):
        raise ValueError("Invalid template file: missing settings")
    return data["settings"]

