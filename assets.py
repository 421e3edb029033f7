import asyncio
import base64
import binascii
import io
import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from PIL import Image

from models import AssetLoadError, AssetResolutionError, clean_text

logger = logging.getLogger(__name__)

PHOTO_INDEX_FILE = "index.json"


class ImageFormat(Enum):
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    WEBP = "WEBP"

    @property
    def extension(self):
        return {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}[self.value]


_TAGS = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "image/jpeg": ImageFormat.JPEG,
    "image/jpg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "image/png": ImageFormat.PNG,
    "gif": ImageFormat.GIF,
    "image/gif": ImageFormat.GIF,
    "webp": ImageFormat.WEBP,
    "image/webp": ImageFormat.WEBP,
}


def format_from_tag(tag):
    """MIME type, file extension or format name -> ImageFormat (None when unsupported)."""
    text = clean_text(tag).lower().lstrip(".")
    return _TAGS.get(text)


def format_from_filename(filename):
    return format_from_tag(os.path.splitext(filename)[1])


def sniff_format(data):
    if data.startswith(b"\xff\xd8\xff"):
        return ImageFormat.JPEG
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return ImageFormat.PNG
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageFormat.GIF
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    return None


@dataclass(frozen=True)
class ImageAsset:
    data: bytes
    format: ImageFormat

    @classmethod
    def from_data_url(cls, url):
        """Parse a `data:image/png;base64,...` URL as produced by browser file readers."""
        try:
            header, encoded = url.split(",", 1)
        except ValueError:
            raise AssetLoadError("Not a data URL") from None
        fmt = format_from_tag(header[5:].split(";")[0]) if header.startswith("data:") else None
        if fmt is None:
            raise AssetLoadError(f"Unsupported image type in data URL: {header[:40]}")
        try:
            return cls(base64.b64decode(encoded, validate=True), fmt)
        except binascii.Error as e:
            raise AssetLoadError(f"Invalid base64 image data: {e}") from e


def decode_image(asset):
    """
    Decode an asset for embedding. The real format must match the declared
    one and the pixel data must decode completely.
    """
    try:
        image = Image.open(io.BytesIO(asset.data))
        actual = image.format
        image.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise AssetResolutionError(f"Cannot decode {asset.format.value} image: {e}") from e
    if actual != asset.format.value:
        raise AssetResolutionError(f"Image declared as {asset.format.value} but is {actual}")
    if image.mode not in ("RGB", "RGBA", "L"):
        image = image.convert("RGBA" if "transparency" in image.info or image.mode == "LA" else "RGB")
    return image


class PhotoStore:
    """Photos keyed by roster identifier."""

    def __init__(self, photos=None):
        self._photos: Dict[str, ImageAsset] = dict(photos or {})

    def __len__(self):
        return len(self._photos)

    def __contains__(self, identifier):
        return identifier in self._photos

    def add(self, identifier, asset):
        self._photos[identifier] = asset

    def lookup(self, identifier) -> Optional[ImageAsset]:
        return self._photos.get(identifier)


@dataclass(frozen=True)
class LogoAssets:
    primary: Optional[ImageAsset] = None
    secondary: Optional[ImageAsset] = None

    def lookup(self, kind) -> Optional[ImageAsset]:
        if kind == "primary":
            return self.primary
        if kind == "secondary":
            return self.secondary
        raise ValueError(f"Unknown logo kind: {kind}")


# ============================================================
# LOAD STAGE (runs before rendering; the layout engine never reads files)
# ============================================================
async def load_image_file(path, declared=None):
    fmt = declared or format_from_filename(path)
    if fmt is None:
        raise AssetLoadError(f"Unsupported image type: {os.path.basename(path)}")
    try:
        data = await asyncio.to_thread(_read_bytes, path)
    except OSError as e:
        raise AssetLoadError(f"Cannot read {path}: {e}") from e
    return ImageAsset(data, fmt)


def _read_bytes(path):
    with open(path, "rb") as f:
        return f.read()


def read_photo_index(folder):
    index_path = os.path.join(folder, PHOTO_INDEX_FILE)
    if os.path.exists(index_path):
        with open(index_path, "r", encoding="utf-8") as f:
            return json.load(f)
    index = {}
    if os.path.isdir(folder):
        for filename in sorted(os.listdir(folder)):
            if format_from_filename(filename):
                index[os.path.splitext(filename)[0]] = filename
    return index


async def load_photo_store(folder):
    """
    Load every photo listed for `folder` concurrently.

    Returns (PhotoStore, failures) where failures maps identifier -> message;
    an unreadable photo only leaves that student without a photo.
    """
    index = read_photo_index(folder)
    identifiers = list(index)
    results = await asyncio.gather(
        *(load_image_file(os.path.join(folder, index[i])) for i in identifiers),
        return_exceptions=True,
    )
    store = PhotoStore()
    failures = {}
    for identifier, result in zip(identifiers, results):
        if isinstance(result, AssetLoadError):
            failures[identifier] = str(result)
            logger.warning(f"Photo for {identifier} not loaded: {result}")
        elif isinstance(result, BaseException):
            raise result
        else:
            store.add(identifier, result)
    logger.info(f"Loaded {len(store)} photos from {folder}")
    return store, failures


async def _optional_logo(path):
    if not path or not os.path.exists(path):
        return None
    try:
        return await load_image_file(path)
    except AssetLoadError as e:
        logger.warning(f"Logo {path} not loaded: {e}")
        return None


async def load_logo_assets(primary_path=None, secondary_path=None):
    primary, secondary = await asyncio.gather(_optional_logo(primary_path), _optional_logo(secondary_path))
    return LogoAssets(primary=primary, secondary=secondary)
