import asyncio
import base64
import json

import pytest
from PIL import Image

from assets import (
    ImageAsset,
    ImageFormat,
    LogoAssets,
    PhotoStore,
    decode_image,
    format_from_filename,
    format_from_tag,
    load_image_file,
    load_logo_assets,
    load_photo_store,
    sniff_format,
)
from models import AssetLoadError, AssetResolutionError


def test_format_tags():
    assert format_from_tag("image/jpeg") is ImageFormat.JPEG
    assert format_from_tag(".PNG") is ImageFormat.PNG
    assert format_from_tag("image/tiff") is None
    assert format_from_filename("1XX21CS001.jpeg") is ImageFormat.JPEG
    assert format_from_filename("notes.txt") is None


def test_sniff_format(image_bytes):
    assert sniff_format(image_bytes("PNG")) is ImageFormat.PNG
    assert sniff_format(image_bytes("JPEG")) is ImageFormat.JPEG
    assert sniff_format(image_bytes("GIF")) is ImageFormat.GIF
    assert sniff_format(b"hello") is None


def test_decode_matching_image(image_bytes):
    image = decode_image(ImageAsset(image_bytes("PNG"), ImageFormat.PNG))
    assert image.size == (40, 50)
    assert image.mode in ("RGB", "RGBA", "L")


def test_gif_is_converted_for_embedding(image_bytes):
    image = decode_image(ImageAsset(image_bytes("GIF"), ImageFormat.GIF))
    assert image.mode in ("RGB", "RGBA")


def test_declared_format_must_match(image_bytes):
    with pytest.raises(AssetResolutionError, match="declared as JPEG"):
        decode_image(ImageAsset(image_bytes("PNG"), ImageFormat.JPEG))


def test_truncated_jpeg_is_rejected(corrupt_jpeg):
    with pytest.raises(AssetResolutionError):
        decode_image(ImageAsset(corrupt_jpeg, ImageFormat.JPEG))


def test_garbage_bytes_are_rejected():
    with pytest.raises(AssetResolutionError):
        decode_image(ImageAsset(b"definitely not an image", ImageFormat.PNG))


def test_oversized_image_is_rejected(monkeypatch, image_bytes):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with pytest.raises(AssetResolutionError, match="Cannot decode PNG"):
        decode_image(ImageAsset(image_bytes("PNG"), ImageFormat.PNG))


def test_data_url(image_bytes):
    data = image_bytes("PNG")
    asset = ImageAsset.from_data_url("data:image/png;base64," + base64.b64encode(data).decode("ascii"))
    assert asset == ImageAsset(data, ImageFormat.PNG)
    with pytest.raises(AssetLoadError):
        ImageAsset.from_data_url("data:image/bmp;base64,AAAA")
    with pytest.raises(AssetLoadError):
        ImageAsset.from_data_url("no comma here")
    with pytest.raises(AssetLoadError):
        ImageAsset.from_data_url("data:image/png;base64,@@@")


def test_photo_store_and_logo_lookup(image_bytes):
    asset = ImageAsset(image_bytes("PNG"), ImageFormat.PNG)
    store = PhotoStore({"1": asset})
    assert store.lookup("1") is asset
    assert store.lookup("2") is None
    assert "1" in store and len(store) == 1
    logos = LogoAssets(primary=asset)
    assert logos.lookup("primary") is asset
    assert logos.lookup("secondary") is None
    with pytest.raises(ValueError):
        logos.lookup("tertiary")


def test_load_photo_store_from_folder(tmp_path, image_bytes):
    (tmp_path / "1XX21CS001.png").write_bytes(image_bytes("PNG"))
    (tmp_path / "1XX21CS002.jpg").write_bytes(image_bytes("JPEG"))
    (tmp_path / "readme.txt").write_text("ignored")
    store, failures = asyncio.run(load_photo_store(str(tmp_path)))
    assert len(store) == 2
    assert store.lookup("1XX21CS002").format is ImageFormat.JPEG
    assert failures == {}


def test_load_photo_store_reports_missing_files(tmp_path, image_bytes):
    (tmp_path / "a.png").write_bytes(image_bytes("PNG"))
    (tmp_path / "index.json").write_text(json.dumps({"A 1": "a.png", "B": "gone.png"}))
    store, failures = asyncio.run(load_photo_store(str(tmp_path)))
    assert "A 1" in store
    assert list(failures) == ["B"]


def test_load_photo_store_without_folder(tmp_path):
    store, failures = asyncio.run(load_photo_store(str(tmp_path / "missing")))
    assert len(store) == 0 and failures == {}


def test_load_image_file_rejects_unknown_extension(tmp_path):
    path = tmp_path / "logo.bmp"
    path.write_bytes(b"BM")
    with pytest.raises(AssetLoadError):
        asyncio.run(load_image_file(str(path)))


def test_load_logo_assets_skips_missing(tmp_path, image_bytes):
    primary = tmp_path / "logo.png"
    primary.write_bytes(image_bytes("PNG"))
    logos = asyncio.run(load_logo_assets(str(primary), str(tmp_path / "nope.png")))
    assert logos.primary.format is ImageFormat.PNG
    assert logos.secondary is None
