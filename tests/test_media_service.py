import uuid

import pytest
from PIL import Image

from src.services import media_service as media_module
from src.services.media_service import (
    MediaService,
    extension_for_mime_type,
    make_thumbnail,
    thumbnail_path_for,
)


@pytest.mark.parametrize(
    "mime,ext",
    [
        ("image/jpeg", "jpg"),
        ("image/png", "png"),
        ("audio/ogg; codecs=opus", "ogg"),
        ("application/pdf", "pdf"),
        ("application/x-unknown", "bin"),
        (None, "bin"),
    ],
)
def test_extension_for_mime_type(mime, ext):
    assert extension_for_mime_type(mime) == ext


def test_make_thumbnail_fits_inside_300px(tmp_path):
    source = tmp_path / "photo.png"
    Image.new("RGB", (1200, 600), color="red").save(source)

    thumb = make_thumbnail(source)

    assert thumb == thumbnail_path_for(source)
    assert thumb.name == "photo_thumb.png"
    with Image.open(thumb) as img:
        assert img.size == (300, 150)


@pytest.mark.anyio
async def test_get_media_file_raises_when_missing(monkeypatch, tmp_path):
    async def _no_media(session, *, media_id):
        return None

    monkeypatch.setattr(media_module, "get_media", _no_media)

    with pytest.raises(LookupError):
        await MediaService(upload_dir=tmp_path).get_media_file(object(), uuid.uuid4())
