import uuid
from types import SimpleNamespace

import pytest

from src.api.deps.auth import get_current_user
from src.main import app
from src.services.media_service import media_service


@pytest.fixture()
def user(clear_overrides):
    fake = SimpleNamespace(id=uuid.uuid4(), is_active=True)
    app.dependency_overrides[get_current_user] = lambda: fake
    return fake


@pytest.fixture()
def stored(monkeypatch):
    records = {}

    async def _get_media(session, media_id):
        return records.get(media_id)

    monkeypatch.setattr(media_service, "get_media", _get_media)
    return records


def test_media_file_is_streamed_from_disk(client, user, stored, tmp_path):
    path = tmp_path / "abc.png"
    path.write_bytes(b"\x89PNG fake image bytes")
    media_id = uuid.uuid4()
    stored[media_id] = SimpleNamespace(
        id=media_id, user_id=user.id, stored_path=str(path), mime_type="image/png", filename="shot.png"
    )

    r = client.get(f"/api/v1/media/{media_id}/file")

    assert r.status_code == 200
    assert r.content == b"\x89PNG fake image bytes"
    assert r.headers["content-type"] == "image/png"
    assert r.headers["content-disposition"] == 'attachment; filename="shot.png"'


def test_media_of_another_user_is_404(client, user, stored, tmp_path):
    path = tmp_path / "abc.png"
    path.write_bytes(b"x")
    media_id = uuid.uuid4()
    stored[media_id] = SimpleNamespace(
        id=media_id, user_id=uuid.uuid4(), stored_path=str(path), mime_type="image/png", filename="shot.png"
    )

    r = client.get(f"/api/v1/media/{media_id}/file")

    assert r.status_code == 404
    assert r.json()["detail"] == "Media not found"


def test_media_with_missing_file_is_404(client, user, stored, tmp_path):
    media_id = uuid.uuid4()
    stored[media_id] = SimpleNamespace(
        id=media_id, user_id=user.id, stored_path=str(tmp_path / "gone.bin"), mime_type=None, filename="gone.bin"
    )

    r = client.get(f"/api/v1/media/{media_id}/file")

    assert r.status_code == 404
    assert r.json()["detail"] == "Media file not found"
