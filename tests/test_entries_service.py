import io
import os

import pytest
from starlette.datastructures import Headers, UploadFile

from core.errors import NoOpUpdate, NotFound, PayloadTooLarge, UpstreamError, ValidationError
from core.resources import FAILED, RELEASED, SKIPPED
from entries import service, uploads

from conftest import FakeBlobStore


def _upload(data=b"RIFFaudio", filename="note.webm", content_type="audio/webm"):
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


@pytest.fixture
def staging(tmp_path, monkeypatch):
    path = tmp_path / "staging"
    path.mkdir()
    monkeypatch.setattr(uploads, "staging_dir", lambda: path)
    return path


async def test_create_then_get_round_trip(entry_repo):
    created = await service.create_entry({"title": "A", "content": "B"}, user_id=1, entries=entry_repo)

    fetched = await service.get_entry(created["id"], user_id=1, entries=entry_repo)

    assert fetched == created
    assert fetched["type"] == "text"
    assert fetched["mediaUrls"] == []


async def test_create_empty_entry_writes_nothing(entry_repo):
    with pytest.raises(ValidationError):
        await service.create_entry({"title": ""}, user_id=1, entries=entry_repo)
    assert entry_repo.rows == {}


async def test_partial_update_changes_only_supplied_fields(entry_repo):
    created = await service.create_entry({"title": "A", "content": "B"}, user_id=1, entries=entry_repo)

    updated = await service.update_entry(created["id"], {"title": "C"}, user_id=1, entries=entry_repo)

    assert updated["title"] == "C"
    assert updated["content"] == "B"
    assert updated["createdAt"] == created["createdAt"]


async def test_update_is_idempotent(entry_repo):
    created = await service.create_entry({"content": "B"}, user_id=1, entries=entry_repo)
    payload = {"content": "again", "mediaUrls": ["https://cdn/1.png"]}

    first = await service.update_entry(created["id"], payload, user_id=1, entries=entry_repo)
    second = await service.update_entry(created["id"], payload, user_id=1, entries=entry_repo)

    assert first == second


async def test_empty_update_is_noop(entry_repo):
    created = await service.create_entry({"content": "B"}, user_id=1, entries=entry_repo)

    with pytest.raises(NoOpUpdate):
        await service.update_entry(created["id"], {}, user_id=1, entries=entry_repo)

    assert (await service.get_entry(created["id"], user_id=1, entries=entry_repo))["content"] == "B"


async def test_other_users_entry_looks_missing(entry_repo):
    created = await service.create_entry({"content": "secret"}, user_id=1, entries=entry_repo)

    with pytest.raises(NotFound):
        await service.get_entry(created["id"], user_id=2, entries=entry_repo)
    with pytest.raises(NotFound):
        await service.update_entry(created["id"], {"content": "x"}, user_id=2, entries=entry_repo)
    with pytest.raises(NotFound):
        await service.delete_entry(created["id"], user_id=2, entries=entry_repo)

    assert entry_repo.rows[created["id"]]["content"] == "secret"


async def test_audio_url_update_only_on_voice_entries(entry_repo):
    text = await service.create_entry({"content": "B"}, user_id=1, entries=entry_repo)
    voice = await service.create_entry({"audioUrl": "https://cdn/a.webm"}, user_id=1, entries=entry_repo)

    with pytest.raises(ValidationError):
        await service.update_entry(text["id"], {"audioUrl": "https://cdn/b.webm"}, user_id=1, entries=entry_repo)

    updated = await service.update_entry(voice["id"], {"audioUrl": "https://cdn/b.webm"}, user_id=1, entries=entry_repo)
    assert updated["audioUrl"] == "https://cdn/b.webm"
    assert updated["type"] == "voice"


@pytest.mark.parametrize(
    ("page", "limit", "expected"),
    [(None, None, (1, 20)), (0, 1000, (1, 50)), (-4, 0, (1, 1)), (3, 10, (3, 10))],
)
async def test_pagination_clamps(entry_repo, page, limit, expected):
    result = await service.list_entries(user_id=1, entries=entry_repo, page=page, limit=limit)
    assert (result["page"], result["limit"]) == expected


async def test_list_is_newest_first_and_paginated(entry_repo):
    for i in range(3):
        await service.create_entry({"content": f"e{i}"}, user_id=1, entries=entry_repo)
    await service.create_entry({"content": "other"}, user_id=2, entries=entry_repo)

    first = await service.list_entries(user_id=1, entries=entry_repo, page=1, limit=2)
    second = await service.list_entries(user_id=1, entries=entry_repo, page=2, limit=2)

    assert [e["content"] for e in first["entries"]] == ["e2", "e1"]
    assert [e["content"] for e in second["entries"]] == ["e0"]


async def test_voice_entry_uploads_then_persists(entry_repo, blob_store, staging):
    entry = await service.create_voice_entry(
        _upload(),
        title="Morning",
        duration="12.7",
        user_id=1,
        entries=entry_repo,
        blob_store=blob_store,
    )

    assert entry["type"] == "voice"
    assert entry["audioUrl"].startswith("https://media.example.com/audio/")
    assert entry["duration"] == 12
    assert entry["title"] == "Morning"
    assert blob_store.uploads[0][0] == b"RIFFaudio"
    assert list(staging.iterdir()) == []


async def test_failed_blob_upload_cleans_up_and_skips_write(entry_repo, staging):
    with pytest.raises(UpstreamError):
        await service.create_voice_entry(
            _upload(),
            user_id=1,
            entries=entry_repo,
            blob_store=FakeBlobStore(fail=True),
        )

    assert entry_repo.rows == {}
    assert list(staging.iterdir()) == []


async def test_voice_rejects_bad_mime_and_duration(entry_repo, blob_store, staging):
    with pytest.raises(ValidationError):
        await service.create_voice_entry(
            _upload(content_type="text/plain"), user_id=1, entries=entry_repo, blob_store=blob_store
        )
    with pytest.raises(ValidationError):
        await service.create_voice_entry(
            _upload(), duration="-1", user_id=1, entries=entry_repo, blob_store=blob_store
        )
    assert blob_store.uploads == []
    assert entry_repo.rows == {}


async def test_voice_upload_size_limit(entry_repo, blob_store, staging, monkeypatch):
    monkeypatch.setenv("MAX_VOICE_UPLOAD_BYTES", "4")
    with pytest.raises(PayloadTooLarge):
        await service.create_voice_entry(_upload(b"0123456789"), user_id=1, entries=entry_repo, blob_store=blob_store)
    assert list(staging.iterdir()) == []
    assert entry_repo.rows == {}


async def test_delete_legacy_voice_releases_local_file(entry_repo, tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path))
    (tmp_path / "voices").mkdir()
    audio = tmp_path / "voices" / "1.webm"
    audio.write_bytes(b"data")
    row = entry_repo.add_row(user_id=1, type="voice", content="uploads/voices/1.webm", duration=4)

    result = await service.delete_entry(row["id"], user_id=1, entries=entry_repo)

    assert result == {"message": "Entry deleted successfully", "id": row["id"]}
    assert not audio.exists()
    assert row["id"] not in entry_repo.rows


async def test_delete_succeeds_when_release_fails(entry_repo, tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path))
    # A directory where the file should be makes os.remove fail.
    os.makedirs(tmp_path / "voices" / "2.webm")
    row = entry_repo.add_row(user_id=1, type="voice", content="uploads/voices/2.webm")

    result = await service.delete_entry(row["id"], user_id=1, entries=entry_repo)

    assert result["message"] == "Entry deleted successfully"
    assert row["id"] not in entry_repo.rows


def test_release_entry_resources_reports_outcome(tmp_path):
    (tmp_path / "audios").mkdir()
    (tmp_path / "audios" / "a.webm").write_bytes(b"x")
    os.makedirs(tmp_path / "audios" / "b.webm")

    released = service.release_entry_resources(
        {"id": 1, "type": "voice", "audio_url": "/uploads/audios/a.webm"}, root=str(tmp_path)
    )
    failed = service.release_entry_resources(
        {"id": 2, "type": "voice", "audio_url": "/uploads/audios/b.webm"}, root=str(tmp_path)
    )
    remote = service.release_entry_resources(
        {"id": 3, "type": "voice", "audio_url": "https://cdn/a.webm"}, root=str(tmp_path)
    )

    assert released.status == RELEASED
    assert failed.status == FAILED and not failed.ok
    assert remote.status == SKIPPED


async def test_delete_legacy_voice_in_staging_dir_releases_file(entry_repo, staging, tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    audio = staging / "legacy.webm"
    audio.write_bytes(b"data")
    row = entry_repo.add_row(user_id=1, type="voice", content=str(audio))

    result = await service.delete_entry(row["id"], user_id=1, entries=entry_repo)

    assert result == {"message": "Entry deleted successfully", "id": row["id"]}
    assert not audio.exists()


def test_absolute_path_outside_allowed_roots_is_left_alone(tmp_path, staging):
    elsewhere = tmp_path / "elsewhere.webm"
    elsewhere.write_bytes(b"x")

    result = service.release_entry_resources(
        {"id": 1, "type": "voice", "content": str(elsewhere)}, root=str(tmp_path / "uploads")
    )

    assert result.status == SKIPPED
    assert elsewhere.exists()


async def test_update_that_blanks_everything_is_rejected(entry_repo):
    created = await service.create_entry({"title": "A", "content": "B"}, user_id=1, entries=entry_repo)

    with pytest.raises(ValidationError):
        await service.update_entry(created["id"], {"title": "", "content": "  "}, user_id=1, entries=entry_repo)

    stored = await service.get_entry(created["id"], user_id=1, entries=entry_repo)
    assert (stored["title"], stored["content"]) == ("A", "B")


async def test_update_may_blank_a_field_while_others_remain(entry_repo):
    created = await service.create_entry(
        {"title": "A", "content": "B", "mediaUrls": ["https://cdn/1.png"]}, user_id=1, entries=entry_repo
    )

    updated = await service.update_entry(created["id"], {"title": "", "content": ""}, user_id=1, entries=entry_repo)
    assert updated["mediaUrls"] == ["https://cdn/1.png"]

    with pytest.raises(ValidationError):
        await service.update_entry(created["id"], {"mediaUrls": []}, user_id=1, entries=entry_repo)


async def test_blanking_text_on_voice_entry_keeps_it_valid(entry_repo):
    voice = await service.create_entry(
        {"title": "T", "audioUrl": "https://cdn/a.webm"}, user_id=1, entries=entry_repo
    )

    updated = await service.update_entry(voice["id"], {"title": ""}, user_id=1, entries=entry_repo)

    assert updated["title"] == ""
    assert updated["audioUrl"] == "https://cdn/a.webm"


async def test_blanking_update_on_missing_entry_is_not_found(entry_repo):
    with pytest.raises(NotFound):
        await service.update_entry(999, {"title": ""}, user_id=1, entries=entry_repo)
