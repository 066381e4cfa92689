"""
Entry normalization: the single translation point between request payloads,
stored rows (from any schema generation) and the canonical response shape.

Schema generations we still read:
- v1: text-only rows, `content` required
- v2: `type` column; voice rows keep the audio path in `content`
- v3: `title`, `media_urls`, `audio_url`, `duration`

Write-side policy:
- `title` / `content` default to "" (never NULL)
- `media_urls` always a JSON array string ("[]" when absent)
- `type` is decided here from audio presence and stored explicitly

Read-side policy: never raise. Anything malformed degrades to a safe
default so legacy rows stay readable.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from core.errors import ValidationError

TEXT = "text"
VOICE = "voice"
ENTRY_TYPES = (TEXT, VOICE)


@dataclass(frozen=True)
class StorageRecord:
    type: str
    title: str
    content: str
    media_urls: str
    audio_url: str | None
    duration: int | None


@dataclass(frozen=True)
class TextEntry:
    id: Any
    user_id: Any
    title: str
    content: str
    created_at: datetime | str | None
    media_urls: tuple[str, ...] = field(default_factory=tuple)
    kind: str = TEXT


@dataclass(frozen=True)
class VoiceEntry:
    id: Any
    user_id: Any
    title: str
    content: str
    audio_url: str
    created_at: datetime | str | None
    duration: int | None = None
    media_urls: tuple[str, ...] = field(default_factory=tuple)
    kind: str = VOICE


StoredEntry = TextEntry | VoiceEntry


# ---------------------------------------------------------------------------
# Write side
# ---------------------------------------------------------------------------


def _text_value(value: Any, *, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string.")
    return value


def _optional_url(value: Any, *, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string.")
    value = value.strip()
    return value or None


def parse_media_urls(value: Any) -> list[str]:
    """
    Accept a list of strings or its JSON-encoded form.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except ValueError as exc:
            raise ValidationError("mediaUrls must be a JSON array of strings.") from exc
    if not isinstance(value, (list, tuple)):
        raise ValidationError("mediaUrls must be an array of strings.")
    urls: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError("mediaUrls must be an array of strings.")
        if item.strip():
            urls.append(item.strip())
    return urls


def encode_media_urls(urls: list[str]) -> str:
    return json.dumps(urls, ensure_ascii=True)


def parse_duration(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("Invalid duration.")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise ValidationError("Invalid duration.") from exc
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise ValidationError("Invalid duration.")
    return int(math.floor(value))


def is_empty(*, title: str, content: str, media_urls: Sequence[str], audio_url: str | None) -> bool:
    return not title.strip() and not content.strip() and not media_urls and not audio_url


def normalize_for_storage(payload: Mapping[str, Any], *, audio_url: str | None = None) -> StorageRecord:
    """
    Shape a create payload into a storage record.

    `audio_url` is the URL produced by a companion upload step (voice
    endpoint); it wins over any `audioUrl` in the payload.
    """
    title = _text_value(payload.get("title"), name="title")
    content = _text_value(payload.get("content"), name="content")
    media_urls = parse_media_urls(payload.get("mediaUrls"))
    audio = _optional_url(audio_url, name="audioUrl") or _optional_url(payload.get("audioUrl"), name="audioUrl")
    duration = parse_duration(payload.get("duration"))

    if duration is not None and audio is None:
        raise ValidationError("duration requires an audio recording.")

    if is_empty(title=title, content=content, media_urls=media_urls, audio_url=audio):
        raise ValidationError("Entry is empty: provide content, title or media.")

    return StorageRecord(
        type=VOICE if audio is not None else TEXT,
        title=title,
        content=content,
        media_urls=encode_media_urls(media_urls),
        audio_url=audio,
        duration=duration,
    )


def normalize_for_update(payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Shape the fields present in an update payload into storage values.

    Only keys present in `payload` are returned. An empty result is the query
    builder's concern; an update that would empty the entry is checked
    against the stored row with `is_empty_after_update`.
    """
    changes: dict[str, Any] = {}
    for key, value in payload.items():
        if key in ("title", "content"):
            changes[key] = _text_value(value, name=key)
        elif key == "mediaUrls":
            changes[key] = encode_media_urls(parse_media_urls(value))
        elif key == "audioUrl":
            audio = _optional_url(value, name=key)
            if audio is None:
                # A voice entry without audio would no longer match its type.
                raise ValidationError("audioUrl cannot be cleared.")
            changes[key] = audio
        else:
            changes[key] = value
    return changes


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


def _pick(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return None


def _read_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _read_url(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def decode_media_urls(value: Any) -> tuple[str, ...]:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return ()
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _read_duration(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(number)


def _legacy_audio_url(path: str) -> str:
    if path.startswith(("http://", "https://", "/")):
        return path
    return "/" + path


def parse_stored_row(row: Mapping[str, Any]) -> StoredEntry:
    entry_id = _pick(row, "id")
    user_id = _pick(row, "user_id", "userId")
    created_at = _pick(row, "created_at", "createdAt")
    title = _read_text(_pick(row, "title"))
    content = _read_text(_pick(row, "content"))
    media_urls = decode_media_urls(_pick(row, "media_urls", "mediaUrls"))
    audio_url = _read_url(_pick(row, "audio_url", "audioUrl"))
    duration = _read_duration(_pick(row, "duration"))

    stored_type = _pick(row, "type")
    if stored_type not in ENTRY_TYPES:
        stored_type = VOICE if audio_url else TEXT

    if stored_type == VOICE and audio_url is None and content.strip():
        # v2 voice rows: the recording path lives in `content`.
        audio_url = _legacy_audio_url(content.strip())
        content = ""

    if stored_type == VOICE and audio_url is not None:
        return VoiceEntry(
            id=entry_id,
            user_id=user_id,
            title=title,
            content=content,
            audio_url=audio_url,
            created_at=created_at,
            duration=duration,
            media_urls=media_urls,
        )

    return TextEntry(
        id=entry_id,
        user_id=user_id,
        title=title,
        content=content,
        created_at=created_at,
        media_urls=media_urls,
    )


def to_canonical(entry: StoredEntry) -> dict[str, Any]:
    if isinstance(entry, VoiceEntry):
        audio_url: str | None = entry.audio_url
        duration = entry.duration
    else:
        audio_url = None
        duration = None

    return {
        "id": entry.id,
        "userId": entry.user_id,
        "type": entry.kind,
        "title": entry.title,
        "content": entry.content,
        "mediaUrls": list(entry.media_urls),
        "audioUrl": audio_url,
        "duration": duration,
        "createdAt": entry.created_at,
    }


def normalize_for_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return to_canonical(parse_stored_row(row))


def local_resource_path(row: Mapping[str, Any]) -> str | None:
    """
    Path of a locally-held recording referenced by a stored row, if any.

    Covers v2 rows (path in `content`) and rows written by the local blob
    store (`/uploads/...`). Remote URLs return None.
    """
    entry = parse_stored_row(row)
    if not isinstance(entry, VoiceEntry):
        return None
    url = entry.audio_url
    if url.startswith(("http://", "https://")):
        return None
    return url


def blanks_a_field(changes: Mapping[str, Any]) -> bool:
    """
    Whether normalized update `changes` blank out any content-bearing field.
    Updates that only set non-blank values can never empty an entry.
    """
    for key in ("title", "content"):
        if key in changes and not changes[key].strip():
            return True
    return "mediaUrls" in changes and not decode_media_urls(changes["mediaUrls"])


def is_empty_after_update(row: Mapping[str, Any], changes: Mapping[str, Any]) -> bool:
    entry = parse_stored_row(row)
    media_urls = decode_media_urls(changes["mediaUrls"]) if "mediaUrls" in changes else entry.media_urls
    current_audio = entry.audio_url if isinstance(entry, VoiceEntry) else None
    return is_empty(
        title=changes.get("title", entry.title),
        content=changes.get("content", entry.content),
        media_urls=media_urls,
        audio_url=changes.get("audioUrl", current_audio),
    )
