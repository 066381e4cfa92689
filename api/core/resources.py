"""
Best-effort release of locally-held files (legacy voice recordings, files
written by the local blob store).

Release returns a `ReleaseResult` instead of raising so callers decide
whether a failure matters. The delete endpoint only logs it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

RELEASED = "released"
MISSING = "missing"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class ReleaseResult:
    path: str | None
    status: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (RELEASED, MISSING, SKIPPED)


def _within(root: Path, parts: tuple[str, ...]) -> Path | None:
    if not parts:
        return None
    root_path = root.resolve()
    candidate = root_path.joinpath(*parts).resolve()
    if root_path not in candidate.parents:
        return None
    return candidate


def resolve_local_path(
    stored_path: str,
    *,
    root: str,
    extra_roots: Sequence[str] = (),
) -> Path | None:
    """
    Map a stored path onto a file we are allowed to delete.

    - "uploads/voices/a.webm", "/uploads/voices/a.webm", "voices/a.webm":
      resolved under `root`
    - other absolute paths (legacy rows pointing into the temp staging
      dir): kept as-is, but only if they sit under one of `extra_roots`

    Returns None when the path would escape every allowed root.
    """
    raw = (stored_path or "").strip()
    if not raw:
        return None

    parts = Path(raw.lstrip("/")).parts
    # Stored paths carry the public "uploads/" prefix; the root already is it.
    if parts and parts[0] == "uploads":
        return _within(Path(root), parts[1:])

    if raw.startswith("/"):
        candidate = Path(raw).resolve()
        for extra in extra_roots:
            if Path(extra).resolve() in candidate.parents:
                return candidate
        return None

    return _within(Path(root), parts)


def release_local_file(
    stored_path: str | None,
    *,
    root: str,
    extra_roots: Sequence[str] = (),
) -> ReleaseResult:
    if not stored_path:
        return ReleaseResult(path=None, status=SKIPPED)

    path = resolve_local_path(stored_path, root=root, extra_roots=extra_roots)
    if path is None:
        logger.warning("resource_release_rejected path=%s", stored_path)
        return ReleaseResult(path=stored_path, status=SKIPPED, error="Path outside allowed roots.")

    try:
        os.remove(path)
    except FileNotFoundError:
        return ReleaseResult(path=str(path), status=MISSING)
    except OSError as exc:
        return ReleaseResult(path=str(path), status=FAILED, error=str(exc))

    return ReleaseResult(path=str(path), status=RELEASED)
