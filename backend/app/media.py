from __future__ import annotations

import os
from pathlib import Path

from fastapi import Request

from .errors import InvalidPath, NotFound

CACHE_CONTROL = "public, max-age=31536000, immutable"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".avif": "image/avif",
    ".ico": "image/x-icon",
}

_MAX_REL_LEN = 300


def content_type_for(path: str | Path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


class MediaStore:
    """
    Read-only access to uploaded files under a single root directory.

    Every lookup goes through `resolve`, which validates the relative path against
    the canonical root before the target is touched.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def resolve(self, rel_path: str) -> Path:
        rel = (rel_path or "").strip()
        if not rel or len(rel) > _MAX_REL_LEN:
            raise InvalidPath(detail=f"bad length: {len(rel)}")
        if "\\" in rel or "\x00" in rel:
            raise InvalidPath(detail="backslash or NUL in path")
        if rel.startswith("/") or os.path.isabs(rel):
            raise InvalidPath(detail="absolute path")
        parts = rel.split("/")
        if ".." in parts:
            raise InvalidPath(detail="parent segment")

        target = (self.root / rel).resolve()
        # Catches symlinks that point outside the root.
        if self.root not in target.parents:
            raise InvalidPath(detail="outside root")
        return target

    def locate(self, rel_path: str) -> Path:
        target = self.resolve(rel_path)
        if not target.is_file():
            raise NotFound("file not found", detail=str(target))
        return target

    def read_bytes(self, rel_path: str) -> bytes:
        return self.locate(rel_path).read_bytes()


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media
