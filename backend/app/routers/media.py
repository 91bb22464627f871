from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..errors import InvalidInput
from ..media import CACHE_CONTROL, MediaStore, content_type_for, get_media_store

# Several public prefixes serve the same uploads root: the frontend and older
# deployments reference product images through each of them.
router = APIRouter(tags=["media"])


def serve_file(store: MediaStore, rel_path: str) -> FileResponse:
    target = store.locate(rel_path)
    return FileResponse(
        path=str(target),
        media_type=content_type_for(target),
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.get("/uploads/{rel_path:path}")
def uploads_file(rel_path: str, store: MediaStore = Depends(get_media_store)):
    return serve_file(store, rel_path)


@router.get("/api/media/{rel_path:path}")
def media_file(rel_path: str, store: MediaStore = Depends(get_media_store)):
    return serve_file(store, rel_path)


@router.get("/api/cdn/{rel_path:path}")
def cdn_file(rel_path: str, store: MediaStore = Depends(get_media_store)):
    return serve_file(store, rel_path)


@router.get("/api/serve-image")
def serve_image(file: Optional[str] = None, store: MediaStore = Depends(get_media_store)):
    """
    Query-string variant: `/api/serve-image?file=products/imagen.webp`.
    """
    if not file:
        raise InvalidInput("missing 'file' parameter")
    return serve_file(store, file)
