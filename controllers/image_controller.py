import asyncio
import json
from typing import Any, Dict, List

from fastapi import HTTPException, Request
from fastapi.responses import Response

from dal.asset_store import AssetNotFoundError, AssetStore, InvalidKeyError, annotated_key, store_metadata_with_retry
from models.image_record import ImageMetadata, parse_annotations
from models.session_models import LogType
from services.image_codec import ImageCodec

IMAGE_CACHE_CONTROL = "public, max-age=31536000"
# Ids shadowed by fixed routes under /api/images.
RESERVED_IMAGE_IDS = frozenset({"cleanup"})


def _store(request: Request) -> AssetStore:
    store = getattr(request.app.state, "asset_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Asset store not initialized.")
    return store


async def store_image_or_metadata(request: Request, image_id: str) -> Dict[str, Any]:
    """Store the request body under `image_id`.

    A JSON body (`{comment, annotations, name}`) is saved as metadata, retrying
    while the image upload propagates; any other body is stored as image bytes.

    Raises:
        HTTPException(400) for invalid ids, empty bodies or malformed metadata.
        HTTPException(404) if the image never appears for a metadata write.
    """
    store = _store(request)
    if image_id in RESERVED_IMAGE_IDS:
        raise HTTPException(status_code=400, detail=f"Image id {image_id!r} is reserved.")
    content_type = request.headers.get("content-type") or ""
    body = await request.body()

    try:
        if "application/json" in content_type:
            try:
                metadata = ImageMetadata.from_dict(json.loads(body or b"{}"))
            except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
                raise HTTPException(status_code=400, detail=f"Invalid metadata: {exc}") from exc
            await store_metadata_with_retry(store, image_id, metadata.to_dict())
        else:
            if not body:
                raise HTTPException(status_code=400, detail="Uploaded image is empty.")
            await store.put(image_id, body)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return {"success": True, "id": image_id}


async def get_image(request: Request, image_id: str) -> Response:
    """Return the stored image bytes with a long-lived cache header.

    Raises:
        HTTPException(404) if nothing is stored under `image_id`.
    """
    store = _store(request)
    try:
        data = await store.get(image_id)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if data is None:
        raise HTTPException(status_code=404, detail="Image not found")

    media_type = ImageCodec.mime_type(data)
    return Response(content=data, media_type=media_type, headers={"Cache-Control": IMAGE_CACHE_CONTROL})


async def get_metadata(request: Request, image_id: str) -> Dict[str, Any]:
    store = _store(request)
    try:
        metadata = await store.get_meta(image_id)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if metadata is None:
        raise HTTPException(status_code=404, detail="Metadata not found")
    return {"id": image_id, "metadata": metadata}


async def delete_image(request: Request, image_id: str) -> Dict[str, Any]:
    """Remove the image, its annotated variant and its metadata."""
    store = _store(request)
    try:
        removed = await store.delete_image(image_id)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "removed": removed}


async def save_annotated_image(request: Request, image_id: str, annotations: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Render the annotation boxes onto the original and store `<id>_annotated`.

    Raises:
        HTTPException(404) if the original image is missing.
    """
    store = _store(request)
    codec: ImageCodec = request.app.state.image_codec
    try:
        boxes = parse_annotations(annotations)
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid annotations: {exc}") from exc

    try:
        original = await store.get(image_id)
        if original is None:
            raise HTTPException(status_code=404, detail="Image not found")
        annotated = await asyncio.to_thread(codec.overlay, original, boxes)
        await store.put_annotated(image_id, annotated)
    except InvalidKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    request.app.state.activity_log.add(f"Saved annotated image for {image_id}", LogType.INFO)
    return {"success": True, "annotatedId": annotated_key(image_id)}


async def cleanup_images(request: Request) -> Dict[str, Any]:
    """Delete every stored asset and all metadata."""
    deleted, errors = await _store(request).delete_all()
    request.app.state.activity_log.add(f"Cleanup complete: {deleted} deleted, {errors} errors", LogType.INFO)
    return {
        "success": True,
        "deleted": deleted,
        "errors": errors,
        "message": f"Deleted {deleted} images from storage",
    }
