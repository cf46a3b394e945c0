"""FastAPI routes for stored inspection images."""

from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.image_controller import (
	cleanup_images,
	delete_image,
	get_image,
	get_metadata,
	save_annotated_image,
	store_image_or_metadata,
)

router = APIRouter(prefix="/api/images", tags=["images"])


class AnnotatePayload(BaseModel):
	annotations: List[Dict[str, Any]] = []


# Declared before the `{image_id}` routes so "cleanup" is not taken as an id.
@router.delete("/cleanup")
async def cleanup_route(request: Request):
	"""Delete every stored image, annotated variant and metadata entry."""
	try:
		return await cleanup_images(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{image_id}")
@router.put("/{image_id}")
async def upload_route(request: Request, image_id: str):
	"""Store image bytes, or JSON metadata when the body is `application/json`."""
	try:
		return await store_image_or_metadata(request, image_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{image_id}")
async def get_image_route(request: Request, image_id: str):
	try:
		return await get_image(request, image_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{image_id}/metadata")
async def get_metadata_route(request: Request, image_id: str):
	try:
		return await get_metadata(request, image_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{image_id}")
async def delete_image_route(request: Request, image_id: str):
	"""Remove the image, `<id>_annotated` and the metadata."""
	try:
		return await delete_image(request, image_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{image_id}/annotated")
async def annotate_route(request: Request, image_id: str, payload: AnnotatePayload):
	"""Render the posted boxes onto the original and store the annotated copy."""
	try:
		return await save_annotated_image(request, image_id, payload.annotations)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
