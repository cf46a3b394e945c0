"""FastAPI routes for single-image and batch damage analysis."""

from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from controllers.analysis_controller import (
	analyze_image,
	get_analysis_job,
	start_analysis_job,
	stop_analysis_job,
)

router = APIRouter(prefix="/api", tags=["analysis"])


class JobPayload(BaseModel):
	image_ids: List[str] = Field(default_factory=list, alias="imageIds")
	rate_seconds: Optional[float] = Field(default=None, alias="rateSeconds")


@router.post("/analyze", summary="Classify visible damage in one image")
async def analyze_route(
	request: Request,
	image_base64: Optional[str] = Form(None, alias="imageBase64"),
	image: Optional[UploadFile] = File(None),
):
	try:
		result = await analyze_image(request, image_base64=image_base64, image=image)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
	return JSONResponse(result.to_dict(), status_code=200 if result.success else 500)


@router.post("/analysis/jobs")
async def start_job_route(request: Request, payload: JobPayload):
	"""Start a sequential, rate-limited analysis of stored images."""
	try:
		return await start_analysis_job(request, payload.image_ids, payload.rate_seconds)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/analysis/jobs/{job_id}")
async def get_job_route(request: Request, job_id: str):
	try:
		return await get_analysis_job(request, job_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analysis/jobs/{job_id}/stop")
async def stop_job_route(request: Request, job_id: str):
	"""Ask the job to stop before its next image; the in-flight call still completes."""
	try:
		return await stop_analysis_job(request, job_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
