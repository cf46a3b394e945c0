import base64
import binascii
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, UploadFile

from models.session_models import ClassificationResult, LogType
from services.analysis_jobs import AnalysisJobStore, JobConflictError
from services.openai.vision_classifier import VisionClassifier


def _classifier(request: Request) -> VisionClassifier:
    classifier = getattr(request.app.state, "vision_classifier", None)
    if classifier is None:
        raise HTTPException(status_code=500, detail="Vision classifier not initialized.")
    return classifier


def _jobs(request: Request) -> AnalysisJobStore:
    return request.app.state.analysis_jobs


async def analyze_image(
    request: Request, image_base64: Optional[str] = None, image: Optional[UploadFile] = None
) -> ClassificationResult:
    """Classify a single image given as base64 text or an uploaded file.

    Raises:
        HTTPException(400) if neither input is usable.
    """
    if image is not None:
        image_bytes = await image.read()
    elif image_base64:
        payload = image_base64.split(",", 1)[1] if image_base64.startswith("data:") else image_base64
        try:
            image_bytes = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(status_code=400, detail="Invalid base64 image data") from exc
    else:
        raise HTTPException(status_code=400, detail="Image base64 data required")

    if not image_bytes:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")

    result = await _classifier(request).classify(image_bytes)
    log = request.app.state.activity_log
    if result.success:
        log.add("Image analysis completed", LogType.INFO)
        if result.cost_usd:
            log.add(f"{result.cost_usd:.6f}", LogType.COST)
    else:
        log.add(f"Analysis error: {result.error}", LogType.ERROR)
    return result


async def start_analysis_job(request: Request, image_ids: List[str], rate_seconds: Optional[float]) -> Dict[str, Any]:
    rate = request.app.state.settings.analysis_rate_seconds if rate_seconds is None else rate_seconds
    try:
        state = _jobs(request).start(image_ids, rate)
    except JobConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return state.to_dict()


async def get_analysis_job(request: Request, job_id: str) -> Dict[str, Any]:
    try:
        return _jobs(request).get(job_id).to_dict()
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc


async def stop_analysis_job(request: Request, job_id: str) -> Dict[str, Any]:
    try:
        return _jobs(request).request_stop(job_id).to_dict()
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
