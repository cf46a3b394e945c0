from fastapi import APIRouter, HTTPException, Request

from controllers.report_controller import generate_report
from models.report_models import ReportRequest, ReportVariant

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/normal")
async def normal_report_route(request: Request, payload: ReportRequest):
	"""Return a .docx report built from the original images."""
	try:
		return await generate_report(request, payload, ReportVariant.NORMAL)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/modified")
async def modified_report_route(request: Request, payload: ReportRequest):
	"""Return a .docx report preferring annotated images."""
	try:
		return await generate_report(request, payload, ReportVariant.MODIFIED)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
