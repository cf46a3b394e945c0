from datetime import date
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import Response

from models.report_models import ReportRequest, ReportVariant
from models.session_models import LogType
from services.document_packer import DOCX_MEDIA_TYPE
from services.report_builder import ReportBuilder


def report_filename(variant: ReportVariant, on: Optional[date] = None) -> str:
    """Return `inspection-report-<date>.docx` (or `-annotated-` for the modified variant)."""
    day = (on or date.today()).isoformat()
    if variant is ReportVariant.MODIFIED:
        return f"inspection-report-annotated-{day}.docx"
    return f"inspection-report-{day}.docx"


async def generate_report(request: Request, payload: ReportRequest, variant: ReportVariant) -> Response:
    """Build the report for the posted ids and return it as a .docx attachment.

    Raises:
        HTTPException(400) if no ids are supplied or more than the limit.
    """
    try:
        image_ids = payload.resolve_image_ids()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    log = request.app.state.activity_log
    log.add(f"Generating {variant.value} report for {len(image_ids)} images...", LogType.INFO)

    builder: ReportBuilder = request.app.state.report_builder
    document = await builder.build(image_ids, variant)

    filename = report_filename(variant)
    log.add(f"{variant.value.capitalize()} report saved: {filename}", LogType.INFO)
    return Response(
        content=document,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )
