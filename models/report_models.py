"""Report request models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.image_record import ImageRecord

MAX_REPORT_IMAGES = 1000


class ReportVariant(str, Enum):
    NORMAL = "normal"
    MODIFIED = "modified"


class ReportRequest(BaseModel):
    """Report payload; `imageIds` is canonical, `images` is the legacy full-record form."""

    image_ids: Optional[List[str]] = Field(default=None, alias="imageIds")
    images: Optional[List[Dict[str, Any]]] = None

    def resolve_image_ids(self) -> List[str]:
        """Return the ordered ids for the report, whichever input form was posted.

        Legacy records are only reduced to their ids; comments and
        annotations are always read back from the store.

        Raises:
            ValueError: If no images were supplied, a legacy record is
                malformed, or the limit is exceeded.
        """
        if self.image_ids is not None:
            ids = [str(image_id) for image_id in self.image_ids]
        elif self.images is not None:
            ids = [ImageRecord.from_dict(image).id for image in self.images]
        else:
            ids = []

        if not ids:
            raise ValueError("No images provided")
        if len(ids) > MAX_REPORT_IMAGES:
            raise ValueError(f"Maximum {MAX_REPORT_IMAGES} images per report")
        return ids
