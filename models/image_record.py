from __future__ import annotations

from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

PLACEHOLDER_COMMENT = "No assessment available"


class ImageStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class AnnotationBox:
    """Rectangle drawn on an image, in original-image pixel coordinates.

    Attributes:
        id: Identifier unique within the owning image.
        coords: `(x1, y1, x2, y2)`, normalised so that x1 <= x2 and y1 <= y2.
        label: Optional free-text label.
    """

    id: str
    coords: Tuple[float, float, float, float]
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.coords) != 4:
            raise ValueError("Annotation coords must contain exactly four numbers.")
        x1, y1, x2, y2 = (float(c) for c in self.coords)
        self.coords = (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationBox":
        return cls(id=str(data.get("id") or ""), coords=tuple(data["coords"]), label=data.get("label"))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "coords": list(self.coords)}
        if self.label is not None:
            payload["label"] = self.label
        return payload


def parse_annotations(raw: Optional[Sequence[Dict[str, Any]]]) -> List[AnnotationBox]:
    """Build AnnotationBox objects from stored or posted JSON."""
    return [AnnotationBox.from_dict(item) for item in (raw or [])]


@dataclass
class ImageMetadata:
    """JSON metadata persisted next to an image: `{comment, annotations, name}`."""

    comment: str = ""
    annotations: List[AnnotationBox] = field(default_factory=list)
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageMetadata":
        return cls(
            comment=data.get("comment") or "",
            annotations=parse_annotations(data.get("annotations")),
            name=data.get("name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comment": self.comment,
            "annotations": [box.to_dict() for box in self.annotations],
            "name": self.name,
        }


@dataclass
class ImageRecord:
    """Operator-facing view of one uploaded photo.

    Attributes:
        id: Client-generated identifier, also the storage key.
        name: Display name (usually the original filename).
        size: Size of the uploaded bytes.
        uploaded_at: ISO-8601 upload timestamp.
        status: Analysis lifecycle state.
        comment: Finding from the vision model or a manual edit.
        annotations: Boxes drawn on the image, in drawing order.
        has_annotated_asset: True once `<id>_annotated` has been stored.
    """

    id: str
    name: str
    size: int = 0
    uploaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: ImageStatus = ImageStatus.PENDING
    comment: str = ""
    annotations: List[AnnotationBox] = field(default_factory=list)
    has_annotated_asset: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageRecord":
        """Build a record from its client JSON form.

        Raises:
            ValueError: If the record has no id or carries a malformed field.
        """
        if not isinstance(data, dict) or not data.get("id"):
            raise ValueError("Image record is missing its id")
        try:
            return cls(
                id=str(data["id"]),
                name=data.get("name") or str(data["id"]),
                size=int(data.get("size") or 0),
                uploaded_at=data.get("uploadedAt") or datetime.now(timezone.utc).isoformat(),
                status=ImageStatus(data.get("status") or ImageStatus.PENDING.value),
                comment=data.get("comment") or "",
                annotations=parse_annotations(data.get("annotations")),
                has_annotated_asset=bool(data.get("hasAnnotatedAsset", False)),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed image record {data['id']!r}: {exc}") from exc
