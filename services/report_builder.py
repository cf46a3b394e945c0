"""Inspection report generation.

`ReportBuilder.build` resolves each image id against the asset store, picks
the original or annotated bytes for the requested variant, bounds every image
to 1200x1200 JPEG, and lays out two images per page:

    <image>
    Image 01
    Comment: <finding>

Ids are processed in batches of 20; each batch becomes one document section.
A failure on one image is rendered inline and never aborts the report.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from dal.asset_store import AssetNotFoundError, AssetStore
from models.image_record import PLACEHOLDER_COMMENT, AnnotationBox, ImageMetadata
from models.report_models import ReportVariant
from services.document_packer import DocumentPacker, ImageBlock, PageBreak, Section, TextBlock
from services.image_codec import ImageCodec, scale_to_fit

LOGGER = logging.getLogger(__name__)

BATCH_SIZE = 20
IMAGES_PER_PAGE = 2
MAX_IMAGE_PX = 1200
MAX_DISPLAY_WIDTH_CM = 15.0


@dataclass
class ReportEntry:
    image_id: str
    comment: str = PLACEHOLDER_COMMENT
    annotations: List[AnnotationBox] = field(default_factory=list)
    name: Optional[str] = None


class ReportBuilder:
    """Build .docx inspection reports from stored images.

    Args:
        store: Asset store holding originals, annotated variants and metadata.
        codec: Image codec used for resizing and on-the-fly overlays.
        packer: Serializer producing the final document bytes.
        batch_size: Number of images per document section.
    """

    def __init__(
        self,
        store: AssetStore,
        codec: Optional[ImageCodec] = None,
        packer: Optional[DocumentPacker] = None,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.codec = codec or ImageCodec()
        self.packer = packer or DocumentPacker()
        self.batch_size = batch_size

    async def build(self, image_ids: Sequence[str], variant: ReportVariant = ReportVariant.NORMAL) -> bytes:
        """Return the complete report for `image_ids`, in input order, as .docx bytes."""
        sections = await self.build_sections(image_ids, variant)
        return await asyncio.to_thread(self.packer.pack, sections)

    async def build_sections(self, image_ids: Sequence[str], variant: ReportVariant) -> List[Section]:
        sections: List[Section] = []
        for start in range(0, len(image_ids), self.batch_size):
            batch = image_ids[start : start + self.batch_size]
            entries = [await self.resolve_entry(image_id) for image_id in batch]
            sections.append(await self._build_section(entries, start, variant))
            LOGGER.info("Report batch %d-%d assembled", start + 1, start + len(batch))
        return sections

    async def resolve_entry(self, image_id: str) -> ReportEntry:
        """Load metadata for one id, substituting the placeholder when it is missing."""
        try:
            raw = await self.store.get_meta(image_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Metadata lookup failed for %s: %s", image_id, exc)
            raw = None

        if raw is None:
            LOGGER.warning("No metadata found for %s", image_id)
            return ReportEntry(image_id=image_id, name=image_id)

        try:
            metadata = ImageMetadata.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.error("Unreadable metadata for %s: %s", image_id, exc)
            return ReportEntry(image_id=image_id, name=image_id)

        return ReportEntry(
            image_id=image_id,
            comment=metadata.comment or PLACEHOLDER_COMMENT,
            annotations=metadata.annotations,
            name=metadata.name or image_id,
        )

    async def _build_section(self, entries: Sequence[ReportEntry], start_index: int, variant: ReportVariant) -> Section:
        blocks: Section = []
        for i, entry in enumerate(entries):
            try:
                blocks.append(await self._image_block(entry, variant))
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Failed to embed image %s: %s", entry.image_id, exc)
                blocks.append(TextBlock(f"[Error loading image: {str(exc) or 'Unknown'}]", space_after_pt=2.5))

            blocks.append(TextBlock(f"Image {start_index + i + 1:02d}", space_before_pt=2.5, space_after_pt=1.25))
            blocks.append(TextBlock(f"Comment: {entry.comment or PLACEHOLDER_COMMENT}", space_after_pt=10))

            if (i + 1) % IMAGES_PER_PAGE == 0 and i + 1 != len(entries):
                blocks.append(PageBreak())
        return blocks

    async def _image_block(self, entry: ReportEntry, variant: ReportVariant) -> ImageBlock:
        source = await self._source_bytes(entry, variant)
        data = await asyncio.to_thread(self.codec.resize, source, MAX_IMAGE_PX, MAX_IMAGE_PX)
        width, height = self.codec.dimensions(data)
        display_width, display_height = scale_to_fit(width, height, MAX_DISPLAY_WIDTH_CM)
        return ImageBlock(data=data, width_px=display_width, height_px=display_height)

    async def _source_bytes(self, entry: ReportEntry, variant: ReportVariant) -> bytes:
        if variant is ReportVariant.MODIFIED:
            saved = await self.store.get_annotated(entry.image_id)
            if saved:
                return saved
            if entry.annotations:
                original = await self._original(entry.image_id)
                return await asyncio.to_thread(self.codec.overlay, original, entry.annotations)
        return await self._original(entry.image_id)

    async def _original(self, image_id: str) -> bytes:
        data = await self.store.get(image_id)
        if not data:
            raise AssetNotFoundError(f"Image {image_id} not found in store")
        return data
