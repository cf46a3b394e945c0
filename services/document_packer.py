"""Serialize paginated report content into a .docx buffer with python-docx."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import List, Sequence, Union

from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Emu, Pt

EMU_PER_PIXEL = 9525  # at 96 DPI

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@dataclass
class ImageBlock:
    """A centred picture with its display size in 96-DPI pixels."""

    data: bytes
    width_px: int
    height_px: int


@dataclass
class TextBlock:
    text: str
    space_before_pt: float = 0.0
    space_after_pt: float = 0.0


@dataclass
class PageBreak:
    pass


Block = Union[ImageBlock, TextBlock, PageBreak]
Section = List[Block]


class DocumentPacker:
    """Turn sections of blocks into a single Word document.

    Every section after the first starts on a new page.
    """

    def pack(self, sections: Sequence[Section]) -> bytes:
        doc = Document()
        for index, blocks in enumerate(sections):
            if index > 0:
                doc.add_section(WD_SECTION.NEW_PAGE)
            for block in blocks:
                self._add_block(doc, block)

        out_io = io.BytesIO()
        doc.save(out_io)
        return out_io.getvalue()

    @staticmethod
    def _add_block(doc, block: Block) -> None:
        if isinstance(block, ImageBlock):
            paragraph = doc.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            paragraph.paragraph_format.space_after = Pt(2.5)
            paragraph.add_run().add_picture(
                io.BytesIO(block.data),
                width=Emu(block.width_px * EMU_PER_PIXEL),
                height=Emu(block.height_px * EMU_PER_PIXEL),
            )
        elif isinstance(block, TextBlock):
            paragraph = doc.add_paragraph(block.text)
            paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
            paragraph.paragraph_format.space_before = Pt(block.space_before_pt)
            paragraph.paragraph_format.space_after = Pt(block.space_after_pt)
        elif isinstance(block, PageBreak):
            doc.add_page_break()
        else:
            raise TypeError(f"Unsupported report block: {type(block).__name__}")
