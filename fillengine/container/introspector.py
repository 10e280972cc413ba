"""Classify template bytes and enumerate their native fields."""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from enum import Enum

import fitz  # type: ignore[import-untyped]

from fillengine.fields.models import DetectedFormField, FormFieldType
from fillengine.templates.placeholder_parser import parse_placeholders
from fillengine.utils.docx_xml import load_document
from fillengine.utils.errors import UnsupportedFormat

ZIP_MAGIC = b"PK\x03\x04"
PDF_MAGIC = b"%PDF-"
_DOCX_MAIN_PART = "word/document.xml"

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_WIDGET_TYPES: dict[int, FormFieldType] = {
    fitz.PDF_WIDGET_TYPE_TEXT: "text",
    fitz.PDF_WIDGET_TYPE_CHECKBOX: "checkbox",
    fitz.PDF_WIDGET_TYPE_COMBOBOX: "dropdown",
    fitz.PDF_WIDGET_TYPE_LISTBOX: "dropdown",
}


class ContainerKind(str, Enum):
    FIXED_LAYOUT = "fixed_layout"
    FLOW_LAYOUT = "flow_layout"


@dataclass(frozen=True)
class ContainerInfo:
    kind: ContainerKind
    native_fields: list[DetectedFormField] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def media_type(self) -> str:
        return PDF_MEDIA_TYPE if self.kind is ContainerKind.FIXED_LAYOUT else DOCX_MEDIA_TYPE


def sniff_kind(data: bytes) -> ContainerKind:
    """Decide the container kind from magic bytes alone."""

    if data.startswith(ZIP_MAGIC):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = set(archive.namelist())
        except zipfile.BadZipFile as exc:
            raise UnsupportedFormat("zip container is corrupt") from exc
        if _DOCX_MAIN_PART not in names:
            raise UnsupportedFormat(
                "zip container is not a word-processing document",
                detail={"missing_part": _DOCX_MAIN_PART},
            )
        return ContainerKind.FLOW_LAYOUT

    if data.startswith(PDF_MAGIC):
        return ContainerKind.FIXED_LAYOUT

    raise UnsupportedFormat("template is neither a PDF nor a DOCX document")


def classify(data: bytes) -> ContainerInfo:
    """Return the container kind and its native fields without touching the input."""

    kind = sniff_kind(data)
    if kind is ContainerKind.FIXED_LAYOUT:
        return ContainerInfo(kind=kind, native_fields=_pdf_widgets(data))

    parsed = parse_placeholders(load_document(data))
    fields = [DetectedFormField(name=name, type="text") for name in parsed.fields]
    return ContainerInfo(kind=kind, native_fields=fields)


def open_pdf(data: bytes) -> fitz.Document:
    try:
        document = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise UnsupportedFormat("PDF container could not be parsed") from exc
    if document.page_count == 0:
        document.close()
        raise UnsupportedFormat("PDF container has no pages")
    return document


def page_count(data: bytes) -> int:
    with open_pdf(data) as document:
        return document.page_count


def render_preview(data: bytes, page: int = 0, *, zoom: float = 1.5) -> bytes:
    """Render one page of a PDF to PNG bytes."""

    with open_pdf(data) as document:
        if not 0 <= page < document.page_count:
            raise ValueError(f"page {page} out of range (0..{document.page_count - 1})")
        pixmap = document[page].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        return pixmap.tobytes("png")


def _pdf_widgets(data: bytes) -> list[DetectedFormField]:
    fields: list[DetectedFormField] = []
    with open_pdf(data) as document:
        for page_index, page in enumerate(document):
            for widget in page.widgets():
                value = widget.field_value
                fields.append(
                    DetectedFormField(
                        name=widget.field_name or "",
                        type=_WIDGET_TYPES.get(widget.field_type, "other"),
                        value=str(value) if value not in (None, "") else None,
                        page=page_index,
                    )
                )
    return fields
