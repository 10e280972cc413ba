"""Draw resolved profile values at configured coordinates on PDF pages."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import fitz  # type: ignore[import-untyped]

from fillengine.container.introspector import open_pdf
from fillengine.fields.models import TemplateField
from fillengine.fields.resolver import resolve_mapping
from fillengine.layout.fonts import Base14Font, FontMetrics
from fillengine.layout.text_layout import (
    DEFAULT_LINE_HEIGHT_FACTOR,
    PlacedLine,
    layout,
    place_lines,
)
from fillengine.profile.models import Profile
from fillengine.utils.errors import InvalidFieldReference

logger = logging.getLogger(__name__)

_BLACK = (0.0, 0.0, 0.0)
DEFAULT_FONT_SIZE = 11.0


@dataclass(frozen=True)
class DrawnLine:
    field_name: str
    page: int
    line: PlacedLine


@dataclass
class CoordinateFillResult:
    content: bytes
    filled_field_names: list[str] = field(default_factory=list)
    drawn: list[DrawnLine] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_hex_color(value: str | None) -> tuple[float, float, float]:
    """Convert "#rrggbb" to an RGB triple in 0..1; anything else is black."""

    if not value:
        return _BLACK
    digits = value.lstrip("#")
    if len(digits) != 6:
        return _BLACK
    try:
        return (
            int(digits[0:2], 16) / 255,
            int(digits[2:4], 16) / 255,
            int(digits[4:6], 16) / 255,
        )
    except ValueError:
        return _BLACK


def fill_coordinates(
    content: bytes,
    template_fields: Sequence[TemplateField],
    profile: Profile,
    custom_values: Mapping[str, str] | None = None,
    *,
    fontname: str = "helv",
    font: FontMetrics | None = None,
    default_font_size: float = DEFAULT_FONT_SIZE,
    line_height_factor: float = DEFAULT_LINE_HEIGHT_FACTOR,
    language: str = "nl",
) -> CoordinateFillResult:
    """Draw every non-empty field value onto its page.

    Fields that point past the last page are skipped with a warning. New text
    is appended to page content; nothing already on the page is changed.
    """

    metrics = font or Base14Font(fontname)
    result = CoordinateFillResult(content=content)

    with open_pdf(content) as document:
        for template_field in template_fields:
            value = resolve_mapping(
                profile, template_field.mapping, custom_values, language=language
            )
            if not value.strip():
                continue

            try:
                page = _page_for(document, template_field)
            except InvalidFieldReference as exc:
                logger.warning("skipping field %s: %s", template_field.name, exc)
                result.warnings.append(str(exc))
                continue

            font_size = template_field.font_size or default_font_size
            lines = _layout_field(template_field, value, font_size, metrics, line_height_factor)
            color = parse_hex_color(template_field.font_color)
            for placed in lines:
                page.insert_text(
                    _insertion_point(page, placed.x, placed.y),
                    placed.text,
                    fontsize=font_size,
                    fontname=fontname,
                    color=color,
                )
                result.drawn.append(
                    DrawnLine(field_name=template_field.name, page=template_field.page, line=placed)
                )

            if lines:
                result.filled_field_names.append(template_field.name)

        result.content = document.tobytes(garbage=0, deflate=True)

    return result


def _insertion_point(page: fitz.Page, x: float, y: float) -> fitz.Point:
    """Map PDF user space (origin bottom-left, /Rotate ignored) to an insert_text point.

    insert_text writes its Tm operator at (point.x + cropbox.x0,
    mediabox.y1 - point.y - cropbox.y0) in user space whatever the page rotation.
    """

    origin = page.cropbox_position
    return fitz.Point(x - origin.x, page.mediabox.y1 - origin.y - y)


def _page_for(document: fitz.Document, template_field: TemplateField) -> fitz.Page:
    if not 0 <= template_field.page < document.page_count:
        raise InvalidFieldReference(
            f"field {template_field.name!r} references page {template_field.page} "
            f"but the template has {document.page_count} page(s)",
            field_name=template_field.name,
            page=template_field.page,
            page_count=document.page_count,
        )
    return document[template_field.page]


def _layout_field(
    template_field: TemplateField,
    value: str,
    font_size: float,
    metrics: FontMetrics,
    line_height_factor: float,
) -> list[PlacedLine]:
    if template_field.is_multi_line and template_field.width is not None:
        lines = layout(value, metrics, font_size, template_field.width)
        return place_lines(
            lines,
            template_field.x,
            template_field.y,
            font_size,
            template_field.max_lines,
            line_height_factor=line_height_factor,
        )
    return [PlacedLine(text=value, x=template_field.x, y=template_field.y)]
