"""Match native form fields to profile values and write them back."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import fitz  # type: ignore[import-untyped]

from fillengine.container.introspector import ContainerKind, open_pdf
from fillengine.fields.models import DetectedFormField, FieldMapping
from fillengine.fields.resolver import resolve_mapping
from fillengine.matching.field_dictionary import FIELD_DICTIONARY
from fillengine.profile.models import Profile
from fillengine.templates.placeholder_parser import parse_placeholders
from fillengine.utils.docx_xml import document_to_bytes, load_document, replace_across_runs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoFillResult:
    content: bytes
    filled_field_names: list[str] = field(default_factory=list)


def normalize_field_name(name: str) -> str:
    return name.strip().lower()


def lookup_mapping(field_name: str) -> FieldMapping | None:
    """Return the dictionary mapping for a native field name.

    An exact key wins; otherwise the first key (in dictionary order) that
    contains the name or is contained in it.
    """

    normalized = normalize_field_name(field_name)
    if not normalized:
        return None

    exact = FIELD_DICTIONARY.get(normalized)
    if exact is not None:
        return exact

    for pattern, mapping in FIELD_DICTIONARY.items():
        if normalized in pattern or pattern in normalized:
            return mapping
    return None


def match_fields(
    native_fields: Sequence[DetectedFormField],
    profile: Profile,
    custom_values: Mapping[str, str] | None = None,
    *,
    language: str = "nl",
) -> dict[str, str]:
    """Return field name -> value for every text field that resolves to a value."""

    values: dict[str, str] = {}
    for native in native_fields:
        if native.type != "text" or native.name in values:
            continue
        mapping = lookup_mapping(native.name)
        if mapping is None:
            continue
        value = resolve_mapping(profile, mapping, custom_values, language=language)
        if value:
            values[native.name] = value
    return values


def auto_fill(
    content: bytes,
    kind: ContainerKind,
    native_fields: Sequence[DetectedFormField],
    profile: Profile,
    custom_values: Mapping[str, str] | None = None,
    *,
    language: str = "nl",
) -> AutoFillResult | None:
    """Fill native fields in place; None when nothing could be filled."""

    values = match_fields(native_fields, profile, custom_values, language=language)
    if not values:
        return None

    if kind is ContainerKind.FIXED_LAYOUT:
        filled_bytes, filled = write_pdf_form_values(content, values)
    else:
        filled_bytes, filled = write_docx_placeholders(content, values)

    if not filled:
        return None
    logger.debug("auto-filled %d native fields", len(filled))
    return AutoFillResult(content=filled_bytes, filled_field_names=filled)


def write_pdf_form_values(content: bytes, values: Mapping[str, str]) -> tuple[bytes, list[str]]:
    """Set text widget values; widgets sharing a name all receive the value."""

    filled: list[str] = []
    with open_pdf(content) as document:
        for page in document:
            for widget in page.widgets():
                name = widget.field_name or ""
                if widget.field_type != fitz.PDF_WIDGET_TYPE_TEXT or name not in values:
                    continue
                widget.field_value = values[name]
                widget.update()
                if name not in filled:
                    filled.append(name)
        output = document.tobytes(garbage=0, deflate=True)
    return output, filled


def write_docx_placeholders(content: bytes, values: Mapping[str, str]) -> tuple[bytes, list[str]]:
    """Replace placeholders in body, header and footer parts.

    Occurrences are replaced right to left so earlier offsets stay valid. A
    label blank keeps its label: "Telefoon: ____" becomes "Telefoon: 0612".
    """

    document = load_document(content)
    parsed = parse_placeholders(document)
    filled: list[str] = []

    for occurrence in reversed(parsed.occurrences):
        value = values.get(occurrence.field_name)
        if not value:
            continue
        replacement = f" {value}" if occurrence.kind == "label" else value
        replace_across_runs(occurrence.runs, occurrence.start, occurrence.end, replacement)
        if occurrence.field_name not in filled:
            filled.append(occurrence.field_name)

    ordered = [name for name in parsed.fields if name in filled]
    return document_to_bytes(document), ordered
