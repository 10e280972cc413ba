"""Placeholder detection for flow-layout templates.

Recognized tokens are {{name}}, [NAME], {name}, and label blanks such as
"Telefoon: ______" or "Naam:" followed by ten or more spaces. A token may be
split over several runs. Body, header and footer parts are scanned.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

from docx.document import Document as DocxDocument

from fillengine.utils.docx_xml import W_P, W_R, run_text

PlaceholderKind = Literal["token", "label"]

_PLACEHOLDER_RE = re.compile(
    r"\{\{\s*(?P<double>[^{}\n]+?)\s*\}\}"
    r"|\[(?P<square>[A-Z][A-Z0-9_ ]*)\]"
    r"|(?<!\{)\{(?P<single>[A-Za-z][A-Za-z0-9_]*)\}(?!\})"
    r"|(?P<label>[^\W\d_]+(?: [^\W\d_]+)*)[ \t]*:(?P<blank>[ \t]*[_.]{3,}|[ \t]{10,})"
)
_HEADER_FOOTER_PART_RE = re.compile(r"^/word/(header|footer)\d*\.xml$")


@dataclass(frozen=True)
class Occurrence:
    """A placeholder span inside one paragraph.

    `start` is relative to the first run and `end` to the last run. For label
    blanks the span covers only the blank, the label text stays.
    """

    field_name: str
    token: str
    kind: PlaceholderKind
    runs: tuple[Any, ...]
    start: int
    end: int

    @property
    def run(self) -> Any:
        return self.runs[0]

    @property
    def split(self) -> bool:
        return len(self.runs) > 1


@dataclass
class ParseResult:
    fields: list[str] = field(default_factory=list)
    occurrences: list[Occurrence] = field(default_factory=list)

    @property
    def split_tokens(self) -> list[str]:
        return [item.token for item in self.occurrences if item.split]


def parse_placeholders(document: DocxDocument) -> ParseResult:
    """Find placeholders in body paragraphs, table cells, headers and footers."""

    result = ParseResult()
    seen: set[str] = set()

    for paragraph in _iter_paragraphs(document):
        runs = [child for child in paragraph if child.tag == W_R]
        spans: list[tuple[Any, int, int]] = []
        chunks: list[str] = []
        cursor = 0
        for run in runs:
            text = run_text(run)
            spans.append((run, cursor, cursor + len(text)))
            chunks.append(text)
            cursor += len(text)
        full_text = "".join(chunks)
        if not full_text:
            continue

        for match in _PLACEHOLDER_RE.finditer(full_text):
            kind: PlaceholderKind = "label" if match.group("label") else "token"
            name = (
                match.group("double")
                or match.group("square")
                or match.group("single")
                or match.group("label")
                or ""
            ).strip()
            if not name:
                continue
            start, end = match.span("blank") if kind == "label" else match.span()
            covered = [span for span in spans if span[1] < end and span[2] > start]
            if not covered:
                continue

            first, last = covered[0], covered[-1]
            result.occurrences.append(
                Occurrence(
                    field_name=name,
                    token=match.group(0),
                    kind=kind,
                    runs=tuple(span[0] for span in covered),
                    start=start - first[1],
                    end=end - last[1],
                )
            )
            if name not in seen:
                result.fields.append(name)
                seen.add(name)

    return result


def _iter_paragraphs(document: DocxDocument) -> Iterator[Any]:
    yield from document.element.body.iter(W_P)
    for part in _header_footer_parts(document):
        yield from part.element.iter(W_P)


def _header_footer_parts(document: DocxDocument) -> list[Any]:
    parts = [
        part
        for part in document.part.package.iter_parts()
        if _HEADER_FOOTER_PART_RE.match(str(part.partname))
    ]
    return sorted(parts, key=lambda part: str(part.partname))
