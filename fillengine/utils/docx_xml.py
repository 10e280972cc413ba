"""Low-level WordprocessingML helpers.

Text node edits, run splitting and table-cell walking for filled documents live
here so the matchers and the structural filler never touch lxml directly.
"""

from __future__ import annotations

import io
from collections.abc import Iterator, Sequence
from typing import Any, Literal

from docx import Document
from docx.document import Document as DocxDocument
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

W_T = qn("w:t")
W_R = qn("w:r")
W_P = qn("w:p")
W_TAB = qn("w:tab")
W_BR = qn("w:br")
W_TC = qn("w:tc")
W_TR = qn("w:tr")
W_TBL = qn("w:tbl")
W_PICT = qn("w:pict")
W_DRAWING = qn("w:drawing")
W_SDT = qn("w:sdt")
W_SDT_CONTENT = qn("w:sdtContent")
W_CUSTOM_XML = qn("w:customXml")
XML_SPACE = qn("xml:space")

TokenKind = Literal["text", "tab"]


def load_document(data: bytes) -> DocxDocument:
    """Open docx bytes with python-docx."""

    return Document(io.BytesIO(data))


def document_to_bytes(document: DocxDocument) -> bytes:
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def iter_text_nodes(root: Any) -> Iterator[Any]:
    """Yield every w:t element under root in document order."""

    yield from root.iter(W_T)


def nearest_ancestor(element: Any, tag: str) -> Any | None:
    parent = element.getparent()
    while parent is not None:
        if parent.tag == tag:
            return parent
        parent = parent.getparent()
    return None


def paragraph_tokens(paragraph: Any) -> list[tuple[TokenKind, Any]]:
    """Return the text nodes and run-level tabs of a paragraph in order.

    Tab stop definitions inside w:pPr also use w:tab and are skipped.
    """

    tokens: list[tuple[TokenKind, Any]] = []
    for element in paragraph.iter(W_T, W_TAB):
        if element.tag == W_T:
            tokens.append(("text", element))
        elif element.getparent() is not None and element.getparent().tag == W_R:
            tokens.append(("tab", element))
    return tokens


def run_text(run_element: Any) -> str:
    """Concatenate the w:t text of a run, ignoring tabs and breaks."""

    return "".join(node.text or "" for node in run_element.iter(W_T))


def table_rows(table: Any) -> list[Any]:
    """Rows of a table, including rows wrapped in content controls.

    Rows of nested tables are not included.
    """

    return list(_wrapped_children(table, W_TR))


def row_cells(row: Any) -> list[Any]:
    return list(_wrapped_children(row, W_TC))


def inject_empty_cell_placeholders(body: Any) -> int:
    """Give table cells that only hold line breaks a single-space text node.

    The first run of the cell that has a w:br, no text and no picture gets its
    break replaced by <w:t xml:space="preserve"> </w:t>. Returns the number of
    cells changed.
    """

    injected = 0
    for cell in body.iter(W_TC):
        if next(cell.iter(W_T), None) is not None:
            continue
        if next(cell.iter(W_BR), None) is None:
            continue

        for run in cell.iter(W_R):
            breaks = [child for child in run if child.tag == W_BR]
            if not breaks:
                continue
            if run.find(W_PICT) is not None or run.find(W_DRAWING) is not None:
                continue
            placeholder = _new_text_node(" ")
            run.replace(breaks[0], placeholder)
            injected += 1
            break

    return injected


def set_text(text_node: Any, value: str) -> None:
    """Replace the content of a w:t, mapping tabs and newlines to w:tab and w:br.

    The node keeps xml:space="preserve" so leading and trailing spaces survive.
    """

    parts = _split_breaks(value)
    first_text, rest = parts[0][1], parts[1:]
    text_node.text = first_text
    text_node.set(XML_SPACE, "preserve")

    anchor = text_node
    for separator, chunk in rest:
        marker = OxmlElement("w:tab" if separator == "\t" else "w:br")
        anchor.addnext(marker)
        anchor = marker
        if chunk:
            extra = _new_text_node(chunk)
            anchor.addnext(extra)
            anchor = extra


def clear_text(text_node: Any) -> None:
    text_node.text = ""
    text_node.set(XML_SPACE, "preserve")


def replace_run_span(run_element: Any, start: int, end: int, value: str) -> None:
    """Replace characters [start, end) of a run's concatenated w:t text.

    The replacement lands in the text node holding `start`; any remainder of
    the span in later text nodes of the same run is removed.
    """

    cursor = 0
    remaining_start = start
    written = False
    for text_node in run_element.iter(W_T):
        text = text_node.text or ""
        node_start, node_end = cursor, cursor + len(text)
        cursor = node_end
        if node_end <= remaining_start or node_start >= end:
            continue

        local_start = max(remaining_start, node_start) - node_start
        local_end = min(end, node_end) - node_start
        insert = "" if written else value
        text_node.text = text[:local_start] + insert + text[local_end:]
        text_node.set(XML_SPACE, "preserve")
        written = True


def replace_across_runs(runs: Sequence[Any], start: int, end: int, value: str) -> None:
    """Replace a span that starts in the first run and ends in the last run.

    The value is merged into the first run, which keeps its formatting. Runs in
    between lose their text and the last run keeps what follows `end`.
    """

    if len(runs) == 1:
        replace_run_span(runs[0], start, end, value)
        return

    first, *middle, last = runs
    replace_run_span(first, start, len(run_text(first)), value)
    for run in middle:
        for text_node in run.iter(W_T):
            clear_text(text_node)
    replace_run_span(last, 0, end, "")


def _split_breaks(value: str) -> list[tuple[str, str]]:
    parts: list[tuple[str, str]] = []
    separator = ""
    chunk: list[str] = []
    normalized = value.replace("\r\n", "\n").replace("\r", "\n")
    for char in normalized:
        if char in ("\t", "\n"):
            parts.append((separator, "".join(chunk)))
            separator = char
            chunk = []
        else:
            chunk.append(char)
    parts.append((separator, "".join(chunk)))
    return parts


def _new_text_node(text: str) -> Any:
    node = OxmlElement("w:t")
    node.text = text
    node.set(XML_SPACE, "preserve")
    return node


def _wrapped_children(parent: Any, tag: str) -> Iterator[Any]:
    # w:sdt and w:customXml may wrap rows of a table or cells of a row
    for child in parent:
        if child.tag == tag:
            yield child
        elif child.tag == W_SDT:
            content = child.find(W_SDT_CONTENT)
            if content is not None:
                yield from _wrapped_children(content, tag)
        elif child.tag == W_CUSTOM_XML:
            yield from _wrapped_children(child, tag)
