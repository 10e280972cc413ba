"""Segment map of a flow-layout document.

Every w:t element of the document body becomes a segment with a stable id
(s0, s1, ... in document order). Ids are reproducible: building the map
twice from the same bytes yields the same ids, which is how fills are
applied back without keeping XML nodes around.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from fillengine.utils import docx_xml
from fillengine.utils.docx_xml import W_P, W_TBL, W_TC

SegmentContext = Literal["body", "table"]

_BODY_TEXT_LIMIT = 80
_TAB_TEXT_LIMIT = 40
_CELL_TEXT_LIMIT = 60


@dataclass(frozen=True)
class Segment:
    id: str
    text: str
    context: SegmentContext
    paragraph_index: int
    table_index: int | None = None
    row_index: int | None = None
    cell_index: int | None = None


@dataclass(frozen=True)
class TableLayout:
    index: int
    # rows -> cells -> segment ids
    cells: list[list[list[str]]]

    @property
    def row_count(self) -> int:
        return len(self.cells)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.cells), default=0)


@dataclass(frozen=True)
class StructuralMap:
    segments: list[Segment]
    tables: list[TableLayout]
    merge_groups: dict[str, list[str]]
    text: str
    injected_placeholders: int = 0
    tab_groups: list[list[str]] = field(default_factory=list)

    def segment(self, segment_id: str) -> Segment | None:
        return self._by_id().get(segment_id)

    def segment_ids(self) -> set[str]:
        return set(self._by_id())

    def _by_id(self) -> dict[str, Segment]:
        return {segment.id: segment for segment in self.segments}


@dataclass
class _Walk:
    document: Any
    segments: list[Segment]
    nodes: list[Any]
    paragraphs: list[Any]
    tables: list[Any]
    # table -> rows -> cell elements
    grids: list[list[list[Any]]]
    injected: int


def build_structural_map(content: bytes) -> StructuralMap:
    """Build the segment map for docx bytes."""

    walk = _walk(content)
    tables = [_table_layout(index, walk) for index in range(len(walk.grids))]
    merge_groups, tab_groups = _merge_groups(walk)
    text = _render_map(walk, tables, merge_groups, tab_groups)
    return StructuralMap(
        segments=walk.segments,
        tables=tables,
        merge_groups=merge_groups,
        text=text,
        injected_placeholders=walk.injected,
        tab_groups=tab_groups,
    )


def apply_fills(content: bytes, fills: Mapping[str, str], structural_map: StructuralMap) -> bytes:
    """Write fills into the document and return new docx bytes.

    Followers of a filled merge-group leader are emptied unless they have
    their own fill. Unknown segment ids are ignored.
    """

    expanded = dict(fills)
    for leader, followers in structural_map.merge_groups.items():
        if leader not in fills:
            continue
        for follower in followers:
            expanded.setdefault(follower, "")

    walk = _walk(content)
    by_id = {segment.id: node for segment, node in zip(walk.segments, walk.nodes, strict=True)}
    for segment_id, value in expanded.items():
        node = by_id.get(segment_id)
        if node is None:
            continue
        if value:
            docx_xml.set_text(node, value)
        else:
            docx_xml.clear_text(node)

    return docx_xml.document_to_bytes(walk.document)


def _walk(content: bytes) -> _Walk:
    document = docx_xml.load_document(content)
    body = document.element.body
    injected = docx_xml.inject_empty_cell_placeholders(body)

    paragraphs = list(body.iter(W_P))
    paragraph_positions = {id(paragraph): index for index, paragraph in enumerate(paragraphs)}
    tables = list(body.iter(W_TBL))
    grids = [
        [docx_xml.row_cells(row) for row in docx_xml.table_rows(table)] for table in tables
    ]
    cell_positions = {
        id(cell): (table_index, row_index, cell_index)
        for table_index, grid in enumerate(grids)
        for row_index, row in enumerate(grid)
        for cell_index, cell in enumerate(row)
    }

    segments: list[Segment] = []
    nodes: list[Any] = []
    for node in docx_xml.iter_text_nodes(body):
        paragraph = docx_xml.nearest_ancestor(node, W_P)
        if paragraph is None:
            continue
        paragraph_index = paragraph_positions[id(paragraph)]
        segment_id = f"s{len(segments)}"
        text = node.text or ""

        cell = docx_xml.nearest_ancestor(node, W_TC)
        position = cell_positions.get(id(cell)) if cell is not None else None
        if position is None:
            segments.append(
                Segment(id=segment_id, text=text, context="body", paragraph_index=paragraph_index)
            )
        else:
            table_index, row_index, cell_index = position
            segments.append(
                Segment(
                    id=segment_id,
                    text=text,
                    context="table",
                    paragraph_index=paragraph_index,
                    table_index=table_index,
                    row_index=row_index,
                    cell_index=cell_index,
                )
            )
        nodes.append(node)

    return _Walk(
        document=document,
        segments=segments,
        nodes=nodes,
        paragraphs=paragraphs,
        tables=tables,
        grids=grids,
        injected=injected,
    )


def _table_layout(index: int, walk: _Walk) -> TableLayout:
    cells: list[list[list[str]]] = [[[] for _ in row] for row in walk.grids[index]]
    for segment in walk.segments:
        if segment.context != "table" or segment.table_index != index:
            continue
        if segment.row_index is None or segment.cell_index is None:
            continue
        cells[segment.row_index][segment.cell_index].append(segment.id)
    return TableLayout(index=index, cells=cells)


def _body_paragraph_groups(walk: _Walk) -> list[list[tuple[Segment, Any]]]:
    groups: dict[int, list[tuple[Segment, Any]]] = {}
    for segment, node in zip(walk.segments, walk.nodes, strict=True):
        if segment.context != "body":
            continue
        groups.setdefault(segment.paragraph_index, []).append((segment, node))
    return [groups[key] for key in sorted(groups)]


def _split_at_tabs(walk: _Walk, group: list[tuple[Segment, Any]]) -> list[list[Segment]]:
    paragraph = walk.paragraphs[group[0][0].paragraph_index]
    segment_by_node = {id(node): segment for segment, node in group}
    sub_groups: list[list[Segment]] = [[]]
    for kind, element in docx_xml.paragraph_tokens(paragraph):
        if kind == "tab":
            if sub_groups[-1]:
                sub_groups.append([])
            continue
        segment = segment_by_node.get(id(element))
        if segment is not None:
            sub_groups[-1].append(segment)
    return [sub for sub in sub_groups if sub]


def _merge_groups(walk: _Walk) -> tuple[dict[str, list[str]], list[list[str]]]:
    merge_groups: dict[str, list[str]] = {}
    tab_groups: list[list[str]] = []
    for group in _body_paragraph_groups(walk):
        sub_groups = _split_at_tabs(walk, group)
        if len(sub_groups) > 1:
            tab_groups.append([sub[0].id for sub in sub_groups])
        for sub in sub_groups:
            if len(sub) > 1:
                merge_groups[sub[0].id] = [segment.id for segment in sub[1:]]
    return merge_groups, tab_groups


def _render_map(
    walk: _Walk,
    tables: list[TableLayout],
    merge_groups: dict[str, list[str]],
    tab_groups: list[list[str]],
) -> str:
    lines: list[str] = []
    by_id = {segment.id: segment for segment in walk.segments}

    body_groups = _body_paragraph_groups(walk)
    if body_groups:
        lines.append("--- Body Paragraphs ---")
        for group in body_groups:
            combined = "".join(segment.text for segment, _ in group)
            if not combined.strip():
                continue
            sub_groups = _split_at_tabs(walk, group)
            if len(sub_groups) > 1:
                parts = [
                    f'[{sub[0].id}] "{_truncate(_joined(sub), _TAB_TEXT_LIMIT)}"'
                    for sub in sub_groups
                ]
                lines.append(" [TAB] ".join(parts))
            else:
                leader = group[0][0]
                lines.append(f'[{leader.id}] "{_truncate(combined, _BODY_TEXT_LIMIT)}"')
        lines.append("")

    for table in tables:
        if not any(ids for row in table.cells for ids in row):
            continue
        first_row = table.cells[0] if table.cells else []
        first_row_text = " | ".join(
            text for text in (_cell_text(ids, by_id).strip() for ids in first_row) if text
        )
        label = f" [{_truncate(first_row_text, _TAB_TEXT_LIMIT)}]" if first_row_text else ""
        lines.append(
            f"--- Table {table.index} ({table.row_count} rows x {table.column_count} cols)"
            f"{label} ---"
        )
        for row_index, row in enumerate(table.cells):
            rendered: list[str] = []
            for ids in row:
                if not ids:
                    rendered.append("(empty)")
                    continue
                text = _cell_text(ids, by_id)
                display = (
                    "(placeholder - fill with content)"
                    if not text.strip()
                    else _truncate(text.replace("\n", "\\n"), _CELL_TEXT_LIMIT)
                )
                rendered.append(f'[{",".join(ids)}] "{display}"')
            lines.append(f"  Row {row_index}: {' | '.join(rendered)}")
        lines.append("")

    return "\n".join(lines)


def _joined(segments: list[Segment]) -> str:
    return "".join(segment.text for segment in segments)


def _cell_text(ids: list[str], by_id: dict[str, Segment]) -> str:
    return "".join(by_id[segment_id].text for segment_id in ids)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
