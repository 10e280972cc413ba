from __future__ import annotations

import io

from docx import Document
from docx.oxml import OxmlElement

from fillengine.blueprint.structure import apply_fills, build_structural_map


def _template() -> bytes:
    document = Document()
    document.add_paragraph("Curriculum Vitae")

    paragraph = document.add_paragraph()
    paragraph.add_run("Naam:")
    paragraph.add_run().add_tab()
    paragraph.add_run("Jan")
    paragraph.add_run(" Jansen")

    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).paragraphs[0].add_run("Werkgever")
    table.cell(0, 1).paragraphs[0].add_run("Periode")
    table.cell(1, 0).paragraphs[0].add_run().add_break()
    table.cell(1, 1).paragraphs[0].add_run("Acme")

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_segments_are_numbered_in_document_order() -> None:
    structural_map = build_structural_map(_template())

    assert [(segment.id, segment.text) for segment in structural_map.segments] == [
        ("s0", "Curriculum Vitae"),
        ("s1", "Naam:"),
        ("s2", "Jan"),
        ("s3", " Jansen"),
        ("s4", "Werkgever"),
        ("s5", "Periode"),
        ("s6", " "),
        ("s7", "Acme"),
    ]
    assert structural_map.injected_placeholders == 1


def test_ids_are_reproducible() -> None:
    template = _template()

    first = build_structural_map(template)
    second = build_structural_map(template)

    assert first.segments == second.segments
    assert first.text == second.text


def test_table_cells_and_tab_groups() -> None:
    structural_map = build_structural_map(_template())

    assert len(structural_map.tables) == 1
    table = structural_map.tables[0]
    assert (table.row_count, table.column_count) == (2, 2)
    assert table.cells == [[["s4"], ["s5"]], [["s6"], ["s7"]]]

    s6 = structural_map.segment("s6")
    assert s6 is not None
    assert (s6.context, s6.table_index, s6.row_index, s6.cell_index) == ("table", 0, 1, 0)

    assert structural_map.tab_groups == [["s1", "s2"]]
    assert structural_map.merge_groups == {"s2": ["s3"]}


def test_map_text_lists_body_and_tables() -> None:
    structural_map = build_structural_map(_template())

    assert structural_map.text.splitlines() == [
        "--- Body Paragraphs ---",
        '[s0] "Curriculum Vitae"',
        '[s1] "Naam:" [TAB] [s2] "Jan Jansen"',
        "",
        "--- Table 0 (2 rows x 2 cols) [Werkgever | Periode] ---",
        '  Row 0: [s4] "Werkgever" | [s5] "Periode"',
        '  Row 1: [s6] "(placeholder - fill with content)" | [s7] "Acme"',
    ]


def test_long_body_text_is_truncated_in_map() -> None:
    document = Document()
    document.add_paragraph("x" * 120)
    buffer = io.BytesIO()
    document.save(buffer)

    structural_map = build_structural_map(buffer.getvalue())

    assert structural_map.text.splitlines()[1] == f'[s0] "{"x" * 80}..."'


def test_apply_fills_empties_merge_followers_and_fills_cells() -> None:
    template = _template()
    structural_map = build_structural_map(template)

    filled = apply_fills(
        template,
        {"s2": "Piet de Boer", "s6": "Bouw BV", "s7": "2019\n2021", "s99": "ignored"},
        structural_map,
    )

    document = Document(io.BytesIO(filled))
    assert document.paragraphs[0].text == "Curriculum Vitae"
    assert document.paragraphs[1].text == "Naam:\tPiet de Boer"
    table = document.tables[0]
    assert table.cell(0, 0).text == "Werkgever"
    assert table.cell(1, 0).text == "Bouw BV"
    assert table.cell(1, 1).text == "2019\n2021"


def test_apply_fills_keeps_leading_spaces() -> None:
    template = _template()
    structural_map = build_structural_map(template)

    filled = apply_fills(template, {"s0": "  CV"}, structural_map)

    assert Document(io.BytesIO(filled)).paragraphs[0].text == "  CV"


def _repeating_section_template() -> bytes:
    document = Document()
    table = document.add_table(rows=1, cols=2)
    table.cell(0, 0).paragraphs[0].add_run("Functie")
    table.cell(0, 1).paragraphs[0].add_run("Periode")

    section = OxmlElement("w:sdt")
    section_content = OxmlElement("w:sdtContent")
    section.append(section_content)
    for title, period in (("Planner", "2020"), ("Medewerker", "2016")):
        row = table.add_row()
        row.cells[0].paragraphs[0].add_run(title)
        row.cells[1].paragraphs[0].add_run(period)
        section_content.append(row._tr)
    table._tbl.append(section)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_rows_inside_content_controls_are_mapped() -> None:
    template = _repeating_section_template()

    structural_map = build_structural_map(template)

    table = structural_map.tables[0]
    assert table.cells == [[["s0"], ["s1"]], [["s2"], ["s3"]], [["s4"], ["s5"]]]
    assert '  Row 2: [s4] "Medewerker" | [s5] "2016"' in structural_map.text.splitlines()

    filled = apply_fills(template, {"s4": "Analist"}, structural_map)
    assert "Analist" in build_structural_map(filled).text
