"""Tests for the Excel Engine.

Validates decoding of the first worksheet into a grid and encoding a grid
back into a single-sheet workbook:
- Shared, inline and rich-text strings
- Numbers, booleans, formula cached values
- Sparse rows and gaps between cells
- Malformed input
"""

import sys
import zipfile
from io import BytesIO
from pathlib import Path
from xml.etree import ElementTree as ET

# Add project root to path (tests/excel/ -> tests/ -> project root)
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from services.excel_engine import (
    DecodeError,
    col_index_to_letter,
    col_letter_to_index,
    parse_cell_ref,
    parse_workbook,
    sanitize_sheet_label,
    serialize_grid,
)


MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

WORKBOOK_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<workbook xmlns="{MAIN}" xmlns:r="{REL}">
  <sheets>
    <sheet name="Sales" sheetId="1" r:id="rId2"/>
    <sheet name="Other" sheetId="2" r:id="rId1"/>
  </sheets>
</workbook>"""

RELS_XML = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" Target="worksheets/sheet1.xml"/>
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" Target="/xl/worksheets/sheet2.xml"/>
</Relationships>"""

SHARED_STRINGS_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<sst xmlns="{MAIN}" count="3" uniqueCount="3">
  <si><t>Region</t></si>
  <si><t>Qty</t></si>
  <si><r><t>Ea</t></r><r><t>st</t></r></si>
</sst>"""

FIRST_SHEET_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<worksheet xmlns="{MAIN}">
  <sheetData>
    <row r="1">
      <c r="A1" t="s"><v>0</v></c>
      <c r="B1" t="s"><v>1</v></c>
      <c r="C1" t="inlineStr"><is><t>Done</t></is></c>
    </row>
    <row r="2">
      <c r="A2" t="s"><v>2</v></c>
      <c r="B2"><v>10</v></c>
      <c r="C2" t="b"><v>1</v></c>
      <c r="E2"><f>B2*1.5</f><v>15.5</v></c>
    </row>
    <row r="4">
      <c r="A4" t="str"><f>A1</f><v>Region</v></c>
      <c r="B4" t="e"><v>#DIV/0!</v></c>
      <c r="C4" s="3"/>
    </row>
  </sheetData>
</worksheet>"""

IGNORED_SHEET_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<worksheet xmlns="{MAIN}"><sheetData><row r="1"><c r="A1"><v>99</v></c></row></sheetData></worksheet>"""


def _workbook_bytes(**overrides) -> bytes:
    parts = {
        "xl/workbook.xml": WORKBOOK_XML,
        "xl/_rels/workbook.xml.rels": RELS_XML,
        "xl/sharedStrings.xml": SHARED_STRINGS_XML,
        "xl/worksheets/sheet1.xml": IGNORED_SHEET_XML,
        "xl/worksheets/sheet2.xml": FIRST_SHEET_XML,
    }
    parts.update(overrides)
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, text in parts.items():
            if text is not None:
                zf.writestr(name, text)
    return buffer.getvalue()


class TestCellReferences:

    def test_column_letters(self):
        assert col_letter_to_index("A") == 1
        assert col_letter_to_index("AA") == 27
        assert col_index_to_letter(28) == "AB"

    def test_parse_cell_ref(self):
        assert parse_cell_ref("c12") == ("C", 3, 12)
        assert parse_cell_ref("$B$7") == ("B", 2, 7)
        with pytest.raises(ValueError):
            parse_cell_ref("12C")


class TestParser:
    """Decoding the first sheet of a workbook."""

    def test_first_sheet_in_workbook_order(self):
        grid = parse_workbook(_workbook_bytes())
        assert grid[0] == ["Region", "Qty", "Done"]

    def test_cell_types(self):
        grid = parse_workbook(_workbook_bytes())
        row = grid[1]

        assert row[0] == "East"  # rich shared string
        assert row[1] == 10 and isinstance(row[1], int)
        assert row[2] is True
        assert row[3] is None  # gap between populated cells
        assert row[4] == 15.5  # cached formula value

    def test_missing_rows_and_trailing_cells(self):
        grid = parse_workbook(_workbook_bytes())

        assert len(grid) == 4
        assert grid[2] == []
        # C4 is styled but empty, so the row stops at B4
        assert grid[3] == ["Region", "#DIV/0!"]

    def test_without_shared_strings(self):
        sheet = f"""<worksheet xmlns="{MAIN}"><sheetData>
            <row r="1"><c r="A1" t="inlineStr"><is><t>Qty</t></is></c></row>
            <row r="2"><c r="A2"><v>1.25</v></c></row>
        </sheetData></worksheet>"""
        content = _workbook_bytes(**{
            "xl/sharedStrings.xml": None,
            "xl/worksheets/sheet2.xml": sheet,
        })
        assert parse_workbook(content) == [["Qty"], [1.25]]

    def test_empty_sheet(self):
        sheet = f'<worksheet xmlns="{MAIN}"><sheetData/></worksheet>'
        assert parse_workbook(_workbook_bytes(**{"xl/worksheets/sheet2.xml": sheet})) == []

    def test_not_a_zip(self):
        with pytest.raises(DecodeError):
            parse_workbook(b"definitely not a spreadsheet")

    def test_missing_sheet_part(self):
        with pytest.raises(DecodeError):
            parse_workbook(_workbook_bytes(**{"xl/worksheets/sheet2.xml": None}))

    def test_broken_xml(self):
        with pytest.raises(DecodeError):
            parse_workbook(_workbook_bytes(**{"xl/worksheets/sheet2.xml": "<worksheet"}))

    def test_workbook_without_sheets(self):
        empty = f'<workbook xmlns="{MAIN}"><sheets/></workbook>'
        with pytest.raises(DecodeError):
            parse_workbook(_workbook_bytes(**{"xl/workbook.xml": empty}))


class TestWriter:
    """Encoding a grid as a single-sheet workbook."""

    GRID = [
        ["Region", "Qty", "Active"],
        ["East", 15, True],
        [" padded ", 2.5, None, "late"],
        [],
        ["West"],
    ]

    def test_reads_back_identically(self):
        assert parse_workbook(serialize_grid(self.GRID)) == self.GRID

    def test_sheet_label(self):
        content = serialize_grid([["x"]], "Q1: Totals")
        with zipfile.ZipFile(BytesIO(content)) as zf:
            root = ET.fromstring(zf.read("xl/workbook.xml"))
        sheet = root.find(f"{{{MAIN}}}sheets/{{{MAIN}}}sheet")
        assert sheet.get("name") == "Q1 Totals"

    def test_package_parts(self):
        with zipfile.ZipFile(BytesIO(serialize_grid([["x"]]))) as zf:
            names = set(zf.namelist())
        assert {
            "[Content_Types].xml",
            "_rels/.rels",
            "xl/workbook.xml",
            "xl/_rels/workbook.xml.rels",
            "xl/worksheets/sheet1.xml",
        } <= names

    def test_parts_use_default_namespaces(self):
        with zipfile.ZipFile(BytesIO(serialize_grid([["Qty"], [1]]))) as zf:
            types = ET.fromstring(zf.read("[Content_Types].xml"))
            rels = ET.fromstring(zf.read("_rels/.rels"))
            workbook = ET.fromstring(zf.read("xl/workbook.xml"))
            sheet_xml = zf.read("xl/worksheets/sheet1.xml")

        assert types.tag == "{http://schemas.openxmlformats.org/package/2006/content-types}Types"
        assert rels.tag == "{http://schemas.openxmlformats.org/package/2006/relationships}Relationships"
        sheet = workbook.find(f"{{{MAIN}}}sheets/{{{MAIN}}}sheet")
        assert sheet.get(f"{{{REL}}}id") == "rId1"
        assert b"ns0:" not in sheet_xml
        assert ET.fromstring(sheet_xml).find(f"{{{MAIN}}}sheetData/{{{MAIN}}}row/{{{MAIN}}}c/{{{MAIN}}}v").text == "1"

    def test_single_cells_serialize(self):
        assert parse_workbook(serialize_grid([["a"]])) == [["a"]]
        assert parse_workbook(serialize_grid([[1]])) == [[1]]

    def test_non_finite_numbers_are_skipped(self):
        grid = parse_workbook(serialize_grid([[1, float("inf"), 2]]))
        assert grid == [[1, None, 2]]

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("Merged Result", "Merged Result"),
            ("a/b\\c?d*e[f]", "abcdef"),
            ("x" * 40, "x" * 31),
            ("[]", "Sheet1"),
        ],
    )
    def test_sanitize_sheet_label(self, label, expected):
        assert sanitize_sheet_label(label) == expected
