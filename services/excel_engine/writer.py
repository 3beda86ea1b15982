"""XLSX Writer - Serializes a Grid into a single-sheet workbook.

Writes the minimal set of OOXML parts Excel needs:
1. [Content_Types].xml and the package relationships
2. xl/workbook.xml with one sheet and its relationship
3. xl/worksheets/sheet1.xml with inline strings (no shared strings table)
"""

from __future__ import annotations

import math
import re
import zipfile
from io import BytesIO
from typing import Optional
from xml.etree import ElementTree as ET

from models.schemas import CellValue, Grid

from .parser import NS, col_index_to_letter

CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

OFFICE_DOC_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
WORKSHEET_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet"

WORKBOOK_CT = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"
WORKSHEET_CT = "application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"
RELS_CT = "application/vnd.openxmlformats-package.relationships+xml"

MAX_SHEET_LABEL = 31
_INVALID_LABEL_CHARS = re.compile(r"[\[\]:*?/\\]")


def sanitize_sheet_label(label: str) -> str:
    """Excel sheet names: max 31 chars, none of []:*?/\\ and not empty."""
    cleaned = _INVALID_LABEL_CHARS.sub("", label or "").strip()[:MAX_SHEET_LABEL]
    return cleaned or "Sheet1"


def _root(tag: str, ns: str, **extra_ns: str) -> ET.Element:
    # Names stay unqualified; the part declares its namespaces on the root.
    root = ET.Element(tag, xmlns=ns)
    for prefix, uri in extra_ns.items():
        root.set(f"xmlns:{prefix}", uri)
    return root


def _to_bytes(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="UTF-8", xml_declaration=True)


def _content_types() -> bytes:
    root = _root("Types", CT_NS)
    ET.SubElement(root, "Default", Extension="rels", ContentType=RELS_CT)
    ET.SubElement(root, "Default", Extension="xml", ContentType="application/xml")
    ET.SubElement(root, "Override", PartName="/xl/workbook.xml", ContentType=WORKBOOK_CT)
    ET.SubElement(root, "Override", PartName="/xl/worksheets/sheet1.xml", ContentType=WORKSHEET_CT)
    return _to_bytes(root)


def _relationships(rel_id: str, rel_type: str, target: str) -> bytes:
    root = _root("Relationships", NS["rel"])
    ET.SubElement(root, "Relationship", Id=rel_id, Type=rel_type, Target=target)
    return _to_bytes(root)


def _workbook(sheet_label: str) -> bytes:
    root = _root("workbook", NS["main"], r=NS["r"])
    sheets = ET.SubElement(root, "sheets")
    ET.SubElement(sheets, "sheet", {"name": sheet_label, "sheetId": "1", "r:id": "rId1"})
    return _to_bytes(root)


def _write_cell(row_el: ET.Element, ref: str, value: CellValue) -> Optional[ET.Element]:
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None

    cell_el = ET.SubElement(row_el, "c", r=ref)
    if isinstance(value, bool):
        cell_el.set("t", "b")
        ET.SubElement(cell_el, "v").text = "1" if value else "0"
    elif isinstance(value, (int, float)):
        ET.SubElement(cell_el, "v").text = repr(value)
    else:
        text = str(value)
        cell_el.set("t", "inlineStr")
        is_el = ET.SubElement(cell_el, "is")
        t_el = ET.SubElement(is_el, "t")
        t_el.text = text
        if text != text.strip():
            t_el.set("xml:space", "preserve")
    return cell_el


def _worksheet(grid: Grid) -> bytes:
    root = _root("worksheet", NS["main"])
    sheet_data = ET.SubElement(root, "sheetData")

    for r, row in enumerate(grid, start=1):
        row_el = ET.Element("row", r=str(r))
        for c, value in enumerate(row, start=1):
            _write_cell(row_el, f"{col_index_to_letter(c)}{r}", value)
        if len(row_el):
            sheet_data.append(row_el)

    return _to_bytes(root)

def serialize_grid(grid: Grid, sheet_label: str = "Merged Result") -> bytes:
    """Write a Grid as a one-sheet XLSX workbook and return its bytes."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", _content_types())
        zf.writestr("_rels/.rels", _relationships("rId1", OFFICE_DOC_REL, "xl/workbook.xml"))
        zf.writestr("xl/workbook.xml", _workbook(sanitize_sheet_label(sheet_label)))
        zf.writestr(
            "xl/_rels/workbook.xml.rels",
            _relationships("rId1", WORKSHEET_REL, "worksheets/sheet1.xml"),
        )
        zf.writestr("xl/worksheets/sheet1.xml", _worksheet(grid))
    return buffer.getvalue()
