"""XLSX Parser - Reads the first worksheet of a workbook into a Grid.

Only cell values are kept:
- Shared and inline strings become text
- Booleans become bool, numbers become int/float
- Formula cells keep their cached value (no evaluation)
- Error cells keep their error text (e.g. "#DIV/0!")
"""

from __future__ import annotations

import logging
import re
import zipfile
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from models.schemas import CellValue, Grid, Row
from services.merge_engine.errors import DecodeError

logger = logging.getLogger(__name__)


# =============================================================================
# NAMESPACES
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}


# =============================================================================
# UTILITIES
# =============================================================================

def col_letter_to_index(col: str) -> int:
    """Convert column letter(s) to 1-indexed number. A=1, B=2, ..., Z=26, AA=27."""
    result = 0
    for char in col.upper():
        result = result * 26 + (ord(char) - ord('A') + 1)
    return result


def col_index_to_letter(index: int) -> str:
    """Convert 1-indexed column number to letter(s). 1=A, 2=B, ..., 27=AA."""
    result = ""
    while index > 0:
        index -= 1
        result = chr(ord('A') + (index % 26)) + result
        index //= 26
    return result


def parse_cell_ref(ref: str) -> Tuple[str, int, int]:
    """Parse cell reference like 'A1' or 'AA100' into (col_letter, col_num, row_num)."""
    match = re.match(r'^\$?([A-Z]+)\$?(\d+)$', ref.upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {ref}")
    col_letter = match.group(1)
    row = int(match.group(2))
    col = col_letter_to_index(col_letter)
    return col_letter, col, row


def _string_item_text(item: ET.Element) -> str:
    """Text of an <si> or <is> element, plain or rich."""
    ns = NS["main"]
    t_el = item.find(f"{{{ns}}}t")
    if t_el is not None:
        return t_el.text or ""
    # Rich text (multiple <r> runs); phonetic runs are skipped
    parts = []
    for r in item.findall(f"{{{ns}}}r"):
        t = r.find(f"{{{ns}}}t")
        if t is not None and t.text:
            parts.append(t.text)
    return "".join(parts)


def _parse_number(raw_value: str) -> CellValue:
    try:
        if "." in raw_value or "E" in raw_value.upper():
            return float(raw_value)
        return int(raw_value)
    except ValueError:
        return raw_value


# =============================================================================
# WORKBOOK PARTS
# =============================================================================

def _parse_shared_strings(zf: zipfile.ZipFile) -> List[str]:
    """Parse the shared strings table (absent in some workbooks)."""
    try:
        with zf.open("xl/sharedStrings.xml") as f:
            root = ET.parse(f).getroot()
    except KeyError:
        return []

    ns = NS["main"]
    return [_string_item_text(si) for si in root.findall(f"{{{ns}}}si")]


def _first_sheet_path(zf: zipfile.ZipFile) -> Tuple[str, str]:
    """Resolve (sheet_name, part_path) of the first sheet in workbook order."""
    with zf.open("xl/workbook.xml") as f:
        wb_root = ET.parse(f).getroot()

    ns = NS["main"]
    r_ns = NS["r"]

    first = wb_root.find(f"{{{ns}}}sheets/{{{ns}}}sheet")
    if first is None:
        raise DecodeError("Workbook contains no sheets")

    with zf.open("xl/_rels/workbook.xml.rels") as f:
        rels_root = ET.parse(f).getroot()

    id_to_target: Dict[str, str] = {}
    for rel in rels_root.findall(f"{{{NS['rel']}}}Relationship"):
        rel_id = rel.get("Id")
        target = rel.get("Target")
        if rel_id and target:
            id_to_target[rel_id] = target

    target = id_to_target.get(first.get(f"{{{r_ns}}}id") or "")
    if not target:
        raise DecodeError(f"No worksheet part for sheet '{first.get('name')}'")

    if target.startswith("/"):
        sheet_path = target[1:]
    else:
        sheet_path = f"xl/{target}"

    return first.get("name") or "", sheet_path


# =============================================================================
# CELLS
# =============================================================================

def _cell_value(cell_el: ET.Element, shared_strings: List[str]) -> Optional[CellValue]:
    """Resolve a <c> element to its value; None when the cell holds nothing."""
    ns = NS["main"]
    data_type = cell_el.get("t", "n")

    if data_type == "inlineStr":
        is_el = cell_el.find(f"{{{ns}}}is")
        return _string_item_text(is_el) if is_el is not None else None

    v_el = cell_el.find(f"{{{ns}}}v")
    raw_value = v_el.text if v_el is not None else None
    if raw_value is None:
        return None

    if data_type == "s":
        try:
            return shared_strings[int(raw_value)]
        except (ValueError, IndexError):
            return raw_value
    if data_type == "b":
        return raw_value.strip() == "1"
    if data_type in ("str", "e", "d"):
        return raw_value
    return _parse_number(raw_value)


def _parse_rows(sheet_el: ET.Element, shared_strings: List[str]) -> Grid:
    """Lay out <sheetData> as a list of rows indexed from zero."""
    ns = NS["main"]
    sheet_data = sheet_el.find(f"{{{ns}}}sheetData")
    if sheet_data is None:
        return []

    cells_by_row: Dict[int, Dict[int, Any]] = {}
    next_row = 0
    for row_el in sheet_data.findall(f"{{{ns}}}row"):
        row_idx = int(row_el.get("r")) - 1 if row_el.get("r") else next_row
        next_row = row_idx + 1

        row_cells: Dict[int, Any] = {}
        next_col = 0
        for cell_el in row_el.findall(f"{{{ns}}}c"):
            cell_ref = cell_el.get("r")
            if cell_ref:
                _, col_num, _ = parse_cell_ref(cell_ref)
                col_idx = col_num - 1
            else:
                col_idx = next_col
            next_col = col_idx + 1

            value = _cell_value(cell_el, shared_strings)
            if value is not None:
                row_cells[col_idx] = value

        if row_cells:
            cells_by_row[row_idx] = row_cells

    if not cells_by_row:
        return []

    grid: Grid = []
    for r in range(max(cells_by_row) + 1):
        row_cells = cells_by_row.get(r, {})
        row: Row = [None] * (max(row_cells) + 1 if row_cells else 0)
        for c, value in row_cells.items():
            row[c] = value
        grid.append(row)
    return grid


# =============================================================================
# ENTRY POINT
# =============================================================================

def parse_workbook(content: bytes) -> Grid:
    """Decode XLSX bytes into the Grid of the first worksheet.

    Raises DecodeError for anything that is not a readable OOXML workbook.
    """
    try:
        with zipfile.ZipFile(BytesIO(content), "r") as zf:
            shared_strings = _parse_shared_strings(zf)
            sheet_name, sheet_path = _first_sheet_path(zf)
            with zf.open(sheet_path) as f:
                sheet_el = ET.parse(f).getroot()
            grid = _parse_rows(sheet_el, shared_strings)
    except DecodeError:
        raise
    except zipfile.BadZipFile as e:
        raise DecodeError(f"Not an XLSX workbook: {e}") from e
    except KeyError as e:
        raise DecodeError(f"Workbook part missing: {e}") from e
    except (ET.ParseError, ValueError) as e:
        raise DecodeError(f"Malformed workbook XML: {e}") from e

    logger.debug(f"[DECODE] Sheet '{sheet_name}' ({sheet_path}): {len(grid)} rows")
    return grid
