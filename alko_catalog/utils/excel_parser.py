"""Alko price list (xlsx) parsing and row validation.

The workbook starts with a few banner rows; the header row is the first one
(within the first 10) whose first cell is "Numero". Columns are positional.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import load_workbook
from pydantic import ValidationError

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import ParseFailure
from alko_catalog.schemas.catalog_schema import CatalogItem
from alko_catalog.utils.text import clean_cell, parse_int, parse_number

HEADER_MARKER = "Numero"
HEADER_SEARCH_ROWS = 10

# column index -> (field, kind)
COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("id", "str"),                   # Numero
    ("name", "str"),                 # Nimi
    ("producer", "str"),             # Valmistaja
    ("bottle_size", "str"),          # Pullokoko
    ("price", "num0"),               # Hinta
    ("price_per_liter", "num"),      # Litrahinta
    ("is_new", "flag"),              # Uutuus
    ("sort_code", "int"),            # Hinnastojärjestyskoodi
    ("type", "str"),                 # Tyyppi
    ("subtype", "str"),              # Alatyyppi
    ("special_group", "str"),        # Erityisryhmä
    ("beer_type", "str"),            # Oluttyyppi
    ("country", "str"),              # Valmistusmaa
    ("region", "str"),               # Alue
    ("vintage", "int"),              # Vuosikerta
    ("label_notes", "str"),          # Etikettimerkintöjä
    ("notes", "str"),                # Huomautus
    ("grapes", "str"),               # Rypäleet
    ("description", "str"),          # Luonnehdinta
    ("packaging_type", "str"),       # Pakkaustyyppi
    ("closure_type", "str"),         # Suljentatyyppi
    ("alcohol_percentage", "num0"),  # Alkoholi-%
    ("acids", "num"),                # Hapot g/l
    ("sugar", "num"),                # Sokeri g/l
    ("original_gravity", "num"),     # Kantavierrep-%
    ("color_ebc", "num"),            # Väri EBC
    ("bitterness_ebu", "num"),       # Katkerot EBU
    ("energy", "num"),               # Energia kcal/100 ml
    ("assortment", "str"),           # Valikoima
    ("ean", "str"),                  # EAN
)


@dataclass
class ParsedPriceList:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    header_row_index: int = 0


@dataclass
class InvalidRow:
    row: Dict[str, Any]
    errors: List[str]

    def describe(self) -> str:
        return f"Item {self.row.get('id') or '?'}: {', '.join(self.errors)}"


def _convert(value: Any, kind: str) -> Any:
    if kind == "str":
        return clean_cell(value)
    if kind == "num":
        return parse_number(value)
    if kind == "num0":
        number = parse_number(value)
        return number if number is not None else 0.0
    if kind == "int":
        return parse_int(value)
    if kind == "flag":
        return clean_cell(value) is not None
    raise ValueError(f"unknown column kind: {kind}")


def row_to_candidate(row: Sequence[Any]) -> Optional[Dict[str, Any]]:
    """One sheet row to a field dict; None when the Numero cell is empty"""
    cells = list(row) + [None] * (len(COLUMNS) - len(row))
    if clean_cell(cells[0]) is None:
        return None
    return {name: _convert(cells[i], kind) for i, (name, kind) in enumerate(COLUMNS)}


def find_header_row(rows: Sequence[Sequence[Any]]) -> int:
    for i, row in enumerate(rows[:HEADER_SEARCH_ROWS]):
        if row and clean_cell(row[0]) == HEADER_MARKER:
            return i
    raise ParseFailure(f'header row with "{HEADER_MARKER}" column not found in first {HEADER_SEARCH_ROWS} rows')


def parse_rows(rows: Sequence[Sequence[Any]]) -> ParsedPriceList:
    header_index = find_header_row(rows)
    logger.info(f"[Parser] Found header row at index {header_index}")

    result = ParsedPriceList(header_row_index=header_index)
    for row in rows[header_index + 1:]:
        if not row or all(clean_cell(c) is None for c in row):
            continue
        candidate = row_to_candidate(row)
        if candidate is None:
            result.skipped += 1
            continue
        result.rows.append(candidate)

    logger.info(f"[Parser] Parsed {len(result.rows)} rows, skipped {result.skipped} rows without an id")
    return result


def parse_price_list(data: bytes) -> ParsedPriceList:
    """Parse the first sheet of an xlsx payload"""
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ParseFailure(f"unreadable workbook: {type(e).__name__}: {e}")

    try:
        if not workbook.sheetnames:
            raise ParseFailure("no sheets found in workbook")
        sheet = workbook[workbook.sheetnames[0]]
        rows = [tuple(r) for r in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    return parse_rows(rows)


def validate_rows(rows: Sequence[Dict[str, Any]]) -> Tuple[List[CatalogItem], List[InvalidRow]]:
    """Partition candidate rows into valid items and invalid rows with reasons"""
    valid: List[CatalogItem] = []
    invalid: List[InvalidRow] = []

    for row in rows:
        errors: List[str] = []
        if not row.get("id"):
            errors.append("Missing item ID")
        if not row.get("name"):
            errors.append("Missing item name")
        price = row.get("price") or 0
        if price < 0:
            errors.append(f"Invalid price: {price}")
        alcohol = row.get("alcohol_percentage") or 0
        if alcohol < 0 or alcohol > 100:
            errors.append(f"Invalid alcohol percentage: {alcohol}")

        if errors:
            invalid.append(InvalidRow(row, errors))
            continue

        try:
            valid.append(CatalogItem.model_validate(row))
        except ValidationError as e:
            invalid.append(InvalidRow(row, [err["msg"] for err in e.errors()]))

    return valid, invalid
