"""
Pasted-data extraction: locating and parsing the two template tables.

This module provides functionality to:
- Find a table's literal header row inside arbitrarily pasted text
- Cut the contiguous run of data rows that follows it
- Parse tab-delimited rows into column-name -> value mappings
- Combine both tables into header entries and line-item rows

Copying from a spreadsheet concatenates whatever the user selected, so the two
tables may come in either order, separated by unrelated lines, and followed by
the template's legend text with no explicit terminator.
"""

import csv
from dataclasses import dataclass, field
from typing import Optional

from .config import BLOCK_END_MARKERS, logger
from .schemas import HeaderFieldEntry
from .tables import HEADER_FIELDS_SCHEMA, LINE_ITEMS_SCHEMA, ColumnSchema

RawParsedRow = dict[str, str]


@dataclass
class LocatedBlock:
    """A table header row and the data lines that follow it."""
    header_line_index: int
    data_lines: list[str] = field(default_factory=list)


@dataclass
class ExtractedTables:
    """Both tables parsed out of one pasted text."""
    header_entries: list[HeaderFieldEntry] = field(default_factory=list)
    line_rows: list[RawParsedRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# ============================================================================
# Line Helpers
# ============================================================================

def split_lines(raw_text: str) -> list[str]:
    """Split pasted text into lines, dropping clipboard carriage returns."""
    return [line.rstrip("\r") for line in raw_text.split("\n")]


def split_cells(line: str) -> list[str]:
    """
    Tab-separated cells of one line, trimmed.

    Spreadsheets quote cells holding quotes or tabs when copying; those are
    unquoted and their doubled quotes collapsed. A stray quote inside an
    unquoted cell is kept as text. A line the csv reader rejects, such as one
    with an oversized cell, is split on tabs as it is.
    """
    try:
        cells = next(csv.reader([line], delimiter="\t"), [])
    except csv.Error:
        cells = line.split("\t")
    return [cell.strip() for cell in cells]


def is_header_row(line: str, schema: ColumnSchema) -> bool:
    """
    A line is the schema's header row when every display name is one of its
    cells, the first cell is the first display name, and it is at least as
    wide as the schema.

    Requiring the first cell guards against prose that merely mentions a
    column name.
    """
    if not line.strip():
        return False
    cells = split_cells(line)
    names = schema.display_names
    return (
        cells[0] == names[0]
        and len(cells) >= len(names)
        and all(name in cells for name in names)
    )


def is_block_end(line: str) -> bool:
    """
    Blank lines, legend/instruction text, rows with an empty first cell and
    the header row of either table end a block.
    """
    stripped = line.strip()
    if not stripped:
        return True
    if stripped.lower().startswith(BLOCK_END_MARKERS):
        return True
    if any(is_header_row(line, schema) for schema in (HEADER_FIELDS_SCHEMA, LINE_ITEMS_SCHEMA)):
        return True
    return line.split("\t")[0].strip() == ""


# ============================================================================
# Data Block Locator
# ============================================================================

def locate_block(raw_text: str, schema: ColumnSchema) -> Optional[LocatedBlock]:
    """
    Locate a table in pasted text.

    Args:
        raw_text: Text pasted from the spreadsheet
        schema: Column schema whose header row to look for

    Returns:
        LocatedBlock with the header line index and following data lines,
        or None if the header row is not present
    """
    lines = split_lines(raw_text)

    for index, line in enumerate(lines):
        if not is_header_row(line, schema):
            continue

        block = LocatedBlock(header_line_index=index)
        for data_line in lines[index + 1:]:
            if is_block_end(data_line):
                break
            block.data_lines.append(data_line)

        logger.debug(
            f"{schema.name} table found at line {index + 1} "
            f"with {len(block.data_lines)} data line(s)"
        )
        return block

    return None


# ============================================================================
# Table Parser
# ============================================================================

def parse_table(data_lines: list[str], schema: ColumnSchema) -> list[RawParsedRow]:
    """
    Parse tab-delimited data lines into rows keyed by display name.

    Rows narrower or wider than the schema are padded or truncated, since
    spreadsheets drop trailing empty cells when copying. Blank lines are
    skipped, and Line-Items rows without an identifier are spacer rows.
    """
    names = schema.display_names
    rows: list[RawParsedRow] = []

    for line in data_lines:
        if not line.strip():
            continue

        cells = split_cells(line)
        cells = (cells + [""] * len(names))[:len(names)]
        row = dict(zip(names, cells))

        if schema is LINE_ITEMS_SCHEMA and not row[names[0]]:
            continue

        rows.append(row)

    return rows


def to_header_entries(rows: list[RawParsedRow]) -> list[HeaderFieldEntry]:
    """Reduce Header-Fields rows to (xml path, value); the other columns are template decoration."""
    xml_path_column = HEADER_FIELDS_SCHEMA.display_name("xml_path")
    value_column = HEADER_FIELDS_SCHEMA.display_name("value")
    return [
        HeaderFieldEntry(xml_path=row[xml_path_column], value=row[value_column])
        for row in rows
    ]


def extract_tables(raw_text: str) -> ExtractedTables:
    """
    Locate and parse both template tables from one pasted text.

    A missing table is a structural error: field validation is pointless
    without both halves of the invoice.
    """
    header_block = locate_block(raw_text, HEADER_FIELDS_SCHEMA)
    line_block = locate_block(raw_text, LINE_ITEMS_SCHEMA)

    result = ExtractedTables()

    if header_block is None and line_block is None:
        result.errors.append(
            "Impossible de détecter les en-têtes d'en-tête de facture ou de lignes de facture. "
            "Veuillez vous assurer d'avoir copié les deux sections correctement à partir du modèle."
        )
        return result
    if header_block is None:
        result.errors.append(
            "Le tableau d'en-tête de facture est introuvable. "
            f"Copiez la ligne d'en-tête '{HEADER_FIELDS_SCHEMA.display_names[0]}' et ses données."
        )
    if line_block is None:
        result.errors.append(
            "Le tableau des lignes de facture est introuvable. "
            f"Copiez la ligne d'en-tête '{LINE_ITEMS_SCHEMA.display_names[0]}' et ses données."
        )
    if result.errors:
        return result

    result.header_entries = to_header_entries(parse_table(header_block.data_lines, HEADER_FIELDS_SCHEMA))
    result.line_rows = parse_table(line_block.data_lines, LINE_ITEMS_SCHEMA)

    logger.info(
        f"Extracted {len(result.header_entries)} header field(s) "
        f"and {len(result.line_rows)} line item row(s)"
    )
    return result
