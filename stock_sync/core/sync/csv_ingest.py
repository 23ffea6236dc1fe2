"""
CSV ingestion: uploaded bytes -> normalized stock/price rows.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from io import StringIO
from typing import Dict, List

import pandas as pd

from stock_sync.core.sync.errors import EmptyInput, MissingColumn, UnreadableInput


REQUIRED_COLUMNS = ["Sku", "Available", "Price"]

# Larger cells are treated as unreadable rather than written to the catalog
MAX_CELL_MAGNITUDE = Decimal("1000000000000")

# Leading numeric prefix, the way spreadsheet exports are usually read
_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True)
class CsvRow:
    """One CSV row with normalized quantity and price."""
    sku: str
    qty: int
    price: str


def _parse_number(text: str) -> Decimal:
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return Decimal("0")
    number = Decimal(match.group(0))
    if abs(number) > MAX_CELL_MAGNITUDE:
        raise UnreadableInput(f"Number out of range: {text}")
    return number


def normalize_stock(value) -> int:
    """
    Normalize an Available cell to an integer.

    Spaces and apostrophes (thousands separators) are dropped and the
    number is rounded half away from zero. Blank means 0.
    """
    text = str(value if value is not None else "").strip()
    if text == "":
        return 0
    text = text.replace(" ", "").replace("'", "")
    return int(_parse_number(text).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_price(value) -> str:
    """
    Normalize a Price cell to a 2-decimal string.

    Spaces and apostrophes are dropped and a decimal comma becomes a
    point. Blank means "0.00".
    """
    text = str(value if value is not None else "").strip()
    if text == "":
        return "0.00"
    text = text.replace(" ", "").replace("'", "").replace(",", ".")
    return format_price(_parse_number(text))


def format_price(amount: Decimal) -> str:
    """Format a decimal amount with exactly two decimals."""
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def decode_csv(content: bytes) -> str:
    """Decode uploaded bytes and strip a UTF-8 byte-order mark."""
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        text = content.decode("latin-1")

    # Remove BOM if present
    if text.startswith('\ufeff'):
        text = text[1:]
    return text


def parse_csv(content: bytes) -> List[CsvRow]:
    """
    Parse an uploaded stock CSV.

    Args:
        content: Raw CSV bytes with a header row

    Returns:
        Rows in file order; blank SKUs are skipped, duplicates are kept.

    Raises:
        EmptyInput: If the file has no content
        MissingColumn: If Sku, Available or Price is absent
        UnreadableInput: If the content cannot be parsed as CSV
    """
    text = decode_csv(content)
    if not text.strip():
        raise EmptyInput()

    try:
        df = pd.read_csv(
            StringIO(text),
            dtype=str,
            index_col=False,
            keep_default_na=False,
            skip_blank_lines=True
        )
    except pd.errors.EmptyDataError:
        raise EmptyInput()
    except (pd.errors.ParserError, ValueError) as e:
        raise UnreadableInput(f"Unable to read uploaded CSV: {str(e)}")

    df.columns = [str(c).strip() for c in df.columns]

    for col in REQUIRED_COLUMNS:
        if col not in df.columns:
            raise MissingColumn(col)

    df = df.fillna("")

    rows = []
    for record in df[REQUIRED_COLUMNS].to_dict("records"):
        sku = str(record["Sku"]).strip()
        if not sku:
            continue
        rows.append(CsvRow(
            sku=sku,
            qty=normalize_stock(record["Available"]),
            price=normalize_price(record["Price"])
        ))

    return rows


def last_row_per_sku(rows: List[CsvRow]) -> Dict[str, CsvRow]:
    """Collapse duplicate SKUs, keeping the values of the last occurrence."""
    by_sku: Dict[str, CsvRow] = {}
    for row in rows:
        by_sku[row.sku] = row
    return by_sku
