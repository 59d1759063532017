# csv_ingest.py — CSV parsing & dataset construction
# Quote-aware line splitting, numeric coercion, upload decoding
"""
csv_ingest.py — CSV Ingestion

Turns raw CSV text into headers + typed rows:
- Lines split on LF or CRLF; blank lines dropped
- Commas inside double quotes do not split a field
- Numeric-looking fields (thousands separators allowed) become numbers

Known limitation: doubled quotes ("") inside a quoted field are not
unescaped. Each quote simply toggles the in-quotes flag.

Nothing in this module raises on bad input. parse_csv() returns empty
headers for empty text; load_dataset() returns (None, error_message).
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Callable

from agent.models import CellValue, Dataset, Row
from config.settings import get_settings
from tools.validators import validate_headers


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

SUPPORTED_ENCODINGS = ["utf-8-sig", "utf-8", "latin-1", "cp1252"]

_LINE_SPLIT = re.compile(r"\r?\n")
# ASCII digits only; int() and float() also accept other Unicode digits
_DECIMAL_LITERAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_INTEGER_LITERAL = re.compile(r"[+-]?\d+", re.ASCII)
_PREFIXED_LITERAL = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+")


# =============================================================================
# PARSING
# =============================================================================

def split_line(line: str) -> list[str]:
    """
    Split one CSV line into trimmed fields.

    A comma separates fields only outside double quotes. One leading and
    one trailing quote are then removed from each field.
    """
    fields = []
    start = 0
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            fields.append(_clean_field(line[start:i]))
            start = i + 1
    fields.append(_clean_field(line[start:]))
    return fields


def _clean_field(raw: str) -> str:
    if raw.startswith('"'):
        raw = raw[1:]
    if raw.endswith('"'):
        raw = raw[:-1]
    return raw.strip()


def coerce_value(field: str) -> CellValue:
    """
    Convert a field to a number when it reads as one.

    Thousands separators are ignored (``"1,234"`` → 1234). Anything that
    is not a finite numeric literal is returned as the original string;
    the empty string stays empty.
    """
    candidate = field.replace(",", "")
    if not candidate:
        return field

    if _PREFIXED_LITERAL.fullmatch(candidate):
        return int(candidate, 0)
    if _INTEGER_LITERAL.fullmatch(candidate) and len(candidate) <= 300:
        return int(candidate)
    if _DECIMAL_LITERAL.fullmatch(candidate):
        try:
            number = float(candidate)
        except (ValueError, OverflowError):
            return field
        if math.isfinite(number):
            return number
    return field


def parse_csv(text: str) -> tuple[list[str], list[Row]]:
    """
    Parse CSV text.

    Args:
        text: Full file contents

    Returns:
        (headers, rows). Both empty when the text has no non-blank lines.
        Each row maps header → value; trailing missing fields are absent
        from the mapping, extra fields are dropped.
    """
    lines = [line for line in _LINE_SPLIT.split(text) if line.strip()]
    if not lines:
        return [], []

    headers = split_line(lines[0])
    rows: list[Row] = []
    for line in lines[1:]:
        values = split_line(line)
        row: dict[str, CellValue] = {}
        for header, value in zip(headers, values):
            row[header] = coerce_value(value)
        rows.append(row)

    return headers, rows


def format_cell(value: CellValue | None) -> str:
    """Render a cell the way it is shown and re-exported."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# UPLOAD HANDLING
# =============================================================================

def read_upload_bytes(file: BinaryIO | bytes | str | Path) -> tuple[bytes | None, str | None]:
    """
    Read raw bytes from a path, a bytes object or a file-like upload.

    Returns:
        (raw_bytes, None) on success, (None, error_message) on failure
    """
    try:
        if isinstance(file, (str, Path)):
            with open(file, "rb") as f:
                return f.read(), None
        if isinstance(file, bytes):
            return file, None
        raw_bytes = file.read()
        if hasattr(file, "seek"):
            file.seek(0)  # Streamlit reads the upload again on rerun
        return raw_bytes, None
    except OSError as e:
        return None, f"Failed to read file: {e}"


def decode_upload(raw_bytes: bytes) -> tuple[str | None, str | None]:
    """
    Decode uploaded bytes trying each supported encoding in turn.

    Returns:
        (text, None) on success, (None, error_message) on failure
    """
    for encoding in SUPPORTED_ENCODINGS:
        try:
            return raw_bytes.decode(encoding), None
        except UnicodeDecodeError:
            logger.debug("Encoding %s failed", encoding)
            continue
    return None, "Could not decode file with any supported encoding"


def new_dataset_id() -> str:
    return uuid.uuid4().hex[:9]


def load_dataset(
    file: BinaryIO | bytes | str | Path,
    filename: str = "unknown.csv",
    id_factory: Callable[[], str] | None = None,
) -> tuple[Dataset | None, str | None]:
    """
    Read, decode and parse an upload into a Dataset.

    Args:
        file: File-like object, bytes, or file path
        filename: Original filename, kept as the dataset name
        id_factory: Optional id generator (defaults to a random hex id)

    Returns:
        (Dataset, None) on success, (None, error_message) on failure.
        A file with no detectable header row is a failure.
    """
    settings = get_settings()

    raw_bytes, error = read_upload_bytes(file)
    if error:
        return None, error

    if len(raw_bytes) > settings.max_file_size_bytes:
        size_mb = len(raw_bytes) / 1024 / 1024
        return None, f"File exceeds {settings.max_file_size_mb}MB limit ({size_mb:.1f}MB)"

    text, error = decode_upload(raw_bytes)
    if error:
        return None, error

    headers, rows = parse_csv(text)
    is_valid, error = validate_headers(headers)
    if not is_valid:
        return None, error

    dataset = Dataset(
        id=(id_factory or new_dataset_id)(),
        name=filename,
        columns=tuple(headers),
        data=tuple(rows),
    )
    logger.info(
        "Loaded %s: %d rows × %d columns", filename, dataset.row_count, dataset.column_count
    )
    return dataset, None
