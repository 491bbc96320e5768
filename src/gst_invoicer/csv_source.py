"""Read the platform's transaction export into plain row mappings."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TextIO

import structlog

from gst_invoicer.errors import ParseError

logger = structlog.get_logger(__name__)

Row = dict[str, str]
# (line number in the file, row); the header is line 1
NumberedRow = tuple[int, Row]


def _read_stream(stream: TextIO) -> list[NumberedRow]:
    reader = csv.DictReader(stream, skipinitialspace=True)
    if reader.fieldnames is None:
        return []

    rows: list[NumberedRow] = []
    try:
        for raw in reader:
            row = {
                key.strip(): (value or "").strip()
                for key, value in raw.items()
                # Extra cells beyond the header land under a None key
                if key is not None
            }
            if not any(row.values()):
                continue
            rows.append((reader.line_num, row))
    except csv.Error as exc:
        raise ParseError(
            f"CSV parsing failed: {exc}", row_number=reader.line_num
        ) from exc

    return rows


def read_numbered_rows(source: str | Path | TextIO) -> list[NumberedRow]:
    """Read a delimited file with a header row.

    Args:
        source: Path to the export, or an open text stream.

    Returns:
        ``(line_number, row)`` per non-empty data row, header names and
        cells stripped. Line numbers count skipped blank lines too, so they
        match what a spreadsheet shows.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            # utf-8-sig drops the byte-order mark spreadsheet tools prepend
            with path.open(encoding="utf-8-sig", newline="") as stream:
                rows = _read_stream(stream)
        except OSError as exc:
            raise ParseError(f"Cannot read {path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"{path.name} is not UTF-8 text") from exc
        logger.debug("csv_rows_read", path=str(path), rows=len(rows))
        return rows

    return _read_stream(source)


def read_rows(source: str | Path | TextIO) -> list[Row]:
    """Like :func:`read_numbered_rows`, without the line numbers."""
    return [row for _, row in read_numbered_rows(source)]
