"""Bounded-memory CSV reading on top of pandas.

Every value is read as a string (no NA inference) so coercion stays under the
schema's control. Blank lines are skipped; the first row is the header.
"""

from __future__ import annotations

import asyncio
import csv
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from permitdex.importing.errors import CSVParseError

Row = dict[str, str]

_READ_OPTIONS = {
    "dtype": str,
    "keep_default_na": False,
    "na_filter": False,
    "skip_blank_lines": True,
    "encoding": "utf-8-sig",
}

_PARSE_ERRORS = (
    pd.errors.ParserError,
    pd.errors.EmptyDataError,
    UnicodeDecodeError,
    csv.Error,
    OSError,
)


@dataclass(frozen=True)
class CSVPreview:
    """Headers plus the first rows of a file."""

    headers: tuple[str, ...]
    rows: tuple[Row, ...]


def _records(frame: pd.DataFrame) -> list[Row]:
    return frame.to_dict(orient="records")


def read_preview(path: Path, rows: int = 100) -> CSVPreview:
    """Read the header and up to ``rows`` data rows.

    Raises:
        CSVParseError: If the file is missing, empty or malformed
    """
    try:
        frame = pd.read_csv(path, nrows=rows, **_READ_OPTIONS)
    except _PARSE_ERRORS as e:
        raise CSVParseError(f"{path.name}: {e}") from e

    headers = tuple(str(column) for column in frame.columns)
    if not headers:
        raise CSVParseError(f"{path.name}: no header row found")
    return CSVPreview(headers=headers, rows=tuple(_records(frame)))


async def iter_chunks(path: Path, chunk_size: int) -> AsyncIterator[list[Row]]:
    """Stream ``path`` as lists of at most ``chunk_size`` rows.

    The next chunk is not parsed until the consumer asks for it, so at most
    one chunk is in memory (and in flight) at a time. Parsing runs in a worker
    thread to keep the event loop responsive.

    Raises:
        CSVParseError: On a malformed or unreadable file (possibly mid-stream)
    """
    try:
        reader = pd.read_csv(path, chunksize=chunk_size, **_READ_OPTIONS)
    except _PARSE_ERRORS as e:
        raise CSVParseError(f"{path.name}: {e}") from e

    with reader:
        while True:
            try:
                frame = await asyncio.to_thread(next, reader, None)
            except _PARSE_ERRORS as e:
                raise CSVParseError(f"{path.name}: {e}") from e
            if frame is None:
                break
            yield _records(frame)
