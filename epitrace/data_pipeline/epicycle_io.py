"""Epicycle table reader.

Input format: headerless comma-separated text, one epicycle per row, exactly
three numeric fields in fixed order::

    angular_speed_rad_s, radius, initial_angle_rad
    6.283185307179586, 10, 0
    0, 0, 0

Whitespace around fields is ignored and blank lines are skipped. Any other
deviation (wrong field count, non-numeric or non-finite value) aborts the
read with InputParseError; rows are never skipped or partially accepted.

The file is read exactly once: load_epicycle_table() parses and hashes the
same bytes, so the recorded input digest always matches what was parsed.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from epitrace.errors import InputOpenError, InputParseError
from epitrace.tracer.sampler import Epicycle
from epitrace.utils import hashing

logger = logging.getLogger(__name__)

FIELDS = ("angular_speed_rad_s", "radius", "initial_angle")


def parse_epicycle_row(fields: Sequence[str], line_no: int) -> Epicycle:
    """Convert one CSV row into an :class:`Epicycle`.

    Parameters
    ----------
    fields : Sequence[str]
        Raw field strings of the row
    line_no : int
        1-based line number, used in error messages

    Raises
    ------
    InputParseError
        If the row does not hold exactly three finite numbers
    """
    if len(fields) != len(FIELDS):
        raise InputParseError(
            f"line {line_no}: expected {len(FIELDS)} fields "
            f"({', '.join(FIELDS)}), got {len(fields)}: {list(fields)!r}",
            line_no=line_no,
        )

    values = []
    for name, raw in zip(FIELDS, fields):
        try:
            value = float(raw.strip())
        except ValueError:
            raise InputParseError(
                f"line {line_no}: field '{name}' is not a number: {raw!r}",
                line_no=line_no,
            ) from None
        if not math.isfinite(value):
            raise InputParseError(
                f"line {line_no}: field '{name}' must be finite, got {raw.strip()!r}",
                line_no=line_no,
            )
        values.append(value)

    angular_speed, radius, initial_angle = values
    return Epicycle(angular_speed=angular_speed, radius=radius, initial_angle=initial_angle)


@dataclass(frozen=True)
class EpicycleTable:
    """Parsed epicycles plus the SHA-256 of the exact bytes they came from."""

    epicycles: List[Epicycle]
    sha256: str


def parse_epicycle_bytes(data: bytes, source: Union[str, Path] = "<bytes>") -> List[Epicycle]:
    """Parse a whole epicycle table held in memory.

    Parameters
    ----------
    data : bytes
        UTF-8 encoded CSV content
    source : str or Path
        Name used as the prefix of error messages

    Raises
    ------
    InputParseError
        If the text is not UTF-8 or any row is malformed
    """
    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError as e:
        line_no = data.count(b"\n", 0, e.start) + 1
        raise InputParseError(
            f"{source}: line {line_no}: not valid UTF-8 text ({e.reason})",
            line_no=line_no,
        ) from e

    epicycles: List[Epicycle] = []
    reader = csv.reader(io.StringIO(text, newline=''))
    try:
        for row in reader:
            if not row or all(not field.strip() for field in row):
                continue
            epicycles.append(parse_epicycle_row(row, reader.line_num))
    except InputParseError as e:
        raise InputParseError(f"{source}: {e}", line_no=e.line_no) from None
    except csv.Error as e:
        raise InputParseError(
            f"{source}: line {reader.line_num}: unreadable row: {e}",
            line_no=reader.line_num,
        ) from e
    return epicycles


def load_epicycle_table(path: Union[str, Path]) -> EpicycleTable:
    """Read the file once, then parse and hash those same bytes.

    Raises
    ------
    InputOpenError
        If the file is missing or cannot be read
    InputParseError
        If any row is malformed or the file is not valid UTF-8 text
    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise InputOpenError(f"Cannot open epicycle file {path}: {e.strerror or e}") from e

    table = EpicycleTable(epicycles=parse_epicycle_bytes(data, path), sha256=hashing.sha256_bytes(data))
    logger.info("Loaded %d epicycles from %s (sha256=%s)", len(table.epicycles), path, table.sha256[:12])
    return table


def read_epicycles(path: Union[str, Path]) -> List[Epicycle]:
    """Read all epicycles from a headerless CSV file, in file order.

    Parameters
    ----------
    path : Union[str, Path]
        Input file path

    Returns
    -------
    list[Epicycle]
        One entry per non-blank row (possibly empty)

    Raises
    ------
    InputOpenError
        If the file is missing or cannot be opened
    InputParseError
        If any row is malformed or the file is not valid UTF-8 text
    """
    return load_epicycle_table(path).epicycles
