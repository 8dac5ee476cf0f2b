"""Read and write spreadsheet files.

Spreadsheets are stored as ``.xlsx`` workbooks through :mod:`openpyxl`.

A sheet is expected to contain a table: the first row
provides the column names and each following row is a record.
Empty cells are read as missing values and missing values
are written as empty cells.

Spreadsheet cells are not typed per column, so
when reading them back the type of each column is inferred
from its values. A column that mixes numbers and text can't be
represented by a single Arrow type and is read as text.
"""

import logging
import os
from typing import Any, Iterable, Iterator

import openpyxl
import pyarrow as pa

from ..errors import FileFormatError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_ROWS = 65536


def excel_sheet_names(filename: str) -> list[str]:
    """List the sheets available in a workbook."""
    workbook = openpyxl.load_workbook(filename, read_only=True)
    try:
        return list(workbook.sheetnames)
    finally:
        workbook.close()


def read_excel(
    filename: str, sheet: str | None = None, block_size: int | None = None
) -> Iterator[pa.RecordBatch]:
    """Read a sheet of a workbook emitting one batch every ``block_size`` rows.

    :param filename: Path of the ``.xlsx`` file.
    :param sheet: Name of the sheet to read, the active one when ``None``.
    :param block_size: How many rows each batch should contain.
    """
    if not os.path.exists(filename):
        raise FileNotFoundError(f"No such file: {filename}")

    block_size = block_size or DEFAULT_BLOCK_ROWS
    workbook = openpyxl.load_workbook(filename, read_only=True, data_only=True)
    try:
        if sheet is None:
            worksheet = workbook.active
        elif sheet in workbook.sheetnames:
            worksheet = workbook[sheet]
        else:
            raise FileFormatError(
                f"Sheet {sheet!r} not found in {filename}, available sheets: {', '.join(workbook.sheetnames)}"
            )

        rows = worksheet.iter_rows(values_only=True)
        header = _read_header(next(rows, None), filename)
        logger.info("Reading sheet %s of %s", worksheet.title, filename)

        # Types have to be inferred on the whole sheet, otherwise
        # different blocks could end up with different schemas.
        records = [
            row
            for row in rows
            # Trailing formatted but empty rows are common in spreadsheets.
            if row is not None and any(v is not None for v in row)
        ]
    finally:
        workbook.close()

    batch = _rows_to_batch(header, records)
    logger.debug("Read %d rows from %s", batch.num_rows, filename)
    if batch.num_rows <= block_size:
        yield batch
        return
    for offset in range(0, batch.num_rows, block_size):
        yield batch.slice(offset, block_size)


def _read_header(row: tuple[Any, ...] | None, filename: str) -> list[str]:
    """Validate the first row of a sheet and return the column names."""
    if row is None or all(v is None for v in row):
        raise FileFormatError(f"{filename} has no header row")

    header = list(row)
    # Spreadsheets often have empty cells right of the table
    while header and header[-1] is None:
        header.pop()
    if not header or any(name is None for name in header):
        raise FileFormatError(f"{filename} has empty column names in its header")

    header = [str(name) for name in header]
    duplicates = sorted({name for name in header if header.count(name) > 1})
    if duplicates:
        raise FileFormatError(
            f"{filename} has duplicate column names: {', '.join(duplicates)}"
        )
    return header


def _rows_to_batch(header: list[str], rows: list[tuple[Any, ...]]) -> pa.RecordBatch:
    """Convert rows of cell values to a RecordBatch.

    Rows shorter than the header are padded with missing values.
    """
    columns = []
    for idx, _ in enumerate(header):
        values = [row[idx] if idx < len(row) else None for row in rows]
        columns.append(_infer_array(values))
    return pa.record_batch(columns, names=header)


def _infer_array(values: list[Any]) -> pa.Array:
    """Build an array from python values, falling back to text for mixed columns."""
    try:
        return pa.array(values)
    except (pa.ArrowInvalid, pa.ArrowTypeError):
        return pa.array([None if v is None else str(v) for v in values], type=pa.string())


def write_excel_rows(
    filename: str, column_names: list[str], rows: Iterable[Iterable[Any]], sheet: str
) -> None:
    """Write a header and rows of values in a new workbook."""
    workbook = openpyxl.Workbook(write_only=True)
    worksheet = workbook.create_sheet(title=sheet)
    worksheet.append(column_names)
    for row in rows:
        worksheet.append(list(row))
    workbook.save(filename)
