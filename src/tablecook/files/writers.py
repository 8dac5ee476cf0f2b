"""Save tabular data to files.

Data can be written as delimited text (``.csv``, ``.tsv``, ``.txt``)
or as a spreadsheet (``.xlsx``). Writers accept both an in-memory
table and a plan node, in which case the node is executed
and its result is written.

Every writer returns a :class:`WriteResult` which describes
what was written, its text form is the confirmation message
shown to users:

>>> import pyarrow as pa
>>> WriteResult("out.csv", rows=3, columns=2)
WriteResult(path='out.csv', rows=3, columns=2)
>>> print(WriteResult("out.csv", rows=3, columns=2))
Saved 3 rows to out.csv
"""

import logging
import os
import typing

import pyarrow as pa
import pyarrow.csv

from ..compute.base import QueryPlanNode
from ..errors import FileFormatError
from .excel import write_excel_rows

logger = logging.getLogger(__name__)

TableLike = pa.Table | pa.RecordBatch | QueryPlanNode


class WriteResult(typing.NamedTuple):
    """Outcome of writing data to a file."""

    path: str
    rows: int
    columns: int

    def __str__(self) -> str:
        return f"Saved {self.rows} rows to {self.path}"


def _as_table(data: TableLike) -> pa.Table:
    if isinstance(data, QueryPlanNode):
        return data.collect()
    elif isinstance(data, pa.RecordBatch):
        return pa.Table.from_batches([data])
    return data


def _prepare_path(filename: str) -> None:
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)


def write_csv(data: TableLike, filename: str, delimiter: str = ",") -> WriteResult:
    """Write data as delimited text.

    The first line is the header, missing values
    are written as empty fields.

    :param data: The table or plan node to write.
    :param filename: Destination path, parent directories are created.
    :param delimiter: The field separator.
    """
    table = _as_table(data)
    _prepare_path(filename)
    pa.csv.write_csv(
        table,
        filename,
        write_options=pa.csv.WriteOptions(delimiter=delimiter, quoting_style="needed"),
    )
    logger.info("Wrote %d rows to %s", table.num_rows, filename)
    return WriteResult(filename, table.num_rows, table.num_columns)


def write_excel(data: TableLike, filename: str, sheet: str = "Sheet1") -> WriteResult:
    """Write data to a new spreadsheet.

    :param data: The table or plan node to write.
    :param filename: Destination ``.xlsx`` path, parent directories are created.
    :param sheet: Name of the sheet that will hold the data.
    """
    table = _as_table(data)
    _prepare_path(filename)
    columns = [table.column(name).to_pylist() for name in table.column_names]
    write_excel_rows(filename, table.column_names, zip(*columns), sheet=sheet)
    logger.info("Wrote %d rows to %s", table.num_rows, filename)
    return WriteResult(filename, table.num_rows, table.num_columns)


DELIMITERS = {".csv": ",", ".tsv": "\t", ".txt": ","}


def write_table(data: TableLike, filename: str) -> WriteResult:
    """Write data choosing the format from the file extension."""
    extension = os.path.splitext(filename)[1].lower()
    if extension == ".xlsx":
        return write_excel(data, filename)
    elif extension in DELIMITERS:
        return write_csv(data, filename, delimiter=DELIMITERS[extension])
    raise FileFormatError(
        f"Unsupported file extension {extension!r} for {filename}, "
        f"use one of: {', '.join(sorted([*DELIMITERS, '.xlsx']))}"
    )
