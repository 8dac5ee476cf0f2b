"""Plan nodes that load data

The datasource nodes are expected to fetch the data from some source,
convert it into the format accepted by the compute engine and forward it
to the next node in the plan.

They are used to do things like loading
data from CSV files or spreadsheets.

All data sources emit at least one batch, even when the source
contains no rows, so that the following nodes always know
the schema of the data.
"""

import logging
import os
from abc import abstractmethod

import pyarrow as pa
import pyarrow.csv

from ..files.excel import read_excel
from .base import QueryPlanNode

logger = logging.getLogger(__name__)


class DataSourceNode(QueryPlanNode):
    """Base class for nodes that load data from a source."""

    @abstractmethod
    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the data source without loading its content."""
        ...


class CSVDataSource(DataSourceNode):
    """Load data from a delimited text file.

    Given a local CSV file path, load the content,
    convert it into Arrow format, and emit it
    for the next nodes of the plan to consume.

    Column types are inferred by Arrow, empty fields and
    the usual spellings of missing values (``NA``, ``null``, ``NaN``...)
    are read as missing values.
    """

    def __init__(
        self, filename: str, block_size: int | None = None, delimiter: str = ","
    ) -> None:
        """
        :param filename: The path of the local CSV file.
        :param block_size: How big to make batches of data,
                           Influences how many batches will be produced
        :param delimiter: The character separating the fields.
        """
        self.filename = filename
        self.block_size = block_size
        self.delimiter = delimiter

    def __str__(self) -> str:
        return f"CSVDataSource({self.filename}, block_size={self.block_size})"

    def _open(self, **read_options) -> pa.csv.CSVStreamingReader:
        if not os.path.exists(self.filename):
            raise FileNotFoundError(f"No such file: {self.filename}")
        return pa.csv.open_csv(
            self.filename,
            read_options=pa.csv.ReadOptions(**read_options),
            parse_options=pa.csv.ParseOptions(delimiter=self.delimiter),
            convert_options=pa.csv.ConvertOptions(strings_can_be_null=True),
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Open CSV file and emit the batches."""
        logger.info("Reading %s", self.filename)
        with self._open(block_size=self.block_size) as reader:
            emitted = 0
            for batch in reader:
                logger.debug("Read batch of %d rows from %s", batch.num_rows, self.filename)
                emitted += 1
                yield batch
            if not emitted:
                yield pa.RecordBatch.from_pylist([], schema=reader.schema)

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the CSV file."""
        with self._open() as reader:
            return reader.schema


class ExcelDataSource(DataSourceNode):
    """Load data from a spreadsheet.

    Given a local ``.xlsx`` file path, read one of its sheets,
    convert it into Arrow format and emit it for the next
    nodes of the plan to consume.

    The first row of the sheet is used as the header.
    See :mod:`tablecook.files.excel` for details on
    how the types are inferred.
    """

    def __init__(
        self, filename: str, sheet: str | None = None, block_size: int | None = None
    ) -> None:
        """
        :param filename: The path of the local spreadsheet.
        :param sheet: The name of the sheet to read, ``None`` for the active one.
        :param block_size: How many rows each emitted batch should contain.
        """
        self.filename = filename
        self.sheet = sheet
        self.block_size = block_size

    def __str__(self) -> str:
        return f"ExcelDataSource({self.filename}, sheet={self.sheet})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Read the sheet and emit the batches."""
        yield from read_excel(self.filename, sheet=self.sheet, block_size=self.block_size)

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the sheet.

        As spreadsheets have no types, this requires
        reading the whole sheet to infer them.
        """
        return next(self.batches()).schema


class PyArrowTableDataSource(DataSourceNode):
    """Load data from an in-memory pyarrow.Table or pyarrow.RecordBatch.

    Given a :class:`pyarrow.Table` or `pyarrow.RecordBatch` object,
    allow to use its data in a plan.
    """

    def __init__(self, table: pa.Table | pa.RecordBatch) -> None:
        """
        :param table: The table or recordbatch with the data to read.
        """
        self.table = table
        self.is_recordbatch = isinstance(table, pa.RecordBatch)

    def __str__(self) -> str:
        return f"PyArrowTableDataSource(columns={self.table.column_names}, rows={self.table.num_rows})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the data contained in the Table for consumption by other node."""
        if self.is_recordbatch:
            yield self.table
            return

        batches = self.table.to_batches()
        if not batches:
            batches = [pa.RecordBatch.from_pylist([], schema=self.table.schema)]
        yield from batches

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Table."""
        return self.table.schema
