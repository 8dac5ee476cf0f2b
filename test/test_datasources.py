import os
import tempfile

import pyarrow as pa
import pyarrow.csv as csv
import pytest

from tablecook.compute.datasources import (
    CSVDataSource,
    ExcelDataSource,
    PyArrowTableDataSource,
)
from tablecook.errors import FileFormatError
from tablecook.files.excel import write_excel_rows

# Mock data for testing
MOCK_PYARROW_TABLE = pa.table({"col1": [1, 4, 7], "col2": [2, 5, 8], "col3": [3, 6, 9]})

MOCK_CSV_FILE = tempfile.NamedTemporaryFile(delete=False, mode="w+", suffix=".csv")
MOCK_EXCEL_FILE = tempfile.NamedTemporaryFile(delete=False, mode="w+", suffix=".xlsx")


def setup_module():
    csv.write_csv(MOCK_PYARROW_TABLE, MOCK_CSV_FILE.name)
    MOCK_CSV_FILE.close()
    MOCK_EXCEL_FILE.close()
    write_excel_rows(
        MOCK_EXCEL_FILE.name,
        MOCK_PYARROW_TABLE.column_names,
        [list(row.values()) for row in MOCK_PYARROW_TABLE.to_pylist()],
        sheet="Data",
    )


def teardown_module():
    os.unlink(MOCK_CSV_FILE.name)
    os.unlink(MOCK_EXCEL_FILE.name)


@pytest.mark.parametrize(
    "data_source_class, init_args, expected_str",
    [
        (
            CSVDataSource,
            (MOCK_CSV_FILE.name, None),
            f"CSVDataSource({MOCK_CSV_FILE.name}, block_size=None)",
        ),
        (
            ExcelDataSource,
            (MOCK_EXCEL_FILE.name, "Data"),
            f"ExcelDataSource({MOCK_EXCEL_FILE.name}, sheet=Data)",
        ),
        (
            PyArrowTableDataSource,
            (MOCK_PYARROW_TABLE,),
            "PyArrowTableDataSource(columns=['col1', 'col2', 'col3'], rows=3)",
        ),
        (
            PyArrowTableDataSource,
            (MOCK_PYARROW_TABLE.to_batches()[0],),
            "PyArrowTableDataSource(columns=['col1', 'col2', 'col3'], rows=3)",
        ),
    ],
)
def test_init_and_str(data_source_class, init_args, expected_str):
    data_source = data_source_class(*init_args)
    assert str(data_source) == expected_str


@pytest.mark.parametrize(
    "data_source_class, init_args, expected_batches",
    [
        (CSVDataSource, (MOCK_CSV_FILE.name, None), MOCK_PYARROW_TABLE.to_batches()),
        (
            ExcelDataSource,
            (MOCK_EXCEL_FILE.name, "Data"),
            MOCK_PYARROW_TABLE.to_batches(),
        ),
        (
            PyArrowTableDataSource,
            (MOCK_PYARROW_TABLE,),
            MOCK_PYARROW_TABLE.to_batches(),
        ),
        (
            PyArrowTableDataSource,
            (MOCK_PYARROW_TABLE.to_batches()[0],),
            MOCK_PYARROW_TABLE.to_batches(),
        ),
    ],
)
def test_batches(data_source_class, init_args, expected_batches):
    data_source = data_source_class(*init_args)
    batches = list(data_source.batches())
    assert len(batches) == len(expected_batches)
    for batch, expected_batch in zip(batches, expected_batches):
        assert batch.equals(expected_batch)


@pytest.mark.parametrize(
    "data_source",
    [
        CSVDataSource(MOCK_CSV_FILE.name),
        ExcelDataSource(MOCK_EXCEL_FILE.name),
        PyArrowTableDataSource(MOCK_PYARROW_TABLE),
    ],
)
def test_poll_schema(data_source):
    assert data_source.poll_schema() == MOCK_PYARROW_TABLE.schema


def test_csv_block_size(tmp_path):
    path = tmp_path / "numbers.csv"
    path.write_text("n\n" + "\n".join(str(i) for i in range(1000)) + "\n")

    batches = list(CSVDataSource(str(path), block_size=1024).batches())
    assert len(batches) > 1
    assert sum(b.num_rows for b in batches) == 1000


def test_csv_delimiter_and_missing_values(tmp_path):
    path = tmp_path / "people.tsv"
    path.write_text("name\tage\nAlice\t25\nBob\t\n")

    batch = next(CSVDataSource(str(path), delimiter="\t").batches())
    assert batch.to_pydict() == {"name": ["Alice", "Bob"], "age": [25, None]}


def test_csv_without_rows_emits_schema(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("a,b\n")

    batches = list(CSVDataSource(str(path)).batches())
    assert len(batches) == 1
    assert batches[0].num_rows == 0
    assert batches[0].column_names == ["a", "b"]


def test_empty_table_emits_schema():
    table = pa.table({"a": pa.array([], type=pa.int64())})
    batches = list(PyArrowTableDataSource(table).batches())
    assert len(batches) == 1
    assert batches[0].schema == table.schema


def test_missing_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        next(CSVDataSource(str(tmp_path / "missing.csv")).batches())
    with pytest.raises(FileNotFoundError):
        next(ExcelDataSource(str(tmp_path / "missing.xlsx")).batches())


def test_excel_missing_sheet():
    with pytest.raises(FileFormatError, match="Sheet 'Sales' not found"):
        next(ExcelDataSource(MOCK_EXCEL_FILE.name, sheet="Sales").batches())


def test_excel_block_size():
    batches = list(ExcelDataSource(MOCK_EXCEL_FILE.name, block_size=2).batches())
    assert [b.num_rows for b in batches] == [2, 1]
