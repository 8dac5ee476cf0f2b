import math

import pyarrow as pa
import pytest

from tablecook.compute import PyArrowTableDataSource
from tablecook.compute.base import QueryPlanNode
from tablecook.compute.cleaning import (
    CastNode,
    DropDuplicatesNode,
    DropNullsNode,
    FillNullNode,
    RenameNode,
)
from tablecook.errors import ColumnNotFoundError


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        for batch in self._batches:
            yield batch

    def __str__(self):
        return "MockQueryPlanNode"


@pytest.fixture
def people():
    return pa.record_batch(
        {
            "name": ["Alice", None, "Carl", None],
            "age": [25, 30, None, None],
            "city": ["Rome", "Milan", "Rome", "Turin"],
        }
    )


def _collect(node):
    return node.collect().to_pydict()


@pytest.mark.parametrize(
    "subset, how, expected_names",
    [
        (None, "any", ["Alice"]),
        (["name"], "any", ["Alice", "Carl"]),
        (["name", "age"], "all", ["Alice", None, "Carl"]),
        (["age"], "all", ["Alice", None]),
    ],
)
def test_drop_nulls(people, subset, how, expected_names):
    node = DropNullsNode(PyArrowTableDataSource(people), subset=subset, how=how)
    assert _collect(node)["name"] == expected_names


def test_drop_nulls_invalid(people):
    with pytest.raises(ValueError):
        DropNullsNode(PyArrowTableDataSource(people), how="some")
    with pytest.raises(ColumnNotFoundError):
        next(DropNullsNode(PyArrowTableDataSource(people), subset=["email"]).batches())


def test_fill_value_only_compatible_columns(people):
    node = FillNullNode(PyArrowTableDataSource(people), value=0)
    assert _collect(node) == {
        "name": ["Alice", None, "Carl", None],
        "age": [25, 30, 0, 0],
        "city": ["Rome", "Milan", "Rome", "Turin"],
    }


def test_fill_value_per_column(people):
    node = FillNullNode(PyArrowTableDataSource(people), value={"name": "Unknown", "age": -1})
    assert _collect(node) == {
        "name": ["Alice", "Unknown", "Carl", "Unknown"],
        "age": [25, 30, -1, -1],
        "city": ["Rome", "Milan", "Rome", "Turin"],
    }


def test_fill_float_mean_in_float_column():
    data = pa.record_batch({"price": [1.5, None, 3.5]})
    node = FillNullNode(PyArrowTableDataSource(data), value=2.5)
    assert _collect(node) == {"price": [1.5, 2.5, 3.5]}


def test_fill_value_skips_columns_it_does_not_fit():
    data = pa.record_batch({"qty": [1, None, 3], "price": [1.5, None, 2.5]})
    node = FillNullNode(PyArrowTableDataSource(data), value=0.5)
    assert _collect(node) == {"qty": [1, None, 3], "price": [1.5, 0.5, 2.5]}


def test_fill_forward_across_batches():
    batches = [
        pa.record_batch({"v": [1, None]}),
        pa.record_batch({"v": [None, 4, None]}),
    ]
    node = FillNullNode(MockQueryPlanNode(batches), method="forward")
    result = [b.column("v").to_pylist() for b in node.batches()]
    assert result == [[1, 1], [1, 4, 4]]


def test_fill_forward_leading_missing_values():
    data = pa.record_batch({"v": [None, 2, None]})
    node = FillNullNode(PyArrowTableDataSource(data), method="forward")
    assert _collect(node) == {"v": [None, 2, 2]}


def test_fill_backward_across_batches():
    batches = [
        pa.record_batch({"v": [None, 1, None]}),
        pa.record_batch({"v": [None, 5, None]}),
    ]
    node = FillNullNode(MockQueryPlanNode(batches), method="backward")
    assert _collect(node) == {"v": [1, 1, 5, 5, 5, None]}


def test_fill_invalid_arguments(people):
    with pytest.raises(ValueError):
        FillNullNode(PyArrowTableDataSource(people))
    with pytest.raises(ValueError):
        FillNullNode(PyArrowTableDataSource(people), value=0, method="forward")
    with pytest.raises(ValueError):
        FillNullNode(PyArrowTableDataSource(people), method="sideways")


def test_fill_str(people):
    node = FillNullNode(MockQueryPlanNode([people]), value=0)
    assert str(node) == "FillNullNode(value=0, MockQueryPlanNode)"


def test_drop_duplicates_across_batches():
    batches = [
        pa.record_batch({"name": ["Alice", "Bob", "Alice"], "age": [25, 30, 25]}),
        pa.record_batch({"name": ["Bob", "Bob", None, None], "age": [30, 31, None, None]}),
    ]
    node = DropDuplicatesNode(MockQueryPlanNode(batches))
    assert _collect(node) == {
        "name": ["Alice", "Bob", "Bob", None],
        "age": [25, 30, 31, None],
    }


@pytest.mark.parametrize(
    "keep, expected_ages",
    [
        ("first", [25, 30]),
        ("last", [26, 31]),
    ],
)
def test_drop_duplicates_subset(keep, expected_ages):
    data = pa.record_batch(
        {"name": ["Alice", "Bob", "Alice", "Bob"], "age": [25, 30, 26, 31]}
    )
    node = DropDuplicatesNode(PyArrowTableDataSource(data), subset=["name"], keep=keep)
    assert _collect(node)["age"] == expected_ages


def test_drop_duplicates_invalid_keep(people):
    with pytest.raises(ValueError):
        DropDuplicatesNode(PyArrowTableDataSource(people), keep="middle")


def test_drop_duplicates_nan_values_are_equal():
    data = pa.record_batch(
        {"sensor": ["a", "a", "b"], "reading": [float("nan"), float("nan"), 1.0]}
    )
    result = _collect(DropDuplicatesNode(PyArrowTableDataSource(data)))
    assert result["sensor"] == ["a", "b"]
    assert math.isnan(result["reading"][0])


def test_rename(people):
    node = RenameNode({"name": "first_name", "city": "town"}, PyArrowTableDataSource(people))
    assert next(node.batches()).column_names == ["first_name", "age", "town"]


def test_rename_errors(people):
    with pytest.raises(ColumnNotFoundError):
        next(RenameNode({"surname": "last_name"}, PyArrowTableDataSource(people)).batches())
    with pytest.raises(ValueError, match="duplicate columns: city"):
        next(RenameNode({"name": "city"}, PyArrowTableDataSource(people)).batches())


def test_cast():
    data = pa.record_batch({"qty": ["1", "2", None], "price": [1, 2, 3]})
    node = CastNode({"qty": "int64", "price": pa.float64()}, PyArrowTableDataSource(data))
    batch = next(node.batches())
    assert batch.schema == pa.schema([("qty", pa.int64()), ("price", pa.float64())])
    assert batch.to_pydict() == {"qty": [1, 2, None], "price": [1.0, 2.0, 3.0]}
    assert str(node) == (
        "CastNode({'qty': 'int64', 'price': 'double'}, safe=True, "
        "PyArrowTableDataSource(columns=['qty', 'price'], rows=3))"
    )


def test_cast_invalid_values():
    data = pa.record_batch({"qty": ["1", "two", "3"]})
    with pytest.raises(pa.ArrowInvalid):
        next(CastNode({"qty": "int64"}, PyArrowTableDataSource(data)).batches())

    node = CastNode({"qty": "int64"}, PyArrowTableDataSource(data), safe=False)
    assert _collect(node) == {"qty": [1, None, 3]}
