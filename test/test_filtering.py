import pyarrow as pa
import pyarrow.compute as pc
import pytest

from tablecook.compute import FunctionCallExpression, PyArrowTableDataSource, col, lit
from tablecook.compute.base import QueryPlanNode
from tablecook.compute.filtering import FilterNode


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        for batch in self._batches:
            yield batch

    def __str__(self):
        return "MockQueryPlanNode"


@pytest.fixture
def sales():
    return pa.record_batch(
        {
            "product": ["Laptop", "Phone", "Laptop", "Tablet", None],
            "quantity": [2, 5, None, 1, 3],
        }
    )


def test_filter_str(sales):
    predicate = FunctionCallExpression(pc.equal, col("product"), lit("Laptop"))
    node = FilterNode(predicate, MockQueryPlanNode([sales]))
    assert (
        str(node)
        == "FilterNode(filter=pyarrow.compute.equal(ColumnRef(product),Literal('Laptop')), child=MockQueryPlanNode)"
    )


def test_filter_equality(sales):
    predicate = FunctionCallExpression(pc.equal, col("product"), lit("Laptop"))
    batch = next(FilterNode(predicate, PyArrowTableDataSource(sales)).batches())
    assert batch.to_pydict() == {"product": ["Laptop", "Laptop"], "quantity": [2, None]}


def test_filter_discards_missing_predicate(sales):
    predicate = FunctionCallExpression(pc.greater_equal, col("quantity"), lit(2))
    batch = next(FilterNode(predicate, PyArrowTableDataSource(sales)).batches())
    assert batch.column("quantity").to_pylist() == [2, 5, 3]


def test_filter_combined_conditions(sales):
    predicate = FunctionCallExpression(
        pc.and_,
        FunctionCallExpression(pc.equal, col("product"), lit("Laptop")),
        FunctionCallExpression(pc.is_valid, col("quantity")),
    )
    batch = next(FilterNode(predicate, PyArrowTableDataSource(sales)).batches())
    assert batch.to_pydict() == {"product": ["Laptop"], "quantity": [2]}


def test_filter_multiple_batches():
    batches = [
        pa.record_batch({"n": [1, 5, 2]}),
        pa.record_batch({"n": [7, 0]}),
    ]
    predicate = FunctionCallExpression(pc.greater, col("n"), 1)
    result = list(FilterNode(predicate, MockQueryPlanNode(batches)).batches())
    assert [b.column("n").to_pylist() for b in result] == [[5, 2], [7]]


def test_filter_no_match_keeps_schema(sales):
    predicate = FunctionCallExpression(pc.equal, col("product"), lit("Printer"))
    batch = next(FilterNode(predicate, PyArrowTableDataSource(sales)).batches())
    assert batch.num_rows == 0
    assert batch.schema == sales.schema
