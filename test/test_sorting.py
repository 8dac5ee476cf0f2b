import pyarrow as pa
import pytest

from tablecook.compute.base import QueryPlanNode
from tablecook.compute.sorting import SortNode
from tablecook.errors import ColumnNotFoundError


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        for batch in self._batches:
            yield batch

    def __str__(self):
        return "MockQueryPlanNode"


def test_sort_node_single_batch():
    data = pa.record_batch({"values": [5, 3, 1, 4, 2]})
    child_node = MockQueryPlanNode([data])
    sort_node = SortNode(["values"], [False], child_node)

    sorted_batch = next(sort_node.batches())
    assert sorted_batch.column(0).to_pylist() == [1, 2, 3, 4, 5]


def test_sort_node_multiple_batches():
    data1 = pa.record_batch({"values": [5, 3]})
    data2 = pa.record_batch({"values": [1, 4, 2]})
    child_node = MockQueryPlanNode([data1, data2])
    sort_node = SortNode(["values"], [False], child_node)

    sorted_batches = list(sort_node.batches())
    sorted_values = [
        val for batch in sorted_batches for val in batch.column(0).to_pylist()
    ]
    assert sorted_values == [1, 2, 3, 4, 5]


def test_sort_node_descending():
    data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    child_node = MockQueryPlanNode([data])
    sort_node = SortNode(["values"], [True], child_node)

    sorted_batch = next(sort_node.batches())
    assert sorted_batch.column(0).to_pylist() == [5, 4, 3, 2, 1]


def test_sort_node_invalid_keys_and_descending_length():
    data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    child_node = MockQueryPlanNode([data])
    with pytest.raises(ValueError):
        SortNode(["values"], [False, True], child_node)


def test_sort_node_multiple_keys():
    data = pa.record_batch(
        {"city": ["Rome", "Milan", "Rome", "Milan"], "sales": [10, 30, 20, 5]}
    )
    sort_node = SortNode(["city", "sales"], [False, True], MockQueryPlanNode([data]))
    sorted_batch = next(sort_node.batches())
    assert sorted_batch.to_pydict() == {
        "city": ["Milan", "Milan", "Rome", "Rome"],
        "sales": [30, 5, 20, 10],
    }


def test_sort_node_is_stable():
    data = pa.record_batch({"key": [2, 1, 2, 1], "order": ["a", "b", "c", "d"]})
    sort_node = SortNode(["key"], [False], MockQueryPlanNode([data]))
    assert next(sort_node.batches()).column("order").to_pylist() == ["b", "d", "a", "c"]


@pytest.mark.parametrize(
    "nulls_last, descending, expected",
    [
        (True, False, [1, 2, 3, None]),
        (True, True, [3, 2, 1, None]),
        (False, False, [None, 1, 2, 3]),
    ],
)
def test_sort_node_null_placement(nulls_last, descending, expected):
    data = pa.record_batch({"values": [2, None, 3, 1]})
    sort_node = SortNode(
        ["values"], [descending], MockQueryPlanNode([data]), nulls_last=nulls_last
    )
    assert next(sort_node.batches()).column(0).to_pylist() == expected


def test_sort_node_missing_column():
    data = pa.record_batch({"values": [1, 2]})
    with pytest.raises(ColumnNotFoundError):
        next(SortNode(["other"], [False], MockQueryPlanNode([data])).batches())


def test_sort_node_str():
    sort_node = SortNode(["a", "b"], [False, True], MockQueryPlanNode([]))
    assert (
        str(sort_node)
        == "SortNode(sorting=[('a', 'ascending'), ('b', 'descending')], MockQueryPlanNode)"
    )
