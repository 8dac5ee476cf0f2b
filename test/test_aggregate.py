import pyarrow as pa
import pytest

from tablecook.compute import PyArrowTableDataSource
from tablecook.compute.aggregate import (
    AGGREGATIONS,
    AggregateNode,
    CountAggregation,
    CountDistinctAggregation,
    FirstAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    StdAggregation,
    SumAggregation,
    get_aggregation,
)
from tablecook.compute.base import QueryPlanNode
from tablecook.errors import ColumnNotFoundError

ORDERS = pa.record_batch(
    {
        "region": ["North", "North", "South", "South", "North"],
        "product": ["Tea", "Coffee", "Tea", "Juice", "Coffee"],
        "units": [10, 15, 8, 12, 20],
    }
)


@pytest.mark.parametrize(
    "aggregation, by_region, by_region_product",
    [
        (SumAggregation, [45, 20], [35, 10, 12, 8]),
        (MinAggregation, [10, 8], [15, 10, 12, 8]),
        (MaxAggregation, [20, 12], [20, 10, 12, 8]),
        (CountAggregation, [3, 2], [2, 1, 1, 1]),
        (MeanAggregation, [15.0, 10.0], [17.5, 10.0, 12.0, 8.0]),
    ],
)
def test_aggregations(aggregation, by_region, by_region_product):
    source = PyArrowTableDataSource(ORDERS)

    result = next(AggregateNode(["region"], {"out": aggregation("units")}, source).batches())
    # A single key keeps the order in which groups first appear.
    assert result.to_pydict() == {"region": ["North", "South"], "out": by_region}

    result = next(
        AggregateNode(["region", "product"], {"out": aggregation("units")}, source).batches()
    )
    # Multiple keys are sorted.
    assert result.to_pydict() == {
        "region": ["North", "North", "South", "South"],
        "product": ["Coffee", "Tea", "Juice", "Tea"],
        "out": by_region_product,
    }


def test_mean_is_always_float():
    aggregate = AggregateNode(
        ["region"], {"avg": MeanAggregation("units")}, PyArrowTableDataSource(ORDERS)
    )
    result = next(aggregate.batches())
    assert result.schema.field("avg").type == pa.float64()


@pytest.mark.parametrize("keys", [["region"], ["region", "product"]])
def test_aggregate_node_str(keys):
    aggregate = AggregateNode(
        keys, {"total": SumAggregation("units")}, PyArrowTableDataSource(ORDERS)
    )
    assert str(aggregate) == (
        "AggregateNode(keys=%r, aggregations={'total': SumAggregation(units)}, "
        "PyArrowTableDataSource(columns=['region', 'product', 'units'], rows=5))"
        % (keys,)
    )


def test_many_groups():
    data = pa.record_batch(
        {
            "store": [f"Store{i % 4}" for i in range(40)],
            "day": [f"Day{i % 5}" for i in range(40)],
            "units": [1] * 40,
        }
    )
    source = PyArrowTableDataSource(data)

    by_store = next(
        AggregateNode(["store"], {"orders": CountAggregation("units")}, source).batches()
    )
    assert by_store.to_pydict() == {
        "store": ["Store0", "Store1", "Store2", "Store3"],
        "orders": [10, 10, 10, 10],
    }

    by_store_day = next(
        AggregateNode(["store", "day"], {"orders": CountAggregation("units")}, source).batches()
    )
    assert by_store_day.num_rows == 20
    assert by_store_day.column("store").to_pylist() == [
        f"Store{s}" for s in range(4) for _ in range(5)
    ]
    assert by_store_day.column("day").to_pylist() == [
        f"Day{d}" for _ in range(4) for d in range(5)
    ]
    assert by_store_day.column("orders").to_pylist() == [2] * 20


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        for batch in self._batches:
            yield batch

    def __str__(self):
        return "MockQueryPlanNode"


SPLIT_DATA = [
    pa.record_batch({"city": ["Rome", "Milan", None], "sales": [10, 5, 99]}),
    pa.record_batch({"city": ["Turin", "Rome", "Rome"], "sales": [None, 20, 30]}),
]


def test_single_key_groups_across_batches():
    aggregate = AggregateNode(
        ["city"],
        {"total": SumAggregation("sales"), "orders": CountAggregation("sales")},
        MockQueryPlanNode(SPLIT_DATA),
    )
    result = next(aggregate.batches())
    # Groups in order of first appearance, missing keys are excluded.
    assert result.to_pydict() == {
        "city": ["Rome", "Milan", "Turin"],
        "total": [60, 5, None],
        "orders": [3, 1, 0],
    }


def test_multi_key_groups_across_batches():
    batches = [
        pa.record_batch({"a": ["x", "y", "x"], "b": [1, 1, None], "v": [1, 2, 3]}),
        pa.record_batch({"a": ["y", "x"], "b": [1, 2], "v": [4, 5]}),
    ]
    aggregate = AggregateNode(
        ["a", "b"], {"total": SumAggregation("v")}, MockQueryPlanNode(batches)
    )
    result = next(aggregate.batches())
    assert result.to_pydict() == {"a": ["x", "x", "y"], "b": [1, 2, 1], "total": [1, 5, 6]}


def test_total_aggregation():
    aggregate = AggregateNode(
        [],
        {"mean": MeanAggregation("sales"), "max": MaxAggregation("sales")},
        MockQueryPlanNode(SPLIT_DATA),
    )
    assert next(aggregate.batches()).to_pydict() == {"mean": [32.8], "max": [99]}


def test_std_aggregation():
    data = pa.record_batch({"g": ["a", "a", "a", "b"], "v": [2.0, 4.0, 6.0, 1.0]})
    aggregate = AggregateNode(
        ["g"], {"std": StdAggregation("v")}, PyArrowTableDataSource(data)
    )
    result = next(aggregate.batches())
    assert result.column("std").to_pylist() == [pytest.approx(2.0), None]


def test_std_of_large_values():
    data = pa.record_batch({"g": ["a", "a", "a"], "v": [1e9 + 1, 1e9 + 2, 1e9 + 3]})
    aggregate = AggregateNode(
        ["g"], {"std": StdAggregation("v")}, PyArrowTableDataSource(data)
    )
    result = next(aggregate.batches())
    assert result.column("std").to_pylist() == [pytest.approx(1.0)]


def test_std_of_large_values_across_batches():
    batches = [
        pa.record_batch({"v": [1e9 + 1, 1e9 + 2]}),
        pa.record_batch({"v": pa.array([None], pa.float64())}),
        pa.record_batch({"v": [1e9 + 3, 1e9 + 4]}),
    ]
    aggregate = AggregateNode([], {"std": StdAggregation("v")}, MockQueryPlanNode(batches))
    result = next(aggregate.batches())
    # Sample deviation of 1, 2, 3, 4
    assert result.column("std").to_pylist() == [pytest.approx(1.2909944, rel=1e-6)]


def test_count_distinct_and_first_aggregation():
    aggregate = AggregateNode(
        ["region"],
        {"products": CountDistinctAggregation("product"), "first": FirstAggregation("product")},
        PyArrowTableDataSource(ORDERS),
    )
    result = next(aggregate.batches())
    assert result.to_pydict() == {
        "region": ["North", "South"],
        "products": [2, 2],
        "first": ["Tea", "Tea"],
    }


def test_aggregate_empty_data():
    data = pa.table({"city": pa.array([], pa.string()), "sales": pa.array([], pa.int64())})
    aggregate = AggregateNode(
        ["city"], {"total": SumAggregation("sales")}, PyArrowTableDataSource(data)
    )
    result = next(aggregate.batches())
    assert result.num_rows == 0
    assert result.column_names == ["city", "total"]


def test_aggregate_invalid_arguments():
    source = PyArrowTableDataSource(ORDERS)
    with pytest.raises(ValueError):
        AggregateNode(["region"], {}, source)
    with pytest.raises(ValueError):
        AggregateNode(["region"], {"region": SumAggregation("units")}, source)


def test_aggregate_missing_column():
    aggregate = AggregateNode(
        ["country"], {"total": SumAggregation("units")}, PyArrowTableDataSource(ORDERS)
    )
    with pytest.raises(ColumnNotFoundError):
        next(aggregate.batches())


@pytest.mark.parametrize("name", sorted(AGGREGATIONS))
def test_get_aggregation(name):
    aggregation = get_aggregation(name.upper(), "units")
    assert isinstance(aggregation, AGGREGATIONS[name])
    assert aggregation.column == "units"


def test_get_unknown_aggregation():
    with pytest.raises(ValueError, match="Unsupported aggregation 'median'"):
        get_aggregation("median", "units")
