import pyarrow as pa
import pytest

from tablecook.compute import PyArrowTableDataSource
from tablecook.compute.join import JoinNode
from tablecook.errors import ColumnNotFoundError

# Sample data for testing
LEFT_TEST_DATA = pa.record_batch(
    {
        "id": pa.array([1, 2, 3, 4]),
        "name": pa.array(["Alice", "Bob", "Charlie", "David"]),
    }
)

RIGHT_TEST_DATA = pa.record_batch(
    {
        "id": pa.array([3, 4, 5, 6]),
        "age": pa.array([25, 30, 35, 40]),
    }
)


@pytest.fixture
def left_data_source():
    return PyArrowTableDataSource(LEFT_TEST_DATA)


@pytest.fixture
def right_data_source():
    return PyArrowTableDataSource(RIGHT_TEST_DATA)


@pytest.mark.parametrize(
    "how,expected_output",
    [
        (
            "inner",
            {"id": [3, 4], "name": ["Charlie", "David"], "age": [25, 30]},
        ),
        (
            "left",
            {
                "id": [1, 2, 3, 4],
                "name": ["Alice", "Bob", "Charlie", "David"],
                "age": [None, None, 25, 30],
            },
        ),
        (
            "right",
            {
                "id": [3, 4, 5, 6],
                "name": ["Charlie", "David", None, None],
                "age": [25, 30, 35, 40],
            },
        ),
        (
            "outer",
            {
                "id": [1, 2, 3, 4, 5, 6],
                "name": ["Alice", "Bob", "Charlie", "David", None, None],
                "age": [None, None, 25, 30, 35, 40],
            },
        ),
    ],
)
def test_join_node(left_data_source, right_data_source, how, expected_output):
    join_node = JoinNode("id", "id", left_data_source, right_data_source, how=how)
    result = next(join_node.batches())
    assert result.to_pydict() == expected_output


def test_join_str(left_data_source, right_data_source):
    join_node = JoinNode("id", "id", left_data_source, right_data_source)
    assert str(join_node) == (
        "JoinNode(how=inner, left_keys=['id'], right_keys=['id'], "
        "left=PyArrowTableDataSource(columns=['id', 'name'], rows=4), "
        "right=PyArrowTableDataSource(columns=['id', 'age'], rows=4))"
    )


def test_join_different_key_names(left_data_source):
    right = PyArrowTableDataSource(
        pa.record_batch({"person_id": [2, 4], "city": ["Rome", "Milan"]})
    )
    result = next(JoinNode("id", "person_id", left_data_source, right).batches())
    assert result.to_pydict() == {
        "id": [2, 4],
        "name": ["Bob", "David"],
        "city": ["Rome", "Milan"],
    }


def test_join_multiple_matches_and_suffix(left_data_source):
    right = PyArrowTableDataSource(
        pa.record_batch({"id": [1, 1, 3], "name": ["Al", "Ally", "Charlie C."]})
    )
    result = next(JoinNode(["id"], ["id"], left_data_source, right).batches())
    assert result.to_pydict() == {
        "id": [1, 1, 3],
        "name": ["Alice", "Alice", "Charlie"],
        "name_right": ["Al", "Ally", "Charlie C."],
    }


def test_join_multiple_keys():
    left = PyArrowTableDataSource(
        pa.record_batch({"year": [2023, 2023, 2024], "month": [1, 2, 1], "sales": [10, 20, 30]})
    )
    right = PyArrowTableDataSource(
        pa.record_batch({"year": [2024, 2023], "month": [1, 2], "target": [25, 15]})
    )
    result = next(JoinNode(["year", "month"], ["year", "month"], left, right).batches())
    assert result.to_pydict() == {
        "year": [2023, 2024],
        "month": [2, 1],
        "sales": [20, 30],
        "target": [15, 25],
    }


def test_join_missing_keys_never_match():
    left = PyArrowTableDataSource(pa.record_batch({"k": [1, None], "a": ["x", "y"]}))
    right = PyArrowTableDataSource(pa.record_batch({"k": [None, 1], "b": ["z", "w"]}))
    result = next(JoinNode("k", "k", left, right, how="outer").batches())
    assert result.to_pydict() == {
        "k": [1, None, None],
        "a": ["x", "y", None],
        "b": ["w", None, "z"],
    }


def test_join_without_matches_keeps_schema(left_data_source):
    right = PyArrowTableDataSource(pa.record_batch({"id": [10], "age": [1]}))
    result = next(JoinNode("id", "id", left_data_source, right).batches())
    assert result.num_rows == 0
    assert result.column_names == ["id", "name", "age"]


def test_join_invalid_arguments(left_data_source, right_data_source):
    with pytest.raises(ValueError):
        JoinNode(["id"], [], left_data_source, right_data_source)
    with pytest.raises(ValueError):
        JoinNode("id", "id", left_data_source, right_data_source, how="cross")


def test_join_missing_key_column(left_data_source, right_data_source):
    join_node = JoinNode("id", "person_id", left_data_source, right_data_source)
    with pytest.raises(ColumnNotFoundError):
        next(join_node.batches())
