"""Plan nodes that summarize data.

Before doing any analysis it's important to understand
what the data looks like: which columns it has, of which types,
how many values are missing, how the numbers are distributed
and how they relate to each other.

This module implements the nodes that provide that overview:

* :class:`InfoNode` describes the structure of the data.
* :class:`DescribeNode` computes summary statistics of numeric columns.
* :class:`CorrelationNode` computes how numeric columns relate to each other.
* :class:`ValueCountsNode` counts how frequent each value of a column is.

The result of each of those nodes is a new table,
so it can be printed, saved or further processed like any other data.
"""

import math

import pyarrow as pa
import pyarrow.compute as pc

from .aggregate import AggregateNode, CountAggregation
from .base import QueryPlanNode, require_columns
from .sorting import SortNode


def is_numeric(type: pa.DataType) -> bool:
    """If the type holds numbers that can be used in statistics."""
    return (
        pa.types.is_integer(type)
        or pa.types.is_floating(type)
        or pa.types.is_decimal(type)
    )


class InfoNode(QueryPlanNode):
    """Describe the structure of the data.

    Emits one row for each column of the data, with
    its type and how many values are present or missing.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"name": ["Alice", None], "age": [25, 30]})
    >>> next(InfoNode(PyArrowTableDataSource(data)).batches()).to_pydict()
    {'column': ['name', 'age'], 'type': ['string', 'int64'], 'non_null': [1, 2], 'null': [1, 0]}
    """

    def __init__(self, child: QueryPlanNode) -> None:
        """
        :param child: The node emitting the data to describe.
        """
        self.child = child

    def __str__(self) -> str:
        return f"InfoNode({self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Count the present and missing values of each column, batch by batch."""
        schema = None
        non_null: dict[str, int] = {}
        nulls: dict[str, int] = {}
        for batch in self.child.batches():
            schema = batch.schema
            for name in batch.column_names:
                column = batch.column(name)
                nulls[name] = nulls.get(name, 0) + column.null_count
                non_null[name] = non_null.get(name, 0) + len(column) - column.null_count

        names = schema.names if schema is not None else []
        yield pa.record_batch(
            {
                "column": pa.array(names, type=pa.string()),
                "type": pa.array([str(schema.field(n).type) for n in names], type=pa.string()),
                "non_null": pa.array([non_null[n] for n in names], type=pa.int64()),
                "null": pa.array([nulls[n] for n in names], type=pa.int64()),
            }
        )


class DescribeNode(QueryPlanNode):
    """Compute summary statistics of the numeric columns.

    For each numeric column computes the count of values,
    their mean, standard deviation, minimum, the requested
    percentiles and the maximum. Missing values are ignored.

    The result has one row per statistic and one column per
    numeric column of the data, the ``statistic`` column
    provides the name of each statistic::

        statistic | age   | salary
        --------- | ----- | --------
        count     | 4.00  | 4.00
        mean      | 32.50 | 45000.00
        ...

    Percentiles are computed with linear interpolation
    between the closest values.
    """

    def __init__(
        self,
        child: QueryPlanNode,
        percentiles: tuple[float, ...] = (0.25, 0.5, 0.75),
    ) -> None:
        """
        :param child: The node emitting the data to describe.
        :param percentiles: Which percentiles to compute, between 0 and 1.
        """
        if any(not 0 <= p <= 1 for p in percentiles):
            raise ValueError("percentiles must be between 0 and 1")
        self.child = child
        self.percentiles = tuple(percentiles)

    def __str__(self) -> str:
        return f"DescribeNode(percentiles={self.percentiles}, {self.child})"

    @property
    def statistics(self) -> list[str]:
        """The names of the computed statistics, in order."""
        return (
            ["count", "mean", "std", "min"]
            + [f"{p * 100:g}%" for p in self.percentiles]
            + ["max"]
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        data = self.child.collect()
        numeric = [f.name for f in data.schema if is_numeric(f.type)]
        if not numeric:
            raise ValueError("No numeric columns to describe")
        if "statistic" in numeric:
            raise ValueError("Can't describe a numeric column named 'statistic'")

        result = {"statistic": pa.array(self.statistics, type=pa.string())}
        for name in numeric:
            column = pc.cast(data.column(name), pa.float64())
            values = [
                float(pc.count(column).as_py()),
                pc.mean(column).as_py(),
                pc.stddev(column, ddof=1).as_py(),
                pc.min(column).as_py(),
            ]
            if self.percentiles:
                values.extend(
                    pc.quantile(
                        column, q=list(self.percentiles), interpolation="linear"
                    ).to_pylist()
                )
            values.append(pc.max(column).as_py())
            result[name] = pa.array(values, type=pa.float64())
        yield pa.record_batch(result)


class CorrelationNode(QueryPlanNode):
    """Compute the correlation matrix of numeric columns.

    The correlation of each pair of columns is computed only on
    the rows where both columns have a value. Columns whose values
    are all the same have no correlation and produce missing values.

    Two methods are supported:

    * ``pearson``: the linear correlation coefficient.
    * ``spearman``: the pearson correlation of the ranks of
      the values, ties get the average of their ranks.

    The result has a ``column`` column with the name of each
    correlated column, followed by one column per correlated column.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"x": [1, 2, 3, 4], "y": [2, 4, 6, 8], "z": [4, 3, 2, 1]})
    >>> next(CorrelationNode(PyArrowTableDataSource(data)).batches()).to_pydict()
    {'column': ['x', 'y', 'z'], 'x': [1.0, 1.0, -1.0], 'y': [1.0, 1.0, -1.0], 'z': [-1.0, -1.0, 1.0]}
    """

    METHODS = ("pearson", "spearman")

    def __init__(
        self,
        child: QueryPlanNode,
        columns: list[str] | None = None,
        method: str = "pearson",
    ) -> None:
        """
        :param child: The node emitting the data.
        :param columns: Which columns to correlate, ``None`` for all numeric columns.
        :param method: ``pearson`` or ``spearman``.
        """
        if method not in self.METHODS:
            raise ValueError(f"method must be one of {self.METHODS}, not {method!r}")
        self.child = child
        self.columns = columns
        self.method = method

    def __str__(self) -> str:
        return f"CorrelationNode(columns={self.columns}, method={self.method}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        data = self.child.collect()
        if self.columns is None:
            columns = [f.name for f in data.schema if is_numeric(f.type)]
        else:
            require_columns(data, self.columns)
            columns = self.columns
            not_numeric = [c for c in columns if not is_numeric(data.schema.field(c).type)]
            if not_numeric:
                raise ValueError(f"Can't correlate non numeric columns: {', '.join(not_numeric)}")
        if not columns:
            raise ValueError("No numeric columns to correlate")

        values = {
            name: pc.cast(data.column(name), pa.float64()).combine_chunks()
            for name in columns
        }
        matrix: dict[str, list[float | None]] = {name: [] for name in columns}
        for row_name in columns:
            for col_name in columns:
                matrix[col_name].append(
                    self._correlate(values[row_name], values[col_name])
                )

        result = {"column": pa.array(columns, type=pa.string())}
        for name in columns:
            result[name] = pa.array(matrix[name], type=pa.float64())
        yield pa.record_batch(result)

    def _correlate(self, x: pa.Array, y: pa.Array) -> float | None:
        """Correlation of two columns on the rows where both have a value."""
        both_valid = pc.and_(pc.is_valid(x), pc.is_valid(y))
        x = x.filter(both_valid)
        y = y.filter(both_valid)
        if len(x) < 2:
            return None
        if self.method == "spearman":
            x = average_rank(x)
            y = average_rank(y)

        x_dev = pc.subtract(x, pc.mean(x))
        y_dev = pc.subtract(y, pc.mean(y))
        covariance = pc.sum(pc.multiply(x_dev, y_dev)).as_py()
        x_var = pc.sum(pc.multiply(x_dev, x_dev)).as_py()
        y_var = pc.sum(pc.multiply(y_dev, y_dev)).as_py()
        if x_var == 0 or y_var == 0:
            return None
        # Clamp rounding errors, a correlation can't be outside [-1, 1]
        return max(-1.0, min(1.0, covariance / math.sqrt(x_var * y_var)))


def average_rank(values: pa.Array) -> pa.Array:
    """Rank the values, giving to tied values the average of their ranks.

    >>> import pyarrow as pa
    >>> average_rank(pa.array([10, 20, 20, 30])).to_pylist()
    [1.0, 2.5, 2.5, 4.0]
    """
    lowest = pc.rank(values, sort_keys="ascending", tiebreaker="min")
    highest = pc.rank(values, sort_keys="ascending", tiebreaker="max")
    return pc.divide(
        pc.add(pc.cast(lowest, pa.float64()), pc.cast(highest, pa.float64())), 2.0
    )


class ValueCountsNode(QueryPlanNode):
    """Count how many times each value of a column appears.

    Values are sorted from the most frequent to the least frequent,
    values that appear the same number of times keep the order in
    which they first appeared in the data. Missing values are not counted.

    With ``normalize=True`` the proportion of each value,
    instead of the count, is provided in a ``proportion`` column.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"city": ["Rome", "Milan", "Milan", None, "Turin"]})
    >>> next(ValueCountsNode("city", PyArrowTableDataSource(data)).batches()).to_pydict()
    {'city': ['Milan', 'Rome', 'Turin'], 'count': [2, 1, 1]}
    """

    def __init__(self, column: str, child: QueryPlanNode, normalize: bool = False) -> None:
        """
        :param column: The column whose values have to be counted.
        :param child: The node emitting the data.
        :param normalize: Provide proportions instead of counts.
        """
        self.column = column
        self.child = child
        self.normalize = normalize
        self.output = "proportion" if normalize else "count"
        if column == self.output:
            raise ValueError(f"Can't count values of a column named {column!r}")

    def __str__(self) -> str:
        return f"ValueCountsNode({self.column}, normalize={self.normalize}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Count the values grouping by them and sort by the counts.

        Grouping by a single key emits the groups in order of first
        appearance and sorting is stable, which gives the tie ordering.
        """
        counts = SortNode(
            ["count"],
            [True],
            AggregateNode(
                [self.column], {"count": CountAggregation(self.column)}, self.child
            ),
        )
        for batch in counts.batches():
            if self.normalize:
                total = pc.sum(batch.column("count")).as_py() or 0
                proportions = pc.divide(
                    pc.cast(batch.column("count"), pa.float64()), float(total or 1)
                )
                batch = pa.record_batch(
                    [batch.column(self.column), proportions],
                    names=[self.column, self.output],
                )
            yield batch
