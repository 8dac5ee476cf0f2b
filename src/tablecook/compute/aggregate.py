"""Plan nodes that compute aggregations.

Frequently when analysing data is necessary
to compute statistics like the min, max, average, etc...
of the data stored in datasets.

The aggregate node is in charge of computing
those aggregations and projecting them as new
columns in a plan.

Typically the aggregate node will group the data
by a set of columns and then compute the aggregations

For example, given the following data::

    city, shop, n_employees
    New York, Shop A, 10
    New York, Shop B, 15
    Los Angeles, Shop C, 8
    Los Angeles, Shop D, 12
    New York, Shop E, 20

We could group by city and compute the sum of the employees
to get::

    city, total_employees
    New York, 45
    Los Angeles, 20

Aggregations can also be referred to by name through
the :data:`AGGREGATIONS` registry, which is what the
Dataframe API and the command line use::

    >>> AGGREGATIONS["sum"]("n_employees")
    SumAggregation(n_employees)
"""

import abc
import math
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, require_columns

__all__ = (
    "AggregateNode",
    "Aggregation",
    "SumAggregation",
    "MinAggregation",
    "MaxAggregation",
    "CountAggregation",
    "MeanAggregation",
    "StdAggregation",
    "CountDistinctAggregation",
    "FirstAggregation",
    "AGGREGATIONS",
    "get_aggregation",
)


class AggregateNode(QueryPlanNode):
    """Group data and compute aggregations.

    With a single grouping key the groups are emitted in the
    order their key first appears in the data, with multiple
    keys the groups are sorted by the keys.
    Rows where a grouping key is missing are not part of any group.

    When no key is provided, the whole data is a single group
    and the result will contain only one row.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from tablecook.compute import col, lit, SumAggregation, PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...    'city': pa.array(['New York', 'New York', 'Los Angeles', 'Los Angeles', 'New York']),
    ...    'shop': pa.array(['Shop A', 'Shop B', 'Shop C', 'Shop D', 'Shop E']),
    ...    'n_employees': pa.array([10, 15, 8, 12, 20])
    ... })
    >>> aggregate = AggregateNode(["city"], {"total_employees": SumAggregation("n_employees")}, PyArrowTableDataSource(data))
    >>> next(aggregate.batches())
    pyarrow.RecordBatch
    city: string
    total_employees: int64
    ----
    city: ["New York","Los Angeles"]
    total_employees: [45,20]
    """

    def __init__(
        self,
        keys: list[str],
        aggregations: dict[str, "Aggregation"],
        child: QueryPlanNode,
    ) -> None:
        """
        :param keys: The columns to group by.
        :param aggregations: The aggregations to compute in the form of {"new_col_name": Aggregation}.
        :param child: The child node that will provide the data to aggregate.
        """
        if not aggregations:
            raise ValueError("At least one aggregation is required")
        overlapping = set(keys) & set(aggregations)
        if overlapping:
            raise ValueError(
                f"Aggregations can't replace the grouping keys: {', '.join(sorted(overlapping))}"
            )
        self.keys = keys
        self.aggregations = aggregations
        self.child = child

    def __str__(self) -> str:
        return f"AggregateNode(keys={self.keys}, aggregations={self.aggregations}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Group the data of the child node and compute the aggregations.

        Each batch emitted by the child is split in groups and
        the aggregations are computed for each group in the batch.
        Once all batches were consumed the partial results of each
        group are combined in the final result, which is emitted
        as a single batch.
        """
        if not self.keys:
            yield from self.total_aggregation()
        elif len(self.keys) == 1:
            yield from self.single_key_aggregation()
        else:
            yield from self.multi_key_aggregation()

    def _compute_chunks(
        self,
        chunks_data: dict[Any, dict[str, list[Any]]],
        key: Any,
        chunk: pa.RecordBatch,
    ) -> None:
        """Record the partial aggregation results of a chunk of rows sharing the same key."""
        group = chunks_data.setdefault(key, {})
        for name, aggregation in self.aggregations.items():
            group.setdefault(name, []).append(aggregation.compute_chunk(chunk))

    def _check_columns(self, batch: pa.RecordBatch) -> None:
        require_columns(
            batch, self.keys + [a.column for a in self.aggregations.values()]
        )

    def total_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregations on the whole data as a single group."""
        chunks_data: dict[Any, dict[str, list[Any]]] = {}
        schema = None
        for batch in self.child.batches():
            self._check_columns(batch)
            schema = batch.schema
            self._compute_chunks(chunks_data, (), batch)
        yield self.reduce_aggregations(chunks_data, schema)

    def single_key_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregation for a single key.

        This is an optimized path where we can rely on dictionary encoding
        to find the unique values of the key column and then filter the rows.
        """
        # Compute separate aggregation results for each batch.
        # This makes so that we need to keep in memory only one batch
        # at the time, and the aggregation results, which are far smaller
        #   chunks_data = {key_value: {aggr_name: [aggr_value1, aggr_value2, ...]}}
        chunks_data: dict[pa.Scalar, dict[str, list[Any]]] = {}
        schema = None
        for batch in self.child.batches():
            self._check_columns(batch)
            schema = batch.schema

            # Dictionary Encode the key variable,
            # so we can get the unique values (in order of appearance)
            # and we can know at which rows each value is.
            # Missing keys are not part of the dictionary, so their
            # rows never match any of the unique values.
            key_column = pc.dictionary_encode(batch.column(self.keys[0]))
            key_values = key_column.dictionary
            key_indices = key_column.indices

            for idx, keyval in enumerate(key_values):
                mask = pc.equal(key_indices, idx)
                filtered_batch = batch.filter(mask)
                self._compute_chunks(chunks_data, keyval, filtered_batch)

        # The chunks_data will contain the partial aggregation results for each key value
        # For example it could look like {"New York": {"total_employees": [10, 20, 30]}}
        # Now we need to reduce the partial aggregation results to get the final aggregation results
        # Which would lead to {"New York": {"total_employees": 60}}
        yield self.reduce_aggregations(chunks_data, schema)

    def multi_key_aggregation(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregation for multiple keys.

        In this case we will have to manually implement the grouping
        as we can't rely on dictionary encoding to find the unique values
        of multiple columns at once.
        """
        sorting_key = [(k, "ascending") for k in self.keys]
        chunks_data: dict[tuple[pa.Scalar, ...], dict[str, list[Any]]] = {}
        schema = None
        for batch in self.child.batches():
            self._check_columns(batch)
            schema = batch.schema

            # Rows with a missing key are not part of any group.
            valid = pc.is_valid(batch.column(self.keys[0]))
            for key in self.keys[1:]:
                valid = pc.and_(valid, pc.is_valid(batch.column(key)))
            batch = batch.filter(valid)

            # First sort the data by the aggregation keys,
            # this makes sure that we can compute the aggregation in a single pass.
            # All the values for the same grouping key will be sequential
            # For example:
            #    Los Angeles, Shop A, 8
            #    New York, Shop A, 10
            #    New York, Shop B, 20
            # so until the key changes we can compute the aggregation.
            sorted_batch = batch.sort_by(sorting_key)
            key_columns = [sorted_batch.column(k) for k in self.keys]
            current_key = None
            chunk_start = 0
            for row_index in range(sorted_batch.num_rows):
                row_key = tuple(column[row_index] for column in key_columns)
                if current_key is None:
                    current_key = row_key
                if row_key != current_key:
                    # the key has changed, this means we finished a chunk of
                    # rows with the same key, we can compute the aggregation for this chunk.
                    chunk = sorted_batch.slice(chunk_start, row_index - chunk_start)
                    self._compute_chunks(chunks_data, current_key, chunk)
                    current_key = row_key
                    chunk_start = row_index

            # Compute the aggregation for the last chunk
            if current_key is not None:
                chunk = sorted_batch.slice(chunk_start)
                self._compute_chunks(chunks_data, current_key, chunk)

        # Groups coming from different batches have to be merged in order.
        ordered = dict(
            sorted(chunks_data.items(), key=lambda item: [v.as_py() for v in item[0]])
        )
        yield self.reduce_aggregations(ordered, schema)

    def reduce_aggregations(
        self, chunks_data: dict[Any, dict[str, list[Any]]], schema: pa.Schema | None
    ) -> pa.RecordBatch:
        """Reduce the partial aggregation results to the final aggregation results.

        All the grouping strategies end up computing the aggregations
        for each chunk separately, this method will reduce the partial aggregation
        results to the final aggregation results.

        For example if we had 3 chunks and the chunks_data is::

            {"New York": {"total_employees": [10, 20, 30]}}

        The result will be::

            {"New York": {"total_employees": 60}}
        """
        # Prepare one column for each key and aggregation
        keys_data: dict[str, list[Any]] = {k: [] for k in self.keys}
        aggregations_data: dict[str, list[Any]] = {k: [] for k in self.aggregations}

        for keyvalue, aggregated_values in chunks_data.items():
            if isinstance(keyvalue, tuple):
                # multiple (or no) aggregation keys
                for i, key in enumerate(self.keys):
                    keys_data[key].append(keyvalue[i])
            else:
                # single aggregation key
                keys_data[self.keys[0]].append(keyvalue)
            for aggrname, aggregation in self.aggregations.items():
                aggregations_data[aggrname].append(
                    aggregation.reduce(aggregated_values[aggrname])
                )

        columns = {}
        for key, values in keys_data.items():
            key_type = schema.field(key).type if schema is not None else None
            if pa.types.is_dictionary(key_type):
                key_type = key_type.value_type
            columns[key] = scalars_to_array(values, key_type)
        for aggrname, values in aggregations_data.items():
            columns[aggrname] = scalars_to_array(values)
        return pa.record_batch(columns)


def scalars_to_array(values: list[Any], type: pa.DataType | None = None) -> pa.Array:
    """Build an array out of a list of scalars or python values.

    When no type is provided, the type of the first
    non missing :class:`pyarrow.Scalar` is used.
    """
    if type is None:
        type = next(
            (v.type for v in values if isinstance(v, pa.Scalar) and v.is_valid), None
        )
    pyvalues = [v.as_py() if isinstance(v, pa.Scalar) else v for v in values]
    return pa.array(pyvalues, type=type)


class Aggregation(abc.ABC):
    """Base class for aggregations.

    Every aggregation is expected to implement
    a method to compute any needed intermediate results
    on a single chunk of data and then provide a reduce method
    to combine the intermediate results into a final result.
    """

    def __init__(self, column: str) -> None:
        """
        :param column: The column holding the values to aggregate.
        """
        self.column = column

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.column})"

    __repr__ = __str__

    @abc.abstractmethod
    def compute_chunk(self, batch: pa.RecordBatch) -> Any: ...

    @abc.abstractmethod
    def reduce(self, chunks: list[Any]) -> Any: ...


class SimpleAggregation(Aggregation):
    """Provide a base implementation for simple aggregations like min,max,sum.

    Simple aggregations are those where the function applied to compute
    intermediate results for a single chunk of data is the same as the function
    applied to combine the intermediate results into the final.

    For example ``sum([1, 2, 3])`` is the same as ``sum([sum([1, 2]), 3])``.
    """

    @abc.abstractmethod
    def _aggregate(self, data: Any) -> pa.Scalar: ...

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        return self._aggregate(batch.column(self.column))

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        valid = [chunk for chunk in chunks if chunk.is_valid]
        if not valid:
            return chunks[0]
        return self._aggregate(scalars_to_array(valid))


class SumAggregation(SimpleAggregation):
    """Compute the sum of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.sum(data)


class MinAggregation(SimpleAggregation):
    """Compute the min of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.min(data)


class MaxAggregation(SimpleAggregation):
    """Compute the max of an aggregated column."""

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.max(data)


class CountAggregation(Aggregation):
    """Compute the count of the non missing values of an aggregated column.

    This is based on computing the counts for each intermediate batch
    and then sum them to compute the final result.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> int:
        """Compute the count of the column in a single batch."""
        return pc.count(batch.column(self.column)).as_py()

    def reduce(self, chunks: list[int]) -> pa.Scalar:
        """Sum the counts of all intermediate results to the final count."""
        return pa.scalar(sum(chunks), type=pa.int64())


class MeanAggregation(Aggregation):
    """Compute the mean of an aggregated column.

    This is based by computing count and sum of the column
    for each intermediate batch and then dividing
    the sum of all intermediate results by the count
    of all intermediate results.

    The mean is always a floating point number,
    even for integer columns.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> tuple[int, float]:
        """Compute the count and sum of the column in a single batch."""
        col = batch.column(self.column)
        total = pc.sum(col).as_py()
        return (pc.count(col).as_py(), float(total or 0))

    def reduce(self, chunks: list[tuple[int, float]]) -> pa.Scalar:
        """Compute the mean of the column from the intermediate sums and counts."""
        count = sum(chunk[0] for chunk in chunks)
        total = sum(chunk[1] for chunk in chunks)
        if count == 0:
            return pa.scalar(None, type=pa.float64())
        return pa.scalar(total / count, type=pa.float64())


class StdAggregation(Aggregation):
    """Compute the sample standard deviation of an aggregated column.

    Each chunk provides its count, mean and sum of squared
    deviations from the mean, chunks are then merged pairwise
    so that large values with a small spread keep their precision.
    Groups with less than two values have no standard deviation.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> tuple[int, float, float]:
        col = pc.cast(batch.column(self.column), pa.float64())
        count = pc.count(col).as_py()
        if count == 0:
            return (0, 0.0, 0.0)
        mean = pc.mean(col).as_py()
        m2 = pc.variance(col, ddof=0).as_py() * count
        return (count, mean, m2)

    def reduce(self, chunks: list[tuple[int, float, float]]) -> pa.Scalar:
        count, mean, m2 = 0, 0.0, 0.0
        for chunk_count, chunk_mean, chunk_m2 in chunks:
            if chunk_count == 0:
                continue
            total = count + chunk_count
            delta = chunk_mean - mean
            m2 = m2 + chunk_m2 + delta * delta * count * chunk_count / total
            mean = mean + delta * chunk_count / total
            count = total
        if count < 2:
            return pa.scalar(None, type=pa.float64())
        return pa.scalar(math.sqrt(m2 / (count - 1)), type=pa.float64())


class CountDistinctAggregation(Aggregation):
    """Count how many different values an aggregated column has.

    Missing values are not counted.
    """

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Array:
        return pc.unique(pc.drop_null(batch.column(self.column)))

    def reduce(self, chunks: list[pa.Array]) -> pa.Scalar:
        values = pa.chunked_array(chunks)
        return pa.scalar(len(pc.unique(values)), type=pa.int64())


class FirstAggregation(Aggregation):
    """Take the first non missing value of an aggregated column."""

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        values = pc.drop_null(batch.column(self.column))
        if len(values) == 0:
            return pa.scalar(None, type=values.type)
        return values[0]

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        for value in chunks:
            if value.is_valid:
                return value
        return chunks[0]


AGGREGATIONS: dict[str, type[Aggregation]] = {
    "sum": SumAggregation,
    "min": MinAggregation,
    "max": MaxAggregation,
    "count": CountAggregation,
    "mean": MeanAggregation,
    "std": StdAggregation,
    "nunique": CountDistinctAggregation,
    "first": FirstAggregation,
}


def get_aggregation(name: str, column: str) -> Aggregation:
    """Build an aggregation by its name.

    >>> get_aggregation("mean", "age")
    MeanAggregation(age)
    """
    try:
        aggregation_class = AGGREGATIONS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported aggregation {name!r}, use one of: {', '.join(AGGREGATIONS)}"
        ) from None
    return aggregation_class(column)
