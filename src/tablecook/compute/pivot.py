"""Plan nodes that reshape data.

Data is frequently stored in *long* format, where each
row is a single observation::

    date, city, temperature
    2024-01-01, Rome, 12
    2024-01-01, Milan, 5
    2024-01-02, Rome, 14
    2024-01-02, Milan, 4

But it's easier to compare values when they are in *wide*
format, where one of the columns provides the column names
of the result::

    date, Milan, Rome
    2024-01-01, 5, 12
    2024-01-02, 4, 14

Going from long to wide format is called pivoting and is
implemented by :class:`PivotNode`, going back from wide to
long format is called melting and is implemented by
:class:`MeltNode`.
"""

import pyarrow as pa
import pyarrow.compute as pc

from .aggregate import AggregateNode, Aggregation, get_aggregation
from .base import QueryPlanNode, require_columns
from .datasources import PyArrowTableDataSource


class PivotNode(QueryPlanNode):
    """Reshape data from long to wide format.

    The distinct values of the ``columns`` column become
    the new columns, the distinct values of the ``index`` column
    become the rows, and each cell contains the aggregation
    of ``values`` for that pair.

    If multiple rows exist for the same pair their values are
    combined using the aggregation (``mean`` by default), pairs
    that never appear in the data will hold a missing value.

    Both rows and new columns are sorted.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...     "date": ["2024-01-01", "2024-01-01", "2024-01-02"],
    ...     "city": ["Rome", "Milan", "Rome"],
    ...     "temperature": [12, 5, 14],
    ... })
    >>> pivot = PivotNode("date", "city", "temperature", PyArrowTableDataSource(data))
    >>> next(pivot.batches()).to_pydict()
    {'date': ['2024-01-01', '2024-01-02'], 'Milan': [5.0, None], 'Rome': [12.0, 14.0]}
    """

    def __init__(
        self,
        index: str,
        columns: str,
        values: str,
        child: QueryPlanNode,
        aggregation: str | type[Aggregation] = "mean",
    ) -> None:
        """
        :param index: The column whose distinct values become the rows.
        :param columns: The column whose distinct values become the new columns.
        :param values: The column that provides the values of the cells.
        :param child: The node emitting the data in long format.
        :param aggregation: How to combine multiple values for the same cell,
                            the name of an aggregation or an :class:`Aggregation` class.
        """
        if len({index, columns, values}) != 3:
            raise ValueError("index, columns and values must be different columns")
        self.index = index
        self.columns = columns
        self.values = values
        self.child = child
        if isinstance(aggregation, str):
            self.aggregation = get_aggregation(aggregation, values)
        else:
            self.aggregation = aggregation(values)

    def __str__(self) -> str:
        return (
            f"PivotNode(index={self.index}, columns={self.columns}, "
            f"values={self.aggregation}, {self.child})"
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Aggregate the data by (index, columns) and spread the result.

        Grouping by both columns gives one row for each cell of the
        result, sorted by index and then by column. So it's only
        necessary to find the position of each row in the result.
        """
        data = self.child.collect()
        require_columns(data, [self.index, self.columns, self.values])

        cells = next(
            AggregateNode(
                [self.index, self.columns],
                {"__cell__": self.aggregation},
                PyArrowTableDataSource(data),
            ).batches()
        )

        index_values = pc.unique(cells.column(self.index)).sort()
        column_values = pc.unique(cells.column(self.columns)).sort()
        column_names = [str(v) for v in column_values.to_pylist()]
        if self.index in column_names:
            raise ValueError(
                f"Pivoted column {self.index!r} would clash with the index column"
            )

        row_positions = pc.index_in(cells.column(self.index), value_set=index_values)
        col_positions = pc.index_in(cells.column(self.columns), value_set=column_values)
        cell_values = cells.column("__cell__")

        # Each pivoted column starts with all values missing and
        # gets filled with the cells that belong to it.
        grid = [[None] * len(index_values) for _ in column_names]
        for row, colidx, value in zip(
            row_positions.to_pylist(), col_positions.to_pylist(), cell_values.to_pylist()
        ):
            grid[colidx][row] = value

        result = {self.index: index_values}
        for name, values in zip(column_names, grid):
            result[name] = pa.array(values, type=cell_values.type)
        yield pa.record_batch(result)


class MeltNode(QueryPlanNode):
    """Reshape data from wide to long format.

    Each of the ``value_columns`` is turned into a set of rows,
    with the name of the column in the ``var_name`` column and
    its value in the ``value_name`` column. The ``id_columns`` are
    repeated for each of them.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"date": ["2024-01-01"], "Milan": [5], "Rome": [12]})
    >>> melt = MeltNode(["date"], ["Milan", "Rome"], PyArrowTableDataSource(data), var_name="city")
    >>> next(melt.batches()).to_pydict()
    {'date': ['2024-01-01', '2024-01-01'], 'city': ['Milan', 'Rome'], 'value': [5, 12]}
    """

    def __init__(
        self,
        id_columns: list[str],
        value_columns: list[str] | None,
        child: QueryPlanNode,
        var_name: str = "variable",
        value_name: str = "value",
    ) -> None:
        """
        :param id_columns: The columns identifying each row, kept as they are.
        :param value_columns: The columns to turn into rows,
                              ``None`` for all columns that are not id_columns.
        :param child: The node emitting the data in wide format.
        :param var_name: Name of the column that will hold the original column names.
        :param value_name: Name of the column that will hold the values.
        """
        if var_name == value_name:
            raise ValueError(f"var_name and value_name must be different, both are {var_name!r}")
        clashing = [name for name in (var_name, value_name) if name in id_columns]
        if clashing:
            raise ValueError(f"Column(s) {', '.join(clashing)} already used as id columns")
        self.id_columns = id_columns
        self.value_columns = value_columns
        self.child = child
        self.var_name = var_name
        self.value_name = value_name

    def __str__(self) -> str:
        return f"MeltNode(id_columns={self.id_columns}, value_columns={self.value_columns}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Melt each batch independently.

        The rows generated by a batch are ordered by
        input row first, and then by value column.
        """
        for batch in self.child.batches():
            require_columns(batch, self.id_columns)
            value_columns = self.value_columns
            if value_columns is None:
                value_columns = [c for c in batch.column_names if c not in self.id_columns]
            require_columns(batch, value_columns)
            if not value_columns:
                raise ValueError("No columns to melt")

            value_type = _common_type([batch.schema.field(c).type for c in value_columns])
            n_values = len(value_columns)

            # Row i of the input generates rows i*n_values ... (i+1)*n_values-1
            repeat_indices = pa.array(
                [row for row in range(batch.num_rows) for _ in range(n_values)],
                type=pa.int64(),
            )
            result = {name: batch.column(name).take(repeat_indices) for name in self.id_columns}
            result[self.var_name] = pa.array(value_columns * batch.num_rows, type=pa.string())

            casted = [pc.cast(batch.column(c), value_type) for c in value_columns]
            result[self.value_name] = pa.array(
                [v for row in zip(*[c.to_pylist() for c in casted]) for v in row],
                type=value_type,
            )
            yield pa.record_batch(result)


def _common_type(types: list[pa.DataType]) -> pa.DataType:
    """Find a type that can represent all the provided types."""
    unique = set(types)
    if len(unique) == 1:
        return types[0]
    if all(pa.types.is_integer(t) for t in unique):
        return pa.int64()
    if all(pa.types.is_integer(t) or pa.types.is_floating(t) for t in unique):
        return pa.float64()
    return pa.string()
