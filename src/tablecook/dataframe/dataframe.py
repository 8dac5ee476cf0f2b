"""The Dataframe object itself."""

from typing import Any, Self

import pyarrow as pa

from ..compute import (
    CastNode,
    CorrelationNode,
    CSVDataSource,
    DescribeNode,
    DropColumnsNode,
    DropDuplicatesNode,
    DropNullsNode,
    ExcelDataSource,
    FillNullNode,
    FilterNode,
    InfoNode,
    JoinNode,
    MeltNode,
    PaginateNode,
    PivotNode,
    ProjectNode,
    PyArrowTableDataSource,
    RankNode,
    RenameNode,
    SortNode,
    TailNode,
    ValueCountsNode,
)
from ..compute.aggregate import AggregateNode, Aggregation, get_aggregation
from ..compute.base import Expression, QueryPlanNode
from ..config import get_settings
from ..files import WriteResult, write_csv, write_excel
from ..plotting import PlotAccessor
from ..utils.tabulate import tabulate

AggregationSpec = Aggregation | tuple[str, str]


def _build_aggregations(aggregations: dict[str, AggregationSpec]) -> dict[str, Aggregation]:
    """Accept both Aggregation objects and ``(function, column)`` tuples."""
    built = {}
    for name, spec in aggregations.items():
        if isinstance(spec, Aggregation):
            built[name] = spec
        else:
            func, column = spec
            built[name] = get_aggregation(func, column)
    return built


class Dataframe:
    """Data structure that handles data in rows and columns.

    The Dataframe object allows to represent in-memory data
    and perform transformations over it.

    The tablecook dataframe object is lazy, which means that
    any transformation or analysis will be applied only when the
    data is needed (``.collect()``, printing, saving or plotting)
    and no data is kept in memory until that moment
    (unless it already was).

    >>> df = Dataframe.from_pydict({"name": ["Alice", "Bob", "Carl"], "age": [25, 17, 40]})
    >>> print(df.sort(["age"], descending=[True]).head(2))
    name  | age
    ----- | ---
    Carl  | 40
    Alice | 25
    """

    def __init__(self, node_or_table: QueryPlanNode | pa.Table | pa.RecordBatch) -> None:
        """
        :param node_or_table: A compute engine node expected to emit
                              the data for the dataframe or a `pyarrow.Table`.
        """
        if isinstance(node_or_table, (pa.Table, pa.RecordBatch)):
            node_or_table = PyArrowTableDataSource(node_or_table)

        if not isinstance(node_or_table, QueryPlanNode):
            raise ValueError("Invalid input, expected a QueryPlanNode or a PyArrow Table")

        self.node = node_or_table

    # Loading data

    @classmethod
    def open_csv(cls, filename: str, delimiter: str = ",") -> Self:
        """Open a delimited text file and create a Dataframe out of its data.

        :param filename: The path to a local CSV file.
        :param delimiter: The character separating the fields.
        """
        return cls(CSVDataSource(filename, delimiter=delimiter))

    @classmethod
    def open_excel(cls, filename: str, sheet: str | None = None) -> Self:
        """Open a spreadsheet and create a Dataframe out of one of its sheets.

        :param filename: The path to a local ``.xlsx`` file.
        :param sheet: The sheet to read, the active one if not provided.
        """
        return cls(ExcelDataSource(filename, sheet=sheet))

    @classmethod
    def from_pydict(cls, data: dict[str, list[Any]]) -> Self:
        """Create a Dataframe from a ``{column: values}`` dictionary."""
        return cls(pa.table(data))

    @classmethod
    def from_pylist(cls, rows: list[dict[str, Any]]) -> Self:
        """Create a Dataframe from a list of ``{column: value}`` records."""
        return cls(pa.Table.from_pylist(rows))

    # Transformations, each of them returns a new Dataframe.

    def _chain(self, node: QueryPlanNode) -> Self:
        return self.__class__(node)

    def select(self, columns: list[str]) -> Self:
        """Keep only the provided columns, in the provided order."""
        return self._chain(ProjectNode(list(columns), None, self.node))

    def drop(self, columns: list[str]) -> Self:
        """Remove the provided columns."""
        return self._chain(DropColumnsNode(list(columns), self.node))

    def with_columns(self, **expressions: Expression) -> Self:
        """Add new columns computed from expressions.

        Columns that already exist are replaced::

            df.with_columns(Total=FunctionCallExpression(pc.multiply, col("Quantity"), col("Price")))
        """
        return self._chain(ProjectNode(None, expressions, self.node))

    def filter(self, expression: Expression) -> Self:
        """Apply a filter to the data and return a new Dataframe.

        The returned dataframe will only contain the data that
        matches the filter predicate.

        :param expression: The expression representing the predicate.
                           for example `A > B`.
        """
        return self._chain(FilterNode(expression, self.node))

    def rename(self, mapping: dict[str, str]) -> Self:
        """Rename columns according to a ``{old: new}`` mapping."""
        return self._chain(RenameNode(mapping, self.node))

    def cast(self, types: dict[str, str | pa.DataType], safe: bool = True) -> Self:
        """Change the type of columns, see :class:`tablecook.compute.CastNode`."""
        return self._chain(CastNode(types, self.node, safe=safe))

    def dropna(self, subset: list[str] | None = None, how: str = "any") -> Self:
        """Remove rows with missing values."""
        return self._chain(DropNullsNode(self.node, subset=subset, how=how))

    def fillna(self, value: Any = None, method: str | None = None) -> Self:
        """Replace missing values, see :class:`tablecook.compute.FillNullNode`."""
        return self._chain(FillNullNode(self.node, value=value, method=method))

    def drop_duplicates(self, subset: list[str] | None = None, keep: str = "first") -> Self:
        """Remove repeated rows."""
        return self._chain(DropDuplicatesNode(self.node, subset=subset, keep=keep))

    def sort(self, keys: list[str], descending: list[bool] | bool = False) -> Self:
        """Sort the rows by one or more columns.

        :param keys: The columns to sort by.
        :param descending: The direction for each column, or one
                           direction for all of them.
        """
        if isinstance(descending, bool):
            descending = [descending] * len(keys)
        return self._chain(SortNode(list(keys), list(descending), self.node))

    def head(self, n: int = 5) -> Self:
        """Keep only the first ``n`` rows."""
        return self._chain(PaginateNode(0, n, self.node))

    def tail(self, n: int = 5) -> Self:
        """Keep only the last ``n`` rows."""
        return self._chain(TailNode(n, self.node))

    def aggregate(
        self, keys: list[str], aggregations: dict[str, AggregationSpec]
    ) -> Self:
        """Group rows by ``keys`` and compute aggregations for each group.

        >>> df = Dataframe.from_pydict({"city": ["Rome", "Milan", "Rome"], "sales": [10, 20, 30]})
        >>> df.aggregate(["city"], {"total": ("sum", "sales")}).to_pydict()
        {'city': ['Rome', 'Milan'], 'total': [40, 20]}
        """
        return self._chain(
            AggregateNode(list(keys), _build_aggregations(aggregations), self.node)
        )

    def group_by(self, *keys: str) -> "GroupBy":
        """Group rows by ``keys``, call ``.aggregate()`` on the result to compute the aggregations."""
        return GroupBy(self, list(keys))

    def value_counts(self, column: str, normalize: bool = False) -> Self:
        """Count how many times each value of ``column`` appears."""
        return self._chain(ValueCountsNode(column, self.node, normalize=normalize))

    def pivot(self, index: str, columns: str, values: str, aggregation: str = "mean") -> Self:
        """Reshape from long to wide format, see :class:`tablecook.compute.PivotNode`."""
        return self._chain(PivotNode(index, columns, values, self.node, aggregation=aggregation))

    def melt(
        self,
        id_columns: list[str],
        value_columns: list[str] | None = None,
        var_name: str = "variable",
        value_name: str = "value",
    ) -> Self:
        """Reshape from wide to long format, see :class:`tablecook.compute.MeltNode`."""
        return self._chain(
            MeltNode(id_columns, value_columns, self.node, var_name=var_name, value_name=value_name)
        )

    def join(
        self,
        other: "Dataframe",
        on: str | list[str] | None = None,
        how: str = "inner",
        left_on: str | list[str] | None = None,
        right_on: str | list[str] | None = None,
        suffix: str = "_right",
    ) -> Self:
        """Join with another Dataframe.

        :param other: The right side of the join.
        :param on: Key column(s) with the same name in both Dataframes.
        :param how: ``inner``, ``left``, ``right`` or ``outer``.
        :param left_on: Key column(s) of this Dataframe, when names differ.
        :param right_on: Key column(s) of the other Dataframe, when names differ.
        :param suffix: Added to clashing column names coming from ``other``.
        """
        if on is not None:
            left_on = right_on = on
        if left_on is None or right_on is None:
            raise ValueError("Provide either on or both left_on and right_on")
        return self._chain(
            JoinNode(left_on, right_on, self.node, other.node, how=how, suffix=suffix)
        )

    def rank(
        self,
        column: str,
        descending: bool = False,
        method: str = "min",
        output: str = "rank",
    ) -> Self:
        """Add a column with the rank of each row, see :class:`tablecook.compute.RankNode`."""
        return self._chain(
            RankNode(column, self.node, descending=descending, method=method, output=output)
        )

    # Summaries, each of them is a new Dataframe too.

    def describe(self, percentiles: tuple[float, ...] = (0.25, 0.5, 0.75)) -> Self:
        """Summary statistics of the numeric columns."""
        return self._chain(DescribeNode(self.node, percentiles=percentiles))

    def info(self) -> Self:
        """Type and missing values of each column."""
        return self._chain(InfoNode(self.node))

    def isnull_counts(self) -> dict[str, int]:
        """How many values are missing in each column."""
        info = self.info().to_pydict()
        return dict(zip(info["column"], info["null"]))

    def corr(self, columns: list[str] | None = None, method: str = "pearson") -> Self:
        """Correlation matrix of the numeric columns."""
        return self._chain(CorrelationNode(self.node, columns=columns, method=method))

    # Accessing the data

    def collect(self) -> Self:
        """Collect all data of the dataframe in memory.

        Returns a new Dataframe that has all data from the
        previous dataframe eagerly loaded in memory.
        """
        return self.__class__(self.to_arrow())

    def to_arrow(self) -> pa.Table:
        """Collect all the data and return a pyarrow.Table"""
        return self.node.collect()

    def to_pydict(self) -> dict[str, list[Any]]:
        """Collect all the data as a ``{column: values}`` dictionary."""
        return self.to_arrow().to_pydict()

    @property
    def schema(self) -> pa.Schema:
        """Names and types of the columns."""
        poll_schema = getattr(self.node, "poll_schema", None)
        if poll_schema is not None:
            return poll_schema()
        return next(self.node.batches()).schema

    @property
    def columns(self) -> list[str]:
        """Names of the columns."""
        return self.schema.names

    @property
    def shape(self) -> tuple[int, int]:
        """Number of rows and columns."""
        rows = 0
        columns = 0
        for batch in self.node.batches():
            rows += batch.num_rows
            columns = batch.num_columns
        return (rows, columns)

    # Saving and plotting

    def to_csv(self, filename: str, delimiter: str = ",") -> WriteResult:
        """Save the data as delimited text, returns what was written."""
        return write_csv(self.node, filename, delimiter=delimiter)

    def to_excel(self, filename: str, sheet: str = "Sheet1") -> WriteResult:
        """Save the data as a spreadsheet, returns what was written."""
        return write_excel(self.node, filename, sheet=sheet)

    @property
    def plot(self) -> PlotAccessor:
        """Draw charts of the data, like ``df.plot.bar("Product", "Total")``."""
        return PlotAccessor(self)

    def __str__(self) -> str:
        max_rows = get_settings().display_rows
        # Take one row more than shown to know if there are more rows.
        shown = PaginateNode(0, max_rows + 1, self.node).collect()
        text = tabulate(shown, max_rows=max_rows)
        if shown.num_rows > max_rows:
            text = text.rsplit("\n", 1)[0] + "\n..."
        return text

    def __repr__(self) -> str:
        return f"Dataframe({self.node})"


class GroupBy:
    """Rows of a Dataframe grouped by some columns.

    >>> df = Dataframe.from_pydict({"city": ["Rome", "Milan", "Rome"], "sales": [10, 20, 30]})
    >>> df.group_by("city").aggregate(avg_sales=("mean", "sales")).to_pydict()
    {'city': ['Rome', 'Milan'], 'avg_sales': [20.0, 20.0]}
    """

    def __init__(self, dataframe: Dataframe, keys: list[str]) -> None:
        self.dataframe = dataframe
        self.keys = keys

    def aggregate(self, **aggregations: AggregationSpec) -> Dataframe:
        """Compute the aggregations for each group."""
        return self.dataframe.aggregate(self.keys, aggregations)

    agg = aggregate
