"""Plan nodes that rank rows.

Ranking assigns to each row its position if the data
was sorted by a column, without actually sorting it.
It's used to answer questions like "which are the
three best selling products in each month?".

The main difference between ranking policies is how
ties (rows with the same value) are treated. Given the
scores ``[90, 80, 80, 70]`` ranked in descending order:

========  ============
method    ranks
========  ============
min       1, 2, 2, 4
max       1, 3, 3, 4
first     1, 2, 3, 4
dense     1, 2, 2, 3
========  ============
"""

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, require_columns

TIE_METHODS = ("min", "max", "first", "dense")


class RankNode(QueryPlanNode):
    """Append to the data the rank of each row based on a column.

    Ranks start from 1, rows with a missing value
    in the ranked column get a missing rank.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"name": ["A", "B", "C", "D"], "score": [90, 80, 80, 70]})
    >>> rank = RankNode("score", PyArrowTableDataSource(data), descending=True)
    >>> next(rank.batches()).column("rank").to_pylist()
    [1, 2, 2, 4]
    """

    def __init__(
        self,
        column: str,
        child: QueryPlanNode,
        descending: bool = False,
        method: str = "min",
        output: str = "rank",
    ) -> None:
        """
        :param column: The column to rank by.
        :param child: The node emitting the data.
        :param descending: If the highest value should get rank 1.
        :param method: How to rank ties, one of ``min``, ``max``, ``first``, ``dense``.
        :param output: The name of the new column holding the ranks.
        """
        if method not in TIE_METHODS:
            raise ValueError(f"method must be one of {', '.join(TIE_METHODS)}, not {method!r}")
        self.column = column
        self.child = child
        self.descending = descending
        self.method = method
        self.output = output

    def __str__(self) -> str:
        order = "descending" if self.descending else "ascending"
        return f"RankNode({self.column}, {order}, method={self.method}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Rank the whole data at once.

        The rank of a row depends on all other rows,
        so the data is accumulated before computing the ranks.
        """
        table = self.child.collect().combine_chunks()
        require_columns(table, [self.column])
        if self.output in table.column_names:
            raise ValueError(f"Column {self.output!r} already exists")

        values = table.column(self.column).combine_chunks()
        ranks = pc.rank(
            values,
            sort_keys="descending" if self.descending else "ascending",
            null_placement="at_end",
            tiebreaker=self.method,
        )
        # Missing values are ranked last by arrow, but they have no rank.
        ranks = pc.if_else(
            pc.is_valid(values), pc.cast(ranks, pa.int64()), pa.scalar(None, pa.int64())
        )
        table = table.append_column(self.output, ranks)
        batches = table.combine_chunks().to_batches()
        if not batches:
            batches = [pa.RecordBatch.from_pylist([], schema=table.schema)]
        yield from batches
