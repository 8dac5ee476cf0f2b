"""Plan nodes that perform sorting of data.

When looking for the most significant values, like
the best selling products, it's often necessary to sort
the data based on one or more columns.

This module implements the sorting capabilities.
"""

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, require_columns


class SortNode(QueryPlanNode):
    """Sort data in-memory based on one or more columns.

    The node expects a list of columns and a list of
    sort directions. The data will be sorted based on
    the columns in the order they are provided.

    The sort directions are used to specify if the
    sorting should be ascending or descending.

    The sort is stable: rows that compare equal keep
    the order they had in the input. Missing values
    are placed at the end unless ``nulls_last=False``.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> # Sort the data in descending order
    >>> sort = SortNode(["values"], [True], PyArrowTableDataSource(data))
    >>> next(sort.batches())
    pyarrow.RecordBatch
    values: int64
    ----
    values: [5,4,3,2,1]
    """

    def __init__(
        self,
        keys: list[str],
        descending: list[bool],
        child: QueryPlanNode,
        nulls_last: bool = True,
    ) -> None:
        """
        :param keys: The columns to sort by in the order they should be sorted.
        :param descending: If each columns should be sorted in a descending order.
        :param child: The node emitting the data to be sorted.
        :param nulls_last: Place missing values after all other values.
        """
        if len(keys) != len(descending):
            raise ValueError("Keys and descending must have the same length")
        if not keys:
            raise ValueError("At least one sorting key is required")

        self.sorting = list(
            zip(keys, ("descending" if desc else "ascending" for desc in descending))
        )
        self.null_placement = "at_end" if nulls_last else "at_start"
        self.child = child

    def __str__(self) -> str:
        return f"SortNode(sorting={self.sorting}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """The sorting of the child node.

        Batches provided by child node are accumulated
        until they are all loaded in memory, than they
        are merged and sorted as an unique table.

        This requires enough memory for the whole data.
        """
        # Converting batches to a table is a zero-copy
        # operation, the table is backed by ChunkedArrays.
        table = self.child.collect()
        require_columns(table, [key for key, _ in self.sorting])

        indices = pc.sort_indices(
            table,
            options=pc.SortOptions(
                sort_keys=self.sorting, null_placement=self.null_placement
            ),
        )
        table = table.take(indices)
        # to_batches is a zero-copy operation when maximum chunk size is None
        batches = table.combine_chunks().to_batches()
        if not batches:
            batches = [pa.RecordBatch.from_pylist([], schema=table.schema)]
        yield from batches
