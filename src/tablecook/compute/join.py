"""Plan nodes that implement join operations.

Joins combine the rows of two tables, pairing the rows
that have equal values in the key columns.

The join is implemented as a hash join: an index from
key values to row positions is built for the right table,
then the left table is scanned and each of its rows is looked up
in the index to find its matches.

The join can be of four kinds, which only differ in how the
rows without a match are treated:

* ``inner``: rows without a match are discarded.
* ``left``: rows of the left table without a match are kept.
* ``right``: rows of the right table without a match are kept.
* ``outer``: rows of both tables without a match are kept.

Kept rows without a match will have missing values in the
columns coming from the other table.

>>> import pyarrow as pa
>>> from tablecook.compute import JoinNode, PyArrowTableDataSource
>>> left = PyArrowTableDataSource(pa.record_batch({"id": [1, 2, 3], "name": ["Alice", "Bob", "Charlie"]}))
>>> right = PyArrowTableDataSource(pa.record_batch({"id": [3, 2], "age": [25, 30]}))
>>> join_node = JoinNode(["id"], ["id"], left, right)
>>> next(join_node.batches())
pyarrow.RecordBatch
id: int64
name: string
age: int64
----
id: [2,3]
name: ["Bob","Charlie"]
age: [30,25]
"""

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, require_columns

JOIN_TYPES = ("inner", "left", "right", "outer")


class JoinNode(QueryPlanNode):
    """Join two data sources on one or more key columns.

    Supposing we have two tables::

        left:
        +----+--------+
        | id | name   |
        +----+--------+
        | 1  | Alice  |
        | 2  | Bob    |
        | 3  | Charlie|
        +----+--------+

        right:
        +----+-----+
        | id | age |
        +----+-----+
        | 3  | 25  |
        | 2  | 30  |
        +----+-----+

    We would perform the following steps:

    1. Build an index of the right table, mapping each key
       to the positions of the rows that have it::

        {3: [0], 2: [1]}

    2. Scan the left table looking up each key in the index,
       every match produces a pair of (left row, right row) positions.
       A left row without matches produces a pair with a missing
       right position, but only if the join keeps unmatched left rows::

        left rows:  [1, 2]
        right rows: [1, 0]

       When the join keeps unmatched right rows, the right rows that
       were never matched are appended at the end, paired with a
       missing left position.

    3. Take the rows at those positions from both tables
       and put their columns side by side. Taking a missing position
       gives a missing value::

        +----+--------+-----+
        | id | name   | age |
        +----+--------+-----+
        | 2  | Bob    | 30  |
        | 3  | Charlie| 25  |
        +----+--------+-----+

    The result follows the order of the left table.
    Rows with a missing key never match any other row.
    Key columns are only emitted once, with the names they have in
    the left table; other columns that exist in both tables get
    ``suffix`` appended to the name of the column from the right table.
    """

    def __init__(
        self,
        left_keys: list[str] | str,
        right_keys: list[str] | str,
        left_child: QueryPlanNode,
        right_child: QueryPlanNode,
        how: str = "inner",
        suffix: str = "_right",
    ) -> None:
        """
        :param left_keys: The key columns to join on in the left table.
        :param right_keys: The key columns to join on in the right table.
        :param left_child: The left source of data to join.
        :param right_child: The right source of data to join.
        :param how: The kind of join, one of ``inner``, ``left``, ``right``, ``outer``.
        :param suffix: Appended to the right columns whose name clashes with a left column.
        """
        self.left_keys = [left_keys] if isinstance(left_keys, str) else list(left_keys)
        self.right_keys = [right_keys] if isinstance(right_keys, str) else list(right_keys)
        if len(self.left_keys) != len(self.right_keys):
            raise ValueError("Left and right keys must have the same length")
        if not self.left_keys:
            raise ValueError("At least one join key is required")
        if how not in JOIN_TYPES:
            raise ValueError(f"how must be one of {', '.join(JOIN_TYPES)}, not {how!r}")
        self.left_child = left_child
        self.right_child = right_child
        self.how = how
        self.suffix = suffix

    def __str__(self) -> str:
        return (
            f"JoinNode(how={self.how}, left_keys={self.left_keys}, right_keys={self.right_keys}, "
            f"left={self.left_child}, right={self.right_child})"
        )

    @staticmethod
    def _keys(table: pa.Table, names: list[str]) -> list[tuple | None]:
        """Get the key of each row, ``None`` for rows that have a missing key."""
        columns = [table.column(name).to_pylist() for name in names]
        return [None if None in key else key for key in zip(*columns)]

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Perform the join operation.

        Accumulates all rows of both children to
        perform the join operation, the result is emitted
        as a single batch.
        """
        left = self.left_child.collect().combine_chunks()
        right = self.right_child.collect().combine_chunks()
        require_columns(left, self.left_keys)
        require_columns(right, self.right_keys)

        # Build the index of the right table
        right_index: dict[tuple, list[int]] = {}
        for position, key in enumerate(self._keys(right, self.right_keys)):
            if key is not None:
                right_index.setdefault(key, []).append(position)

        # Probe the index with each left row
        keep_left = self.how in ("left", "outer")
        keep_right = self.how in ("right", "outer")
        left_positions: list[int | None] = []
        right_positions: list[int | None] = []
        matched_right: set[int] = set()
        for position, key in enumerate(self._keys(left, self.left_keys)):
            matches = right_index.get(key, []) if key is not None else []
            for match in matches:
                left_positions.append(position)
                right_positions.append(match)
            matched_right.update(matches)
            if not matches and keep_left:
                left_positions.append(position)
                right_positions.append(None)

        if keep_right:
            for position in range(right.num_rows):
                if position not in matched_right:
                    left_positions.append(None)
                    right_positions.append(position)

        left_rows = left.take(pa.array(left_positions, type=pa.int64()))
        right_rows = right.take(pa.array(right_positions, type=pa.int64()))
        yield self._combine(left_rows, right_rows)

    def _combine(self, left_rows: pa.Table, right_rows: pa.Table) -> pa.RecordBatch:
        """Put the columns of the two tables side by side."""
        combined_data = {}
        right_key_of = dict(zip(self.left_keys, self.right_keys))
        for name in left_rows.column_names:
            column = left_rows.column(name)
            if name in right_key_of:
                # Rows coming only from the right table have
                # their key on the right side.
                right_key = right_rows.column(right_key_of[name])
                if right_key.type != column.type:
                    right_key = pc.cast(right_key, column.type)
                column = pc.coalesce(column, right_key)
            combined_data[name] = column

        for name in right_rows.column_names:
            if name in self.right_keys:
                # Skip the right keys as they have the same values of the left keys
                # and we don't want to duplicate them in the result.
                continue
            new_name = name
            if name in combined_data:
                new_name = name + self.suffix
                if new_name in combined_data:
                    raise ValueError(
                        f"Column {new_name!r} exists in both tables, use a different suffix"
                    )
            combined_data[new_name] = right_rows.column(name)

        table = pa.table(combined_data).combine_chunks()
        batches = table.to_batches()
        if not batches:
            return pa.RecordBatch.from_pylist([], schema=table.schema)
        return batches[0]
