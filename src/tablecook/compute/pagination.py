"""Support looking at the first or last rows of the data.

The first thing usually done after loading a dataset
is to peek at a few of its rows, to get an idea of
what the data looks like.

Implements nodes whose purpose is to slice the data
emitted by a plan. Discarding the rows that
are not part of the selected slice of data.
"""

from collections import deque

import pyarrow as pa

from .base import QueryPlanNode


class PaginateNode(QueryPlanNode):
    """Emit only one page of the received data.

    Given a starting index and a length, only emit
    length rows after the starting index is reached.
    Looking at the first rows of a table is a page
    starting at ``offset=0``.

    For example if ``offset=1`` and ``length=1``
    only the second row will be emitted::

        0: skip because < offset
        1: emit
        2: skip because length=1 and one row was already emitted.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> next(PaginateNode(0, 2, PyArrowTableDataSource(data)).batches())
    pyarrow.RecordBatch
    values: int64
    ----
    values: [1,2]
    """

    def __init__(self, offset: int, length: int, child: QueryPlanNode) -> None:
        """
        :param offset: From which row to take data, first row is 0.
        :param length: How many rows to take after offset was reached.
        :param child: the node from which to consume the rows.
        """
        if offset < 0 or length < 0:
            raise ValueError("offset and length must be positive numbers")
        self.offset = offset
        self.length = length
        self.end = offset + length
        self.child = child

    def __str__(self) -> str:
        return f"PaginateNode({self.offset}:{self.end}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the pagination to the child node and emit the rows.

        Consume rows from the child node skipping those until we
        reach offset. Once offset is reached start yielding rows
        until length is reached.

        Subsequent rows are never consumed, the child generator
        is closed explicitly so that any file it opened
        gets released.
        """
        consumed_rows = 0
        last_batch = None
        emitted = False

        batches_generator = self.child.batches()
        try:
            for batch in batches_generator:
                last_batch = batch
                batch_size = batch.num_rows

                # Discard batches that only contain rows before offset.
                if consumed_rows + batch_size <= self.offset:
                    consumed_rows += batch_size
                    continue

                start_in_batch = max(0, self.offset - consumed_rows)
                remaining_rows = self.end - max(consumed_rows, self.offset)
                rows_in_this_batch = min(batch_size - start_in_batch, remaining_rows)
                if rows_in_this_batch > 0:
                    emitted = True
                    yield batch.slice(start_in_batch, rows_in_this_batch)
                consumed_rows += batch_size
                if consumed_rows >= self.end:
                    break
        finally:
            batches_generator.close()

        if not emitted and last_batch is not None:
            # Keep the schema available to the next nodes.
            yield last_batch.slice(0, 0)


class TailNode(QueryPlanNode):
    """Emit only the last rows of the received data.

    The number of rows in the data is not known until
    the child is exhausted, so the node keeps around
    the most recent batches, discarding the ones
    that can't be part of the last ``length`` rows anymore.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> next(TailNode(2, PyArrowTableDataSource(data)).batches())
    pyarrow.RecordBatch
    values: int64
    ----
    values: [4,5]
    """

    def __init__(self, length: int, child: QueryPlanNode) -> None:
        """
        :param length: How many rows to take from the end of the data.
        :param child: the node from which to consume the rows.
        """
        if length < 0:
            raise ValueError("length must be a positive number")
        self.length = length
        self.child = child

    def __str__(self) -> str:
        return f"TailNode({self.length}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Consume the whole child and emit the last rows."""
        kept: deque[pa.RecordBatch] = deque()
        kept_rows = 0
        for batch in self.child.batches():
            kept.append(batch)
            kept_rows += batch.num_rows
            # Drop the oldest batches as far as the remaining ones
            # still contain enough rows.
            while len(kept) > 1 and kept_rows - kept[0].num_rows >= self.length:
                kept_rows -= kept.popleft().num_rows

        if not kept:
            return

        skip = max(0, kept_rows - self.length)
        for batch in kept:
            if skip >= batch.num_rows and batch is not kept[-1]:
                skip -= batch.num_rows
                continue
            yield batch.slice(skip)
            skip = 0
