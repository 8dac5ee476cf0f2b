"""Base classes and interfaces for Compute Engine

This module defines the base components that are
necessary to represent a chain of table operations
and execute it.
"""

import abc
from typing import Any, Generator, Iterable

import pyarrow as pa

from ..errors import ColumnNotFoundError


class QueryPlanNode(abc.ABC):
    """A step of a data analysis recipe.

    Recipes are chains of nodes, each node
    consumes the data emitted by its children
    and emits the result of its own step.
    Loading sales data, keeping the big orders and sorting
    them by amount is the chain::

        CSVDataSource -> FilterNode(Amount > 100) -> SortNode(Amount)

    where the source is the child of the filter,
    and the filter is the child of the sort.
    Nodes like :class:`tablecook.compute.join.JoinNode`
    have two children, the tables being merged.

    Data flows between nodes as :class:`pyarrow.RecordBatch`
    objects: a node might emit one batch for each batch
    it receives (like filtering) or gather everything before
    emitting (like sorting). Every node emits at least one
    batch, when there is no data left the batch is empty but
    still carries the columns and their types.

    Subclasses implement :meth:`batches` and ``__str__``,
    a node that logs the size of the data flowing through it
    could be implemented as::

        class LogRowsNode(QueryPlanNode):
            def __init__(self, child):
                self.child = child

            def batches(self):
                for b in self.child.batches():
                    logger.info("%d rows", b.num_rows)
                    yield b

            def __str__(self):
                return f"LogRowsNode({self.child})"
    """

    RecordBatchesGenerator = Generator[pa.RecordBatch, None, None]

    @abc.abstractmethod
    def batches(self) -> RecordBatchesGenerator:
        """Emits the batches for the next node.

        Each plan node is expected to be able to
        generate data that has to be provided to the next
        node in the plan.

        Usually this happens by consuming data from its
        child nodes, transforming it somehow, and yielding
        it back to the next consumer.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the node."""
        ...

    def collect(self) -> pa.Table:
        """Execute the node and gather all its batches in a table.

        Nodes that need to see the whole data before
        emitting anything (sorting, ranking, pivoting...)
        use this to consume their child.
        """
        batches = list(self.batches())
        if not batches:
            raise ValueError(f"{self} did not emit any data")
        return pa.Table.from_batches(batches)


class Expression(abc.ABC):
    """Expression to apply to a RecordBatch.

    Expressions are some form of operation that
    has to be applied to the data of a :class:`pyarrow.RecordBatch`
    to create new data.

    Typical example of expressions are: A + B
    which is expected to sum column A of the RecordBatch
    to column B of the RecordBatch and return the result.

    As our engine is Column Major, applying an expression
    always results in a new column, thus in a
    :class:`pyarrow.Array` that contains the data
    for that column.
    """

    @abc.abstractmethod
    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Apply the expression to a RecordBatch.

        Expression classes must implement this method
        to dictate what will happen when an expression
        is applied.

        Suppose want to implement a ``SumExpression`` class
        that might look like::

            class SumExpression(Expression):
                def __init__(self, lcol, rcol):
                    self.lcol = lcol  # left column name
                    self.rcol = rcol  # right column name

                def apply(self, batch):
                    return pyarrow.compute.add(
                        batch[self.lcol],
                        batch[self.rcol]
                    )
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the expression."""
        ...


class ColumnRef(Expression):
    """References a column in a record batch.

    When another expression or the engine need
    to operate on a specific column, we will
    need a way to reference that column and its data.

    This expression is aware of the column and when
    applied to a record batch returns the data for
    that column.
    """

    def __init__(self, name: str) -> None:
        """
        :param name: The name of the column being referenced.
        """
        self.name = name

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Get the data for the column."""
        require_columns(batch, [self.name])
        return batch.column(self.name)

    def __str__(self) -> str:
        return f"ColumnRef({self.name})"


class Literal(Expression):
    """A constant value.

    Applying a literal gives back a :class:`pyarrow.Scalar`,
    the compute functions broadcast it to the length
    of the other arguments.
    """

    def __init__(self, value: Any) -> None:
        """
        :param value: The python value or Arrow scalar.
        """
        self.value = value if isinstance(value, pa.Scalar) else pa.scalar(value)

    def apply(self, batch: pa.RecordBatch) -> pa.Scalar:
        return self.value

    def __str__(self) -> str:
        return f"Literal({self.value.as_py()!r})"


col = ColumnRef
lit = Literal


def require_columns(
    data: pa.RecordBatch | pa.Table | pa.Schema, names: Iterable[str]
) -> None:
    """Ensure all the named columns exist in data.

    Raises :class:`tablecook.errors.ColumnNotFoundError`
    naming the missing columns and the available ones.

    >>> import pyarrow as pa
    >>> require_columns(pa.record_batch({"a": [1]}), ["a"])
    >>> require_columns(pa.record_batch({"a": [1]}), ["b"])
    Traceback (most recent call last):
        ...
    tablecook.errors.ColumnNotFoundError: Missing column(s): b. Available columns: a
    """
    available = data.names if isinstance(data, pa.Schema) else data.column_names
    missing = [name for name in names if name not in available]
    if missing:
        raise ColumnNotFoundError(missing, available)
