"""Plan nodes that implement projection of columns.

A common request in analyses is to select specific columns,
discard the ones that are not relevant, and compute new columns
out of the existing ones (like ``Total = Quantity * Price``).

This module implements the basic projection capabilities.
"""

import pyarrow as pa

from .base import Expression, QueryPlanNode, require_columns


class ProjectNode(QueryPlanNode):
    """Project data by selecting specific columns and computing expressions.

    The projection expects a list of column names to select and a dictionary
    of column names and expressions to project new columns.

    When a projected column has the same name of an existing column,
    the existing column is replaced in place.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from tablecook.compute import col, lit, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1, 2, 3], "b": [4, 5, 6]})
    >>> next(ProjectNode(["a"], {"ab_sum": FunctionCallExpression(pc.add, col("a"), col("b"))},
    ...                  PyArrowTableDataSource(data)).batches())
    pyarrow.RecordBatch
    a: int64
    ab_sum: int64
    ----
    a: [1,2,3]
    ab_sum: [5,7,9]
    """

    def __init__(
        self,
        select: list[str] | None,
        project: dict[str, Expression] | None,
        child: QueryPlanNode,
    ) -> None:
        """
        :param select: The list of column names to select.
                       ``None`` means select all columns.
                       ``[]`` means select only the projected columns.
        :param project: The dict {name: Expression} to project new columns.
        :param child: The node emitting the data to be projected.
        """
        self.select = select
        self.project = project or {}
        self.child = child

        if self.select is None:
            # No selection was provided, we will select all columns
            self.restrict_columns = None
        else:
            # This is the list of columns we want to keep,
            # in case select=[] it will only provide the project columns.
            self.restrict_columns = self.select + [
                name for name in self.project if name not in self.select
            ]

    def __str__(self) -> str:
        return f"ProjectNode(select={self.select}, project={self.project}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the projection to the child node.

        For each recordbatch yielded by the child node,
        sequentially apply the expressions to project new columns
        and then select the requested columns.

        Expressions are applied in order, so a projected
        column can refer to the ones projected before it.
        """
        for batch in self.child.batches():
            if self.select:
                require_columns(batch, self.select)

            for name, expr in self.project.items():
                data = expr.apply(batch)
                if isinstance(data, pa.Scalar):
                    # Literals have to be expanded to a full column.
                    data = pa.array([data.as_py()] * batch.num_rows, type=data.type)
                if name in batch.column_names:
                    batch = batch.set_column(batch.schema.get_field_index(name), name, data)
                else:
                    batch = batch.append_column(name, data)

            if self.restrict_columns is not None:
                batch = batch.select(self.restrict_columns)

            yield batch


class DropColumnsNode(QueryPlanNode):
    """Discard some columns, keeping all the others.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1, 2], "b": [3, 4], "c": [5, 6]})
    >>> next(DropColumnsNode(["b"], PyArrowTableDataSource(data)).batches()).column_names
    ['a', 'c']
    """

    def __init__(self, columns: list[str], child: QueryPlanNode) -> None:
        """
        :param columns: The names of the columns to remove.
        :param child: The node emitting the data.
        """
        self.columns = columns
        self.child = child

    def __str__(self) -> str:
        return f"DropColumnsNode(columns={self.columns}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            require_columns(batch, self.columns)
            yield batch.select(
                [name for name in batch.column_names if name not in self.columns]
            )
