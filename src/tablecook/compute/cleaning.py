"""Plan nodes that clean up data.

Real world data is rarely ready to be analysed
as it is: some values are missing, some rows are
repeated, column names are inconvenient and
numbers are sometimes stored as text.

This module implements the nodes that fix those issues:

* :class:`DropNullsNode` removes rows with missing values.
* :class:`FillNullNode` replaces missing values.
* :class:`DropDuplicatesNode` removes repeated rows.
* :class:`RenameNode` changes column names.
* :class:`CastNode` changes column types.

Missing values are represented by Arrow nulls, which
are different from ``0`` or from the empty string.
"""

import math
from typing import Any, Hashable

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, require_columns


class DropNullsNode(QueryPlanNode):
    """Remove rows that contain missing values.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"name": ["Alice", None, "Carl"], "age": [25, 30, None]})
    >>> next(DropNullsNode(PyArrowTableDataSource(data)).batches()).to_pydict()
    {'name': ['Alice'], 'age': [25]}
    >>> next(DropNullsNode(PyArrowTableDataSource(data), subset=["name"]).batches()).to_pydict()
    {'name': ['Alice', 'Carl'], 'age': [25, None]}
    """

    def __init__(
        self, child: QueryPlanNode, subset: list[str] | None = None, how: str = "any"
    ) -> None:
        """
        :param child: The node emitting the data to clean.
        :param subset: The columns to look for missing values in, ``None`` for all of them.
        :param how: ``"any"`` drops rows where at least one of the columns is missing,
                    ``"all"`` drops rows where all of them are missing.
        """
        if how not in ("any", "all"):
            raise ValueError(f"how must be 'any' or 'all', not {how!r}")
        self.child = child
        self.subset = subset
        self.how = how

    def __str__(self) -> str:
        return f"DropNullsNode(subset={self.subset}, how={self.how}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute for each batch a mask of the rows to keep and filter the batch."""
        for batch in self.child.batches():
            columns = self.subset if self.subset is not None else batch.column_names
            require_columns(batch, columns)
            if not columns:
                yield batch
                continue

            combine = pc.and_ if self.how == "any" else pc.or_
            keep = pc.is_valid(batch.column(columns[0]))
            for name in columns[1:]:
                keep = combine(keep, pc.is_valid(batch.column(name)))
            yield batch.filter(keep)


class FillNullNode(QueryPlanNode):
    """Replace missing values.

    Missing values can be replaced by a fixed value, provided
    as a single value for all columns or as a ``{column: value}``
    mapping, or by propagating the last (``method="forward"``) or
    next (``method="backward"``) available value in the column.

    When a single value is provided for all columns, only the columns
    that can hold that value are filled. So filling with ``0``
    won't touch text columns.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"city": ["Rome", None, "Milan"], "sales": [10, None, 30]})
    >>> next(FillNullNode(PyArrowTableDataSource(data), value=0).batches()).to_pydict()
    {'city': ['Rome', None, 'Milan'], 'sales': [10, 0, 30]}
    >>> next(FillNullNode(PyArrowTableDataSource(data), method="forward").batches()).to_pydict()
    {'city': ['Rome', 'Rome', 'Milan'], 'sales': [10, 10, 30]}
    """

    METHODS = ("forward", "backward")

    def __init__(
        self,
        child: QueryPlanNode,
        value: Any | dict[str, Any] = None,
        method: str | None = None,
    ) -> None:
        """
        :param child: The node emitting the data to fill.
        :param value: The replacement value, or a dict of replacement values per column.
        :param method: ``"forward"`` or ``"backward"`` to propagate existing values.
        """
        if (value is None) == (method is None):
            raise ValueError("Exactly one of value and method must be provided")
        if method is not None and method not in self.METHODS:
            raise ValueError(f"method must be one of {self.METHODS}, not {method!r}")
        self.child = child
        self.value = value
        self.method = method

    def __str__(self) -> str:
        how = f"method={self.method}" if self.method else f"value={self.value!r}"
        return f"FillNullNode({how}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        if self.method == "forward":
            yield from self._fill_forward()
        elif self.method == "backward":
            yield from self._fill_backward()
        else:
            for batch in self.child.batches():
                yield self._fill_values(batch)

    def _fill_values(self, batch: pa.RecordBatch) -> pa.RecordBatch:
        """Replace missing values with the configured replacements."""
        if isinstance(self.value, dict):
            require_columns(batch, list(self.value))
            replacements = self.value
        else:
            replacements = {name: self.value for name in batch.column_names}

        columns = []
        for name in batch.column_names:
            column = batch.column(name)
            if name in replacements and column.null_count:
                column = self._fill_column(
                    column, replacements[name], strict=isinstance(self.value, dict)
                )
            columns.append(column)
        return pa.record_batch(columns, names=batch.column_names)

    @staticmethod
    def _fill_column(column: pa.Array, value: Any, strict: bool) -> pa.Array:
        if pa.types.is_null(column.type):
            # A column with only missing values has no type yet.
            return pa.array([value] * len(column))
        fill = value if isinstance(value, pa.Scalar) else pa.scalar(value)
        if strict:
            return pc.fill_null(column, fill.cast(column.type))
        if not _same_kind(fill.type, column.type):
            return column
        try:
            fill = fill.cast(column.type)
        except pa.ArrowInvalid:
            # Like 0.5 for an integer column, the value doesn't fit.
            return column
        return pc.fill_null(column, fill)

    def _fill_forward(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Carry the last seen value forward, also across batches."""
        last_values: dict[str, pa.Scalar] = {}
        for batch in self.child.batches():
            columns = []
            for name in batch.column_names:
                column = batch.column(name)
                if pa.types.is_null(column.type):
                    columns.append(column)
                    continue
                if column.null_count and name in last_values and not column[0].is_valid:
                    # Seed the batch with the last value of the previous one.
                    seeded = pa.concat_arrays(
                        [pa.array([last_values[name].as_py()], type=column.type), column]
                    )
                    column = pc.fill_null_forward(seeded)[1:]
                else:
                    column = pc.fill_null_forward(column)
                if len(column) and column[len(column) - 1].is_valid:
                    last_values[name] = column[len(column) - 1]
                columns.append(column)
            yield pa.record_batch(columns, names=batch.column_names)

    def _fill_backward(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Propagate the next available value backward.

        As the next value might be in a following batch,
        the whole data has to be loaded first.
        """
        table = self.child.collect().combine_chunks()
        columns = []
        for name in table.column_names:
            column = table.column(name).combine_chunks()
            if not pa.types.is_null(column.type):
                column = pc.fill_null_backward(column)
            columns.append(column)
        yield pa.record_batch(columns, names=table.column_names)


class DropDuplicatesNode(QueryPlanNode):
    """Remove repeated rows.

    Two rows are considered the same when they have the same
    values in all the compared columns, missing values are
    considered equal to each other.

    The node remembers the rows it has already seen,
    so duplicates are detected across batches too.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"name": ["Alice", "Bob", "Alice"], "age": [25, 30, 25]})
    >>> next(DropDuplicatesNode(PyArrowTableDataSource(data)).batches()).to_pydict()
    {'name': ['Alice', 'Bob'], 'age': [25, 30]}
    """

    def __init__(
        self, child: QueryPlanNode, subset: list[str] | None = None, keep: str = "first"
    ) -> None:
        """
        :param child: The node emitting the data.
        :param subset: Columns to compare, ``None`` to compare all of them.
        :param keep: ``"first"`` keeps the first occurrence of each row,
                     ``"last"`` keeps the last one.
        """
        if keep not in ("first", "last"):
            raise ValueError(f"keep must be 'first' or 'last', not {keep!r}")
        self.child = child
        self.subset = subset
        self.keep = keep

    def __str__(self) -> str:
        return f"DropDuplicatesNode(subset={self.subset}, keep={self.keep}, {self.child})"

    def _row_keys(self, batch: pa.RecordBatch) -> list[tuple[Hashable, ...]]:
        columns = self.subset if self.subset is not None else batch.column_names
        require_columns(batch, columns)
        values = [
            [_NAN if _is_nan(v) else v for v in batch.column(name).to_pylist()]
            for name in columns
        ]
        return list(zip(*values)) if values else [()] * batch.num_rows

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        if self.keep == "last":
            yield from self._keep_last()
            return

        seen: set[tuple[Hashable, ...]] = set()
        for batch in self.child.batches():
            mask = []
            for key in self._row_keys(batch):
                mask.append(key not in seen)
                seen.add(key)
            yield batch.filter(pa.array(mask, type=pa.bool_()))

    def _keep_last(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Keep the last occurrence of each row.

        Whether a row is the last occurrence is only known
        once all the data was seen, so this loads the whole data.
        """
        table = self.child.collect().combine_chunks()
        batch = table.to_batches()[0] if table.num_rows else pa.RecordBatch.from_pylist([], schema=table.schema)
        keys = self._row_keys(batch)

        seen: set[tuple[Hashable, ...]] = set()
        mask = [False] * len(keys)
        for idx in range(len(keys) - 1, -1, -1):
            if keys[idx] not in seen:
                mask[idx] = True
                seen.add(keys[idx])
        yield batch.filter(pa.array(mask, type=pa.bool_()))


class RenameNode(QueryPlanNode):
    """Change the name of some columns.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"Product Name": ["TV"], "qty": [2]})
    >>> next(RenameNode({"qty": "quantity"}, PyArrowTableDataSource(data)).batches()).column_names
    ['Product Name', 'quantity']
    """

    def __init__(self, mapping: dict[str, str], child: QueryPlanNode) -> None:
        """
        :param mapping: The ``{old_name: new_name}`` renames to apply.
        :param child: The node emitting the data.
        """
        self.mapping = mapping
        self.child = child

    def __str__(self) -> str:
        return f"RenameNode({self.mapping}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            require_columns(batch, list(self.mapping))
            names = [self.mapping.get(name, name) for name in batch.column_names]
            duplicates = sorted({name for name in names if names.count(name) > 1})
            if duplicates:
                raise ValueError(
                    f"Renaming would lead to duplicate columns: {', '.join(duplicates)}"
                )
            yield batch.rename_columns(names)


class CastNode(QueryPlanNode):
    """Change the type of some columns.

    Types can be provided as Arrow types or by their
    name, like ``"int64"``, ``"float64"``, ``"string"``
    or ``"timestamp[s]"``.

    With ``safe=True`` a value that can't be converted causes
    an error, with ``safe=False`` text that doesn't represent a
    valid value of the target type becomes a missing value.

    >>> import pyarrow as pa
    >>> from tablecook.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"price": ["10.5", "3", "n/a"]})
    >>> next(CastNode({"price": "float64"}, PyArrowTableDataSource(data), safe=False).batches()).to_pydict()
    {'price': [10.5, 3.0, None]}
    """

    def __init__(
        self, types: dict[str, str | pa.DataType], child: QueryPlanNode, safe: bool = True
    ) -> None:
        """
        :param types: The ``{column: type}`` conversions to apply.
        :param child: The node emitting the data.
        :param safe: Raise an error on values that can't be converted.
        """
        self.types = {
            name: type if isinstance(type, pa.DataType) else pa.type_for_alias(type)
            for name, type in types.items()
        }
        self.child = child
        self.safe = safe

    def __str__(self) -> str:
        types = {name: str(type) for name, type in self.types.items()}
        return f"CastNode({types}, safe={self.safe}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            require_columns(batch, list(self.types))
            columns = []
            for name in batch.column_names:
                column = batch.column(name)
                if name in self.types:
                    column = self._cast(column, self.types[name])
                columns.append(column)
            yield pa.record_batch(columns, names=batch.column_names)

    def _cast(self, column: pa.Array, target: pa.DataType) -> pa.Array:
        if self.safe:
            return pc.cast(column, target)

        try:
            return pc.cast(column, target)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError):
            pass
        # Convert value by value, turning the failures into missing values.
        converted = []
        for value in column:
            try:
                converted.append(value.cast(target).as_py())
            except (pa.ArrowInvalid, pa.ArrowNotImplementedError):
                converted.append(None)
        return pa.array(converted, type=target)


def _same_kind(value_type: pa.DataType, column_type: pa.DataType) -> bool:
    """If a value of value_type is a sensible replacement in a column of column_type."""
    kinds = (
        lambda t: pa.types.is_integer(t) or pa.types.is_floating(t) or pa.types.is_decimal(t),
        lambda t: pa.types.is_string(t) or pa.types.is_large_string(t),
        pa.types.is_boolean,
        pa.types.is_temporal,
    )
    return any(kind(value_type) and kind(column_type) for kind in kinds)


# NaN is never equal to itself, all NaNs share this key instead.
_NAN = object()


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)
