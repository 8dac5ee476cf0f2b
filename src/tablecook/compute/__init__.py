"""The TableCook Compute Engine

The compute engine defines the in-memory
format of the operations applied to tables
and the operations supported.

The compute engine is tightly bound to Apache Arrow,
thus the engine will expect to always deal with
:class:`pyarrow.RecordBatch` and emit a new RecordBatch
as the result of the node execution.

This allows to easily build compute pipelines like::

    (RecordBatch)-->Node1--(RecordBatch)-->Node2--(RecordBatch)-->...

The plan nodes themselves are in charge of their execution,
this keeps the behavior near to the node and thus makes easy to
know how a Node is actually executed without having to look around too much.

Building a plan requires to combine the nodes that we want
to be executed starting with one or more ``DataSource`` nodes as the
leafs node of the plan:

>>> import pyarrow as pa
>>> data = pa.table({
...    "animals": pa.array(["Flamingo", "Horse", "Brittle stars", "Centipede"]),
...    "n_legs": pa.array([2, 4, 5, 100])
... })
>>>
>>> import pyarrow.compute as pc
>>> from tablecook.compute import col, PyArrowTableDataSource
>>> from tablecook.compute import FilterNode, FunctionCallExpression
>>> # animals with at least 5 legs
>>> query = FilterNode(
...     FunctionCallExpression(pc.greater_equal, col("n_legs"), 5),
...     child=PyArrowTableDataSource(
...         data
...     )
... )
>>> for data in query.batches():
...     print(data)
pyarrow.RecordBatch
animals: string
n_legs: int64
----
animals: ["Brittle stars","Centipede"]
n_legs: [5,100]
"""

from .base import ColumnRef, Literal, QueryPlanNode, col, lit
from .aggregate import (
    AGGREGATIONS,
    AggregateNode,
    CountAggregation,
    CountDistinctAggregation,
    FirstAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    StdAggregation,
    SumAggregation,
    get_aggregation,
)
from .cleaning import CastNode, DropDuplicatesNode, DropNullsNode, FillNullNode, RenameNode
from .datasources import CSVDataSource, ExcelDataSource, PyArrowTableDataSource
from .expressions import FunctionCallExpression
from .filtering import FilterNode
from .join import JoinNode
from .pagination import PaginateNode, TailNode
from .pivot import MeltNode, PivotNode
from .ranking import RankNode
from .selection import DropColumnsNode, ProjectNode
from .sorting import SortNode
from .statistics import CorrelationNode, DescribeNode, InfoNode, ValueCountsNode

__all__ = (
    "QueryPlanNode",
    "CSVDataSource",
    "ExcelDataSource",
    "PyArrowTableDataSource",
    "FilterNode",
    "FunctionCallExpression",
    "col",
    "lit",
    "ColumnRef",
    "Literal",
    "PaginateNode",
    "TailNode",
    "SortNode",
    "ProjectNode",
    "DropColumnsNode",
    "DropNullsNode",
    "FillNullNode",
    "DropDuplicatesNode",
    "RenameNode",
    "CastNode",
    "AggregateNode",
    "AGGREGATIONS",
    "get_aggregation",
    "CountAggregation",
    "CountDistinctAggregation",
    "FirstAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "MinAggregation",
    "StdAggregation",
    "SumAggregation",
    "PivotNode",
    "MeltNode",
    "JoinNode",
    "RankNode",
    "InfoNode",
    "DescribeNode",
    "CorrelationNode",
    "ValueCountsNode",
)
