"""Dataframe library built on top of the tablecook compute engine.

A dataframe library is a tool designed to handle and manipulate structured data,
typically in the form of tables (i.e., rows and columns).
It allows users to load data from various sources (like CSV or Excel files),
explore it, clean it, apply transformations, and analyze it.

Each of the steps of a typical analysis is a method of the
:class:`Dataframe`, so that they can be chained::

    >>> from tablecook.dataframe import Dataframe
    >>> sales = Dataframe.from_pydict({
    ...     "Product": ["Laptop", "Phone", "Laptop", None],
    ...     "Quantity": [2, 5, 1, 3],
    ... })
    >>> print(sales.dropna().group_by("Product").aggregate(Sold=("sum", "Quantity")))
    Product | Sold
    ------- | ----
    Laptop  | 3
    Phone   | 5

Dataframes are lazy, every method builds a new plan node
on top of the previous one and nothing is computed until the data
is printed, collected, saved or plotted.
"""

from .dataframe import Dataframe, GroupBy

__all__ = ("Dataframe", "GroupBy")
