"""Exceptions raised by TableCook.

Invalid arguments are reported with :class:`ValueError` when
the plan nodes are created, errors coming from Apache Arrow
(like a failed type conversion) are propagated as they are.

The exceptions here cover the failures that are specific
to working with tables: referencing a column that
doesn't exist and reading or writing unsupported files.
"""


class TableCookError(Exception):
    """Base class for all TableCook specific errors."""


class ColumnNotFoundError(TableCookError, KeyError):
    """A referenced column is not part of the data.

    >>> raise ColumnNotFoundError(["age"], ["name", "city"])
    Traceback (most recent call last):
        ...
    tablecook.errors.ColumnNotFoundError: Missing column(s): age. Available columns: name, city
    """

    def __init__(self, missing: list[str], available: list[str]) -> None:
        """
        :param missing: The names of the columns that were not found.
        :param available: The names of the columns the data actually has.
        """
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(
            f"Missing column(s): {', '.join(self.missing)}. "
            f"Available columns: {', '.join(self.available)}"
        )

    def __str__(self) -> str:
        # KeyError would quote the message otherwise.
        return self.args[0]


class FileFormatError(TableCookError, ValueError):
    """A file can't be read or written in the requested format."""
