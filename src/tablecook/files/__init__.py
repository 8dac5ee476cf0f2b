"""Reading and writing files.

Delimited text files are read directly by the compute engine
through :class:`tablecook.compute.CSVDataSource`, this package
provides the spreadsheet support and the writers used to save
the results of an analysis::

    >>> import pyarrow as pa
    >>> from tablecook.files import write_table
    >>> data = pa.table({"name": ["Alice", "Bob"], "age": [25, 30]})
    >>> print(write_table(data, "/tmp/people.csv"))
    Saved 2 rows to /tmp/people.csv
"""

from .excel import excel_sheet_names, read_excel
from .writers import WriteResult, write_csv, write_excel, write_table

__all__ = (
    "excel_sheet_names",
    "read_excel",
    "WriteResult",
    "write_csv",
    "write_excel",
    "write_table",
)
