"""Command line interface to run the most common recipes on files.

This module provides the ``tablecook`` command, each recipe
is a subcommand that reads a CSV or Excel file (chosen by its extension),
applies one operation through the :class:`tablecook.dataframe.Dataframe`
API and prints the result in a tabular format using the
:mod:`tablecook.utils.tabulate` module::

    $ tablecook head sales.csv -n 3
    $ tablecook filter sales.csv --where "Quantity >= 5" -o big_orders.xlsx
    $ tablecook groupby sales.csv --by Product --agg "Total=sum:Quantity"
    $ tablecook plot sales.xlsx bar Product Quantity

When ``-o`` is provided, the result is saved to that file instead
and a confirmation is printed.
"""

import argparse
import logging
import os
import re
import sys
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..compute import FunctionCallExpression, col
from ..compute.base import Expression
from ..config import get_settings
from ..dataframe import Dataframe
from ..errors import FileFormatError, TableCookError
from ..files import write_table
from ..plotting import CHARTS

logger = logging.getLogger(__name__)

COMPARISONS = {
    "==": pc.equal,
    "!=": pc.not_equal,
    ">=": pc.greater_equal,
    "<=": pc.less_equal,
    ">": pc.greater,
    "<": pc.less,
}
CONDITION_RE = re.compile(r"^\s*(.+?)\s*(==|!=|>=|<=|>|<)\s*(.+?)\s*$")
AGGREGATION_RE = re.compile(r"^(?P<name>[^=]+)=(?P<func>[^:]+):(?P<column>.+)$")


def open_file(filename: str, sheet: str | None = None) -> Dataframe:
    """Open a data file, choosing how to read it from its extension."""
    extension = os.path.splitext(filename)[1].lower()
    if extension == ".csv":
        return Dataframe.open_csv(filename)
    elif extension == ".tsv":
        return Dataframe.open_csv(filename, delimiter="\t")
    elif extension == ".xlsx":
        return Dataframe.open_excel(filename, sheet=sheet)
    raise FileFormatError(
        f"Unsupported file {filename!r}, expected a .csv, .tsv or .xlsx file"
    )


def parse_literal(text: str, type: pa.DataType) -> Any:
    """Convert the text of a value to the type of the column it's compared to."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        text = text[1:-1]
    if pa.types.is_string(type) or pa.types.is_large_string(type):
        return text
    return pa.scalar(text).cast(type).as_py()


def parse_condition(condition: str, schema: pa.Schema) -> Expression:
    """Turn a condition like ``Quantity >= 5`` into an expression.

    >>> schema = pa.schema([("Quantity", pa.int64())])
    >>> str(parse_condition("Quantity >= 5", schema))
    'pyarrow.compute.greater_equal(ColumnRef(Quantity),5)'
    """
    match = CONDITION_RE.match(condition)
    if match is None:
        raise ValueError(
            f"Invalid condition {condition!r}, expected COLUMN OPERATOR VALUE like 'age > 30'"
        )
    column, operator, value = match.groups()
    field_index = schema.get_field_index(column)
    if field_index < 0:
        # Let the column reference report the missing column.
        return FunctionCallExpression(COMPARISONS[operator], col(column), value)
    value = parse_literal(value, schema.field(field_index).type)
    return FunctionCallExpression(COMPARISONS[operator], col(column), value)


def aggregation_spec(text: str) -> tuple[str, tuple[str, str]]:
    """Parse an aggregation provided as ``NAME=FUNCTION:COLUMN``."""
    match = AGGREGATION_RE.match(text)
    if match is None:
        raise argparse.ArgumentTypeError(
            f"invalid aggregation {text!r}, expected NAME=FUNCTION:COLUMN like Total=sum:Sales"
        )
    return match["name"], (match["func"], match["column"])


def positive_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the parser for the ``tablecook`` command and its subcommands."""
    parser = argparse.ArgumentParser(
        prog="tablecook", description="Run tabular data analysis recipes on CSV and Excel files."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log what is being read and written."
    )
    parser.add_argument(
        "--rows", type=positive_int, help="How many rows to print at most."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("file", help="The CSV, TSV or XLSX file to read.")
    common.add_argument("--sheet", help="The sheet to read from an Excel file.")
    common.add_argument("-o", "--output", help="Save the result to this file instead of printing it.")

    head = subparsers.add_parser("head", parents=[common], help="Show the first rows.")
    head.add_argument("-n", type=positive_int, default=5, help="Number of rows.")

    tail = subparsers.add_parser("tail", parents=[common], help="Show the last rows.")
    tail.add_argument("-n", type=positive_int, default=5, help="Number of rows.")

    subparsers.add_parser(
        "info", parents=[common], help="Show the columns, their types and missing values."
    )

    describe = subparsers.add_parser(
        "describe", parents=[common], help="Show summary statistics of numeric columns."
    )
    describe.add_argument(
        "--percentiles",
        type=float,
        nargs="*",
        default=[0.25, 0.5, 0.75],
        help="Percentiles to compute, between 0 and 1.",
    )

    filter_ = subparsers.add_parser("filter", parents=[common], help="Keep rows matching conditions.")
    filter_.add_argument(
        "-w",
        "--where",
        action="append",
        required=True,
        help="A condition like 'age > 30'. Can be provided multiple times, all must match.",
    )

    sort = subparsers.add_parser("sort", parents=[common], help="Sort rows by columns.")
    sort.add_argument("--by", action="append", required=True, help="Column to sort by.")
    sort.add_argument("--desc", action="store_true", help="Sort in descending order.")

    groupby = subparsers.add_parser(
        "groupby", parents=[common], help="Group rows and compute aggregations."
    )
    groupby.add_argument(
        "--by", action="append", default=[], help="Column to group by, none for the whole table."
    )
    groupby.add_argument(
        "--agg",
        action="append",
        type=aggregation_spec,
        required=True,
        help="An aggregation like Total=sum:Sales. Can be provided multiple times.",
    )

    pivot = subparsers.add_parser("pivot", parents=[common], help="Reshape data into a pivot table.")
    pivot.add_argument("--index", required=True, help="Column whose values become the rows.")
    pivot.add_argument("--columns", required=True, help="Column whose values become the columns.")
    pivot.add_argument("--values", required=True, help="Column whose values fill the cells.")
    pivot.add_argument("--agg", default="mean", help="How to aggregate multiple values.")

    value_counts = subparsers.add_parser(
        "value-counts", parents=[common], help="Count occurrences of each value."
    )
    value_counts.add_argument("column", help="The column whose values are counted.")
    value_counts.add_argument("--normalize", action="store_true", help="Show proportions.")

    corr = subparsers.add_parser("corr", parents=[common], help="Show the correlation matrix.")
    corr.add_argument("--columns", nargs="+", help="Columns to correlate, all numeric by default.")
    corr.add_argument("--method", choices=("pearson", "spearman"), default="pearson")

    dropna = subparsers.add_parser("dropna", parents=[common], help="Remove rows with missing values.")
    dropna.add_argument("--subset", nargs="+", help="Only consider these columns.")
    dropna.add_argument("--how", choices=("any", "all"), default="any")

    dedup = subparsers.add_parser("dedup", parents=[common], help="Remove duplicated rows.")
    dedup.add_argument("--subset", nargs="+", help="Only consider these columns.")
    dedup.add_argument("--keep", choices=("first", "last"), default="first")

    convert = subparsers.add_parser("convert", help="Convert a file to another format.")
    convert.add_argument("file", help="The CSV, TSV or XLSX file to read.")
    convert.add_argument("output", help="The file to write, format is chosen by extension.")
    convert.add_argument("--sheet", help="The sheet to read from an Excel file.")

    plot = subparsers.add_parser("plot", help="Draw a chart and save it as a PNG image.")
    plot.add_argument("file", help="The CSV, TSV or XLSX file to read.")
    plot.add_argument("kind", choices=tuple(CHARTS), help="The kind of chart.")
    plot.add_argument(
        "columns",
        nargs="+",
        help=(
            "Columns to plot: X Y [Y...] for bar and line, X Y for scatter, "
            "COLUMN for hist, COLUMN [COLUMN...] for box, LABELS VALUES for pie."
        ),
    )
    plot.add_argument("--sheet", help="The sheet to read from an Excel file.")
    plot.add_argument("--title", help="Title of the chart.")
    plot.add_argument("--bins", type=positive_int, default=10, help="Bins of a histogram.")
    plot.add_argument("--filename", help="Name of the image, derived from the columns by default.")
    plot.add_argument("--plots-dir", help="Directory where the image is saved.")
    return parser


def run_recipe(args: argparse.Namespace) -> Dataframe:
    """Apply the recipe requested by the subcommand, returns the resulting Dataframe."""
    df = open_file(args.file, sheet=args.sheet)
    command = args.command
    if command == "head":
        return df.head(args.n)
    elif command == "tail":
        return df.tail(args.n)
    elif command == "info":
        return df.info()
    elif command == "describe":
        return df.describe(percentiles=tuple(args.percentiles))
    elif command == "filter":
        schema = df.schema
        for condition in args.where:
            df = df.filter(parse_condition(condition, schema))
        return df
    elif command == "sort":
        return df.sort(args.by, descending=args.desc)
    elif command == "groupby":
        return df.aggregate(args.by, dict(args.agg))
    elif command == "pivot":
        return df.pivot(args.index, args.columns, args.values, aggregation=args.agg)
    elif command == "value-counts":
        return df.value_counts(args.column, normalize=args.normalize)
    elif command == "corr":
        return df.corr(columns=args.columns, method=args.method)
    elif command == "dropna":
        return df.dropna(subset=args.subset, how=args.how)
    elif command == "dedup":
        return df.drop_duplicates(subset=args.subset, keep=args.keep)
    elif command == "convert":
        return df
    raise ValueError(f"Unknown command {command!r}")


def draw_chart(args: argparse.Namespace) -> str:
    """Draw the chart requested by the ``plot`` subcommand, returns the saved path."""
    df = open_file(args.file, sheet=args.sheet)
    columns = args.columns
    options = {"title": args.title, "filename": args.filename, "plots_dir": args.plots_dir}
    kind = args.kind
    if kind in ("bar", "line"):
        if len(columns) < 2:
            raise ValueError(f"A {kind} chart requires X and at least one Y column")
        return df.plot(kind, columns[0], columns[1:], **options)
    elif kind in ("scatter", "pie"):
        if len(columns) != 2:
            raise ValueError(f"A {kind} chart requires exactly two columns")
        return df.plot(kind, columns[0], columns[1], **options)
    elif kind == "hist":
        if len(columns) != 1:
            raise ValueError("A hist chart requires exactly one column")
        return df.plot(kind, columns[0], bins=args.bins, **options)
    return df.plot(kind, columns, **options)


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and run the requested recipe."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.rows is not None:
        settings.display_rows = args.rows
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "plot":
            print(f"Saved chart to {draw_chart(args)}")
            return 0

        result = run_recipe(args)
        if args.output:
            print(write_table(result.node, args.output))
        else:
            print(result)
    except (TableCookError, FileNotFoundError, pa.ArrowException, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
