"""Render charts of tabular data to image files.

Each chart function receives the data (a table or a plan node),
the names of the columns to plot and saves a PNG image in the
plots directory, which by default is ``plots`` relative to the
current directory (see :mod:`tablecook.config`).

Charts are drawn on a :class:`matplotlib.figure.Figure` directly,
without going through ``pyplot``, so no display or interactive
backend is ever required.
"""

import logging
import os
import re

import pyarrow as pa
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from ..compute.base import QueryPlanNode, require_columns
from ..compute.statistics import is_numeric
from ..config import get_settings

logger = logging.getLogger(__name__)

TableLike = pa.Table | pa.RecordBatch | QueryPlanNode

FIGSIZE = (8, 5)
DPI = 100


def _as_table(data: TableLike) -> pa.Table:
    if isinstance(data, QueryPlanNode):
        return data.collect()
    elif isinstance(data, pa.RecordBatch):
        return pa.Table.from_batches([data])
    return data


def _require_numeric(table: pa.Table, columns: list[str]) -> None:
    not_numeric = [c for c in columns if not is_numeric(table.schema.field(c).type)]
    if not_numeric:
        raise ValueError(f"Can't plot non numeric column(s): {', '.join(not_numeric)}")


def chart_filename(kind: str, *columns: str) -> str:
    """Build a default file name for a chart.

    >>> chart_filename("bar", "Product", "Total Sales")
    'bar_product_total_sales.png'
    """
    parts = [kind] + [re.sub(r"[^0-9a-zA-Z]+", "_", c).strip("_").lower() for c in columns]
    return "_".join(p for p in parts if p) + ".png"


def save_figure(figure: Figure, filename: str, plots_dir: str | None = None) -> str:
    """Save a figure in the plots directory and return its path.

    Absolute filenames are saved where they point to.
    """
    plots_dir = plots_dir if plots_dir is not None else get_settings().plots_dir
    path = filename if os.path.isabs(filename) else os.path.join(plots_dir, filename)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    figure.savefig(path, format="png", dpi=DPI, bbox_inches="tight")
    logger.info("Saved chart to %s", path)
    return path


def _new_figure(title: str | None) -> tuple[Figure, Axes]:
    figure = Figure(figsize=FIGSIZE)
    axes = figure.add_subplot()
    if title:
        axes.set_title(title)
    return figure, axes


def bar(
    data: TableLike,
    x: str,
    y: str | list[str],
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Bar chart with a bar for each row, labelled by ``x``.

    When multiple ``y`` columns are provided, their bars
    are placed side by side.
    """
    table = _as_table(data)
    ys = [y] if isinstance(y, str) else list(y)
    require_columns(table, [x] + ys)
    _require_numeric(table, ys)

    labels = [str(v) for v in table.column(x).to_pylist()]
    positions = range(len(labels))
    width = 0.8 / len(ys)

    figure, axes = _new_figure(title)
    for idx, name in enumerate(ys):
        heights = [v if v is not None else 0 for v in table.column(name).to_pylist()]
        offsets = [p - 0.4 + width * (idx + 0.5) for p in positions]
        axes.bar(offsets, heights, width=width, label=name)
    axes.set_xticks(list(positions), labels, rotation=45, ha="right")
    axes.set_xlabel(x)
    if len(ys) > 1:
        axes.legend()
    else:
        axes.set_ylabel(ys[0])
    return save_figure(figure, filename or chart_filename("bar", x, *ys), plots_dir)


def line(
    data: TableLike,
    x: str,
    y: str | list[str],
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Line chart of one or more ``y`` columns against ``x``.

    Missing values interrupt the line.
    """
    table = _as_table(data)
    ys = [y] if isinstance(y, str) else list(y)
    require_columns(table, [x] + ys)
    _require_numeric(table, ys)

    xs = table.column(x).to_pylist()
    figure, axes = _new_figure(title)
    for name in ys:
        values = [v if v is not None else float("nan") for v in table.column(name).to_pylist()]
        axes.plot(xs, values, marker="o", label=name)
    axes.set_xlabel(x)
    if len(ys) > 1:
        axes.legend()
    else:
        axes.set_ylabel(ys[0])
    return save_figure(figure, filename or chart_filename("line", x, *ys), plots_dir)


def scatter(
    data: TableLike,
    x: str,
    y: str,
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Scatter plot of two numeric columns.

    Rows where either value is missing are not drawn.
    """
    table = _as_table(data)
    require_columns(table, [x, y])
    _require_numeric(table, [x, y])

    points = [
        (xv, yv)
        for xv, yv in zip(table.column(x).to_pylist(), table.column(y).to_pylist())
        if xv is not None and yv is not None
    ]
    figure, axes = _new_figure(title)
    axes.scatter([p[0] for p in points], [p[1] for p in points])
    axes.set_xlabel(x)
    axes.set_ylabel(y)
    return save_figure(figure, filename or chart_filename("scatter", x, y), plots_dir)


def hist(
    data: TableLike,
    column: str,
    bins: int = 10,
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Histogram of the distribution of a numeric column."""
    table = _as_table(data)
    require_columns(table, [column])
    _require_numeric(table, [column])

    values = [v for v in table.column(column).to_pylist() if v is not None]
    figure, axes = _new_figure(title)
    axes.hist(values, bins=bins)
    axes.set_xlabel(column)
    axes.set_ylabel("count")
    return save_figure(figure, filename or chart_filename("hist", column), plots_dir)


def box(
    data: TableLike,
    columns: str | list[str],
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Box plot of one or more numeric columns."""
    table = _as_table(data)
    names = [columns] if isinstance(columns, str) else list(columns)
    require_columns(table, names)
    _require_numeric(table, names)

    values = [
        [v for v in table.column(name).to_pylist() if v is not None] for name in names
    ]
    figure, axes = _new_figure(title)
    axes.boxplot(values)
    axes.set_xticks(range(1, len(names) + 1), names)
    return save_figure(figure, filename or chart_filename("box", *names), plots_dir)


def pie(
    data: TableLike,
    labels: str,
    values: str,
    title: str | None = None,
    filename: str | None = None,
    plots_dir: str | None = None,
) -> str:
    """Pie chart of the share of each row, labelled by ``labels``.

    Rows with a missing or non positive value are left out.
    """
    table = _as_table(data)
    require_columns(table, [labels, values])
    _require_numeric(table, [values])

    slices = [
        (str(label), value)
        for label, value in zip(
            table.column(labels).to_pylist(), table.column(values).to_pylist()
        )
        if value is not None and value > 0
    ]
    if not slices:
        raise ValueError(f"Column {values!r} has no positive values to plot")
    figure, axes = _new_figure(title)
    axes.pie([s[1] for s in slices], labels=[s[0] for s in slices], autopct="%1.1f%%")
    axes.set_aspect("equal")
    return save_figure(figure, filename or chart_filename("pie", labels, values), plots_dir)


CHARTS = {
    "bar": bar,
    "line": line,
    "scatter": scatter,
    "hist": hist,
    "box": box,
    "pie": pie,
}
