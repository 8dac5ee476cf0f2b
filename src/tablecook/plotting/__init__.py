"""Charts of tabular data.

Every chart is saved as a PNG image in the plots directory
(``plots`` by default) and the path of the saved file is returned::

    >>> import pyarrow as pa
    >>> from tablecook import plotting
    >>> sales = pa.table({"Product": ["TV", "Laptop"], "Total": [1200.0, 800.0]})
    >>> plotting.bar(sales, "Product", "Total")
    'plots/bar_product_total.png'

Charts can also be drawn from a :class:`tablecook.dataframe.Dataframe`
through its ``plot`` accessor, see :class:`PlotAccessor`.
"""

from .accessor import PlotAccessor
from .charts import CHARTS, bar, box, chart_filename, hist, line, pie, save_figure, scatter

__all__ = (
    "PlotAccessor",
    "CHARTS",
    "bar",
    "box",
    "chart_filename",
    "hist",
    "line",
    "pie",
    "save_figure",
    "scatter",
)
