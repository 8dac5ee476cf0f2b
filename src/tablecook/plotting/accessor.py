"""Draw charts from a Dataframe."""

from typing import TYPE_CHECKING, Any

from . import charts

if TYPE_CHECKING:
    from ..dataframe import Dataframe


class PlotAccessor:
    """Expose the chart functions as methods of a Dataframe.

    Accessed through :attr:`tablecook.dataframe.Dataframe.plot`::

        df.plot.bar("Product", "Total", title="Sales by product")

    Each method accepts the same arguments of the function
    with the same name in :mod:`tablecook.plotting.charts`,
    except for the data, and returns the path of the saved image.
    """

    def __init__(self, dataframe: "Dataframe") -> None:
        self._dataframe = dataframe

    def __call__(self, kind: str, *args: Any, **kwargs: Any) -> str:
        """Draw a chart choosing its kind by name, like ``df.plot("hist", "age")``."""
        try:
            chart = charts.CHARTS[kind]
        except KeyError:
            raise ValueError(
                f"Unknown chart kind {kind!r}, use one of: {', '.join(charts.CHARTS)}"
            ) from None
        return chart(self._dataframe.to_arrow(), *args, **kwargs)

    def bar(self, *args: Any, **kwargs: Any) -> str:
        return self("bar", *args, **kwargs)

    def line(self, *args: Any, **kwargs: Any) -> str:
        return self("line", *args, **kwargs)

    def scatter(self, *args: Any, **kwargs: Any) -> str:
        return self("scatter", *args, **kwargs)

    def hist(self, *args: Any, **kwargs: Any) -> str:
        return self("hist", *args, **kwargs)

    def box(self, *args: Any, **kwargs: Any) -> str:
        return self("box", *args, **kwargs)

    def pie(self, *args: Any, **kwargs: Any) -> str:
        return self("pie", *args, **kwargs)
