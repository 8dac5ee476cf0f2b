"""TableCook

A cookbook of tabular data analysis recipes, implemented as a library.

TableCook provides the operations that every analysis of tabular data
goes through: reading CSV and Excel files, inspecting the structure of the
data, cleaning missing values and duplicates, filtering, sorting,
grouping, pivoting, merging, computing statistics, drawing charts and
saving the results.

The library is constituted by multiple components, each isolated within its own
package and each self documented in literate programming style.

The primary components are:

* The Compute Engine, in charge of executing the operations on the data.
* The Dataframe API, which provides an high level API for the compute engine.
* The Files and Plotting packages, to read, save and chart the data.
* The ``tablecook`` command, to run the most common recipes from a shell.

For the user guide and code documentation of each component, refer to the
component itself.
"""

from . import compute, dataframe, files, plotting
from .dataframe import Dataframe

__all__ = ("compute", "dataframe", "files", "plotting", "Dataframe")
