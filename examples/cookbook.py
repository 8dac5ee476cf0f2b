"""Walk through a complete analysis of the generated sales data.

Run ``generate_test_data.py`` first to create the data files.
"""

import pyarrow.compute as pc

from tablecook import Dataframe
from tablecook.compute import FunctionCallExpression, col

sales = Dataframe.open_csv("data/sales.csv")
shops = Dataframe.open_excel("data/shops.xlsx", sheet="Shops")

print("Structure of the data:")
print(sales.info())
print(sales.head())

print("\nSummary statistics:")
print(sales.describe())

clean = (
    sales.dropna(subset=["Quantity"])
    .drop_duplicates()
    .with_columns(Total=FunctionCallExpression(pc.multiply, col("Quantity"), col("Price")))
    .join(shops, on="Shop Name", how="left")
    .collect()
)

print("\nBest selling products:")
by_product = (
    clean.group_by("Product")
    .aggregate(Revenue=("sum", "Total"), Orders=("count", "Total"), AvgPrice=("mean", "Price"))
    .sort(["Revenue"], descending=True)
)
print(by_product)

print("\nMonthly revenue per city:")
print(clean.pivot("Month", "City", "Total", aggregation="sum").head(12))

print("\nMost active cities:")
print(clean.value_counts("City", normalize=True))

print("\nCorrelation between quantity and price:")
print(clean.corr(columns=["Quantity", "Price"]))

print()
print(by_product.to_excel("data/revenue_by_product.xlsx", sheet="Revenue"))
print("Saved chart to", by_product.plot.bar("Product", "Revenue", title="Revenue by product"))
print("Saved chart to", clean.plot.hist("Price", bins=20, title="Price distribution"))
