"""Generate the sales and shops files used by the other examples."""

import csv
import os
import random
from datetime import datetime, timedelta

from tablecook import Dataframe

if not os.path.exists("data"):
    os.mkdir("data")

cities = ["Rome", "Milan", "Naples", "Turin", "Palermo", "Genoa", "Bologna", "Florence", "Bari", "Catania"]

if not os.path.exists("data/shops.xlsx"):
    shops = []
    for city in cities:
        for i in range(10):
            shops.append({"City": city, "Shop Name": f"Shop {i+1} in {city}"})
    print(Dataframe.from_pylist(shops).to_excel("data/shops.xlsx", sheet="Shops"))

if not os.path.exists("data/sales.csv"):
    products = ["Dress", "Car", "Videogame", "Laptop", "TV"]
    sales = []
    start_date = datetime(2023, 1, 1)
    end_date = datetime(2024, 12, 31)

    for i in range(1000):
        product = random.choice(products)
        # Some rows have missing values, like real world data.
        quantity = random.randint(1, 10) if random.random() > 0.05 else ""
        price = round(random.uniform(10, 100), 2)
        random_date = start_date + timedelta(days=random.randint(0, (end_date - start_date).days))
        shop = f"Shop {random.randint(1, 10)} in {random.choice(cities)}"
        sales.append([product, quantity, price, random_date.strftime("%Y-%m"), shop])

    with open("data/sales.csv", "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["Product", "Quantity", "Price", "Month", "Shop Name"])
        writer.writerows(sales)
    print("Saved 1000 rows to data/sales.csv")
