"""
Synthetic Data Generator

Generates a small gold-layer star schema for local runs and tests.
Includes:
- Customers with countries, genders and birthdates
- Products across categories and subcategories
- Sales facts where one order carries one line per product
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import polars as pl
import structlog
from faker import Faker

from sales_insights.analytics.tables import WarehouseTables

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("Bikes", ["BI_MB", "BI_RB", "BI_TB"]),
    ("Components", ["CO_BR", "CO_CH", "CO_FO", "CO_WH"]),
    ("Clothing", ["CL_CA", "CL_GL", "CL_JE", "CL_SH"]),
    ("Accessories", ["AC_BO", "AC_HE", "AC_LI", "AC_PU"]),
]

COUNTRIES = ["United States", "Australia", "United Kingdom", "Germany", "France", "Canada", "n/a"]
COUNTRY_WEIGHTS = [0.40, 0.25, 0.10, 0.09, 0.09, 0.06, 0.01]

GENDERS = ["Male", "Female", "n/a"]
GENDER_WEIGHTS = [0.495, 0.495, 0.01]

ORDER_NUMBER_START = 43697


# =============================================================================
# GENERATOR
# =============================================================================

class StarSchemaGenerator:
    """
    Generate referentially consistent customer, product and sales tables.

    Example:
        generator = StarSchemaGenerator(seed=42)
        tables = generator.generate(customers=500, products=60, orders=2000)
        generator.write_csv(tables, "data/gold")
    """

    def __init__(self, seed: int = 42, start_date: date = date(2010, 12, 29), days: int = 1460):
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.start_date = start_date
        self.days = days

    def generate_customers(self, n: int = 1000) -> pl.DataFrame:
        """Generate n customers"""
        countries = self.rng.choice(COUNTRIES, size=n, p=COUNTRY_WEIGHTS)
        genders = self.rng.choice(GENDERS, size=n, p=GENDER_WEIGHTS)

        return pl.DataFrame({
            "customer_key": list(range(1, n + 1)),
            "first_name": [self.fake.first_name() for _ in range(n)],
            "last_name": [self.fake.last_name() for _ in range(n)],
            "country": countries.tolist(),
            "gender": genders.tolist(),
            "birthdate": [self.fake.date_of_birth(minimum_age=18, maximum_age=90) for _ in range(n)],
        })

    def generate_products(self, n: int = 100) -> pl.DataFrame:
        """Generate n products spread over the category tree"""
        subcategories = [(category, sub) for category, subs in CATEGORIES for sub in subs]
        picks = self.rng.integers(0, len(subcategories), size=n)
        costs = np.round(self.rng.uniform(2, 1500, size=n), 0)
        markups = self.rng.uniform(1.1, 1.8, size=n)

        rows: List[Dict] = []
        for i, (pick, cost, markup) in enumerate(zip(picks, costs, markups), start=1):
            category, subcategory_id = subcategories[pick]
            rows.append({
                "product_key": i,
                "product_name": f"{self.fake.word().title()} {category[:-1]} {i:03d}",
                "category": category,
                "subcategory_id": subcategory_id,
                "cost": int(cost),
                "price": int(round(cost * markup)),
            })
        return pl.DataFrame(rows)

    def generate_sales(
        self,
        customers: pl.DataFrame,
        products: pl.DataFrame,
        orders: int = 5000,
    ) -> pl.DataFrame:
        """Generate sales facts; each order has 1-4 lines for distinct products"""
        customer_keys = customers["customer_key"].to_numpy()
        product_keys = products["product_key"].to_numpy()
        prices = dict(zip(products["product_key"].to_list(), products["price"].to_list()))
        max_lines = min(4, len(product_keys))

        rows: List[Dict] = []
        for i in range(orders):
            order_number = f"SO{ORDER_NUMBER_START + i}"
            customer_key = int(self.rng.choice(customer_keys))
            order_date = self.start_date + timedelta(days=int(self.rng.integers(0, self.days)))
            lines = int(self.rng.integers(1, max_lines + 1))

            for product_key in self.rng.choice(product_keys, size=lines, replace=False):
                product_key = int(product_key)
                quantity = int(self.rng.choice([1, 1, 1, 2, 3]))
                price = prices[product_key]
                rows.append({
                    "order_number": order_number,
                    "product_key": product_key,
                    "customer_key": customer_key,
                    "order_date": order_date,
                    "sales_amount": price * quantity,
                    "quantity": quantity,
                    "price": price,
                })

        return pl.DataFrame(rows)

    def generate(self, customers: int = 1000, products: int = 100, orders: int = 5000) -> WarehouseTables:
        """Generate all three tables"""
        customers_df = self.generate_customers(customers)
        products_df = self.generate_products(products)
        sales_df = self.generate_sales(customers_df, products_df, orders)

        logger.info(
            "Generated star schema",
            customers=customers_df.height,
            products=products_df.height,
            sales_rows=sales_df.height,
        )
        return WarehouseTables(customers=customers_df, products=products_df, sales=sales_df)

    @staticmethod
    def write_csv(
        tables: WarehouseTables,
        output_dir: Union[str, Path],
        table_names: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Path]:
        """Write the tables as <output_dir>/<table>.csv"""
        names = table_names or {
            "customers": "dim_customers",
            "products": "dim_products",
            "sales": "fact_sales",
        }
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = {}
        for logical_name, table_name in names.items():
            path = output_dir / f"{table_name}.csv"
            tables.table(logical_name).write_csv(path)
            written[logical_name] = path
            logger.info(f"Written {tables.table(logical_name).height} rows to {path}")
        return written
