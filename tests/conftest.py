"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from sales_insights.analytics.tables import WarehouseTables
from sales_insights.config import ReportSettings, get_settings
from sales_insights.data.generators import StarSchemaGenerator


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Each test reads settings from a clean environment"""
    for var in ("WAREHOUSE_SOURCE", "WAREHOUSE_DATA_DIR", "WAREHOUSE_FILE_FORMAT", "WAREHOUSE_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("APP_ENV", "testing")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def report_settings() -> ReportSettings:
    """Report settings with a fixed reference date"""
    return ReportSettings(reference_date=date(2025, 1, 1))


@pytest.fixture
def sample_customers_df() -> pl.DataFrame:
    """Five customers; customer 5 has no orders"""
    return pl.DataFrame({
        "customer_key": [1, 2, 3, 4, 5],
        "first_name": ["John", "Jane", "Marie", "Hans", "Alex"],
        "last_name": ["Doe", "Smith", "Curie", "Weber", "Kim"],
        "country": ["US", "US", "FR", "DE", "DE"],
        "gender": ["Male", "Female", "Female", "Male", "n/a"],
        "birthdate": [
            date(1980, 5, 1),
            date(1990, 7, 15),
            date(1975, 1, 20),
            date(1965, 11, 30),
            date(2000, 3, 10),
        ],
    })


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Four products; the jersey is never sold"""
    return pl.DataFrame({
        "product_key": [10, 11, 12, 13],
        "product_name": ["Road Bike", "Helmet", "Bottle", "Jersey"],
        "category": ["Bikes", "Accessories", "Accessories", "Clothing"],
        "subcategory_id": ["BI_RB", "AC_HE", "AC_BO", "CL_JE"],
        "cost": [500.0, 20.0, 2.0, 30.0],
        "price": [1000.0, 50.0, 5.0, 60.0],
    })


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """Seven order lines over five orders; SO1 has three lines"""
    return pl.DataFrame({
        "order_number": ["SO1", "SO1", "SO1", "SO2", "SO3", "SO4", "SO5"],
        "customer_key": [1, 1, 1, 2, 3, 3, 4],
        "product_key": [10, 11, 12, 11, 10, 12, 11],
        "order_date": [
            date(2011, 1, 10),
            date(2011, 1, 10),
            date(2011, 1, 10),
            date(2012, 3, 5),
            date(2013, 12, 31),
            date(2013, 12, 31),
            date(2012, 6, 1),
        ],
        "sales_amount": [1000.0, 100.0, 5.0, 50.0, 1000.0, 10.0, 50.0],
        "quantity": [1, 2, 1, 1, 1, 2, 1],
        "price": [1000.0, 50.0, 5.0, 50.0, 1000.0, 5.0, 50.0],
    })


@pytest.fixture
def sample_tables(sample_customers_df, sample_products_df, sample_sales_df) -> WarehouseTables:
    return WarehouseTables(
        customers=sample_customers_df,
        products=sample_products_df,
        sales=sample_sales_df,
    )


@pytest.fixture(scope="session")
def generated_tables() -> WarehouseTables:
    """Larger synthetic warehouse for property checks"""
    return StarSchemaGenerator(seed=7).generate(customers=200, products=40, orders=600)
