"""
Warehouse Tables

The three star-schema inputs held together as one immutable value, plus the
column contracts each report checks before it runs.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping

import polars as pl

from sales_insights.exceptions import MissingInputError, SchemaMismatchError

CUSTOMERS = "customers"
PRODUCTS = "products"
SALES = "sales"

# Column kinds
ANY = "any"
NUMERIC = "numeric"
TEMPORAL = "temporal"

CUSTOMER_COLUMNS: Dict[str, str] = {
    "customer_key": ANY,
    "first_name": ANY,
    "last_name": ANY,
    "country": ANY,
    "gender": ANY,
    "birthdate": TEMPORAL,
}

PRODUCT_COLUMNS: Dict[str, str] = {
    "product_key": ANY,
    "product_name": ANY,
    "category": ANY,
    "subcategory_id": ANY,
    "cost": NUMERIC,
    "price": NUMERIC,
}

SALES_COLUMNS: Dict[str, str] = {
    "order_number": ANY,
    "customer_key": ANY,
    "product_key": ANY,
    "order_date": TEMPORAL,
    "sales_amount": NUMERIC,
    "quantity": NUMERIC,
    "price": NUMERIC,
}

TABLE_COLUMNS: Dict[str, Dict[str, str]] = {
    CUSTOMERS: CUSTOMER_COLUMNS,
    PRODUCTS: PRODUCT_COLUMNS,
    SALES: SALES_COLUMNS,
}


def _matches_kind(dtype: pl.DataType, kind: str) -> bool:
    if kind == ANY or dtype == pl.Null:
        return True
    if kind == NUMERIC:
        return dtype.is_numeric()
    if kind == TEMPORAL:
        return dtype.is_temporal()
    return False


def require_columns(df: pl.DataFrame, table: str, columns: Mapping[str, str]) -> None:
    """
    Check that a table carries the given columns with the expected kinds.

    Raises:
        SchemaMismatchError: listing every missing or mistyped column
    """
    problems: List[str] = []
    schema = df.schema
    for column, kind in columns.items():
        if column not in schema:
            problems.append(f"missing column '{column}'")
        elif not _matches_kind(schema[column], kind):
            problems.append(f"column '{column}' is {schema[column]}, expected {kind}")

    if problems:
        raise SchemaMismatchError(table, problems)


def _parse_temporal(series: pl.Series) -> pl.Series:
    """Parse ISO date or datetime text; anything else stays text for the schema check to report"""
    try:
        return series.str.to_date()
    except pl.exceptions.PolarsError:
        pass
    try:
        return series.str.to_datetime()
    except pl.exceptions.PolarsError:
        return series


def _coerce(df: pl.DataFrame, columns: Mapping[str, str]) -> pl.DataFrame:
    """
    Give loosely typed columns a concrete type so aggregates behave.

    Text readers (header-only CSV, JSON) type empty columns as strings and
    dates as text; database readers may return untyped or decimal columns.
    """
    casts = []
    for column, kind in columns.items():
        if column not in df.columns:
            continue
        series = df[column]
        dtype = series.dtype
        untyped = dtype == pl.Null or (dtype == pl.String and series.null_count() == series.len())
        if kind == NUMERIC and (untyped or dtype == pl.Decimal):
            casts.append(series.cast(pl.Float64))
        elif kind == TEMPORAL and untyped:
            casts.append(series.cast(pl.Date))
        elif kind == TEMPORAL and dtype == pl.String:
            casts.append(_parse_temporal(series))
    return df.with_columns(casts) if casts else df


@dataclass(frozen=True)
class WarehouseTables:
    """Customer, product and sales tables as read from the warehouse"""
    customers: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame

    def __post_init__(self):
        for name in (CUSTOMERS, PRODUCTS, SALES):
            if not isinstance(getattr(self, name), pl.DataFrame):
                raise MissingInputError(name)

    def table(self, name: str) -> pl.DataFrame:
        """Get a table by its logical name"""
        if name not in TABLE_COLUMNS:
            raise KeyError(f"Unknown table: {name}")
        return getattr(self, name)

    def coerced(self) -> "WarehouseTables":
        """Copy with untyped, decimal and date-as-text columns cast to concrete types"""
        return WarehouseTables(
            customers=_coerce(self.customers, CUSTOMER_COLUMNS),
            products=_coerce(self.products, PRODUCT_COLUMNS),
            sales=_coerce(self.sales, SALES_COLUMNS),
        )

    @property
    def row_counts(self) -> Dict[str, int]:
        return {
            CUSTOMERS: self.customers.height,
            PRODUCTS: self.products.height,
            SALES: self.sales.height,
        }
