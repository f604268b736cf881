"""
Report Definitions

Every report is a pure function of the warehouse tables and the report
settings. Reports register themselves with the columns they read so the
generator can check the schema before running them.

Joins from the sales facts to a dimension keep only matched rows; the rows
left out are counted and returned as a ``ReferentialGapWarning``. Customer
count reports start from the customer dimension so customers without orders
are kept with a count of zero.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from sales_insights.analytics.ranking import sort_and_slice, sort_by_metric
from sales_insights.analytics.tables import TABLE_COLUMNS, WarehouseTables
from sales_insights.config.settings import ReportSettings
from sales_insights.exceptions import ReferentialGapWarning
from sales_insights.quality.validators import validate_warehouse

logger = structlog.get_logger(__name__)


@dataclass
class ReportOutput:
    """Frame produced by a report plus any rows it had to leave out"""
    frame: pl.DataFrame
    gaps: List[ReferentialGapWarning] = field(default_factory=list)


ReportFunc = Callable[[WarehouseTables, ReportSettings], ReportOutput]


@dataclass(frozen=True)
class ReportDefinition:
    """Registered report"""
    name: str
    func: ReportFunc
    description: str
    requires: Dict[str, Dict[str, str]]


REPORTS: Dict[str, ReportDefinition] = {}


def report(name: str, description: str, **requires: Sequence[str]):
    """
    Register a report function.

    Keyword arguments name the tables the report reads and the columns it
    needs from each, e.g. ``sales=["sales_amount"]``.
    """
    def decorator(func: ReportFunc) -> ReportFunc:
        columns = {
            table: {column: TABLE_COLUMNS[table][column] for column in names}
            for table, names in requires.items()
        }
        REPORTS[name] = ReportDefinition(name=name, func=func, description=description, requires=columns)
        return func

    return decorator


def _align_key(
    frame: pl.DataFrame,
    reference: pl.DataFrame,
    key: str,
) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """
    Give ``frame``'s key the dtype of ``reference``'s key.

    Values that do not convert become null and so never match. An untyped
    (all-null) reference key takes the frame's dtype instead.
    """
    frame_dtype, reference_dtype = frame.schema[key], reference.schema[key]
    if frame_dtype == reference_dtype:
        return frame, reference
    if reference_dtype == pl.Null:
        return frame, reference.with_columns(pl.col(key).cast(frame_dtype))
    return frame.with_columns(pl.col(key).cast(reference_dtype, strict=False)), reference


def _join_dimension(
    sales: pl.DataFrame,
    dimension: pl.DataFrame,
    key: str,
    columns: Sequence[str],
    dimension_name: str,
) -> Tuple[pl.DataFrame, Optional[ReferentialGapWarning]]:
    """Attach dimension attributes to sales rows, counting rows whose key has no match"""
    lookup = (
        dimension.select([key, *columns])
        .unique(subset=[key], keep="first", maintain_order=True)
    )
    sales, lookup = _align_key(sales, lookup, key)
    matched = sales.drop([c for c in columns if c in sales.columns]).join(lookup, on=key, how="inner")

    excluded = sales.height - matched.height
    if excluded == 0:
        return matched, None

    gap = ReferentialGapWarning(dimension=dimension_name, key_column=key, excluded_rows=excluded)
    logger.warning("Referential gap", dimension=dimension_name, key=key, excluded_rows=excluded)
    return matched, gap


def _gaps(*gaps: Optional[ReferentialGapWarning]) -> List[ReferentialGapWarning]:
    return [g for g in gaps if g is not None]


# =============================================================================
# MEASURES
# =============================================================================

def _summary(tables: WarehouseTables) -> Dict[str, object]:
    summary = tables.sales.select(
        pl.col("sales_amount").sum().cast(pl.Float64).alias("total_sales"),
        pl.col("quantity").sum().alias("total_quantity"),
        pl.col("price").mean().alias("avg_price"),
        pl.col("order_number").drop_nulls().n_unique().cast(pl.Int64).alias("total_orders"),
    ).row(0, named=True)

    summary["total_products"] = tables.products["product_name"].drop_nulls().n_unique()
    summary["total_customers"] = tables.customers["customer_key"].drop_nulls().n_unique()
    return summary


@report(
    "total_sales_summary",
    "Sales, quantity, average price, and order/product/customer counts",
    sales=["sales_amount", "quantity", "price", "order_number"],
    products=["product_name"],
    customers=["customer_key"],
)
def total_sales_summary(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    """avg_price is null when there are no sales rows"""
    summary = _summary(tables)
    frame = pl.DataFrame(
        [summary],
        schema_overrides={
            "total_sales": pl.Float64,
            "avg_price": pl.Float64,
            "total_orders": pl.Int64,
            "total_products": pl.Int64,
            "total_customers": pl.Int64,
        },
    )
    return ReportOutput(frame)


@report(
    "key_metrics",
    "Headline KPIs as measure_name / measure_value rows",
    sales=["sales_amount", "quantity", "price", "order_number"],
    products=["product_name"],
    customers=["customer_key"],
)
def key_metrics(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    summary = _summary(tables)
    labels = [
        ("Total Sales", "total_sales"),
        ("Total Quantity", "total_quantity"),
        ("Average Price", "avg_price"),
        ("Total Nr. Orders", "total_orders"),
        ("Total Nr. Products", "total_products"),
        ("Total Nr. Customers", "total_customers"),
    ]
    values = [summary[field_name] for _, field_name in labels]
    frame = pl.DataFrame(
        {
            "measure_name": [label for label, _ in labels],
            "measure_value": [float(v) if v is not None else None for v in values],
        },
        schema={"measure_name": pl.Utf8, "measure_value": pl.Float64},
    )
    return ReportOutput(frame)


@report(
    "order_date_range",
    "First and last order date and the span between them",
    sales=["order_date"],
)
def order_date_range(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    """Spans count calendar boundaries crossed, like SQL DATEDIFF"""
    first = pl.col("order_date").min()
    last = pl.col("order_date").max()
    years = last.dt.year().cast(pl.Int64) - first.dt.year().cast(pl.Int64)
    months = years * 12 + (last.dt.month().cast(pl.Int64) - first.dt.month().cast(pl.Int64))

    frame = tables.sales.select(
        first.alias("first_order_date"),
        last.alias("last_order_date"),
        years.alias("order_range_years"),
        months.alias("order_range_months"),
    )
    return ReportOutput(frame)


@report(
    "customer_age_range",
    "Oldest and youngest customer birthdates and ages",
    customers=["birthdate"],
)
def customer_age_range(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    reference: date = options.reference_date or date.today()
    oldest = pl.col("birthdate").min()
    youngest = pl.col("birthdate").max()
    oldest_year = oldest.dt.year().cast(pl.Int64)
    youngest_year = youngest.dt.year().cast(pl.Int64)

    frame = tables.customers.select(
        oldest.alias("oldest_birthdate"),
        (pl.lit(reference.year, dtype=pl.Int64) - oldest_year).alias("oldest_age"),
        youngest.alias("youngest_birthdate"),
        (pl.lit(reference.year, dtype=pl.Int64) - youngest_year).alias("youngest_age"),
        (youngest_year - oldest_year).alias("birthdate_range_years"),
    )
    return ReportOutput(frame)


# =============================================================================
# DIMENSIONS
# =============================================================================

@report("countries", "Distinct customer countries", customers=["country"])
def countries(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    frame = tables.customers.select("country").unique().sort("country", nulls_last=True)
    return ReportOutput(frame)


@report(
    "product_hierarchy",
    "Distinct category / subcategory / product combinations",
    products=["category", "subcategory_id", "product_name"],
)
def product_hierarchy(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    columns = ["category", "subcategory_id", "product_name"]
    frame = tables.products.select(columns).unique().sort(columns, nulls_last=True)
    return ReportOutput(frame)


# =============================================================================
# MAGNITUDE
# =============================================================================

@report(
    "customers_by_country",
    "Customers per country",
    customers=["customer_key", "country"],
)
def customers_by_country(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    frame = tables.customers.group_by("country").agg(
        pl.col("customer_key").count().cast(pl.Int64).alias("total_customers")
    )
    return ReportOutput(sort_by_metric(frame, "total_customers", "country"))


@report(
    "products_by_category",
    "Products per category",
    products=["product_key", "category"],
)
def products_by_category(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    frame = tables.products.group_by("category").agg(
        pl.col("product_key").count().cast(pl.Int64).alias("total_products")
    )
    return ReportOutput(sort_by_metric(frame, "total_products", "category"))


@report(
    "avg_cost_by_category",
    "Average product cost per category",
    products=["category", "cost"],
)
def avg_cost_by_category(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    frame = tables.products.group_by("category").agg(
        pl.col("cost").mean().alias("avg_cost")
    )
    return ReportOutput(sort_by_metric(frame, "avg_cost", "category"))


@report(
    "revenue_by_category",
    "Revenue per product category",
    sales=["product_key", "sales_amount"],
    products=["product_key", "category"],
)
def revenue_by_category(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    matched, gap = _join_dimension(tables.sales, tables.products, "product_key", ["category"], "dim_products")
    frame = matched.group_by("category").agg(
        pl.col("sales_amount").sum().alias("total_revenue")
    )
    return ReportOutput(sort_by_metric(frame, "total_revenue", "category"), _gaps(gap))


def _revenue_by_customer(tables: WarehouseTables) -> ReportOutput:
    matched, gap = _join_dimension(
        tables.sales, tables.customers, "customer_key", ["first_name", "last_name"], "dim_customers"
    )
    frame = matched.group_by(["customer_key", "first_name", "last_name"]).agg(
        pl.col("sales_amount").sum().alias("total_revenue")
    )
    return ReportOutput(sort_by_metric(frame, "total_revenue", "customer_key"), _gaps(gap))


@report(
    "revenue_by_customer",
    "Revenue per customer",
    sales=["customer_key", "sales_amount"],
    customers=["customer_key", "first_name", "last_name"],
)
def revenue_by_customer(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    return _revenue_by_customer(tables)


@report(
    "items_sold_by_country",
    "Quantity sold per customer country",
    sales=["customer_key", "quantity"],
    customers=["customer_key", "country"],
)
def items_sold_by_country(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    matched, gap = _join_dimension(tables.sales, tables.customers, "customer_key", ["country"], "dim_customers")
    frame = matched.group_by("country").agg(
        pl.col("quantity").sum().alias("total_items_sold")
    )
    return ReportOutput(sort_by_metric(frame, "total_items_sold", "country"), _gaps(gap))


@report(
    "sales_by_gender",
    "Customers, average and total sales per gender",
    sales=["customer_key", "sales_amount"],
    customers=["customer_key", "gender"],
)
def sales_by_gender(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    """
    Groups with fewer than ``min_group_size`` customers are flagged with
    ``low_sample_size``; their averages are shown but are not comparable.
    """
    matched, gap = _join_dimension(tables.sales, tables.customers, "customer_key", ["gender"], "dim_customers")
    frame = (
        matched.group_by("gender")
        .agg(
            pl.col("customer_key").n_unique().cast(pl.Int64).alias("num_customers"),
            pl.col("sales_amount").mean().alias("avg_sales"),
            pl.col("sales_amount").sum().alias("total_sales"),
        )
        .with_columns(
            (pl.col("num_customers") < options.min_group_size).alias("low_sample_size")
        )
    )
    return ReportOutput(sort_by_metric(frame, "avg_sales", "gender"), _gaps(gap))


# =============================================================================
# RANKING
# =============================================================================

def _product_revenue(tables: WarehouseTables, group_column: str, metric: str) -> ReportOutput:
    matched, gap = _join_dimension(tables.sales, tables.products, "product_key", [group_column], "dim_products")
    frame = matched.group_by(group_column).agg(pl.col("sales_amount").sum().alias(metric))
    return ReportOutput(frame, _gaps(gap))


def _ranked(
    output: ReportOutput,
    metric: str,
    key: str,
    n: int,
    descending: bool,
) -> ReportOutput:
    return ReportOutput(sort_and_slice(output.frame, metric, key, n, descending), output.gaps)


_PRODUCT_COLUMNS = dict(sales=["product_key", "sales_amount"], products=["product_key", "product_name"])
_SUBCATEGORY_COLUMNS = dict(sales=["product_key", "sales_amount"], products=["product_key", "subcategory_id"])
_CUSTOMER_COLUMNS = dict(
    sales=["customer_key", "sales_amount"],
    customers=["customer_key", "first_name", "last_name"],
)


@report("top_n_products_by_revenue", "Best-selling products by revenue", **_PRODUCT_COLUMNS)
def top_n_products_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    output = _product_revenue(tables, "product_name", "total_product_revenue")
    return _ranked(output, "total_product_revenue", "product_name", options.top_n, descending=True)


@report("bottom_n_products_by_revenue", "Least-selling products by revenue", **_PRODUCT_COLUMNS)
def bottom_n_products_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    output = _product_revenue(tables, "product_name", "total_product_revenue")
    return _ranked(output, "total_product_revenue", "product_name", options.top_n, descending=False)


@report("top_n_subcategories_by_revenue", "Best-selling subcategories by revenue", **_SUBCATEGORY_COLUMNS)
def top_n_subcategories_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    output = _product_revenue(tables, "subcategory_id", "total_subcategory_revenue")
    return _ranked(output, "total_subcategory_revenue", "subcategory_id", options.top_n, descending=True)


@report("bottom_n_subcategories_by_revenue", "Least-selling subcategories by revenue", **_SUBCATEGORY_COLUMNS)
def bottom_n_subcategories_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    output = _product_revenue(tables, "subcategory_id", "total_subcategory_revenue")
    return _ranked(output, "total_subcategory_revenue", "subcategory_id", options.top_n, descending=False)


@report("top_n_customers_by_revenue", "Highest-revenue customers", **_CUSTOMER_COLUMNS)
def top_n_customers_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    return _ranked(_revenue_by_customer(tables), "total_revenue", "customer_key", options.top_n, descending=True)


@report("bottom_n_customers_by_revenue", "Lowest-revenue customers with at least one sale", **_CUSTOMER_COLUMNS)
def bottom_n_customers_by_revenue(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    return _ranked(_revenue_by_customer(tables), "total_revenue", "customer_key", options.top_n, descending=False)


# =============================================================================
# CUSTOMER ENGAGEMENT
# =============================================================================

_ORDER_COUNT_COLUMNS = dict(
    sales=["customer_key", "order_number"],
    customers=["customer_key", "first_name", "last_name"],
)


def _customer_order_counts(tables: WarehouseTables) -> ReportOutput:
    matched, gap = _join_dimension(
        tables.sales.select(["customer_key", "order_number"]),
        tables.customers,
        "customer_key",
        [],
        "dim_customers",
    )
    counts = matched.group_by("customer_key").agg(
        pl.col("order_number").drop_nulls().n_unique().alias("num_of_orders")
    )
    customers = (
        tables.customers.select(["customer_key", "first_name", "last_name"])
        .unique(subset=["customer_key"], keep="first", maintain_order=True)
    )
    counts, customers = _align_key(counts, customers, "customer_key")
    frame = (
        customers.join(counts, on="customer_key", how="left")
        .with_columns(pl.col("num_of_orders").fill_null(0).cast(pl.Int64))
        .sort("customer_key", nulls_last=True, maintain_order=True)
    )
    return ReportOutput(frame, _gaps(gap))


@report(
    "customer_order_counts",
    "Distinct orders per customer, zero for customers without orders",
    **_ORDER_COUNT_COLUMNS,
)
def customer_order_counts(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    return _customer_order_counts(tables)


@report(
    "order_count_distribution",
    "Share of customers by number of orders placed",
    **_ORDER_COUNT_COLUMNS,
)
def order_count_distribution(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    """No rows when there are no customers"""
    counts = _customer_order_counts(tables)
    total_customers = counts.frame.height

    frame = (
        counts.frame.group_by("num_of_orders")
        .agg(pl.len().cast(pl.Int64).alias("num_customers"))
        .rename({"num_of_orders": "num_orders"})
    )
    if total_customers == 0:
        frame = frame.with_columns(pl.lit(None, dtype=pl.Float64).alias("percentage"))
    else:
        frame = frame.with_columns(
            (pl.col("num_customers") / total_customers * 100).alias("percentage")
        )
    return ReportOutput(frame.sort("num_orders"), counts.gaps)


@report(
    "low_engagement_customers",
    "Customers with few orders",
    **_ORDER_COUNT_COLUMNS,
)
def low_engagement_customers(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    counts = _customer_order_counts(tables)
    frame = counts.frame.filter(pl.col("num_of_orders") <= options.low_engagement_threshold)
    return ReportOutput(frame, counts.gaps)


@report(
    "high_value_customers",
    "Customers with many orders",
    **_ORDER_COUNT_COLUMNS,
)
def high_value_customers(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    counts = _customer_order_counts(tables)
    frame = counts.frame.filter(pl.col("num_of_orders") > options.high_value_threshold)
    return ReportOutput(frame, counts.gaps)


@report(
    "active_customers",
    "Customers with and without sales",
    sales=["customer_key"],
    customers=["customer_key"],
)
def active_customers(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    matched, gap = _join_dimension(
        tables.sales.select("customer_key"), tables.customers, "customer_key", [], "dim_customers"
    )
    total = tables.customers["customer_key"].drop_nulls().n_unique()
    active = matched["customer_key"].n_unique()
    frame = pl.DataFrame(
        {
            "total_customers": [total],
            "active_customers": [active],
            "inactive_customers": [total - active],
        },
        schema={"total_customers": pl.Int64, "active_customers": pl.Int64, "inactive_customers": pl.Int64},
    )
    return ReportOutput(frame, _gaps(gap))


# =============================================================================
# DATA QUALITY
# =============================================================================

def _items_per_order(sales: pl.DataFrame) -> pl.DataFrame:
    frame = (
        sales.filter(pl.col("order_number").is_not_null())
        .group_by("order_number")
        .agg(pl.len().cast(pl.Int64).alias("items_per_order"))
    )
    return sort_by_metric(frame, "items_per_order", "order_number")


@report(
    "duplicate_order_check",
    "Order line counts versus distinct orders",
    sales=["order_number"],
)
def duplicate_order_check(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    """
    More order lines than distinct orders is normal: one order carries one
    line per product. Only rows identical in every column are counted as
    exact duplicates.
    """
    sales = tables.sales
    orders = sales["order_number"]
    total_orders = orders.len() - orders.null_count()
    distinct_orders = orders.drop_nulls().n_unique()
    per_order = _items_per_order(sales)
    exact_duplicates = sales.height - sales.unique().height

    frame = pl.DataFrame(
        {
            "total_orders_count": [total_orders],
            "total_distinct_orders_count": [distinct_orders],
            "extra_line_items": [total_orders - distinct_orders],
            "multi_line_orders": [per_order.filter(pl.col("items_per_order") > 1).height],
            "exact_duplicate_rows": [exact_duplicates],
        },
        schema={
            "total_orders_count": pl.Int64,
            "total_distinct_orders_count": pl.Int64,
            "extra_line_items": pl.Int64,
            "multi_line_orders": pl.Int64,
            "exact_duplicate_rows": pl.Int64,
        },
    )
    return ReportOutput(frame)


@report("items_per_order", "Line items per order number", sales=["order_number"])
def items_per_order(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    return ReportOutput(_items_per_order(tables.sales))


@report("data_quality", "Rule-based checks over all three tables")
def data_quality(tables: WarehouseTables, options: ReportSettings) -> ReportOutput:
    results = validate_warehouse(tables.customers, tables.products, tables.sales)
    rows = [
        {
            "table": table,
            "check": check.name,
            "passed": check.passed,
            "severity": check.severity.value,
            "message": check.message,
            "failed_rows": check.failed_rows,
            "total_rows": check.total_rows,
        }
        for table, result in results.items()
        for check in result.checks
    ]
    frame = pl.DataFrame(
        rows,
        schema={
            "table": pl.Utf8,
            "check": pl.Utf8,
            "passed": pl.Boolean,
            "severity": pl.Utf8,
            "message": pl.Utf8,
            "failed_rows": pl.Int64,
            "total_rows": pl.Int64,
        },
    )
    return ReportOutput(frame)


