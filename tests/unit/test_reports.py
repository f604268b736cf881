"""
Unit Tests - Reports
"""
from datetime import date

import pytest
import polars as pl

from sales_insights.analytics.generator import ReportGenerator, ReportStatus
from sales_insights.analytics.tables import WarehouseTables
from sales_insights.config import ReportSettings


def run(tables, name, settings=None):
    result = ReportGenerator(tables, settings or ReportSettings(reference_date=date(2025, 1, 1))).generate(name)
    assert result.status == ReportStatus.SUCCEEDED, result.error
    return result


class TestMeasures:
    """Tests for summary measures"""

    def test_total_sales_summary(self, sample_tables):
        """Test KPI summary row"""
        rows = run(sample_tables, "total_sales_summary").rows()

        assert len(rows) == 1
        row = rows[0]
        assert row["total_sales"] == pytest.approx(2215.0)
        assert row["total_quantity"] == 9
        assert row["avg_price"] == pytest.approx(2160.0 / 7)
        assert row["total_orders"] == 5
        assert row["total_products"] == 4
        assert row["total_customers"] == 5

    def test_total_sales_summary_empty_sales(self, sample_customers_df, sample_products_df, sample_sales_df):
        """Test empty fact table gives zero sums and a null average"""
        tables = WarehouseTables(
            customers=sample_customers_df,
            products=sample_products_df,
            sales=sample_sales_df.clear(),
        )

        row = run(tables, "total_sales_summary").rows()[0]

        assert row["total_sales"] == 0
        assert row["total_quantity"] == 0
        assert row["avg_price"] is None
        assert row["total_orders"] == 0

    def test_key_metrics(self, sample_tables):
        """Test long-form KPI rows"""
        frame = run(sample_tables, "key_metrics").frame

        assert frame["measure_name"].to_list() == [
            "Total Sales",
            "Total Quantity",
            "Average Price",
            "Total Nr. Orders",
            "Total Nr. Products",
            "Total Nr. Customers",
        ]
        assert frame["measure_value"][0] == pytest.approx(2215.0)
        assert frame["measure_value"][5] == 5.0

    def test_order_date_range(self, sample_tables):
        """Test date coverage uses calendar boundaries"""
        row = run(sample_tables, "order_date_range").rows()[0]

        assert row["first_order_date"] == date(2011, 1, 10)
        assert row["last_order_date"] == date(2013, 12, 31)
        assert row["order_range_years"] == 2
        assert row["order_range_months"] == 35

    def test_customer_age_range(self, sample_tables, report_settings):
        """Test ages against the reference date"""
        row = run(sample_tables, "customer_age_range", report_settings).rows()[0]

        assert row["oldest_birthdate"] == date(1965, 11, 30)
        assert row["oldest_age"] == 60
        assert row["youngest_birthdate"] == date(2000, 3, 10)
        assert row["youngest_age"] == 25
        assert row["birthdate_range_years"] == 35


class TestDimensions:
    """Tests for dimension exploration reports"""

    def test_countries(self, sample_tables):
        frame = run(sample_tables, "countries").frame
        assert frame["country"].to_list() == ["DE", "FR", "US"]

    def test_product_hierarchy(self, sample_tables):
        frame = run(sample_tables, "product_hierarchy").frame
        assert frame["category"].to_list() == ["Accessories", "Accessories", "Bikes", "Clothing"]
        assert frame["subcategory_id"].to_list() == ["AC_BO", "AC_HE", "BI_RB", "CL_JE"]


class TestMagnitude:
    """Tests for grouped magnitude reports"""

    def test_customers_by_country(self, sample_tables):
        """Test count per country, ties by country name"""
        rows = run(sample_tables, "customers_by_country").rows()

        assert rows == [
            {"country": "DE", "total_customers": 2},
            {"country": "US", "total_customers": 2},
            {"country": "FR", "total_customers": 1},
        ]

    def test_customers_by_country_scenario(self):
        """Test two US customers and one French customer"""
        customers = pl.DataFrame({
            "customer_key": [1, 2, 3],
            "country": ["US", "US", "FR"],
        })
        tables = WarehouseTables(customers=customers, products=pl.DataFrame(), sales=pl.DataFrame())

        rows = run(tables, "customers_by_country").rows()

        assert rows == [
            {"country": "US", "total_customers": 2},
            {"country": "FR", "total_customers": 1},
        ]

    def test_products_by_category(self, sample_tables):
        rows = run(sample_tables, "products_by_category").rows()
        assert rows == [
            {"category": "Accessories", "total_products": 2},
            {"category": "Bikes", "total_products": 1},
            {"category": "Clothing", "total_products": 1},
        ]

    def test_avg_cost_by_category(self, sample_tables):
        frame = run(sample_tables, "avg_cost_by_category").frame
        assert frame["category"].to_list() == ["Bikes", "Clothing", "Accessories"]
        assert frame["avg_cost"].to_list() == pytest.approx([500.0, 30.0, 11.0])

    def test_revenue_by_category(self, sample_tables):
        """Test revenue per category excludes unsold categories"""
        result = run(sample_tables, "revenue_by_category")

        assert result.rows() == [
            {"category": "Bikes", "total_revenue": 2000.0},
            {"category": "Accessories", "total_revenue": 215.0},
        ]
        assert result.gaps == []

    def test_revenue_by_category_sums_to_total_sales(self, generated_tables):
        """Test the category partition covers every matched sale"""
        generator = ReportGenerator(generated_tables)
        categories = generator.generate("revenue_by_category").frame
        summary = generator.generate("total_sales_summary").rows()[0]

        assert categories["total_revenue"].sum() == pytest.approx(summary["total_sales"])

    def test_revenue_by_customer(self, sample_tables):
        frame = run(sample_tables, "revenue_by_customer").frame
        assert frame["customer_key"].to_list() == [1, 3, 2, 4]
        assert frame["total_revenue"].to_list() == pytest.approx([1105.0, 1010.0, 50.0, 50.0])

    def test_items_sold_by_country(self, sample_tables):
        rows = run(sample_tables, "items_sold_by_country").rows()
        assert rows == [
            {"country": "US", "total_items_sold": 5},
            {"country": "FR", "total_items_sold": 3},
            {"country": "DE", "total_items_sold": 1},
        ]

    def test_sales_by_gender(self, sample_tables):
        """Test gender breakdown flags small groups"""
        rows = run(sample_tables, "sales_by_gender").rows()

        assert [r["gender"] for r in rows] == ["Female", "Male"]
        female, male = rows
        assert female["num_customers"] == 2
        assert female["avg_sales"] == pytest.approx(1060.0 / 3)
        assert female["total_sales"] == pytest.approx(1060.0)
        assert male["avg_sales"] == pytest.approx(288.75)
        assert all(r["low_sample_size"] for r in rows)

    def test_sales_by_gender_group_size_threshold(self, sample_tables):
        """Test the flag follows the configured group size"""
        settings = ReportSettings(min_group_size=2)
        rows = run(sample_tables, "sales_by_gender", settings).rows()
        assert not any(r["low_sample_size"] for r in rows)


class TestRankingReports:
    """Tests for top/bottom reports"""

    def test_top_products(self, sample_tables):
        rows = run(sample_tables, "top_n_products_by_revenue").rows()
        assert rows == [
            {"rank": 1, "product_name": "Road Bike", "total_product_revenue": 2000.0},
            {"rank": 2, "product_name": "Helmet", "total_product_revenue": 200.0},
            {"rank": 3, "product_name": "Bottle", "total_product_revenue": 15.0},
        ]

    def test_bottom_products(self, sample_tables):
        frame = run(sample_tables, "bottom_n_products_by_revenue").frame
        assert frame["product_name"].to_list() == ["Bottle", "Helmet", "Road Bike"]

    def test_unsold_product_absent(self, sample_tables):
        """Test a product without sales is left out of revenue reports"""
        for name in ("top_n_products_by_revenue", "bottom_n_products_by_revenue"):
            assert "Jersey" not in run(sample_tables, name).frame["product_name"].to_list()
        assert "Clothing" not in run(sample_tables, "revenue_by_category").frame["category"].to_list()

    def test_top_n_is_configurable(self, sample_tables):
        settings = ReportSettings(top_n=1)
        frame = run(sample_tables, "top_n_subcategories_by_revenue", settings).frame
        assert frame["subcategory_id"].to_list() == ["BI_RB"]

    def test_bottom_subcategories(self, sample_tables):
        frame = run(sample_tables, "bottom_n_subcategories_by_revenue").frame
        assert frame["subcategory_id"].to_list() == ["AC_BO", "AC_HE", "BI_RB"]
        assert frame["total_subcategory_revenue"].to_list() == pytest.approx([15.0, 200.0, 2000.0])

    def test_top_and_bottom_customers(self, sample_tables):
        settings = ReportSettings(top_n=2)
        top = run(sample_tables, "top_n_customers_by_revenue", settings).frame
        bottom = run(sample_tables, "bottom_n_customers_by_revenue", settings).frame

        assert top["customer_key"].to_list() == [1, 3]
        assert bottom["customer_key"].to_list() == [2, 4]

    def test_top_and_bottom_disjoint(self, generated_tables):
        """Test top and bottom five share no product when more than ten sold"""
        generator = ReportGenerator(generated_tables)
        top = set(generator.generate("top_n_products_by_revenue").frame["product_name"])
        bottom = set(generator.generate("bottom_n_products_by_revenue").frame["product_name"])

        assert len(top) == 5
        assert len(bottom) == 5
        assert top.isdisjoint(bottom)


class TestCustomerEngagement:
    """Tests for order-frequency reports"""

    def test_customer_order_counts(self, sample_tables):
        """Test every customer appears once, zero for no orders"""
        frame = run(sample_tables, "customer_order_counts").frame

        assert frame["customer_key"].to_list() == [1, 2, 3, 4, 5]
        assert frame["num_of_orders"].to_list() == [1, 1, 2, 1, 0]

    def test_customer_order_counts_complete(self, generated_tables):
        frame = ReportGenerator(generated_tables).generate("customer_order_counts").frame
        keys = generated_tables.customers["customer_key"]

        assert frame.height == keys.len()
        assert frame["customer_key"].n_unique() == frame.height
        assert set(frame["customer_key"]) == set(keys)

    def test_order_count_distribution(self, sample_tables):
        rows = run(sample_tables, "order_count_distribution").rows()

        assert [(r["num_orders"], r["num_customers"]) for r in rows] == [(0, 1), (1, 3), (2, 1)]
        assert [r["percentage"] for r in rows] == pytest.approx([20.0, 60.0, 20.0])

    def test_order_count_distribution_sums_to_100(self, generated_tables):
        frame = ReportGenerator(generated_tables).generate("order_count_distribution").frame
        assert frame["percentage"].sum() == pytest.approx(100.0, abs=0.01)

    def test_order_count_distribution_no_customers(self, sample_customers_df, sample_products_df, sample_sales_df):
        """Test an empty customer table gives no rows instead of dividing by zero"""
        tables = WarehouseTables(
            customers=sample_customers_df.clear(),
            products=sample_products_df,
            sales=sample_sales_df,
        )

        result = run(tables, "order_count_distribution")

        assert result.frame.height == 0
        assert result.excluded_rows == sample_sales_df.height

    def test_low_engagement_customers(self, sample_tables):
        frame = run(sample_tables, "low_engagement_customers").frame
        assert frame["customer_key"].to_list() == [1, 2, 4, 5]

    def test_high_value_customers_default_threshold(self, sample_tables):
        assert run(sample_tables, "high_value_customers").frame.height == 0

    def test_high_value_threshold_is_configurable(self, sample_tables):
        settings = ReportSettings(high_value_threshold=1)
        frame = run(sample_tables, "high_value_customers", settings).frame
        assert frame["customer_key"].to_list() == [3]

    def test_low_and_high_never_overlap(self, generated_tables):
        settings = ReportSettings(high_value_threshold=3)
        generator = ReportGenerator(generated_tables, settings)
        low = set(generator.generate("low_engagement_customers").frame["customer_key"])
        high = set(generator.generate("high_value_customers").frame["customer_key"])

        assert high
        assert low.isdisjoint(high)

    def test_active_customers(self, sample_tables):
        row = run(sample_tables, "active_customers").rows()[0]
        assert row == {"total_customers": 5, "active_customers": 4, "inactive_customers": 1}


class TestOrderDiagnostics:
    """Tests for duplicate-order diagnostics"""

    def test_duplicate_order_check(self, sample_tables):
        """Test line items are reported, not flagged as duplicates"""
        row = run(sample_tables, "duplicate_order_check").rows()[0]

        assert row["total_orders_count"] == 7
        assert row["total_distinct_orders_count"] == 5
        assert row["extra_line_items"] == 2
        assert row["multi_line_orders"] == 1
        assert row["exact_duplicate_rows"] == 0

    def test_exact_duplicate_rows_counted(self, sample_customers_df, sample_products_df, sample_sales_df):
        tables = WarehouseTables(
            customers=sample_customers_df,
            products=sample_products_df,
            sales=pl.concat([sample_sales_df, sample_sales_df.head(1)]),
        )
        row = run(tables, "duplicate_order_check").rows()[0]
        assert row["exact_duplicate_rows"] == 1

    def test_items_per_order(self, sample_tables):
        rows = run(sample_tables, "items_per_order").rows()

        assert rows[0] == {"order_number": "SO1", "items_per_order": 3}
        assert [r["order_number"] for r in rows[1:]] == ["SO2", "SO3", "SO4", "SO5"]
        assert all(r["items_per_order"] == 1 for r in rows[1:])

    def test_single_order_three_lines(self, sample_customers_df, sample_products_df, sample_sales_df):
        """Test one order with three lines: three rows, one distinct order"""
        tables = WarehouseTables(
            customers=sample_customers_df,
            products=sample_products_df,
            sales=sample_sales_df.head(3),
        )
        generator = ReportGenerator(tables)

        assert generator.generate("items_per_order").rows() == [{"order_number": "SO1", "items_per_order": 3}]
        check = generator.generate("duplicate_order_check").rows()[0]
        assert check["total_orders_count"] == 3
        assert check["total_distinct_orders_count"] == 1

    def test_data_quality_report(self, sample_tables):
        frame = run(sample_tables, "data_quality").frame

        assert set(frame["table"]) == {"customers", "products", "sales"}
        assert frame["passed"].all()
