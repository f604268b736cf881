"""
Unit Tests - Data Quality
"""
import pytest
import polars as pl

from sales_insights.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    create_sales_validator,
    validate_warehouse,
)


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1

    def test_not_null_check_fails(self):
        """Test not null check with null values"""
        df = pl.DataFrame({"id": [1, None, 3], "name": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1

    def test_unique_check_fails(self):
        """Test unique check with duplicates"""
        df = pl.DataFrame({"id": [1, 2, 1]})

        result = DataValidator().add_unique_check("id").validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_range_check(self):
        """Test range check"""
        df = pl.DataFrame({"price": [10.0, 50.0, -5.0, 200.0]})

        validator = DataValidator()
        validator.add_range_check("price", min_value=0, max_value=100)

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        # Two values outside range: -5 and 200
        check = result.checks[0]
        assert check.failed_rows == 2

    def test_warning_gives_partial_status(self):
        df = pl.DataFrame({"qty": [1, 0, 2]})

        result = DataValidator().add_positive_check(
            "qty", allow_zero=False, severity=ValidationSeverity.WARNING
        ).validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert result.warning_count == 1

    def test_strict_mode_fails_on_warning(self):
        df = pl.DataFrame({"qty": [1, 0, 2]})

        result = DataValidator(strict_mode=True).add_positive_check(
            "qty", allow_zero=False, severity=ValidationSeverity.WARNING
        ).validate(df)

        assert result.status == ValidationStatus.FAILED

    def test_missing_column(self):
        result = DataValidator().add_not_null_check("missing").validate(pl.DataFrame({"id": [1]}))

        assert result.status == ValidationStatus.FAILED
        assert "not found" in result.checks[0].message

    def test_referential_integrity_check(self):
        """Test orphan keys are counted, null keys ignored"""
        facts = pl.DataFrame({"customer_key": [1, 2, 3, None]})
        customers = pl.DataFrame({"customer_key": [1, 2]})

        result = DataValidator().add_referential_integrity_check(
            "customer_key", customers, "customer_key"
        ).validate(facts)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_row_check(self):
        df = pl.DataFrame({"a": [1, 2, 3], "b": [1, 0, 3]})

        result = DataValidator().add_row_check(
            name="a_equals_b",
            columns=["a", "b"],
            failing=pl.col("a") != pl.col("b"),
            message_on_fail="{count} rows differ",
        ).validate(df)

        assert result.checks[0].failed_rows == 1
        assert result.checks[0].message == "1 rows differ"
        assert result.success_rate == pytest.approx(0.0)


class TestWarehouseValidators:
    """Tests for the pre-built warehouse suites"""

    def test_sample_warehouse_passes(self, sample_customers_df, sample_products_df, sample_sales_df):
        results = validate_warehouse(sample_customers_df, sample_products_df, sample_sales_df)

        assert set(results) == {"customers", "products", "sales"}
        assert all(r.status == ValidationStatus.PASSED for r in results.values())

    def test_amount_mismatch_is_warning(self, sample_customers_df, sample_products_df, sample_sales_df):
        sales = sample_sales_df.with_columns(
            pl.when(pl.col("order_number") == "SO2")
            .then(pl.lit(999.0))
            .otherwise(pl.col("sales_amount"))
            .alias("sales_amount")
        )

        result = create_sales_validator(sample_customers_df, sample_products_df).validate(sales)

        assert result.status == ValidationStatus.PARTIAL
        mismatch = next(c for c in result.checks if c.name == "sales_amount_matches_price_x_quantity")
        assert not mismatch.passed
        assert mismatch.failed_rows == 1

    def test_duplicate_customer_key_fails(self, sample_customers_df, sample_products_df, sample_sales_df):
        customers = pl.concat([sample_customers_df, sample_customers_df.head(1)])

        results = validate_warehouse(customers, sample_products_df, sample_sales_df)

        assert results["customers"].status == ValidationStatus.FAILED
