"""
Data Validation Module

Rule-based quality checks over the warehouse tables.
Implements validation patterns inspired by Great Expectations.

Features:
- Null checks on keys
- Uniqueness checks on dimension keys
- Range checks on measures
- Referential integrity between facts and dimensions
- Row-level consistency rules
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Invariant the reports rely on
    WARNING = "warning"  # Suspicious but reports stay meaningful
    INFO = "info"  # Informational only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100


def _column_missing(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
    return ValidationCheck(
        name=name,
        passed=False,
        severity=severity,
        message=f"Column '{column}' not found",
    )


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("customer_key")
        validator.add_range_check("sales_amount", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            if column not in df.columns:
                return _column_missing(name, column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of column values"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"unique_{column}"
            if column not in df.columns:
                return _column_missing(name, column, severity)

            total = len(df)
            unique_count = df[column].n_unique()
            duplicate_count = total - unique_count
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicate values" if not passed else f"Column '{column}' values are unique",
                details={"unique_count": unique_count, "duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"range_{column}"
            if column not in df.columns:
                return _column_missing(name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(
                    name=name,
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            total = len(df)
            passed = out_of_range == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive values"""
        min_val = 0 if allow_zero else 0.0001
        return self.add_range_check(column, min_value=min_val, severity=severity)

    def add_row_check(
        self,
        name: str,
        columns: List[str],
        failing: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Add a row-level rule.

        Args:
            name: Check name
            columns: Columns the rule reads
            failing: Expression that is true for rows breaking the rule
            message_on_fail: Message template, ``{count}`` is the failing row count
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            if missing:
                return _column_missing(name, missing[0], severity)

            failed = df.filter(failing).height
            total = len(df)
            passed = failed == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=message_on_fail.format(count=failed) if not passed else "Check passed",
                failed_rows=failed,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add referential integrity check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"ref_integrity_{column}"
            if column not in df.columns:
                return _column_missing(name, column, severity)
            if reference_column not in reference_df.columns:
                return _column_missing(name, reference_column, severity)

            ref_keys = (
                reference_df.select(pl.col(reference_column).alias(column))
                .drop_nulls()
                .unique()
            )

            orphans = (
                df.filter(pl.col(column).is_not_null())
                .join(ref_keys, on=column, how="anti")
                .height
            )
            total = len(df)
            passed = orphans == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {orphans} orphan records" if not passed else "Referential integrity maintained",
                details={"orphan_count": orphans},
                failed_rows=orphans,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        logger.info(f"Running {len(self._checks)} validation checks on {len(df)} rows")

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        completed_at = datetime.now(timezone.utc)

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )

        logger.info(
            f"Validation complete: {status.value}",
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result


# Pre-built validators for the warehouse tables
def create_customers_validator() -> DataValidator:
    """Create pre-configured validator for the customer dimension"""
    return (
        DataValidator()
        .add_not_null_check("customer_key")
        .add_unique_check("customer_key")
        .add_not_null_check("country", severity=ValidationSeverity.WARNING)
    )


def create_products_validator() -> DataValidator:
    """Create pre-configured validator for the product dimension"""
    return (
        DataValidator()
        .add_not_null_check("product_key")
        .add_unique_check("product_key")
        .add_not_null_check("category", severity=ValidationSeverity.WARNING)
        .add_positive_check("cost", severity=ValidationSeverity.WARNING)
    )


def create_sales_validator(
    customers_df: pl.DataFrame,
    products_df: pl.DataFrame,
    amount_tolerance: float = 0.01,
) -> DataValidator:
    """
    Create pre-configured validator for the sales fact table.

    Dangling keys and amount mismatches are warnings: reports exclude and
    count the former, and the latter does not affect any aggregate.
    """
    amount_mismatch = (
        (pl.col("sales_amount") - pl.col("price") * pl.col("quantity")).abs()
        > pl.max_horizontal(pl.lit(amount_tolerance), pl.col("sales_amount").abs() * amount_tolerance)
    )
    return (
        DataValidator()
        .add_not_null_check("order_number")
        .add_referential_integrity_check(
            "customer_key", customers_df, "customer_key", severity=ValidationSeverity.WARNING
        )
        .add_referential_integrity_check(
            "product_key", products_df, "product_key", severity=ValidationSeverity.WARNING
        )
        .add_positive_check("sales_amount", severity=ValidationSeverity.WARNING)
        .add_positive_check("quantity", allow_zero=False, severity=ValidationSeverity.WARNING)
        .add_row_check(
            name="sales_amount_matches_price_x_quantity",
            columns=["sales_amount", "price", "quantity"],
            failing=amount_mismatch,
            message_on_fail="{count} rows where sales_amount differs from price x quantity",
            severity=ValidationSeverity.WARNING,
        )
    )


def validate_warehouse(
    customers_df: pl.DataFrame,
    products_df: pl.DataFrame,
    sales_df: pl.DataFrame,
) -> Dict[str, ValidationResult]:
    """Run the pre-built suites over all three tables, keyed by table name"""
    return {
        "customers": create_customers_validator().validate(customers_df),
        "products": create_products_validator().validate(products_df),
        "sales": create_sales_validator(customers_df, products_df).validate(sales_df),
    }
