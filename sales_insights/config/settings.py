"""
Sales Insights Report Generator
Centralized Configuration Management

Pydantic settings with environment variable support, validation and type
safety. Each subsystem owns a section with its own environment prefix.
"""

from datetime import date
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WarehouseSettings(BaseSettings):
    """Star-schema warehouse source configuration"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_")

    source: str = Field(default="files", description="Where tables are read from: files or database")
    data_dir: str = Field(default="./data/gold", description="Directory holding exported tables")
    file_format: str = Field(default="csv", description="Exported table format: csv, parquet or json")

    database_url: Optional[str] = Field(default=None, description="SQLAlchemy URL of the warehouse")
    db_schema: Optional[str] = Field(default="gold", description="Schema holding the gold-layer views")

    # Table names
    customers_table: str = Field(default="dim_customers", description="Customer dimension")
    products_table: str = Field(default="dim_products", description="Product dimension")
    sales_table: str = Field(default="fact_sales", description="Sales fact table")

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        """Validate source value"""
        allowed = ["files", "database"]
        if v.lower() not in allowed:
            raise ValueError(f"Source must be one of: {allowed}")
        return v.lower()

    @field_validator("file_format")
    @classmethod
    def validate_file_format(cls, v: str) -> str:
        """Validate file format value"""
        allowed = ["csv", "parquet", "json"]
        if v.lower() not in allowed:
            raise ValueError(f"File format must be one of: {allowed}")
        return v.lower()


class ReportSettings(BaseSettings):
    """Report parameters"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    top_n: int = Field(default=5, ge=1, description="Rows in top/bottom ranking reports")
    high_value_threshold: int = Field(default=26, ge=0, description="Orders above which a customer is high value")
    low_engagement_threshold: int = Field(default=1, ge=0, description="Orders at or below which a customer is low engagement")
    min_group_size: int = Field(default=20, ge=1, description="Customers needed for a reliable group average")
    reference_date: Optional[date] = Field(default=None, description="Date ages are computed against (default: today)")
    max_workers: int = Field(default=1, ge=1, description="Reports computed in parallel")

    @model_validator(mode="after")
    def validate_thresholds(self) -> "ReportSettings":
        """Low-engagement and high-value views must not overlap"""
        if self.high_value_threshold < self.low_engagement_threshold:
            raise ValueError(
                "high_value_threshold must be greater than or equal to low_engagement_threshold"
            )
        return self


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "text"]
        if v.lower() not in allowed:
            raise ValueError(f"Log format must be one of: {allowed}")
        return v.lower()


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="sales-insights", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    warehouse: WarehouseSettings = Field(default_factory=WarehouseSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
