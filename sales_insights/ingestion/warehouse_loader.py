"""
Warehouse Loader

Reads the gold-layer star schema (customer and product dimensions plus the
sales fact table) once per report run.

Supports:
- Exported files: CSV, JSON and Parquet
- Live warehouse: any database SQLAlchemy can reach
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import polars as pl
import structlog
from sqlalchemy import Column, MetaData, Table, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from sales_insights.analytics.tables import CUSTOMERS, PRODUCTS, SALES, WarehouseTables
from sales_insights.config.settings import WarehouseSettings
from sales_insights.exceptions import MissingInputError, SalesInsightsError

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


class SourceType(str, Enum):
    """Where the tables come from"""
    FILES = "files"
    DATABASE = "database"


# Column python types -> Polars dtypes, for tables with no rows to infer from
PYTHON_DTYPES = {
    bool: pl.Boolean,
    int: pl.Int64,
    float: pl.Float64,
    Decimal: pl.Float64,
    str: pl.String,
    date: pl.Date,
    datetime: pl.Datetime,
}


def column_dtype(column: Column) -> pl.DataType:
    """Polars dtype for a reflected column; Null when the type has no Python equivalent"""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return pl.Null
    return PYTHON_DTYPES.get(python_type, pl.Null)


@dataclass
class FileSourceConfig:
    """Configuration for reading exported tables"""
    data_dir: Path
    file_format: FileFormat = FileFormat.CSV
    delimiter: str = ","
    encoding: str = "utf-8"
    null_values: List[str] = field(default_factory=lambda: ["", "NULL", "null", "None"])


class WarehouseLoader:
    """
    Loads the three warehouse tables into memory.

    Example:
        loader = WarehouseLoader.from_settings(get_settings().warehouse)
        tables = loader.load()
    """

    def __init__(
        self,
        source: SourceType = SourceType.FILES,
        file_config: Optional[FileSourceConfig] = None,
        engine: Optional[Engine] = None,
        schema: Optional[str] = None,
        table_names: Optional[Dict[str, str]] = None,
    ):
        self.source = SourceType(source)
        self.file_config = file_config
        self.engine = engine
        self.schema = schema
        self.table_names = table_names or {
            CUSTOMERS: "dim_customers",
            PRODUCTS: "dim_products",
            SALES: "fact_sales",
        }

        if self.source == SourceType.FILES and self.file_config is None:
            raise SalesInsightsError("File source requires a data directory")
        if self.source == SourceType.DATABASE and self.engine is None:
            raise SalesInsightsError("Database source requires a database URL")

    @classmethod
    def from_settings(cls, settings: WarehouseSettings) -> "WarehouseLoader":
        """Build a loader from warehouse settings"""
        table_names = {
            CUSTOMERS: settings.customers_table,
            PRODUCTS: settings.products_table,
            SALES: settings.sales_table,
        }
        if settings.source == SourceType.DATABASE.value:
            if not settings.database_url:
                raise SalesInsightsError("Database source requires a database URL")
            return cls(
                source=SourceType.DATABASE,
                engine=create_engine(settings.database_url),
                schema=settings.db_schema or None,
                table_names=table_names,
            )

        return cls(
            source=SourceType.FILES,
            file_config=FileSourceConfig(
                data_dir=Path(settings.data_dir),
                file_format=FileFormat(settings.file_format),
            ),
            table_names=table_names,
        )

    def _file_path(self, table_name: str) -> Path:
        config = self.file_config
        return config.data_dir / f"{table_name}.{config.file_format.value}"

    def _read_file(self, table_name: str) -> pl.DataFrame:
        """Read an exported table with Polars"""
        path = self._file_path(table_name)
        if not path.is_file():
            raise MissingInputError(table_name, str(path))

        config = self.file_config
        if config.file_format == FileFormat.CSV:
            return pl.read_csv(
                path,
                separator=config.delimiter,
                encoding=config.encoding,
                null_values=config.null_values,
                try_parse_dates=True,
            )
        if config.file_format == FileFormat.PARQUET:
            return pl.read_parquet(path)
        return pl.read_json(path)

    def _read_table(self, table_name: str) -> pl.DataFrame:
        """Read a whole table or view through SQLAlchemy"""
        location = f"{self.schema}.{table_name}" if self.schema else table_name
        try:
            table = Table(table_name, MetaData(), schema=self.schema, autoload_with=self.engine)
        except NoSuchTableError:
            raise MissingInputError(table_name, location) from None
        except SQLAlchemyError as e:
            raise MissingInputError(table_name, f"{location}: {e}") from e

        with self.engine.connect() as conn:
            result = conn.execute(select(table))
            columns = list(result.keys())
            rows = result.fetchall()

        if not rows:
            return pl.DataFrame(schema={c.name: column_dtype(c) for c in table.columns})
        return pl.DataFrame([tuple(r) for r in rows], schema=columns, orient="row", infer_schema_length=None)

    def load_table(self, logical_name: str) -> pl.DataFrame:
        """Load one of customers / products / sales"""
        table_name = self.table_names[logical_name]
        if self.source == SourceType.FILES:
            df = self._read_file(table_name)
        else:
            df = self._read_table(table_name)

        logger.info("Loaded table", table=table_name, source=self.source.value, rows=df.height)
        return df

    def load(self) -> WarehouseTables:
        """
        Load all three tables.

        Raises:
            MissingInputError: if any table is absent; nothing is returned
        """
        tables = WarehouseTables(
            customers=self.load_table(CUSTOMERS),
            products=self.load_table(PRODUCTS),
            sales=self.load_table(SALES),
        )
        logger.info("Warehouse loaded", source=self.source.value, **tables.row_counts)
        return tables
