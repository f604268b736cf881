"""
Sales Insights Command Line

Loads the warehouse tables once, runs the selected reports and renders them.
Usage:
    sales-insights                                  # every report, text tables
    sales-insights --report revenue_by_category --report top_n_products_by_revenue
    sales-insights --source database --database-url postgresql+psycopg2://...
    sales-insights --output json --output-dir reports/
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO

import polars as pl
import structlog
from pydantic import ValidationError

from sales_insights.analytics.generator import ReportGenerator, ReportResult
from sales_insights.analytics.reports import REPORTS
from sales_insights.config.logging import configure_logging
from sales_insights.config.settings import ReportSettings, WarehouseSettings, get_settings
from sales_insights.exceptions import MissingInputError, SalesInsightsError
from sales_insights.ingestion.warehouse_loader import WarehouseLoader

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_REPORT_FAILED = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sales-insights",
        description="Analytical reports over a star-schema sales warehouse",
    )
    parser.add_argument(
        "--report",
        action="append",
        dest="reports",
        metavar="NAME",
        help="Report to run (repeatable, default: all)",
    )
    parser.add_argument("--list", action="store_true", help="List available reports and exit")

    source = parser.add_argument_group("warehouse")
    source.add_argument("--source", choices=["files", "database"], help="Read tables from files or a database")
    source.add_argument("--data-dir", help="Directory of exported tables")
    source.add_argument("--format", dest="file_format", choices=["csv", "parquet", "json"], help="Exported table format")
    source.add_argument("--database-url", help="SQLAlchemy URL of the warehouse")
    source.add_argument("--db-schema", help="Schema holding the warehouse views")

    params = parser.add_argument_group("report parameters")
    params.add_argument("--top-n", type=int, help="Rows in ranking reports")
    params.add_argument("--high-value-threshold", type=int, help="Orders above which a customer is high value")
    params.add_argument("--low-engagement-threshold", type=int, help="Orders at or below which a customer is low engagement")
    params.add_argument("--min-group-size", type=int, help="Customers needed for a reliable group average")
    params.add_argument("--max-workers", type=int, help="Reports computed in parallel")

    output = parser.add_argument_group("output")
    output.add_argument("--output", choices=["text", "json"], default="text", help="Rendering on stdout")
    output.add_argument("--output-dir", help="Also write one CSV per successful report here")
    output.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")

    return parser


def _overrides(args: argparse.Namespace, names: List[str]) -> Dict[str, object]:
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def resolve_settings(args: argparse.Namespace):
    """Merge command-line overrides into the configured sections, re-validating them"""
    settings = get_settings()
    warehouse = WarehouseSettings(**{
        **settings.warehouse.model_dump(),
        **_overrides(args, ["source", "data_dir", "file_format", "database_url", "db_schema"]),
    })
    report = ReportSettings(**{
        **settings.report.model_dump(),
        **_overrides(args, [
            "top_n",
            "high_value_threshold",
            "low_engagement_threshold",
            "min_group_size",
            "max_workers",
        ]),
    })
    return warehouse, report


def render_text(results: Dict[str, ReportResult], out: TextIO) -> None:
    """Render each result as a titled table; failures as an explicit error line"""
    with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_hide_dataframe_shape=True, fmt_str_lengths=80):
        for name, result in results.items():
            out.write(f"\n=== {name} ===\n")
            if not result.succeeded:
                out.write(f"ERROR: {result.error}\n")
                continue
            out.write(f"{result.frame}\n")
            for gap in result.gaps:
                out.write(f"note: {gap.message}\n")


def render_json(results: Dict[str, ReportResult], out: TextIO) -> None:
    payload = {
        name: {
            "status": result.status.value,
            "rows": result.frame.to_dicts() if result.succeeded else None,
            "error": result.error,
            "excluded_rows": result.excluded_rows,
        }
        for name, result in results.items()
    }
    json.dump(payload, out, indent=2, default=str)
    out.write("\n")


def write_outputs(results: Dict[str, ReportResult], output_dir: str) -> List[Path]:
    """Write successful reports as <output_dir>/<report>.csv"""
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)

    written = []
    for name, result in results.items():
        if not result.succeeded:
            continue
        output_file = path / f"{name}.csv"
        result.frame.write_csv(output_file)
        written.append(output_file)
        logger.info(f"Written {result.frame.height} rows to {output_file}")
    return written


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    try:
        configure_logging(log_level=args.log_level)
    except ValidationError as e:
        sys.stderr.write(f"Invalid configuration:\n{e}\n")
        return EXIT_FATAL

    if args.list:
        for name, definition in REPORTS.items():
            out.write(f"{name:<36} {definition.description}\n")
        return EXIT_OK

    unknown = [name for name in args.reports or [] if name not in REPORTS]
    if unknown:
        sys.stderr.write(f"Unknown report(s): {', '.join(unknown)}. Use --list to see available reports.\n")
        return EXIT_FATAL

    try:
        warehouse_settings, report_settings = resolve_settings(args)
        tables = WarehouseLoader.from_settings(warehouse_settings).load()
    except ValidationError as e:
        sys.stderr.write(f"Invalid configuration:\n{e}\n")
        return EXIT_FATAL
    except MissingInputError as e:
        logger.error("Missing input", table=e.table, location=e.location)
        sys.stderr.write(f"ERROR: {e}\n")
        return EXIT_FATAL
    except SalesInsightsError as e:
        sys.stderr.write(f"ERROR: {e}\n")
        return EXIT_FATAL

    generator = ReportGenerator(tables, report_settings)
    results = generator.generate_all(args.reports)

    if args.output == "json":
        render_json(results, out)
    else:
        render_text(results, out)

    if args.output_dir:
        write_outputs(results, args.output_dir)

    if any(not r.succeeded for r in results.values()):
        return EXIT_REPORT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
