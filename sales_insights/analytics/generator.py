"""
Report Generator

Runs registered reports against one set of warehouse tables. Each report is
isolated: a schema problem or compute error fails that report only, and the
run carries on with the rest.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import polars as pl
import structlog

from sales_insights.analytics.reports import REPORTS, ReportDefinition
from sales_insights.analytics.tables import WarehouseTables, require_columns
from sales_insights.config.settings import ReportSettings
from sales_insights.exceptions import ReferentialGapWarning, SalesInsightsError

logger = structlog.get_logger(__name__)


class ReportStatus(str, Enum):
    """Outcome of a single report run"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ReportResult:
    """Result of one report run"""
    name: str
    status: ReportStatus
    frame: Optional[pl.DataFrame] = None
    error: Optional[str] = None
    gaps: List[ReferentialGapWarning] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == ReportStatus.SUCCEEDED

    @property
    def excluded_rows(self) -> int:
        """Sales rows left out of joined aggregates"""
        return sum(g.excluded_rows for g in self.gaps)

    def rows(self) -> List[Dict[str, Any]]:
        """Result rows as column -> value mappings"""
        if self.frame is None:
            raise SalesInsightsError(f"Report '{self.name}' failed: {self.error}")
        return self.frame.to_dicts()


class ReportGenerator:
    """
    Computes named reports over the warehouse tables.

    Example:
        generator = ReportGenerator(tables)
        result = generator.generate("revenue_by_category")
        results = generator.generate_all()
    """

    def __init__(
        self,
        tables: WarehouseTables,
        settings: Optional[ReportSettings] = None,
    ):
        self.tables = tables.coerced()
        self.settings = settings or ReportSettings()

    @staticmethod
    def available_reports() -> List[str]:
        return list(REPORTS)

    def _definition(self, name: str) -> ReportDefinition:
        try:
            return REPORTS[name]
        except KeyError:
            raise SalesInsightsError(
                f"Unknown report '{name}'. Available: {', '.join(REPORTS)}"
            ) from None

    def generate(self, name: str) -> ReportResult:
        """
        Run one report.

        Unknown report names raise; schema and compute errors are captured
        in a failed result.
        """
        definition = self._definition(name)
        started_at = datetime.now(timezone.utc)

        try:
            for table, columns in definition.requires.items():
                require_columns(self.tables.table(table), table, columns)
            output = definition.func(self.tables, self.settings)
        except (SalesInsightsError, pl.exceptions.PolarsError) as e:
            duration = (datetime.now(timezone.utc) - started_at).total_seconds()
            logger.error("Report failed", report=name, error=str(e))
            return ReportResult(
                name=name,
                status=ReportStatus.FAILED,
                error=str(e),
                duration_seconds=duration,
            )

        duration = (datetime.now(timezone.utc) - started_at).total_seconds()
        logger.info(
            "Report generated",
            report=name,
            rows=output.frame.height,
            excluded_rows=sum(g.excluded_rows for g in output.gaps),
            duration_seconds=round(duration, 4),
        )
        return ReportResult(
            name=name,
            status=ReportStatus.SUCCEEDED,
            frame=output.frame,
            gaps=output.gaps,
            duration_seconds=duration,
        )

    def generate_all(self, names: Optional[Sequence[str]] = None) -> Dict[str, ReportResult]:
        """
        Run several reports, all registered ones by default.

        Results keep the requested order whether or not reports run in
        parallel.
        """
        names = list(names) if names is not None else self.available_reports()
        for name in names:
            self._definition(name)

        logger.info("Generating reports", count=len(names), max_workers=self.settings.max_workers)

        if self.settings.max_workers > 1 and len(names) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
                results = list(executor.map(self.generate, names))
        else:
            results = [self.generate(name) for name in names]

        failed = sum(1 for r in results if not r.succeeded)
        logger.info(
            "Report run complete",
            succeeded=len(results) - failed,
            failed=failed,
        )
        return {r.name: r for r in results}
