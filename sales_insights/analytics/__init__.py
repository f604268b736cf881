"""
Analytics Module
"""
from .generator import ReportGenerator, ReportResult, ReportStatus
from .reports import REPORTS
from .tables import WarehouseTables

__all__ = [
    "REPORTS",
    "ReportGenerator",
    "ReportResult",
    "ReportStatus",
    "WarehouseTables",
]
