"""
Data Ingestion Module
"""
from .warehouse_loader import FileFormat, FileSourceConfig, SourceType, WarehouseLoader

__all__ = [
    "FileFormat",
    "FileSourceConfig",
    "SourceType",
    "WarehouseLoader",
]
