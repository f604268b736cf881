"""
Sales Insights Report Generator
Configuration Module
"""
from .settings import ReportSettings, Settings, WarehouseSettings, get_settings

__all__ = ["ReportSettings", "Settings", "WarehouseSettings", "get_settings"]
