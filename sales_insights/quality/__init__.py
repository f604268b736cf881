"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, validate_warehouse

__all__ = [
    "DataValidator",
    "ValidationResult",
    "validate_warehouse",
]
