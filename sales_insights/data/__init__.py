"""
Data Generation Module
"""
from .generators import StarSchemaGenerator

__all__ = ["StarSchemaGenerator"]
