"""
Error Taxonomy

Fatal input errors, per-report schema errors and the non-fatal referential
gap record attached to report results.
"""

from dataclasses import dataclass
from typing import List, Optional


class SalesInsightsError(Exception):
    """Base class for all report generator errors"""


class MissingInputError(SalesInsightsError):
    """A required warehouse table is absent or inaccessible"""

    def __init__(self, table: str, location: Optional[str] = None):
        self.table = table
        self.location = location
        message = f"Required table '{table}' is missing"
        if location:
            message += f" ({location})"
        super().__init__(message)


class SchemaMismatchError(SalesInsightsError):
    """A required column is missing or has an unexpected type"""

    def __init__(self, table: str, problems: List[str]):
        self.table = table
        self.problems = problems
        super().__init__(f"Table '{table}' does not match the expected schema: {'; '.join(problems)}")


@dataclass(frozen=True)
class ReferentialGapWarning:
    """Sales rows excluded from a joined aggregate because their key has no dimension row"""
    dimension: str
    key_column: str
    excluded_rows: int

    @property
    def message(self) -> str:
        return (
            f"{self.excluded_rows} sales rows reference a {self.key_column} "
            f"missing from {self.dimension} and were excluded"
        )
