"""
Ranking Helpers

Ordering and top/bottom selection for aggregated report frames.

Reports rank with ``sort_and_slice``. ``rank_and_filter`` is the window
function formulation (row number over the ordering, keep ``rank <= n``); it
returns the same frame and is kept for cross-checking.
"""

import polars as pl

RANK_COLUMN = "rank"


def sort_by_metric(
    df: pl.DataFrame,
    metric: str,
    key: str,
    descending: bool = True,
) -> pl.DataFrame:
    """
    Order rows by a metric with the key as ascending tie-breaker.

    Null metrics and null keys sort last.
    """
    return df.sort(
        [metric, key],
        descending=[descending, False],
        nulls_last=True,
        maintain_order=True,
    )


def sort_and_slice(
    df: pl.DataFrame,
    metric: str,
    key: str,
    n: int,
    descending: bool = True,
) -> pl.DataFrame:
    """Top (descending) or bottom (ascending) n rows with a 1-based rank column"""
    return (
        sort_by_metric(df, metric, key, descending)
        .head(n)
        .with_row_index(RANK_COLUMN, offset=1)
    )


def rank_and_filter(
    df: pl.DataFrame,
    metric: str,
    key: str,
    n: int,
    descending: bool = True,
) -> pl.DataFrame:
    """Assign row numbers over the full ordering, then keep ranks up to n"""
    ranked = sort_by_metric(df, metric, key, descending).with_row_index(RANK_COLUMN, offset=1)
    return ranked.filter(pl.col(RANK_COLUMN) <= n)
