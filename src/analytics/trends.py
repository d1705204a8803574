"""
Sales trend analytics: moving averages and day-over-day growth per product.

Trends are derived from FactSales only and can be rebuilt at any time.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

import duckdb
import pandas as pd

from src.etl.staging.cleaners import normalize_key

logger = logging.getLogger(__name__)

SHORT_WINDOW = 7
LONG_WINDOW = 30


@dataclass
class TrendRecord:
    product_id: str
    date: date
    daily_total: float
    moving_avg_7day: float
    moving_avg_30day: float
    sales_growth_rate: Optional[float]


def _trailing_mean(values: List[float], end: int, window: int) -> float:
    # Window ends at `end` inclusive and is truncated at the start of history
    buffer = values[max(0, end - window + 1): end + 1]
    return sum(buffer) / len(buffer)


def daily_totals(fact_history: pd.DataFrame, product_id) -> Dict[date, float]:
    """Sum of total_amount per sale_date for one product."""
    if fact_history is None or fact_history.empty:
        return {}

    key = normalize_key(product_id)
    rows = fact_history[fact_history['product_id'].map(normalize_key) == key]

    totals: Dict[date, float] = {}
    for sale_date, amount in zip(rows['sale_date'], rows['total_amount']):
        day = pd.Timestamp(sale_date).date()
        totals[day] = totals.get(day, 0.0) + float(amount)
    return totals


def compute_trends(fact_history: pd.DataFrame, product_id) -> List[TrendRecord]:
    """
    Trend records for one product, one per day that has sales, in date order.

    Windows and growth run over the observed days only: the 7-day average is the
    mean of the last 7 days with sales, growth compares with the previous day
    with sales. fact_history needs product_id, sale_date and total_amount columns.
    """
    totals = daily_totals(fact_history, product_id)
    if not totals:
        return []

    key = normalize_key(product_id)
    days = sorted(totals)
    values = [totals[day] for day in days]

    records = []
    for i, day in enumerate(days):
        previous = values[i - 1] if i > 0 else None
        if previous is None or previous == 0:
            growth = None
        else:
            growth = (values[i] - previous) / previous

        records.append(TrendRecord(
            product_id=key,
            date=day,
            daily_total=values[i],
            moving_avg_7day=_trailing_mean(values, i, SHORT_WINDOW),
            moving_avg_30day=_trailing_mean(values, i, LONG_WINDOW),
            sales_growth_rate=growth,
        ))

    return records


def load_fact_history(conn: duckdb.DuckDBPyConnection, product_ids: Optional[Iterable[str]] = None) -> pd.DataFrame:
    if product_ids is None:
        return conn.execute("""
            SELECT product_id, sale_date, total_amount FROM FactSales
            ORDER BY product_id, sale_date
        """).fetchdf()

    product_ids = sorted({normalize_key(p) for p in product_ids} - {None})
    if not product_ids:
        return pd.DataFrame(columns=['product_id', 'sale_date', 'total_amount'])
    placeholders = ','.join(['?'] * len(product_ids))
    return conn.execute(f"""
        SELECT product_id, sale_date, total_amount FROM FactSales
        WHERE product_id IN ({placeholders})
        ORDER BY product_id, sale_date
    """, product_ids).fetchdf()


def refresh_sales_trends(conn: duckdb.DuckDBPyConnection, product_ids: Optional[Iterable[str]] = None) -> int:
    """
    Recompute FactSalesTrend for the given products (all products when None).

    Each product's rows are replaced in one transaction. Returns rows written.
    """
    history = load_fact_history(conn, product_ids)
    if history.empty:
        logger.info("FactSalesTrend: no sales history")
        return 0

    written = 0
    for product_id, rows in history.groupby('product_id', sort=True):
        records = compute_trends(rows, product_id)

        conn.execute("BEGIN TRANSACTION")
        try:
            conn.execute("DELETE FROM FactSalesTrend WHERE product_id = ?", [product_id])
            if records:
                conn.executemany("""
                    INSERT INTO FactSalesTrend (
                        trend_key, product_id, date, daily_total,
                        moving_avg_7day, moving_avg_30day, sales_growth_rate
                    ) VALUES (NEXTVAL('seq_fact_trend_key'), ?, ?, ?, ?, ?, ?)
                """, [
                    [r.product_id, r.date, r.daily_total, r.moving_avg_7day,
                     r.moving_avg_30day, r.sales_growth_rate]
                    for r in records
                ])
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        written += len(records)

    logger.info(f"FactSalesTrend: {written} rows for {history['product_id'].nunique()} product(s)")
    return written
