"""
FactDailySalesSummary - daily aggregate of FactSales per product and store.
"""

import logging
from datetime import date
from typing import Iterable

import duckdb

logger = logging.getLogger(__name__)


def refresh_daily_summary(conn: duckdb.DuckDBPyConnection, dates: Iterable[date] = None) -> int:
    """
    Rebuild the summary rows of the given dates from FactSales.

    dates=None rebuilds every date. Delete + insert commit together, so readers
    never see a day half rebuilt. Returns summary rows written.
    """
    if dates is None:
        conn.execute("BEGIN TRANSACTION")
        try:
            conn.execute("DELETE FROM FactDailySalesSummary")
            _insert_summary(conn, '', [])
            written = conn.execute("SELECT COUNT(*) FROM FactDailySalesSummary").fetchone()[0]
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        logger.info(f"FactDailySalesSummary: {written} rows rebuilt (all dates)")
        return written

    dates = sorted({d for d in dates if d is not None})
    if not dates:
        return 0
    placeholders = ','.join(['?'] * len(dates))

    conn.execute("BEGIN TRANSACTION")
    try:
        conn.execute(f"DELETE FROM FactDailySalesSummary WHERE date IN ({placeholders})", dates)
        _insert_summary(conn, f"WHERE sale_date IN ({placeholders})", dates)
        written = conn.execute(f"""
            SELECT COUNT(*) FROM FactDailySalesSummary WHERE date IN ({placeholders})
        """, dates).fetchone()[0]
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise

    logger.info(f"FactDailySalesSummary: {written} rows rebuilt for {len(dates)} date(s)")
    return written


def _insert_summary(conn: duckdb.DuckDBPyConnection, where: str, params: list):
    conn.execute(f"""
        INSERT INTO FactDailySalesSummary (
            date, product_id, store_id, total_sales, total_quantity,
            average_unit_price, day_of_week, is_weekend
        )
        SELECT
            sale_date,
            product_id,
            store_id,
            SUM(total_amount),
            SUM(quantity),
            CAST(SUM(total_amount) / SUM(quantity) AS DECIMAL(10, 2)),
            dayname(sale_date),
            dayofweek(sale_date) IN (0, 6)
        FROM FactSales
        {where}
        GROUP BY sale_date, product_id, store_id
    """, params)
