"""Reporting queries over the warehouse."""

import logging

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)


def generate_monthly_report(conn: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Revenue and units sold per calendar month, oldest first."""
    report = conn.execute("""
        SELECT
            year(sale_date) AS year,
            month(sale_date) AS month,
            SUM(total_amount) AS revenue,
            SUM(quantity) AS total_units_sold
        FROM FactSales
        GROUP BY year(sale_date), month(sale_date)
        ORDER BY year, month
    """).fetchdf()
    logger.info(f"Monthly report: {len(report)} month(s)")
    return report
