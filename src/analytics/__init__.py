"""Analytics module - sales trends and reports derived from facts."""

from .trends import TrendRecord, compute_trends, daily_totals, load_fact_history, refresh_sales_trends
from .reports import generate_monthly_report

__all__ = [
    'TrendRecord',
    'compute_trends',
    'daily_totals',
    'load_fact_history',
    'refresh_sales_trends',
    'generate_monthly_report',
]
