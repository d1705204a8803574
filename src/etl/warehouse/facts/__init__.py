"""
Fact processing modules for DWH ETL.
"""

from .quarantine import LoadResult, write_quarantine, get_quarantine
from .sales import load_sales_facts
from .inventory import load_inventory_facts, products_below_reorder_level
from .summary import refresh_daily_summary

__all__ = [
    'LoadResult',
    'write_quarantine',
    'get_quarantine',
    'load_sales_facts',
    'load_inventory_facts',
    'products_below_reorder_level',
    'refresh_daily_summary',
]
