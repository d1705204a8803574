"""
Warehouse schema setup and DuckDB connections.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

import duckdb

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = str(Path(__file__).resolve().parents[3] / 'sql' / 'schemas' / 'dwh_schema.sql')

REQUIRED_TABLES = (
    'DimProduct', 'DimSupplier', 'DimDate', 'FactSales', 'FactInventory',
    'FactDailySalesSummary', 'FactSalesTrend', 'QuarantineRecord',
    'ETL_Audit', 'DataQuality_Metrics',
)


def _existing_tables(conn: duckdb.DuckDBPyConnection) -> set:
    rows = conn.execute("SELECT table_name FROM information_schema.tables").fetchall()
    return {row[0].lower() for row in rows}


def setup_schema(conn: duckdb.DuckDBPyConnection, schema_path: str = DEFAULT_SCHEMA_PATH) -> bool:
    """
    Create tables, sequences and indexes that don't exist yet.
    Never drops anything, so existing history is preserved.
    """
    existing = _existing_tables(conn)
    if all(t.lower() in existing for t in REQUIRED_TABLES):
        logger.info("Schema already exists, skipping setup")
        return True

    logger.info("Creating warehouse schema...")

    with open(schema_path, 'r', encoding='utf-8') as f:
        sql = f.read()

    # Remove comments
    sql = re.sub(r'--.*\n', '\n', sql)
    sql = re.sub(r'/\*.*?\*/', '', sql, flags=re.DOTALL)

    for stmt in [s.strip() for s in sql.split(';') if s.strip()]:
        conn.execute(stmt)

    logger.info("Schema setup complete")
    return True


def connect_warehouse(path: Optional[str] = None) -> duckdb.DuckDBPyConnection:
    """Open (or create) a DuckDB warehouse with the schema in place. None means in-memory."""
    if path and path != ':memory:':
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    conn = duckdb.connect(path or ':memory:')
    setup_schema(conn)
    return conn
