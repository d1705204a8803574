"""
Dimension cache utilities.
"""

import logging
from typing import Dict

import duckdb

logger = logging.getLogger(__name__)


def init_dimension_caches(conn: duckdb.DuckDBPyConnection) -> Dict[str, Dict]:
    """
    Initialize caches for dimension lookups.

    Returns dict with:
    - product: product_id -> product_sk of the current version
    - product_reorder_level: product_id -> reorder_level of the current version
    - supplier: supplier_id -> supplier_sk of the current version

    A key that only has closed versions still resolves (to its latest version),
    so a fact is never quarantined just because its product was superseded.
    """
    caches = {}

    # is_current sorts FALSE first, so the current version is the last one written
    products = conn.execute("""
        SELECT product_id, product_sk, reorder_level
        FROM DimProduct
        ORDER BY product_id, is_current, effective_date, product_sk
    """).fetchall()
    caches['product'] = {row[0]: row[1] for row in products}
    caches['product_reorder_level'] = {row[0]: row[2] for row in products}

    suppliers = conn.execute("""
        SELECT supplier_id, supplier_sk
        FROM DimSupplier
        ORDER BY supplier_id, is_current, effective_date, supplier_sk
    """).fetchall()
    caches['supplier'] = {row[0]: row[1] for row in suppliers}

    logger.info(f"Caches initialized: products={len(caches['product'])}, suppliers={len(caches['supplier'])}")
    return caches
