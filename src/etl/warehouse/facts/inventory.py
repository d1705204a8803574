"""
FactInventory fact processor.

Grain: 1 product × 1 store × 1 snapshot date.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

import duckdb
import pandas as pd

from src.etl.errors import REFERENTIAL_VIOLATION, VALIDATION_VIOLATION
from src.etl.staging.cleaners import cleanse_measure, normalize_key, to_date, to_int, to_timestamp
from ..cache import init_dimension_caches
from .quarantine import LoadResult, quarantine_row, write_quarantine
from .sales import is_eligible

logger = logging.getLogger(__name__)


def load_inventory_facts(
    conn: duckdb.DuckDBPyConnection,
    staged_df: pd.DataFrame,
    watermark: Optional[datetime] = None,
    batch_id: Optional[str] = None,
    policy: Optional[str] = None,
    caches: Optional[Dict[str, Dict]] = None,
    now: Optional[datetime] = None
) -> LoadResult:
    """
    Load staged inventory snapshots into FactInventory.

    Same rules as load_sales_facts, except that an empty shelf (quantity 0) is valid.
    reorder_level comes from the product's current version.
    """
    result = LoadResult()
    if staged_df is None or staged_df.empty:
        logger.info("FactInventory: no staged inventory")
        return result

    caches = caches or init_dimension_caches(conn)
    product_cache = caches['product']
    reorder_levels = caches['product_reorder_level']
    loaded_at = now or datetime.now()

    facts, quarantine = [], []

    for record in staged_df.to_dict('records'):
        load_time = to_timestamp(record.get('load_date'))
        if not is_eligible(load_time, watermark):
            result.skipped += 1
            continue

        product_id = normalize_key(record.get('product_id'))
        snapshot_date = to_date(record.get('inventory_date'))
        quantity = cleanse_measure(record.get('quantity'), policy, allow_zero=True)
        units = to_int(quantity)

        problems = [
            name for name, value in (
                ('product_id', product_id),
                ('inventory_date', snapshot_date),
                ('load_date', load_time),
                ('quantity', units),
            ) if value is None
        ]
        if problems:
            result.invalid += 1
            quarantine.append(quarantine_row(
                batch_id, 'FactInventory', product_id, VALIDATION_VIOLATION,
                f"missing or invalid: {', '.join(problems)}", record, loaded_at
            ))
            continue

        product_sk = product_cache.get(product_id)
        if product_sk is None:
            result.quarantined += 1
            quarantine.append(quarantine_row(
                batch_id, 'FactInventory', product_id, REFERENTIAL_VIOLATION,
                f"product_id {product_id} not found in DimProduct", record, loaded_at
            ))
            continue

        facts.append([
            product_sk,
            product_id,
            to_int(record.get('store_id')),
            snapshot_date,
            units,
            reorder_levels.get(product_id),
            batch_id,
            loaded_at,
        ])
        result.dates.add(snapshot_date)
        result.product_ids.add(product_id)

    conn.execute("BEGIN TRANSACTION")
    try:
        if facts:
            conn.executemany("""
                INSERT INTO FactInventory (
                    inventory_key, product_sk, product_id, store_id, date,
                    quantity_on_hand, reorder_level, batch_id, loaded_at
                ) VALUES (NEXTVAL('seq_fact_inventory_key'), ?, ?, ?, ?, ?, ?, ?, ?)
            """, facts)
        write_quarantine(conn, quarantine)
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise

    result.loaded = len(facts)
    logger.info(
        f"FactInventory: loaded={result.loaded}, quarantined={result.quarantined}, "
        f"invalid={result.invalid}, skipped={result.skipped}"
    )
    return result


def products_below_reorder_level(conn: duckdb.DuckDBPyConnection, snapshot_date=None) -> pd.DataFrame:
    """Latest snapshot rows where stock on hand is at or below the reorder level."""
    snapshot_date = snapshot_date or conn.execute("SELECT MAX(date) FROM FactInventory").fetchone()[0]
    if snapshot_date is None:
        return pd.DataFrame(columns=['product_id', 'store_id', 'date', 'quantity_on_hand', 'reorder_level'])
    return conn.execute("""
        SELECT product_id, store_id, date, quantity_on_hand, reorder_level
        FROM FactInventory
        WHERE date = ? AND reorder_level IS NOT NULL AND quantity_on_hand <= reorder_level
        ORDER BY product_id, store_id
    """, [snapshot_date]).fetchdf()
