"""
FactSales fact processor.

Grain: 1 staged sale line. Append-only: only staged records loaded after the
watermark are considered, so re-running a batch never double counts.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

import duckdb
import pandas as pd

from src.etl.errors import REFERENTIAL_VIOLATION, VALIDATION_VIOLATION
from src.etl.staging.cleaners import cleanse_measure, normalize_key, to_date, to_int, to_timestamp
from ..cache import init_dimension_caches
from .quarantine import LoadResult, quarantine_row, write_quarantine

logger = logging.getLogger(__name__)

# FactSales.total_amount is DECIMAL(12, 2)
MAX_TOTAL_AMOUNT = Decimal('9999999999.99')
CENTS = Decimal('0.01')


def _total_amount(price: Optional[float], units: Optional[int]) -> Optional[Decimal]:
    """price * quantity rounded to cents, None when it does not fit the column."""
    if price is None or units is None:
        return None
    total = (Decimal(str(price)) * units).quantize(CENTS)
    return total if total <= MAX_TOTAL_AMOUNT else None


def is_eligible(load_time: Optional[datetime], watermark: Optional[datetime]) -> bool:
    """Staged after the watermark. Everything is eligible before the first successful load."""
    if watermark is None:
        return True
    return load_time is not None and load_time > watermark


def load_sales_facts(
    conn: duckdb.DuckDBPyConnection,
    staged_df: pd.DataFrame,
    watermark: Optional[datetime] = None,
    batch_id: Optional[str] = None,
    policy: Optional[str] = None,
    caches: Optional[Dict[str, Dict]] = None,
    now: Optional[datetime] = None
) -> LoadResult:
    """
    Load staged sales into FactSales.

    - validation: product_id, sale_date, load_date, quantity and price are required,
      quantity/price must be positive (see NEGATIVE_VALUE_POLICY)
    - referential: product_id must exist in DimProduct (any version)
    Excluded rows go to QuarantineRecord. Facts and quarantine rows commit together.
    """
    result = LoadResult()
    if staged_df is None or staged_df.empty:
        logger.info("FactSales: no staged sales")
        return result

    caches = caches or init_dimension_caches(conn)
    product_cache = caches['product']
    loaded_at = now or datetime.now()

    facts, quarantine = [], []

    for record in staged_df.to_dict('records'):
        load_time = to_timestamp(record.get('load_date'))
        if not is_eligible(load_time, watermark):
            result.skipped += 1
            continue

        product_id = normalize_key(record.get('product_id'))
        sale_date = to_date(record.get('sale_date'))
        units = to_int(cleanse_measure(record.get('quantity'), policy))
        price = cleanse_measure(record.get('price'), policy)
        total_amount = _total_amount(price, units)

        problems = [
            name for name, value in (
                ('product_id', product_id),
                ('sale_date', sale_date),
                ('load_date', load_time),
                ('quantity', units),
                ('price', price),
            ) if value is None
        ]
        if units is not None and price is not None and total_amount is None:
            problems.append('total_amount')

        if problems:
            result.invalid += 1
            quarantine.append(quarantine_row(
                batch_id, 'FactSales', product_id, VALIDATION_VIOLATION,
                f"missing or invalid: {', '.join(problems)}", record, loaded_at
            ))
            continue

        product_sk = product_cache.get(product_id)
        if product_sk is None:
            result.quarantined += 1
            quarantine.append(quarantine_row(
                batch_id, 'FactSales', product_id, REFERENTIAL_VIOLATION,
                f"product_id {product_id} not found in DimProduct", record, loaded_at
            ))
            continue

        facts.append([
            product_sk,
            product_id,
            to_int(record.get('store_id')),
            normalize_key(record.get('transaction_id')),
            sale_date,
            total_amount,
            units,
            batch_id,
            loaded_at,
        ])
        result.dates.add(sale_date)
        result.product_ids.add(product_id)

    conn.execute("BEGIN TRANSACTION")
    try:
        if facts:
            conn.executemany("""
                INSERT INTO FactSales (
                    sales_key, product_sk, product_id, store_id, transaction_id,
                    sale_date, total_amount, quantity, batch_id, loaded_at
                ) VALUES (NEXTVAL('seq_fact_sales_key'), ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, facts)
        write_quarantine(conn, quarantine)
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise

    result.loaded = len(facts)
    logger.info(
        f"FactSales: loaded={result.loaded}, quarantined={result.quarantined}, "
        f"invalid={result.invalid}, skipped={result.skipped}"
    )
    return result
