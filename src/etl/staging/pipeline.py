"""Staged batch readers - PostgreSQL staging tables or CSV extracts, keyed by batch id"""
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Any

import pandas as pd

from src.config import DB_CONFIG
from src.storage.postgres import fetch_dataframe

logger = logging.getLogger(__name__)

# Batch attribute -> staging table
STAGING_TABLES = {
    'sales': 'staging_sales',
    'products': 'staging_products',
    'suppliers': 'staging_suppliers',
    'inventory': 'staging_inventory',
}

STAGING_COLUMNS = {
    'sales': ['transaction_id', 'product_id', 'sale_date', 'quantity', 'price',
              'store_id', 'customer_id', 'load_date'],
    'products': ['product_id', 'product_name', 'category', 'supplier_id',
                 'reorder_level', 'load_date'],
    'suppliers': ['supplier_id', 'supplier_name', 'contact_person', 'phone',
                  'email', 'load_date'],
    'inventory': ['inventory_id', 'product_id', 'store_id', 'inventory_date',
                  'quantity', 'load_date'],
}


def empty_frame(name: str) -> pd.DataFrame:
    return pd.DataFrame(columns=STAGING_COLUMNS[name])


@dataclass
class StagedBatch:
    """One batch of staged extracts. Immutable once read."""
    batch_id: str
    sales: pd.DataFrame = field(default_factory=lambda: empty_frame('sales'))
    products: pd.DataFrame = field(default_factory=lambda: empty_frame('products'))
    suppliers: pd.DataFrame = field(default_factory=lambda: empty_frame('suppliers'))
    inventory: pd.DataFrame = field(default_factory=lambda: empty_frame('inventory'))

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in STAGING_TABLES}

    @property
    def is_empty(self) -> bool:
        return not any(self.counts().values())


def read_staged_batch(batch_id: str) -> StagedBatch:
    """ Read every staging table for one batch from PostgreSQL """
    schema = DB_CONFIG['staging_schema']
    frames = {}

    for name, table in STAGING_TABLES.items():
        df = fetch_dataframe(
            f"SELECT * FROM {schema}.{table} WHERE batch_id = %s",
            [batch_id]
        )
        frames[name] = df.drop(columns=['batch_id'], errors='ignore')

    batch = StagedBatch(batch_id=batch_id, **frames)
    logger.info(f"Loaded staged batch {batch_id} from PostgreSQL: {batch.counts()}")
    return batch


def read_staged_batch_from_csv(batch_id: str, input_dir: str) -> StagedBatch:
    """ Read <input_dir>/<sales|products|suppliers|inventory>.csv. Missing files give empty frames. """
    frames = {}

    for name in STAGING_TABLES:
        path = os.path.join(input_dir, f"{name}.csv")
        if os.path.exists(path):
            frames[name] = pd.read_csv(path)
        else:
            frames[name] = empty_frame(name)

    batch = StagedBatch(batch_id=batch_id, **frames)
    logger.info(f"Loaded staged batch {batch_id} from {input_dir}: {batch.counts()}")
    return batch


def get_staging_stats(batch_id: str) -> Dict[str, Any]:
    """Row counts per staging table for one batch"""
    schema = DB_CONFIG['staging_schema']
    stats = {}

    for name, table in STAGING_TABLES.items():
        df = fetch_dataframe(
            f"SELECT COUNT(*) AS total FROM {schema}.{table} WHERE batch_id = %s",
            [batch_id]
        )
        stats[name] = int(df['total'].iloc[0]) if not df.empty else 0

    return stats
