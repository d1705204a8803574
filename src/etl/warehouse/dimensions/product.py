"""
DimProduct dimension processor (SCD Type 2).
"""

import logging
from datetime import datetime
from typing import Optional

import duckdb
import pandas as pd

from src.etl.staging.cleaners import clean_staged_products
from .scd2 import ConformResult, DimensionSpec, conform_dimension

logger = logging.getLogger(__name__)

PRODUCT_DIMENSION = DimensionSpec(
    table='DimProduct',
    natural_key='product_id',
    surrogate_key='product_sk',
    sequence='seq_dim_product_sk',
    attributes=(
        ('product_name', str),
        ('category', str),
        ('supplier_id', int),
        ('reorder_level', int),
    ),
)


def process_dim_product(
    conn: duckdb.DuckDBPyConnection,
    staging_df: pd.DataFrame,
    now: Optional[datetime] = None
) -> ConformResult:
    """
    Conform staged products into DimProduct.

    Categories are standardized first, so 'furn' and 'Furniture' don't
    produce a new version.
    """
    if staging_df is None or staging_df.empty:
        logger.info("DimProduct: no staged products")
        return ConformResult()

    return conform_dimension(conn, PRODUCT_DIMENSION, clean_staged_products(staging_df), now=now)
