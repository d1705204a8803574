"""
DimSupplier dimension processor (SCD Type 2).
"""

from datetime import datetime
from typing import Optional

import duckdb
import pandas as pd

from .scd2 import ConformResult, DimensionSpec, conform_dimension

SUPPLIER_DIMENSION = DimensionSpec(
    table='DimSupplier',
    natural_key='supplier_id',
    surrogate_key='supplier_sk',
    sequence='seq_dim_supplier_sk',
    attributes=(
        ('supplier_name', str),
        ('contact_person', str),
        ('phone', str),
        ('email', str),
    ),
    # 'Sales@Acme.com ' and 'sales@acme.com' are the same address
    normalized=('email',),
)


def process_dim_supplier(
    conn: duckdb.DuckDBPyConnection,
    staging_df: pd.DataFrame,
    now: Optional[datetime] = None
) -> ConformResult:
    """Conform staged suppliers into DimSupplier."""
    return conform_dimension(conn, SUPPLIER_DIMENSION, staging_df, now=now)
