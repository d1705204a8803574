"""
Dimension processing modules for DWH ETL.
"""

from .scd2 import (
    DimensionSpec,
    ConformResult,
    conform_dimension,
    has_changes,
    apply_version,
    current_versions,
    version_history
)
from .product import process_dim_product, PRODUCT_DIMENSION
from .supplier import process_dim_supplier, SUPPLIER_DIMENSION
from .date import process_dim_date, date_key

__all__ = [
    'DimensionSpec',
    'ConformResult',
    'conform_dimension',
    'has_changes',
    'apply_version',
    'current_versions',
    'version_history',
    'process_dim_product',
    'process_dim_supplier',
    'process_dim_date',
    'date_key',
    'PRODUCT_DIMENSION',
    'SUPPLIER_DIMENSION',
]
