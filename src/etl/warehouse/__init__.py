"""
DWH ETL Module.

Conforms staged extracts (PostgreSQL or CSV) into a DuckDB star schema.
The warehouse file can be synced with MinIO (S3-compatible object storage).

Structure:
├── pipeline.py          - Orchestrator, warehouse session
├── jobs.py              - Named job bodies
├── schema.py            - Schema setup
├── cache.py             - Dimension caches
├── dimensions/          - Dimension processors
│   ├── scd2.py         - Generic SCD Type 2 conformance
│   ├── product.py      - DimProduct (SCD2)
│   ├── supplier.py     - DimSupplier (SCD2)
│   └── date.py         - DimDate
└── facts/              - Fact processors
    ├── sales.py        - FactSales
    ├── inventory.py    - FactInventory
    ├── summary.py      - FactDailySalesSummary
    └── quarantine.py   - QuarantineRecord

Storage: src/storage/minio.py
"""

from .pipeline import Orchestrator, JobOutcome, open_warehouse, run_warehouse_etl
from .jobs import JOBS, RUN_ALL_ORDER, JobContext
from .schema import setup_schema, connect_warehouse
from .cache import init_dimension_caches
from .dimensions import (
    DimensionSpec,
    ConformResult,
    conform_dimension,
    process_dim_product,
    process_dim_supplier,
    process_dim_date,
    PRODUCT_DIMENSION,
    SUPPLIER_DIMENSION
)
from .facts import (
    LoadResult,
    load_sales_facts,
    load_inventory_facts,
    refresh_daily_summary,
    get_quarantine
)

__all__ = [
    'Orchestrator',
    'JobOutcome',
    'open_warehouse',
    'run_warehouse_etl',
    'JOBS',
    'RUN_ALL_ORDER',
    'JobContext',
    'setup_schema',
    'connect_warehouse',
    'init_dimension_caches',
    'DimensionSpec',
    'ConformResult',
    'conform_dimension',
    'process_dim_product',
    'process_dim_supplier',
    'process_dim_date',
    'PRODUCT_DIMENSION',
    'SUPPLIER_DIMENSION',
    'LoadResult',
    'load_sales_facts',
    'load_inventory_facts',
    'refresh_daily_summary',
    'get_quarantine',
]
