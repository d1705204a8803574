"""
Warehouse job bodies.

Each job takes a JobContext and returns (rows_affected, payload). Quality
metrics and quarantine counts are collected on the context; the orchestrator
persists them against the job's audit entry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import duckdb
import pandas as pd

from src.analytics import generate_monthly_report, refresh_sales_trends
from src.config import QUALITY_THRESHOLDS
from src.etl.staging.pipeline import StagedBatch
from src.monitoring.audit import AuditLog
from src.quality import (
    MetricDefinition, QualityMetric, QualityMonitor,
    staged_product_metrics, staged_sales_metrics, staged_supplier_metrics
)
from .cache import init_dimension_caches
from .dimensions import process_dim_date, process_dim_product, process_dim_supplier
from .facts import load_inventory_facts, load_sales_facts, refresh_daily_summary

logger = logging.getLogger(__name__)

JOB_UPDATE_DIM_PRODUCT = 'update-dim-product'
JOB_LOAD_SUPPLIER_DATA = 'load-supplier-data'
JOB_LOAD_SALES = 'load-sales'
JOB_LOAD_INVENTORY = 'load-inventory'
JOB_REFRESH_DAILY_SUMMARY = 'refresh-daily-summary'
JOB_COMPUTE_SALES_TRENDS = 'compute-sales-trends'
JOB_EVALUATE_QUALITY = 'evaluate-quality'
JOB_GENERATE_MONTHLY_REPORT = 'generate-monthly-report'


@dataclass
class JobContext:
    """Everything a job body needs, plus what it reports back."""
    conn: duckdb.DuckDBPyConnection
    batch: StagedBatch
    audit: AuditLog
    policy: Optional[str] = None
    now: Optional[datetime] = None
    monitor: QualityMonitor = field(default_factory=QualityMonitor)
    metrics: List[QualityMetric] = field(default_factory=list)
    quarantined: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def batch_id(self) -> Optional[str]:
        return self.batch.batch_id


JobFn = Callable[[JobContext], Tuple[int, Any]]


def _key_completeness(ctx: JobContext, table: str, source: str, column: str, result) -> QualityMetric:
    return ctx.monitor.from_counts(
        'Completeness', f'{table} Natural Key Completeness',
        tested=result.staged, invalid=result.invalid,
        threshold=QUALITY_THRESHOLDS['natural_key_completeness'],
        source_system=source, table_name=table, column_name=column,
        description=f'Percentage of staged records with a {column}',
        metric_date=ctx.now
    )


def _batch_filter(ctx: JobContext, column: str) -> Optional[list]:
    """Distinct values of column in FactSales for this batch, None for all batches."""
    if ctx.batch_id is None:
        return None
    rows = ctx.conn.execute(f"""
        SELECT DISTINCT {column} FROM FactSales WHERE batch_id = ?
    """, [ctx.batch_id]).fetchall()
    return [row[0] for row in rows]


# =============================================================================
# CONFORMANCE JOBS
# =============================================================================

def update_dim_product(ctx: JobContext) -> Tuple[int, Dict]:
    staged = ctx.batch.products
    ctx.metrics.extend(ctx.monitor.evaluate(staged_product_metrics(), staged, metric_date=ctx.now))

    result = process_dim_product(ctx.conn, staged, now=ctx.now)
    ctx.metrics.append(_key_completeness(ctx, 'DimProduct', 'ProductCatalog', 'product_id', result))
    return result.rows_affected, result.as_dict()


def load_supplier_data(ctx: JobContext) -> Tuple[int, Dict]:
    staged = ctx.batch.suppliers
    ctx.metrics.extend(ctx.monitor.evaluate(staged_supplier_metrics(), staged, metric_date=ctx.now))

    result = process_dim_supplier(ctx.conn, staged, now=ctx.now)
    ctx.metrics.append(_key_completeness(ctx, 'DimSupplier', 'SupplierPortal', 'supplier_id', result))
    return result.rows_affected, result.as_dict()


# =============================================================================
# FACT JOBS
# =============================================================================

def _record_fact_load(ctx: JobContext, table: str, source: str, result) -> None:
    ctx.metrics.append(ctx.monitor.from_counts(
        'Validity', f'Valid {table} Records',
        tested=result.eligible, invalid=result.invalid,
        source_system=source, table_name=table,
        description='Percentage of eligible staged records passing validation',
        metric_date=ctx.now
    ))
    if result.quarantined:
        ctx.quarantined += result.quarantined
        ctx.warnings.append(f'{result.quarantined} {table} record(s) quarantined: missing product references')
    process_dim_date(ctx.conn, result.dates)


def load_sales(ctx: JobContext) -> Tuple[int, Dict]:
    caches = init_dimension_caches(ctx.conn)
    ctx.metrics.extend(ctx.monitor.evaluate(
        staged_sales_metrics(), ctx.batch.sales,
        references={'product': set(caches['product'])},
        metric_date=ctx.now
    ))

    watermark = ctx.audit.last_success_end(JOB_LOAD_SALES)
    logger.info(f"Sales watermark: {watermark}")
    result = load_sales_facts(
        ctx.conn, ctx.batch.sales, watermark=watermark, batch_id=ctx.batch_id,
        policy=ctx.policy, caches=caches, now=ctx.now
    )
    _record_fact_load(ctx, 'FactSales', 'POS_System', result)
    return result.loaded, result.as_dict()


def load_inventory(ctx: JobContext) -> Tuple[int, Dict]:
    watermark = ctx.audit.last_success_end(JOB_LOAD_INVENTORY)
    logger.info(f"Inventory watermark: {watermark}")
    result = load_inventory_facts(
        ctx.conn, ctx.batch.inventory, watermark=watermark, batch_id=ctx.batch_id,
        policy=ctx.policy, now=ctx.now
    )
    _record_fact_load(ctx, 'FactInventory', 'InventorySystem', result)
    return result.loaded, result.as_dict()


# =============================================================================
# DERIVED JOBS
# =============================================================================

def refresh_summary(ctx: JobContext) -> Tuple[int, None]:
    return refresh_daily_summary(ctx.conn, _batch_filter(ctx, 'sale_date')), None


def compute_sales_trends(ctx: JobContext) -> Tuple[int, None]:
    return refresh_sales_trends(ctx.conn, _batch_filter(ctx, 'product_id')), None


def monthly_report(ctx: JobContext) -> Tuple[int, pd.DataFrame]:
    report = generate_monthly_report(ctx.conn)
    return len(report), report


def warehouse_metric_definitions() -> List[MetricDefinition]:
    """Checks on conformed data."""
    t = QUALITY_THRESHOLDS
    return [
        MetricDefinition(
            'Completeness', 'Product Name Completeness', 'completeness', 'product_name',
            t['product_name_completeness'], 'ETL_System', 'DimProduct',
            'Percentage of current products with a name'
        ),
        MetricDefinition(
            'Completeness', 'Product Category Completeness', 'completeness', 'category',
            t['product_category_completeness'], 'ETL_System', 'DimProduct',
            'Percentage of current products with a category'
        ),
    ]


def evaluate_quality(ctx: JobContext) -> Tuple[int, None]:
    products = ctx.conn.execute("""
        SELECT product_id, product_name, category FROM DimProduct WHERE is_current = TRUE
    """).fetchdf()
    ctx.metrics.extend(ctx.monitor.evaluate(warehouse_metric_definitions(), products, metric_date=ctx.now))

    sales = ctx.conn.execute("SELECT transaction_id, quantity FROM FactSales").fetchdf()
    ctx.metrics.extend(ctx.monitor.evaluate([
        MetricDefinition(
            'Uniqueness', 'Unique Loaded Transaction IDs', 'uniqueness', 'transaction_id',
            QUALITY_THRESHOLDS['unique_transaction_ids'], 'ETL_System', 'FactSales',
            'Percentage of unique TransactionID values in FactSales'
        ),
        MetricDefinition(
            'Validity', 'Positive Loaded Quantities', 'positive', 'quantity',
            QUALITY_THRESHOLDS['positive_sales_quantities'], 'ETL_System', 'FactSales',
            'Percentage of FactSales quantities > 0'
        ),
    ], sales, metric_date=ctx.now))

    return len(ctx.metrics), None


JOBS: Dict[str, JobFn] = {
    JOB_UPDATE_DIM_PRODUCT: update_dim_product,
    JOB_LOAD_SUPPLIER_DATA: load_supplier_data,
    JOB_LOAD_SALES: load_sales,
    JOB_LOAD_INVENTORY: load_inventory,
    JOB_REFRESH_DAILY_SUMMARY: refresh_summary,
    JOB_COMPUTE_SALES_TRENDS: compute_sales_trends,
    JOB_EVALUATE_QUALITY: evaluate_quality,
    JOB_GENERATE_MONTHLY_REPORT: monthly_report,
}

# Dimensions are conformed before facts reference them
RUN_ALL_ORDER = [
    JOB_LOAD_SUPPLIER_DATA,
    JOB_UPDATE_DIM_PRODUCT,
    JOB_LOAD_SALES,
    JOB_LOAD_INVENTORY,
    JOB_REFRESH_DAILY_SUMMARY,
    JOB_COMPUTE_SALES_TRENDS,
    JOB_EVALUATE_QUALITY,
    JOB_GENERATE_MONTHLY_REPORT,
]
