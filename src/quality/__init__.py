"""Quality module - Data quality metrics, status derivation and dashboard feed."""

from .validators import (
    MetricDefinition, QualityMetric, QualityMonitor,
    staged_sales_metrics, staged_product_metrics, staged_supplier_metrics
)
from .gates import (
    QualityGate, GateResult, derive_status,
    STATUS_PASSED, STATUS_FAILED, STATUS_NA
)
from .metrics_logger import MetricsLogger

__all__ = [
    'MetricDefinition', 'QualityMetric', 'QualityMonitor',
    'staged_sales_metrics', 'staged_product_metrics', 'staged_supplier_metrics',
    'QualityGate', 'GateResult', 'derive_status',
    'STATUS_PASSED', 'STATUS_FAILED', 'STATUS_NA',
    'MetricsLogger'
]
