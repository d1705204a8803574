"""Data Quality metrics for staged and conformed data."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd

from src.config.quality_config import QUALITY_THRESHOLDS
from src.etl.staging.cleaners import normalize_key
from .gates import derive_status

logger = logging.getLogger(__name__)


@dataclass
class MetricDefinition:
    """What to measure on a dataset and the threshold it must reach (percent)."""
    category: str  # 'Completeness', 'Validity', 'Uniqueness', ...
    name: str
    check: str  # key of QualityMonitor.CHECKS
    column: Optional[str] = None
    threshold: Optional[float] = None
    source_system: str = 'ETL_System'
    table_name: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None  # key into the references passed to evaluate()


@dataclass
class QualityMetric:
    """A measured metric. Status is derived, never stored."""
    category: str
    name: str
    value: float
    threshold: Optional[float] = None
    source_system: str = 'ETL_System'
    table_name: Optional[str] = None
    column_name: Optional[str] = None
    description: Optional[str] = None
    records_tested: Optional[int] = None
    invalid_records: Optional[int] = None
    metric_date: datetime = field(default_factory=datetime.now)
    metric_id: Optional[int] = None
    audit_id: Optional[int] = None

    @property
    def status(self) -> str:
        return derive_status(self.value, self.threshold)

    @property
    def error_percentage(self) -> Optional[float]:
        """invalid / tested * 100, None when nothing was tested."""
        if not self.records_tested or self.invalid_records is None:
            return None
        return round(self.invalid_records * 100.0 / self.records_tested, 2)

    def to_dict(self) -> Dict:
        return {
            'metric_date': self.metric_date,
            'metric_category': self.category,
            'metric_name': self.name,
            'metric_value': self.value,
            'threshold_value': self.threshold,
            'status': self.status,
            'source_system': self.source_system,
            'table_name': self.table_name,
            'column_name': self.column_name,
            'check_description': self.description,
            'records_tested': self.records_tested,
            'invalid_records': self.invalid_records,
            'error_percentage': self.error_percentage,
        }


def _is_missing(values: pd.Series) -> pd.Series:
    blank = values.astype(str).str.strip() == ''
    return values.isna() | blank


def _check_completeness(values: pd.Series, reference: Optional[Set[str]]) -> Tuple[int, int]:
    return len(values), int(_is_missing(values).sum())


def _check_positive(values: pd.Series, reference: Optional[Set[str]]) -> Tuple[int, int]:
    numeric = pd.to_numeric(values, errors='coerce')
    return len(values), int((~(numeric > 0)).sum())


def _check_reference(values: pd.Series, reference: Optional[Set[str]]) -> Tuple[int, int]:
    keys = values.map(normalize_key)
    found = keys.isin(reference or set())
    return len(values), int((keys.isna() | ~found).sum())


def _check_uniqueness(values: pd.Series, reference: Optional[Set[str]]) -> Tuple[int, int]:
    present = values.map(normalize_key).dropna()
    return len(present), int(len(present) - present.nunique())


class QualityMonitor:
    """Computes QualityMetric rows from metric definitions."""

    CHECKS: Dict[str, Callable[[pd.Series, Optional[Set[str]]], Tuple[int, int]]] = {
        'completeness': _check_completeness,
        'positive': _check_positive,
        'reference': _check_reference,
        'uniqueness': _check_uniqueness,
    }

    def evaluate(
        self,
        definitions: Iterable[MetricDefinition],
        dataset: pd.DataFrame,
        references: Optional[Dict[str, Set[str]]] = None,
        metric_date: Optional[datetime] = None
    ) -> List[QualityMetric]:
        """Evaluate each definition against dataset."""
        references = references or {}
        metric_date = metric_date or datetime.now()
        metrics = []

        for definition in definitions:
            check = self.CHECKS.get(definition.check)
            if check is None:
                raise ValueError(f"Unknown quality check: {definition.check}")

            if definition.column in dataset.columns:
                tested, invalid = check(dataset[definition.column], references.get(definition.reference))
            else:
                # Absent column: every record fails the check
                tested, invalid = len(dataset), len(dataset)

            metrics.append(self.from_counts(
                category=definition.category,
                name=definition.name,
                tested=tested,
                invalid=invalid,
                threshold=definition.threshold,
                source_system=definition.source_system,
                table_name=definition.table_name,
                column_name=definition.column,
                description=definition.description,
                metric_date=metric_date
            ))

        logger.info(f"Quality: evaluated {len(metrics)} metrics on {len(dataset)} records")
        return metrics

    @staticmethod
    def from_counts(
        category: str,
        name: str,
        tested: int,
        invalid: int,
        threshold: Optional[float] = None,
        metric_date: Optional[datetime] = None,
        **provenance
    ) -> QualityMetric:
        """Metric whose value is the valid percentage of tested records (100 when none tested)."""
        value = 100.0 if tested == 0 else round((tested - invalid) * 100.0 / tested, 4)
        return QualityMetric(
            category=category,
            name=name,
            value=value,
            threshold=threshold,
            records_tested=tested,
            invalid_records=invalid,
            metric_date=metric_date or datetime.now(),
            **provenance
        )


# =============================================================================
# DEFAULT METRIC SUITES
# =============================================================================

def staged_sales_metrics(thresholds: Dict[str, float] = None) -> List[MetricDefinition]:
    """Checks on a staged sales batch. Needs references={'product': product ids}."""
    t = thresholds or QUALITY_THRESHOLDS
    return [
        MetricDefinition(
            'Completeness', 'Sales Quantity Completeness', 'completeness', 'quantity',
            t['sales_quantity_completeness'], 'POS_System', 'Staging_Sales',
            'Percentage of non-NULL Quantity values'
        ),
        MetricDefinition(
            'Validity', 'Valid ProductID References', 'reference', 'product_id',
            t['valid_product_references'], 'POS_System', 'Staging_Sales',
            'Percentage of ProductIDs that exist in DimProduct', reference='product'
        ),
        MetricDefinition(
            'Validity', 'Positive Sales Quantities', 'positive', 'quantity',
            t['positive_sales_quantities'], 'POS_System', 'Staging_Sales',
            'Percentage of Quantity values > 0'
        ),
        MetricDefinition(
            'Validity', 'Positive Sales Prices', 'positive', 'price',
            t['positive_sales_prices'], 'POS_System', 'Staging_Sales',
            'Percentage of Price values > 0'
        ),
        MetricDefinition(
            'Uniqueness', 'Unique Transaction IDs', 'uniqueness', 'transaction_id',
            t['unique_transaction_ids'], 'POS_System', 'Staging_Sales',
            'Percentage of unique TransactionID values'
        ),
    ]


def staged_product_metrics(thresholds: Dict[str, float] = None) -> List[MetricDefinition]:
    """Completeness checks on a staged product batch."""
    t = thresholds or QUALITY_THRESHOLDS
    return [
        MetricDefinition(
            'Completeness', 'Product Name Completeness', 'completeness', 'product_name',
            t['product_name_completeness'], 'ProductCatalog', 'Staging_Products',
            'Percentage of non-NULL ProductName values'
        ),
        MetricDefinition(
            'Completeness', 'Product Category Completeness', 'completeness', 'category',
            t['product_category_completeness'], 'ProductCatalog', 'Staging_Products',
            'Percentage of non-NULL Category values'
        ),
        MetricDefinition(
            'Uniqueness', 'Unique Staged Product IDs', 'uniqueness', 'product_id',
            None, 'ProductCatalog', 'Staging_Products',
            'Percentage of unique ProductID values within the batch'
        ),
    ]


def staged_supplier_metrics(thresholds: Dict[str, float] = None) -> List[MetricDefinition]:
    """Completeness checks on a staged supplier batch."""
    return [
        MetricDefinition(
            'Completeness', 'Supplier Name Completeness', 'completeness', 'supplier_name',
            None, 'SupplierPortal', 'Staging_Suppliers',
            'Percentage of non-NULL SupplierName values'
        ),
        MetricDefinition(
            'Completeness', 'Supplier Email Completeness', 'completeness', 'email',
            None, 'SupplierPortal', 'Staging_Suppliers',
            'Percentage of non-NULL Email values'
        ),
    ]
