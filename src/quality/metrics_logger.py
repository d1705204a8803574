"""Metrics Logger - Persist quality metrics and serve the dashboard feed."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import duckdb
import pandas as pd

from src.config.quality_config import DQ_DASHBOARD_DAYS
from .gates import STATUS_FAILED
from .validators import QualityMetric

logger = logging.getLogger(__name__)


def _as_float(value) -> Optional[float]:
    return None if value is None else float(value)


class MetricsLogger:
    """Logger for quality metrics to the DataQuality_Metrics table."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def log(self, metrics: Iterable[QualityMetric], audit_id: Optional[int] = None) -> int:
        """Insert metrics, correlated with the job run that produced them. Returns count."""
        count = 0
        with self.conn.cursor() as cur:
            for metric in metrics:
                metric.audit_id = audit_id if audit_id is not None else metric.audit_id
                metric.metric_id = cur.execute("""
                    INSERT INTO DataQuality_Metrics (
                        metric_id, metric_date, metric_category, metric_name, metric_value,
                        threshold_value, source_system, table_name, column_name,
                        check_description, records_tested, invalid_records, audit_id
                    ) VALUES (NEXTVAL('seq_metric_id'), ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    RETURNING metric_id
                """, [
                    metric.metric_date, metric.category, metric.name, metric.value,
                    metric.threshold, metric.source_system, metric.table_name, metric.column_name,
                    metric.description, metric.records_tested, metric.invalid_records, metric.audit_id
                ]).fetchone()[0]
                count += 1

        logger.info(f"Quality metrics logged: {count} (audit_id={audit_id})")
        return count

    def dashboard(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[QualityMetric]:
        """
        Metrics with metric_date in [start, end].

        Defaults to the last DQ_DASHBOARD_DAYS days. Ordered by category, then
        Failed before any other status, then most recent first.
        """
        end = end or datetime.now()
        start = start or end - timedelta(days=DQ_DASHBOARD_DAYS)

        with self.conn.cursor() as cur:
            rows = cur.execute("""
                SELECT metric_id, metric_date, metric_category, metric_name, metric_value,
                       threshold_value, source_system, table_name, column_name,
                       check_description, records_tested, invalid_records, audit_id
                FROM DataQuality_Metrics
                WHERE metric_date >= ? AND metric_date <= ?
            """, [start, end]).fetchall()

        metrics = [
            QualityMetric(
                metric_id=row[0],
                metric_date=row[1],
                category=row[2],
                name=row[3],
                value=float(row[4]),
                threshold=_as_float(row[5]),
                source_system=row[6],
                table_name=row[7],
                column_name=row[8],
                description=row[9],
                records_tested=row[10],
                invalid_records=row[11],
                audit_id=row[12]
            )
            for row in rows
        ]

        # Stable sorts: least significant key first
        metrics.sort(key=lambda m: m.metric_date, reverse=True)
        metrics.sort(key=lambda m: (m.category, 0 if m.status == STATUS_FAILED else 1))
        return metrics

    def dashboard_frame(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> pd.DataFrame:
        """Dashboard rows as a DataFrame, including derived status and error percentage."""
        metrics = self.dashboard(start, end)
        columns = list(QualityMetric(category='', name='', value=0.0).to_dict().keys())
        return pd.DataFrame([m.to_dict() for m in metrics], columns=columns)
