"""
ETL Pipeline: Staging to DWH.
Main orchestrator for warehouse jobs.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import duckdb

from src.config import JOB_TIMEOUT_SECONDS, STALE_RUN_MINUTES, WAREHOUSE_CONFIG
from src.etl.errors import JobExecutionFailure, UnknownJobError
from src.etl.staging.pipeline import StagedBatch, read_staged_batch, read_staged_batch_from_csv
from src.monitoring.audit import AuditLog, STATUS_FAILED, STATUS_SUCCESS
from src.monitoring.timeout import timeout
from src.quality import GateResult, MetricsLogger, QualityGate
from src.storage.minio import backup_duckdb, download_duckdb, upload_duckdb
from .jobs import JOBS, RUN_ALL_ORDER, JobContext
from .schema import connect_warehouse

logger = logging.getLogger(__name__)


@dataclass
class JobOutcome:
    """What a caller sees of one job invocation."""
    job_name: str
    status: str
    rows_affected: int = 0
    warnings: List[str] = field(default_factory=list)
    audit_id: Optional[int] = None
    result: Any = None
    error: Optional[BaseException] = None
    quality: Optional[GateResult] = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def warning_only(self) -> bool:
        """Succeeded, but raised Warning signals (e.g. quarantined records)."""
        return self.succeeded and bool(self.warnings)


class Orchestrator:
    """
    Runs named warehouse jobs against one DuckDB connection.

    Every invocation is wrapped in an ETL_Audit entry. A job name can only have
    one unterminated invocation; a second attempt raises JobAlreadyRunningError.
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        audit: Optional[AuditLog] = None,
        policy: Optional[str] = None,
        timeout_seconds: int = JOB_TIMEOUT_SECONDS,
        stale_after: timedelta = timedelta(minutes=STALE_RUN_MINUTES),
        clock: Callable[[], datetime] = datetime.now
    ):
        self.conn = conn
        self.audit = audit or AuditLog(conn, clock=clock)
        self.metrics_logger = MetricsLogger(conn)
        self.gate = QualityGate()
        self.policy = policy
        self.timeout_seconds = timeout_seconds
        self.stale_after = stale_after
        self.clock = clock

    @staticmethod
    def job_names() -> List[str]:
        return list(RUN_ALL_ORDER)

    def run(self, job_name: str, batch: Optional[StagedBatch] = None,
            raise_on_failure: bool = False) -> JobOutcome:
        """
        Run one job.

        Failures are recorded as 'Failed' and returned in the outcome (or raised as
        JobExecutionFailure with raise_on_failure). JobAlreadyRunningError always
        propagates: the attempt is rejected, not queued.
        """
        job = JOBS.get(job_name)
        if job is None:
            raise UnknownJobError(f"Unknown job: {job_name}. Known jobs: {', '.join(RUN_ALL_ORDER)}")

        batch = batch or StagedBatch(batch_id=None)
        self.audit.expire_stale(job_name, self.stale_after)

        ctx = JobContext(conn=self.conn, batch=batch, audit=self.audit, policy=self.policy, now=self.clock())
        audit_id = None
        logger.info(f"Job {job_name} starting (batch={batch.batch_id})")

        try:
            with self.audit.track(job_name, batch.batch_id) as run:
                audit_id = run.audit_id
                with timeout(self.timeout_seconds):
                    rows, payload = job(ctx)
                run.rows_affected = int(rows or 0)
        except Exception as e:
            if audit_id is None:
                # Rejected before the body ran (already running)
                raise
            gate = self._log_metrics(ctx, audit_id)
            failure = JobExecutionFailure(job_name, e)
            if raise_on_failure:
                raise failure from e
            return JobOutcome(job_name, STATUS_FAILED, 0, ctx.warnings, audit_id, error=failure, quality=gate)

        gate = self._log_metrics(ctx, audit_id)
        if ctx.quarantined:
            self.audit.signal_warning(
                job_name, ctx.quarantined, batch.batch_id, '; '.join(ctx.warnings)
            )

        return JobOutcome(job_name, STATUS_SUCCESS, run.rows_affected, ctx.warnings, audit_id, payload, quality=gate)

    def _log_metrics(self, ctx: JobContext, audit_id: int) -> Optional[GateResult]:
        if not ctx.metrics:
            return None
        self.metrics_logger.log(ctx.metrics, audit_id)
        gate = self.gate.evaluate(ctx.metrics)
        if gate.breaches:
            logger.warning(f"Quality gate {ctx.batch_id or ''}: {gate.message}")
        return gate

    def run_all(self, batch: Optional[StagedBatch] = None, jobs: Optional[List[str]] = None) -> List[JobOutcome]:
        """Run jobs in dependency order, stopping at the first failure."""
        outcomes = []
        for job_name in jobs or RUN_ALL_ORDER:
            outcome = self.run(job_name, batch)
            outcomes.append(outcome)
            if not outcome.succeeded:
                logger.error(f"Stopping after failed job {job_name}: {outcome.error}")
                break
        return outcomes


# =============================================================================
# WAREHOUSE SESSION
# =============================================================================

@contextmanager
def open_warehouse(db_path: Optional[str] = None, remote: Optional[str] = None):
    """
    Yield a DuckDB connection with the schema in place.

    With remote='minio' the warehouse file is downloaded first, backed up, and
    uploaded again when the block exits without error.
    """
    db_path = db_path or WAREHOUSE_CONFIG['duckdb_path']
    remote = remote or WAREHOUSE_CONFIG['remote']
    sync = remote == 'minio' and db_path != ':memory:'

    if sync:
        if download_duckdb(db_path):
            backup_duckdb(db_path)
    elif remote not in ('none', 'minio'):
        raise ValueError(f"Unknown warehouse remote: {remote}")

    conn = connect_warehouse(db_path)
    try:
        yield conn
    finally:
        conn.close()

    if sync:
        upload_duckdb(db_path)


def run_warehouse_etl(
    batch_id: str,
    input_dir: Optional[str] = None,
    db_path: Optional[str] = None,
    jobs: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Run the full job sequence for one staged batch.

    Reads the batch from CSV files when input_dir is given, else from PostgreSQL.
    """
    start_time = datetime.now()
    result = {
        'success': False,
        'batch_id': batch_id,
        'start_time': start_time.isoformat(),
        'jobs': {}
    }

    logger.info("=" * 60)
    logger.info(f"WAREHOUSE ETL START: batch {batch_id}")
    logger.info("=" * 60)

    if input_dir:
        batch = read_staged_batch_from_csv(batch_id, input_dir)
    else:
        batch = read_staged_batch(batch_id)
    result['staging_counts'] = batch.counts()

    with open_warehouse(db_path) as conn:
        outcomes = Orchestrator(conn).run_all(batch, jobs)

    for outcome in outcomes:
        result['jobs'][outcome.job_name] = {
            'status': outcome.status,
            'rows_affected': outcome.rows_affected,
            'warnings': outcome.warnings,
            'audit_id': outcome.audit_id,
        }
    result['success'] = all(o.succeeded for o in outcomes)

    end_time = datetime.now()
    result['end_time'] = end_time.isoformat()
    result['duration_seconds'] = (end_time - start_time).total_seconds()

    logger.info("=" * 60)
    logger.info(f"WAREHOUSE ETL END: Duration {result['duration_seconds']:.2f}s")
    logger.info(f"Status: {'SUCCESS' if result['success'] else 'FAILED'}")
    logger.info("=" * 60)

    return result
