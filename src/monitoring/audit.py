"""Audit Log - Record every ETL job execution in ETL_Audit."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import duckdb

from src.etl.errors import JobAlreadyRunningError

logger = logging.getLogger(__name__)

STATUS_RUNNING = 'Running'
STATUS_SUCCESS = 'Success'
STATUS_FAILED = 'Failed'
STATUS_WARNING = 'Warning'

TERMINAL_STATUSES = (STATUS_SUCCESS, STATUS_FAILED, STATUS_WARNING)

_AUDIT_COLUMNS = """
    audit_id, job_name, batch_id, start_time, end_time, status, rows_affected, error_message
"""


@dataclass
class AuditEntry:
    """One row of ETL_Audit."""
    audit_id: int
    job_name: str
    batch_id: Optional[str]
    start_time: datetime
    end_time: Optional[datetime]
    status: str
    rows_affected: int = 0
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


@dataclass
class AuditRun:
    """Handle yielded by AuditLog.track while a job body runs."""
    audit_id: int
    job_name: str
    rows_affected: int = 0


@dataclass
class JobResult:
    """Terminal outcome of an audited run."""
    audit_id: int
    job_name: str
    status: str
    rows_affected: int
    payload: Any = None


class AuditLog:
    """
    Append-only log of job executions.

    Each invocation claims a 'Running' row before the job body starts and closes
    it with a terminal status afterwards. The unterminated row doubles as the
    single-flight lock for its job name.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection, clock: Callable[[], datetime] = datetime.now):
        self.conn = conn
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _job_lock(self, job_name: str) -> threading.Lock:
        with self._locks_guard:
            if job_name not in self._locks:
                self._locks[job_name] = threading.Lock()
            return self._locks[job_name]

    def _execute(self, sql: str, params: list = None) -> list:
        # Own cursor so audit writes never join a job's open transaction
        with self.conn.cursor() as cur:
            return cur.execute(sql, params or []).fetchall()

    # -------------------------------------------------------------------------
    # Writers
    # -------------------------------------------------------------------------

    def claim(self, job_name: str, batch_id: Optional[str] = None) -> int:
        """Insert the 'Running' row for a new invocation. Raises if one is already open."""
        with self._job_lock(job_name):
            running = self._execute("""
                SELECT audit_id FROM ETL_Audit
                WHERE job_name = ? AND end_time IS NULL
                ORDER BY start_time DESC
                LIMIT 1
            """, [job_name])
            if running:
                raise JobAlreadyRunningError(job_name, running[0][0])

            audit_id = self._execute("""
                INSERT INTO ETL_Audit (audit_id, job_name, batch_id, start_time, status, rows_affected)
                VALUES (NEXTVAL('seq_audit_id'), ?, ?, ?, ?, 0)
                RETURNING audit_id
            """, [job_name, batch_id, self.clock(), STATUS_RUNNING])[0][0]

        logger.debug(f"Audit claim: job={job_name}, audit_id={audit_id}, batch={batch_id}")
        return audit_id

    def finish(self, audit_id: int, status: str, rows_affected: int = 0,
               error_message: Optional[str] = None) -> None:
        """Close a 'Running' row with a terminal status."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Not a terminal status: {status}")
        self._execute("""
            UPDATE ETL_Audit
            SET end_time = ?, status = ?, rows_affected = ?, error_message = ?
            WHERE audit_id = ? AND end_time IS NULL
        """, [self.clock(), status, rows_affected, error_message, audit_id])

    def signal_warning(self, job_name: str, rows_affected: int,
                       batch_id: Optional[str] = None, message: Optional[str] = None) -> int:
        """Append a terminal 'Warning' entry, e.g. for quarantined records."""
        now = self.clock()
        audit_id = self._execute("""
            INSERT INTO ETL_Audit (audit_id, job_name, batch_id, start_time, end_time, status, rows_affected, error_message)
            VALUES (NEXTVAL('seq_audit_id'), ?, ?, ?, ?, ?, ?, ?)
            RETURNING audit_id
        """, [job_name, batch_id, now, now, STATUS_WARNING, rows_affected, message])[0][0]
        logger.warning(f"Audit warning: {job_name} rows={rows_affected} {message or ''}".rstrip())
        return audit_id

    def expire_stale(self, job_name: str, older_than: timedelta) -> int:
        """Close abandoned 'Running' rows as Failed so every run ends with a terminal record."""
        cutoff = self.clock() - older_than
        stale = self._execute("""
            SELECT audit_id FROM ETL_Audit
            WHERE job_name = ? AND end_time IS NULL AND start_time < ?
        """, [job_name, cutoff])
        for (audit_id,) in stale:
            self.finish(audit_id, STATUS_FAILED, 0, f'Abandoned run expired after {older_than}')
        if stale:
            logger.warning(f"Expired {len(stale)} abandoned run(s) of {job_name}")
        return len(stale)

    @contextmanager
    def track(self, job_name: str, batch_id: Optional[str] = None):
        """Context manager that claims, then closes the audit row on both paths."""
        audit_id = self.claim(job_name, batch_id)
        run = AuditRun(audit_id=audit_id, job_name=job_name)

        try:
            yield run
        except BaseException as e:
            try:
                self.finish(audit_id, STATUS_FAILED, 0, f"{type(e).__name__}: {e}")
            except Exception as audit_error:
                logger.error(f"Could not record failure of {job_name} (audit_id={audit_id}): {audit_error}")
            logger.error(f"Job {job_name} failed: {e}")
            raise
        else:
            self.finish(audit_id, STATUS_SUCCESS, run.rows_affected)
            logger.info(f"Job {job_name} succeeded: rows_affected={run.rows_affected}")

    def run_with_audit(
        self,
        job_name: str,
        fn: Callable[[], Union[int, Tuple[int, Any]]],
        batch_id: Optional[str] = None
    ) -> JobResult:
        """
        Run fn under an audit record.

        fn returns the rows-affected count, or (rows_affected, payload). Errors
        from fn are recorded as 'Failed' and re-raised unchanged.
        """
        with self.track(job_name, batch_id) as run:
            returned = fn()
            if isinstance(returned, tuple):
                rows, payload = returned
            else:
                rows, payload = returned, None
            run.rows_affected = int(rows or 0)

        return JobResult(
            audit_id=run.audit_id,
            job_name=job_name,
            status=STATUS_SUCCESS,
            rows_affected=run.rows_affected,
            payload=payload
        )

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def last_success_end(self, job_name: str) -> Optional[datetime]:
        """Watermark: end time of the most recent successful run of job_name."""
        row = self._execute("""
            SELECT MAX(end_time) FROM ETL_Audit
            WHERE job_name = ? AND status = ?
        """, [job_name, STATUS_SUCCESS])
        return row[0][0] if row else None

    def is_running(self, job_name: str) -> bool:
        row = self._execute("""
            SELECT COUNT(*) FROM ETL_Audit WHERE job_name = ? AND end_time IS NULL
        """, [job_name])
        return row[0][0] > 0

    def get(self, audit_id: int) -> Optional[AuditEntry]:
        rows = self._execute(f"SELECT {_AUDIT_COLUMNS} FROM ETL_Audit WHERE audit_id = ?", [audit_id])
        return AuditEntry(*rows[0]) if rows else None

    def entries(
        self,
        job_name: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[AuditEntry]:
        """AuditEntry feed filtered by job name and start-time range."""
        conditions, params = [], []
        if job_name is not None:
            conditions.append('job_name = ?')
            params.append(job_name)
        if start is not None:
            conditions.append('start_time >= ?')
            params.append(start)
        if end is not None:
            conditions.append('start_time <= ?')
            params.append(end)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''

        rows = self._execute(f"""
            SELECT {_AUDIT_COLUMNS} FROM ETL_Audit
            {where}
            ORDER BY start_time, audit_id
        """, params)
        return [AuditEntry(*row) for row in rows]
