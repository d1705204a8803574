"""Unit tests for the ETL audit log."""
import pytest
import sys
import os
import threading
from datetime import datetime, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from src.etl.errors import JobAlreadyRunningError
from src.etl.warehouse.schema import connect_warehouse
from src.monitoring.audit import (
    AuditLog, STATUS_FAILED, STATUS_RUNNING, STATUS_SUCCESS, STATUS_WARNING
)


class TickingClock:
    """Deterministic clock: every call is one second later."""

    def __init__(self, start=datetime(2024, 1, 15, 8, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class TestRunWithAudit:
    """Tests for AuditLog.run_with_audit."""

    def setup_method(self):
        self.conn = connect_warehouse()
        self.clock = TickingClock()
        self.audit = AuditLog(self.conn, clock=self.clock)

    def teardown_method(self):
        self.conn.close()

    def test_success_recorded(self):
        """Should record Success with the returned row count."""
        result = self.audit.run_with_audit('load-sales', lambda: 42, batch_id='b1')

        entry = self.audit.get(result.audit_id)
        assert result.status == STATUS_SUCCESS
        assert entry.status == STATUS_SUCCESS
        assert entry.rows_affected == 42
        assert entry.batch_id == 'b1'
        assert entry.end_time > entry.start_time

    def test_payload_returned(self):
        """Should pass through a payload returned with the row count."""
        result = self.audit.run_with_audit('report', lambda: (3, {'months': 3}))
        assert result.rows_affected == 3
        assert result.payload == {'months': 3}

    def test_failure_recorded_and_reraised(self):
        """Should record Failed with the error message and re-raise the original error."""
        def boom():
            raise RuntimeError("storage unavailable")

        with pytest.raises(RuntimeError, match="storage unavailable"):
            self.audit.run_with_audit('load-sales', boom)

        entry = self.audit.entries('load-sales')[-1]
        assert entry.status == STATUS_FAILED
        assert entry.rows_affected == 0
        assert 'storage unavailable' in entry.error_message
        assert entry.end_time is not None

    def test_interrupt_recorded_as_failed(self):
        """Should close the entry even when the body is interrupted."""
        def interrupted():
            raise KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            self.audit.run_with_audit('load-sales', interrupted)

        assert self.audit.entries('load-sales')[-1].status == STATUS_FAILED
        assert not self.audit.is_running('load-sales')

    def test_running_row_visible_during_body(self):
        """Should hold a Running entry while the body executes."""
        seen = {}

        def body():
            seen['running'] = self.audit.is_running('load-sales')
            seen['status'] = self.audit.entries('load-sales')[-1].status
            return 0

        self.audit.run_with_audit('load-sales', body)

        assert seen == {'running': True, 'status': STATUS_RUNNING}


class TestSingleFlight:
    """Tests for AuditLog.claim single-flight behaviour."""

    def setup_method(self):
        self.conn = connect_warehouse()
        self.audit = AuditLog(self.conn, clock=TickingClock())

    def teardown_method(self):
        self.conn.close()

    def test_second_claim_rejected(self):
        """Should reject a claim while the job has an unterminated entry."""
        audit_id = self.audit.claim('load-sales')

        with pytest.raises(JobAlreadyRunningError) as exc:
            self.audit.claim('load-sales')
        assert exc.value.audit_id == audit_id

    def test_other_job_not_blocked(self):
        self.audit.claim('load-sales')
        assert self.audit.claim('update-dim-product')

    def test_claim_after_finish(self):
        audit_id = self.audit.claim('load-sales')
        self.audit.finish(audit_id, STATUS_SUCCESS, 1)
        assert self.audit.claim('load-sales') != audit_id

    def test_concurrent_claims_single_winner(self):
        """Should let exactly one of several simultaneous claims through."""
        results = []
        barrier = threading.Barrier(6)

        def attempt():
            barrier.wait()
            try:
                results.append(self.audit.claim('load-sales'))
            except JobAlreadyRunningError:
                results.append(None)

        threads = [threading.Thread(target=attempt) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len([r for r in results if r is not None]) == 1
        assert len(self.audit.entries('load-sales')) == 1

    def test_finish_requires_terminal_status(self):
        audit_id = self.audit.claim('load-sales')
        with pytest.raises(ValueError):
            self.audit.finish(audit_id, STATUS_RUNNING)


class TestWatermarkAndFeed:
    """Tests for readers, warnings and stale-run expiry."""

    def setup_method(self):
        self.conn = connect_warehouse()
        self.clock = TickingClock()
        self.audit = AuditLog(self.conn, clock=self.clock)

    def teardown_method(self):
        self.conn.close()

    def test_no_watermark_before_first_success(self):
        assert self.audit.last_success_end('load-sales') is None

    def test_watermark_is_last_success_end(self):
        """Should use the end time of the latest Success, ignoring failures."""
        def bad_batch():
            raise ValueError('bad batch')

        first = self.audit.run_with_audit('load-sales', lambda: 1)
        with pytest.raises(ValueError):
            self.audit.run_with_audit('load-sales', bad_batch)

        assert self.audit.last_success_end('load-sales') == self.audit.get(first.audit_id).end_time

    def test_signal_warning(self):
        """Should append a terminal Warning entry with the given row count."""
        audit_id = self.audit.signal_warning('load-sales', 3, 'b1', '3 records quarantined')

        entry = self.audit.get(audit_id)
        assert entry.status == STATUS_WARNING
        assert entry.rows_affected == 3
        assert entry.is_terminal
        assert self.audit.last_success_end('load-sales') is None

    def test_expire_stale(self):
        """Should close abandoned Running entries as Failed."""
        self.audit.claim('load-sales')
        self.clock.now += timedelta(hours=5)

        expired = self.audit.expire_stale('load-sales', timedelta(hours=4))

        assert expired == 1
        assert self.audit.entries('load-sales')[0].status == STATUS_FAILED
        assert self.audit.claim('load-sales')

    def test_recent_run_not_expired(self):
        self.audit.claim('load-sales')
        assert self.audit.expire_stale('load-sales', timedelta(hours=4)) == 0
        assert self.audit.is_running('load-sales')

    def test_entries_filtered(self):
        self.audit.run_with_audit('load-sales', lambda: 1)
        self.audit.run_with_audit('update-dim-product', lambda: 1)

        assert [e.job_name for e in self.audit.entries()] == ['load-sales', 'update-dim-product']
        assert len(self.audit.entries('load-sales')) == 1
        assert self.audit.entries(start=self.clock.now + timedelta(days=1)) == []

    def test_duration(self):
        result = self.audit.run_with_audit('load-sales', lambda: 1)
        assert self.audit.get(result.audit_id).duration_seconds > 0
