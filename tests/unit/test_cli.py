"""Unit tests for the command line entry point."""
import pytest
import sys
import os
import json

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from src.cli import (
    EXIT_ALREADY_RUNNING, EXIT_FAILED, EXIT_SUCCESS, EXIT_WARNING, build_parser, exit_code, main
)
from src.etl.warehouse.pipeline import JobOutcome, Orchestrator
from src.etl.warehouse.schema import connect_warehouse
from src.monitoring.audit import AuditLog, STATUS_FAILED, STATUS_SUCCESS

LOADED = '2024-01-15 06:00:00'


def write_batch(directory, unknown_product=False):
    sales = [
        {'transaction_id': 'T1', 'product_id': 101, 'sale_date': '2024-01-14', 'quantity': 2,
         'price': 500.0, 'store_id': 1, 'customer_id': 7, 'load_date': LOADED},
    ]
    if unknown_product:
        sales.append({'transaction_id': 'T2', 'product_id': 999, 'sale_date': '2024-01-14', 'quantity': 1,
                      'price': 10.0, 'store_id': 1, 'customer_id': 9, 'load_date': LOADED})
    pd.DataFrame(sales).to_csv(os.path.join(directory, 'sales.csv'), index=False)
    pd.DataFrame([
        {'product_id': 101, 'product_name': 'Laptop', 'category': 'Electronics',
         'supplier_id': 1, 'reorder_level': 5, 'load_date': LOADED},
    ]).to_csv(os.path.join(directory, 'products.csv'), index=False)
    return str(directory)


def job_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith('{')]


class TestExitCode:
    """Tests for exit_code function."""

    def test_success(self):
        assert exit_code([JobOutcome('load-sales', STATUS_SUCCESS)]) == EXIT_SUCCESS

    def test_warning(self):
        outcomes = [JobOutcome('load-sales', STATUS_SUCCESS, warnings=['1 quarantined'])]
        assert exit_code(outcomes) == EXIT_WARNING

    def test_failure_wins(self):
        outcomes = [
            JobOutcome('load-sales', STATUS_SUCCESS, warnings=['1 quarantined']),
            JobOutcome('load-inventory', STATUS_FAILED),
        ]
        assert exit_code(outcomes) == EXIT_FAILED


class TestMain:
    """Tests for main against a file warehouse."""

    @pytest.fixture
    def db_path(self, tmp_path):
        return str(tmp_path / 'warehouse.duckdb')

    def run(self, db_path, *args):
        return main(['--db-path', db_path, '--remote', 'none', '--log-level', 'WARNING', *args])

    def test_run_all(self, db_path, tmp_path, capsys):
        """Should run every job and exit 0."""
        input_dir = write_batch(tmp_path)

        code = self.run(db_path, 'run-all', '--batch-id', 'b1', '--input-dir', input_dir)

        assert code == EXIT_SUCCESS
        lines = job_lines(capsys.readouterr().out)
        assert all(line['status'] == STATUS_SUCCESS for line in lines)
        assert lines[-1]['job'] == 'generate-monthly-report'

    def test_quarantine_exits_with_warning(self, db_path, tmp_path, capsys):
        """Should exit 2 when a job quarantined records."""
        input_dir = write_batch(tmp_path, unknown_product=True)
        assert self.run(db_path, 'update-dim-product', '--batch-id', 'b1', '--input-dir', input_dir) == EXIT_SUCCESS

        code = self.run(db_path, 'load-sales', '--batch-id', 'b1', '--input-dir', input_dir)

        assert code == EXIT_WARNING
        line = job_lines(capsys.readouterr().out)[-1]
        assert line['rows_affected'] == 1
        assert line['warnings']

    def test_already_running(self, db_path, tmp_path, capsys):
        """Should exit 3 when the job already has an open run."""
        conn = connect_warehouse(db_path)
        AuditLog(conn).claim('load-sales')
        conn.close()

        code = self.run(db_path, 'load-sales', '--batch-id', 'b1', '--input-dir', write_batch(tmp_path))

        assert code == EXIT_ALREADY_RUNNING
        assert job_lines(capsys.readouterr().out)[-1]['status'] == 'Rejected'

    def test_dashboard(self, db_path, tmp_path, capsys):
        self.run(db_path, 'load-sales', '--batch-id', 'b1', '--input-dir', write_batch(tmp_path))
        capsys.readouterr()

        assert self.run(db_path, 'dashboard', '--days', '1') == EXIT_SUCCESS
        assert 'Positive Sales Prices' in capsys.readouterr().out

    def test_dashboard_empty(self, db_path, capsys):
        assert self.run(db_path, 'dashboard') == EXIT_SUCCESS
        assert 'No quality metrics in range' in capsys.readouterr().out

    def test_audit(self, db_path, tmp_path, capsys):
        self.run(db_path, 'update-dim-product', '--batch-id', 'b1', '--input-dir', write_batch(tmp_path))
        capsys.readouterr()

        assert self.run(db_path, 'audit', '--job', 'update-dim-product') == EXIT_SUCCESS
        output = capsys.readouterr().out
        assert 'update-dim-product' in output
        assert 'Success' in output

    def test_quarantine_review(self, db_path, tmp_path, capsys):
        input_dir = write_batch(tmp_path, unknown_product=True)
        self.run(db_path, 'update-dim-product', '--batch-id', 'b1', '--input-dir', input_dir)
        self.run(db_path, 'load-sales', '--batch-id', 'b1', '--input-dir', input_dir)
        capsys.readouterr()

        assert self.run(db_path, 'quarantine', '--reason', 'referential') == EXIT_SUCCESS
        output = capsys.readouterr().out
        assert 'product_id 999 not found in DimProduct' in output

    def test_every_job_has_a_command(self):
        """Should expose one sub-command per orchestrator job plus run-all."""
        parser = build_parser()
        for job_name in Orchestrator.job_names() + ['run-all']:
            args = parser.parse_args([job_name, '--batch-id', 'b1'])
            assert args.command == job_name
            assert args.batch_id == 'b1'

    def test_unknown_command(self, db_path):
        with pytest.raises(SystemExit):
            self.run(db_path, 'load-everything')
