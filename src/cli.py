"""
Command line entry point for warehouse jobs.

    python -m src.cli load-sales --batch-id 2024-01-15 --input-dir data/2024-01-15
    python -m src.cli run-all --batch-id 2024-01-15
    python -m src.cli dashboard --days 7
    python -m src.cli audit --job load-sales

Exit status: 0 Success, 1 Failed, 2 Success with Warning signals,
3 rejected because the job is already running.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from src.config import NEGATIVE_VALUE_POLICY
from src.etl.errors import JobAlreadyRunningError
from src.etl.staging.pipeline import StagedBatch, read_staged_batch, read_staged_batch_from_csv
from src.etl.warehouse.facts import get_quarantine
from src.etl.warehouse.jobs import RUN_ALL_ORDER
from src.etl.warehouse.pipeline import JobOutcome, Orchestrator, open_warehouse
from src.monitoring.audit import AuditLog
from src.quality import MetricsLogger

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_WARNING = 2
EXIT_ALREADY_RUNNING = 3


def exit_code(outcomes: List[JobOutcome]) -> int:
    if any(not o.succeeded for o in outcomes):
        return EXIT_FAILED
    if any(o.warning_only for o in outcomes):
        return EXIT_WARNING
    return EXIT_SUCCESS


def _load_batch(args: argparse.Namespace) -> StagedBatch:
    if args.input_dir:
        return read_staged_batch_from_csv(args.batch_id, args.input_dir)
    if args.batch_id:
        return read_staged_batch(args.batch_id)
    return StagedBatch(batch_id=None)


def _print_outcome(outcome: JobOutcome):
    print(json.dumps({
        'job': outcome.job_name,
        'status': outcome.status,
        'rows_affected': outcome.rows_affected,
        'audit_id': outcome.audit_id,
        'warnings': outcome.warnings,
        'error': str(outcome.error) if outcome.error else None,
    }))


def run_jobs(args: argparse.Namespace) -> int:
    """Run one named job, or every job for run-all."""
    jobs = RUN_ALL_ORDER if args.command == 'run-all' else [args.command]
    batch = _load_batch(args)

    with open_warehouse(args.db_path, args.remote) as conn:
        orchestrator = Orchestrator(conn, policy=args.policy)
        try:
            outcomes = orchestrator.run_all(batch, jobs)
        except JobAlreadyRunningError as e:
            logger.error(str(e))
            print(json.dumps({'job': e.job_name, 'status': 'Rejected', 'audit_id': e.audit_id}))
            return EXIT_ALREADY_RUNNING

    for outcome in outcomes:
        if outcome.job_name == 'generate-monthly-report' and outcome.result is not None:
            print(outcome.result.to_string(index=False))
        _print_outcome(outcome)

    return exit_code(outcomes)


def show_dashboard(args: argparse.Namespace) -> int:
    """Print quality metrics of the last N days."""
    end = datetime.now()
    start = end - timedelta(days=args.days)

    with open_warehouse(args.db_path, args.remote) as conn:
        frame = MetricsLogger(conn).dashboard_frame(start, end)

    if frame.empty:
        print("No quality metrics in range")
        return EXIT_SUCCESS

    columns = ['metric_date', 'metric_category', 'metric_name', 'metric_value',
               'threshold_value', 'status', 'records_tested', 'invalid_records', 'error_percentage']
    print(frame[columns].to_string(index=False))
    return EXIT_SUCCESS


def show_audit(args: argparse.Namespace) -> int:
    """Print the audit entries of the last N days."""
    start = datetime.now() - timedelta(days=args.days)

    with open_warehouse(args.db_path, args.remote) as conn:
        entries = AuditLog(conn).entries(args.job, start=start)

    for entry in entries[-args.limit:]:
        print(
            f"{entry.audit_id:>6}  {entry.job_name:<24} {entry.status:<8} "
            f"rows={entry.rows_affected:<6} start={entry.start_time:%Y-%m-%d %H:%M:%S} "
            f"batch={entry.batch_id or '-'}"
            + (f"  {entry.error_message}" if entry.error_message else '')
        )
    if not entries:
        print("No audit entries in range")
    return EXIT_SUCCESS


def show_quarantine(args: argparse.Namespace) -> int:
    """Print quarantined records."""
    with open_warehouse(args.db_path, args.remote) as conn:
        frame = get_quarantine(conn, args.batch_id, args.reason)

    if frame.empty:
        print("No quarantined records")
        return EXIT_SUCCESS

    columns = ['quarantine_id', 'batch_id', 'source_table', 'natural_key', 'reason', 'detail']
    print(frame[columns].tail(args.limit).to_string(index=False))
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inventory warehouse jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--db-path",
        help="DuckDB warehouse file (default: DWH_DUCKDB_PATH)"
    )
    parser.add_argument(
        "--remote",
        choices=['none', 'minio'],
        help="Sync the warehouse file with MinIO (default: DWH_REMOTE)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.required = True

    for job_name in Orchestrator.job_names() + ['run-all']:
        job_parser = subparsers.add_parser(job_name, help=f"Run {job_name}")
        job_parser.add_argument(
            "--batch-id",
            help="Staged batch id (read from PostgreSQL unless --input-dir is given)"
        )
        job_parser.add_argument(
            "--input-dir",
            help="Directory with sales.csv, products.csv, suppliers.csv, inventory.csv"
        )
        job_parser.add_argument(
            "--policy",
            choices=['reject', 'coerce'],
            default=NEGATIVE_VALUE_POLICY,
            help=f"Negative quantity/price policy (default: {NEGATIVE_VALUE_POLICY})"
        )
        job_parser.set_defaults(func=run_jobs)

    dashboard_parser = subparsers.add_parser("dashboard", help="Show the data quality dashboard")
    dashboard_parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Days to look back (default: 7)"
    )
    dashboard_parser.set_defaults(func=show_dashboard)

    audit_parser = subparsers.add_parser("audit", help="Show ETL audit entries")
    audit_parser.add_argument("--job", help="Filter by job name (optional)")
    audit_parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Days to look back (default: 7)"
    )
    audit_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of entries to display (default: 50)"
    )
    audit_parser.set_defaults(func=show_audit)

    quarantine_parser = subparsers.add_parser("quarantine", help="Review quarantined records")
    quarantine_parser.add_argument("--batch-id", help="Filter by batch id (optional)")
    quarantine_parser.add_argument(
        "--reason",
        choices=['referential', 'validation'],
        help="Filter by reason (optional)"
    )
    quarantine_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of records to display (default: 50)"
    )
    quarantine_parser.set_defaults(func=show_quarantine)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        return args.func(args)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return EXIT_FAILED


if __name__ == '__main__':
    sys.exit(main())
