"""
Inventory Warehouse DAG - Staging → DWH (DuckDB on MinIO)
Schedule: Daily at 7:00 AM, after staging extracts have landed

Flow:
1. Conform suppliers and products (SCD2)
2. Load sales and inventory facts (incremental, watermark from ETL_Audit)
3. Refresh daily summary and sales trends
4. Evaluate data quality
5. Monthly report
"""
from datetime import datetime, timedelta
from airflow import DAG
from airflow.operators.python import PythonOperator
from airflow.operators.empty import EmptyOperator
import logging
import sys

sys.path.insert(0, '/opt/airflow')

logger = logging.getLogger(__name__)

default_args = {
    'owner': 'airflow',
    'depends_on_past': False,
    'retries': 1,
    'retry_delay': timedelta(minutes=10),
    'email_on_failure': False,
}


def run_job_task(job_name: str, **kwargs):
    """Run one warehouse job for the DAG run's batch. Fails the task on a Failed outcome."""
    from src.etl.staging import read_staged_batch
    from src.etl.warehouse import Orchestrator, open_warehouse

    batch_id = kwargs['ds']
    batch = read_staged_batch(batch_id)

    with open_warehouse() as conn:
        outcome = Orchestrator(conn).run(job_name, batch, raise_on_failure=True)

    for warning in outcome.warnings:
        logger.warning(f"{job_name}: {warning}")
    logger.info(f"{job_name}: status={outcome.status}, rows={outcome.rows_affected}, audit_id={outcome.audit_id}")
    return {
        'status': outcome.status,
        'rows_affected': outcome.rows_affected,
        'warnings': outcome.warnings,
        'audit_id': outcome.audit_id,
    }


def staging_stats_task(**kwargs):
    """Log staged row counts for the batch"""
    from src.etl.staging import get_staging_stats

    stats = get_staging_stats(kwargs['ds'])
    logger.info(f"Staging stats for {kwargs['ds']}: {stats}")
    return stats


def _job(task_id: str, job_name: str) -> PythonOperator:
    return PythonOperator(
        task_id=task_id,
        python_callable=run_job_task,
        op_kwargs={'job_name': job_name},
    )


with DAG(
    'inventory_warehouse',
    default_args=default_args,
    description='Daily staging → DuckDB warehouse load',
    schedule_interval='0 7 * * *',  # 7:00 AM daily
    start_date=datetime(2024, 1, 1),
    catchup=False,
    tags=['production', 'dwh', 'etl'],
    max_active_runs=1,
    max_active_tasks=1,  # single DuckDB writer
) as dag:

    start = EmptyOperator(task_id='start')

    staging_stats = PythonOperator(
        task_id='staging_stats',
        python_callable=staging_stats_task,
    )

    load_suppliers = _job('load_supplier_data', 'load-supplier-data')
    update_products = _job('update_dim_product', 'update-dim-product')
    load_sales = _job('load_sales', 'load-sales')
    load_inventory = _job('load_inventory', 'load-inventory')
    refresh_summary = _job('refresh_daily_summary', 'refresh-daily-summary')
    compute_trends = _job('compute_sales_trends', 'compute-sales-trends')
    evaluate_quality = _job('evaluate_quality', 'evaluate-quality')
    monthly_report = _job('generate_monthly_report', 'generate-monthly-report')

    end = EmptyOperator(task_id='end')

    # Dimensions before facts, facts before derived tables
    start >> staging_stats >> [load_suppliers, update_products]
    [load_suppliers, update_products] >> load_sales
    [load_suppliers, update_products] >> load_inventory
    load_sales >> [refresh_summary, compute_trends]
    [refresh_summary, compute_trends, load_inventory] >> evaluate_quality
    evaluate_quality >> monthly_report >> end
