"""
MinIO storage operations for the warehouse file.

Buckets:
- inventory-warehouse: DuckDB warehouse file
- inventory-backup: DuckDB backups
"""

import logging
import os
from datetime import datetime
from typing import Optional

from minio import Minio
from minio.error import S3Error

from src.config import MINIO_CONFIG, WAREHOUSE_CONFIG

logger = logging.getLogger(__name__)

WAREHOUSE_BUCKET = MINIO_CONFIG["bucket"]
BACKUP_BUCKET = MINIO_CONFIG["backup_bucket"]

DUCKDB_OBJECT = 'dwh/warehouse.duckdb'
BACKUP_PREFIX = 'dwh_backups'


def get_minio_client() -> Minio:
    """Get MinIO client."""
    return Minio(
        MINIO_CONFIG["endpoint"],
        access_key=MINIO_CONFIG["access_key"],
        secret_key=MINIO_CONFIG["secret_key"],
        secure=MINIO_CONFIG["secure"]
    )


def _ensure_bucket(client: Minio, bucket: str):
    if not client.bucket_exists(bucket):
        client.make_bucket(bucket)
        logger.info(f"Created bucket: {bucket}")


def download_duckdb(local_path: str, client: Minio = None) -> bool:
    """Download the warehouse file to local_path. Returns False when none exists yet."""
    client = client or get_minio_client()
    os.makedirs(os.path.dirname(local_path) or '.', exist_ok=True)

    try:
        client.stat_object(WAREHOUSE_BUCKET, DUCKDB_OBJECT)
    except S3Error as e:
        if e.code in ('NoSuchKey', 'NoSuchBucket'):
            logger.info("No existing warehouse on MinIO, will create new")
            return False
        raise

    client.fget_object(WAREHOUSE_BUCKET, DUCKDB_OBJECT, local_path)
    logger.info(f"Downloaded warehouse from MinIO to {local_path}")
    return True


def upload_duckdb(local_path: str, client: Minio = None):
    """Upload the warehouse file to MinIO."""
    client = client or get_minio_client()
    try:
        _ensure_bucket(client, WAREHOUSE_BUCKET)
        client.fput_object(WAREHOUSE_BUCKET, DUCKDB_OBJECT, local_path)
        logger.info("Uploaded warehouse to MinIO")
    except S3Error as e:
        logger.error(f"Upload warehouse error: {e}")
        raise


def backup_duckdb(local_path: str, client: Minio = None) -> Optional[str]:
    """Backup the warehouse file to MinIO, keeping the newest DWH_BACKUPS_TO_KEEP copies."""
    if not os.path.exists(local_path):
        return None

    client = client or get_minio_client()
    try:
        _ensure_bucket(client, BACKUP_BUCKET)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        backup_object = f'{BACKUP_PREFIX}/warehouse_{timestamp}.duckdb'
        client.fput_object(BACKUP_BUCKET, backup_object, local_path)
        logger.info(f"Backed up warehouse: {backup_object}")

        objects = list(client.list_objects(BACKUP_BUCKET, prefix=BACKUP_PREFIX, recursive=True))
        backups = sorted(o.object_name for o in objects if o.object_name.endswith('.duckdb'))
        while len(backups) > WAREHOUSE_CONFIG["backups_to_keep"]:
            client.remove_object(BACKUP_BUCKET, backups.pop(0))

        return backup_object
    except S3Error as e:
        # A failed backup does not block the load
        logger.error(f"Backup warehouse error: {e}")
        return None
