"""Storage configuration (DuckDB warehouse, MinIO)"""
import os

MINIO_CONFIG = {
    "endpoint": os.getenv("MINIO_ENDPOINT", "minio:9000"),
    "access_key": os.getenv("MINIO_ACCESS_KEY", "minioadmin"),
    "secret_key": os.getenv("MINIO_SECRET_KEY", "minioadmin"),
    "bucket": os.getenv("MINIO_WAREHOUSE_BUCKET", "inventory-warehouse"),
    "backup_bucket": os.getenv("MINIO_BACKUP_BUCKET", "inventory-backup"),
    "secure": os.getenv("MINIO_SECURE", "false").lower() == "true",
}

WAREHOUSE_CONFIG = {
    "duckdb_path": os.getenv("DWH_DUCKDB_PATH", "/tmp/inventory_dwh/warehouse.duckdb"),
    # 'none' keeps the DuckDB file local, 'minio' syncs it with MINIO_CONFIG['bucket']
    "remote": os.getenv("DWH_REMOTE", "none"),
    "backups_to_keep": int(os.getenv("DWH_BACKUPS_TO_KEEP", "5")),
}
