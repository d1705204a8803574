"""Storage module exports"""
from .postgres import get_db_connection, fetch_dataframe
from .minio import get_minio_client, download_duckdb, upload_duckdb, backup_duckdb

__all__ = [
    'get_db_connection',
    'fetch_dataframe',
    'get_minio_client',
    'download_duckdb',
    'upload_duckdb',
    'backup_duckdb',
]
