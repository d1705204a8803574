"""Configuration exports"""
from .database_config import DB_CONFIG
from .storage_config import MINIO_CONFIG, WAREHOUSE_CONFIG
from .etl_config import (
    NEGATIVE_VALUE_POLICY, JOB_TIMEOUT_SECONDS, STALE_RUN_MINUTES, CATEGORY_MAPPINGS
)
from .quality_config import QUALITY_THRESHOLDS

__all__ = [
    'DB_CONFIG',
    'MINIO_CONFIG',
    'WAREHOUSE_CONFIG',
    'NEGATIVE_VALUE_POLICY',
    'JOB_TIMEOUT_SECONDS',
    'STALE_RUN_MINUTES',
    'CATEGORY_MAPPINGS',
    'QUALITY_THRESHOLDS',
]
