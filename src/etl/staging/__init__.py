"""Staging module exports"""
from .cleaners import (
    normalize_key, standardize_category, clean_staged_products, cleanse_measure,
    to_timestamp, to_date, to_int
)
from .pipeline import (
    StagedBatch, read_staged_batch, read_staged_batch_from_csv, get_staging_stats
)

__all__ = [
    'normalize_key',
    'standardize_category',
    'clean_staged_products',
    'cleanse_measure',
    'to_timestamp',
    'to_date',
    'to_int',
    'StagedBatch',
    'read_staged_batch',
    'read_staged_batch_from_csv',
    'get_staging_stats',
]
