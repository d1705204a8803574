"""Unit tests for staged batch readers."""
import pytest
import sys
import os
from unittest.mock import patch

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from src.etl.staging.pipeline import (
    StagedBatch, STAGING_TABLES, read_staged_batch, read_staged_batch_from_csv, get_staging_stats
)


class TestStagedBatch:
    """Tests for StagedBatch."""

    def test_default_batch_is_empty(self):
        """Should default to empty frames with staging columns."""
        batch = StagedBatch(batch_id='b1')
        assert batch.is_empty
        assert 'load_date' in batch.sales.columns
        assert batch.counts() == {'sales': 0, 'products': 0, 'suppliers': 0, 'inventory': 0}

    def test_counts(self):
        batch = StagedBatch(batch_id='b1', products=pd.DataFrame([{'product_id': 1}]))
        assert batch.counts()['products'] == 1
        assert not batch.is_empty


class TestReadStagedBatchFromCsv:
    """Tests for read_staged_batch_from_csv."""

    def test_reads_existing_files(self, tmp_path):
        """Should read the CSV files that exist and leave the others empty."""
        pd.DataFrame([
            {'product_id': 101, 'product_name': 'Desk', 'category': 'Furniture',
             'supplier_id': 1, 'reorder_level': 5, 'load_date': '2024-01-15 06:00:00'}
        ]).to_csv(tmp_path / 'products.csv', index=False)

        batch = read_staged_batch_from_csv('b1', str(tmp_path))

        assert batch.batch_id == 'b1'
        assert len(batch.products) == 1
        assert batch.sales.empty
        assert batch.inventory.empty


class TestReadStagedBatch:
    """Tests for read_staged_batch (PostgreSQL)."""

    @patch('src.etl.staging.pipeline.fetch_dataframe')
    def test_queries_every_staging_table_by_batch(self, mock_fetch):
        """Should filter every staging table by batch id and drop the batch_id column."""
        mock_fetch.return_value = pd.DataFrame([{'product_id': 1, 'batch_id': 'b1'}])

        batch = read_staged_batch('b1')

        assert mock_fetch.call_count == len(STAGING_TABLES)
        for call in mock_fetch.call_args_list:
            query, params = call.args
            assert 'WHERE batch_id = %s' in query
            assert params == ['b1']
        assert 'batch_id' not in batch.products.columns

    @patch('src.etl.staging.pipeline.fetch_dataframe')
    def test_staging_stats(self, mock_fetch):
        """Should return one count per staging table."""
        mock_fetch.return_value = pd.DataFrame([{'total': 3}])
        stats = get_staging_stats('b1')
        assert stats == {name: 3 for name in STAGING_TABLES}
