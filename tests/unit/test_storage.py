"""Unit tests for MinIO warehouse sync."""
import pytest
import sys
import os
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from src.storage.minio import (
    BACKUP_BUCKET, DUCKDB_OBJECT, WAREHOUSE_BUCKET,
    backup_duckdb, download_duckdb, upload_duckdb
)


class TestWarehouseSync:
    """Tests for download/upload/backup of the DuckDB file."""

    def setup_method(self):
        self.client = MagicMock()
        self.client.bucket_exists.return_value = True

    def test_download_existing(self, tmp_path):
        """Should fetch the object when it exists."""
        local_path = str(tmp_path / 'dwh' / 'warehouse.duckdb')

        assert download_duckdb(local_path, client=self.client) is True
        self.client.fget_object.assert_called_once_with(WAREHOUSE_BUCKET, DUCKDB_OBJECT, local_path)
        assert os.path.isdir(tmp_path / 'dwh')

    def test_upload_creates_bucket(self, tmp_path):
        self.client.bucket_exists.return_value = False
        local_path = str(tmp_path / 'warehouse.duckdb')

        upload_duckdb(local_path, client=self.client)

        self.client.make_bucket.assert_called_once_with(WAREHOUSE_BUCKET)
        self.client.fput_object.assert_called_once_with(WAREHOUSE_BUCKET, DUCKDB_OBJECT, local_path)

    def test_backup_missing_file(self, tmp_path):
        assert backup_duckdb(str(tmp_path / 'missing.duckdb'), client=self.client) is None
        self.client.fput_object.assert_not_called()

    def test_backup_retention(self, tmp_path):
        """Should remove the oldest backups beyond the retention count."""
        local_path = tmp_path / 'warehouse.duckdb'
        local_path.write_bytes(b'duckdb')
        existing = [MagicMock(object_name=f'dwh_backups/warehouse_2024010{i}_000000.duckdb') for i in range(1, 8)]
        self.client.list_objects.return_value = existing

        with patch.dict('src.storage.minio.WAREHOUSE_CONFIG', {'backups_to_keep': 5}):
            backup_object = backup_duckdb(str(local_path), client=self.client)

        assert backup_object.startswith('dwh_backups/warehouse_')
        removed = [c.args[1] for c in self.client.remove_object.call_args_list]
        assert removed == [
            'dwh_backups/warehouse_20240101_000000.duckdb',
            'dwh_backups/warehouse_20240102_000000.duckdb',
        ]
        assert all(c.args[0] == BACKUP_BUCKET for c in self.client.remove_object.call_args_list)
