"""Unit tests for sales trend analytics."""
import pytest
import sys
import os
from datetime import date, datetime, timedelta

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from src.analytics import trends
from src.analytics.trends import compute_trends, daily_totals, refresh_sales_trends
from src.etl.warehouse.schema import connect_warehouse
from src.etl.warehouse.dimensions import process_dim_product
from src.etl.warehouse.facts import load_sales_facts


def history(rows):
    return pd.DataFrame(rows, columns=['product_id', 'sale_date', 'total_amount'])


class TestComputeTrends:
    """Tests for compute_trends function."""

    def test_first_day(self):
        """Should average the first day over itself and have no growth."""
        records = compute_trends(history([('101', date(2024, 1, 1), 100.0)]), '101')

        assert len(records) == 1
        assert records[0].moving_avg_7day == 100.0
        assert records[0].moving_avg_30day == 100.0
        assert records[0].sales_growth_rate is None

    def test_growth_rate(self):
        """Should compute (today - yesterday) / yesterday."""
        records = compute_trends(history([
            ('101', date(2024, 1, 1), 100.0),
            ('101', date(2024, 1, 2), 150.0),
        ]), '101')

        assert records[1].sales_growth_rate == pytest.approx(0.5)
        assert records[1].moving_avg_7day == pytest.approx(125.0)

    def test_days_without_sales_skipped(self):
        """Should emit records only for days with sales and compare with the previous one."""
        records = compute_trends(history([
            ('101', date(2024, 1, 1), 100.0),
            ('101', date(2024, 1, 3), 200.0),
        ]), '101')

        assert [r.date for r in records] == [date(2024, 1, 1), date(2024, 1, 3)]
        assert records[1].sales_growth_rate == pytest.approx(1.0)
        assert records[1].moving_avg_7day == pytest.approx(150.0)
        assert records[1].moving_avg_30day == pytest.approx(150.0)

    def test_windows_count_observed_days(self):
        """Should average the last 7 days with sales, however far apart."""
        start = date(2024, 1, 1)
        rows = [('101', start + timedelta(days=3 * i), float(i + 1)) for i in range(8)]

        records = compute_trends(history(rows), '101')

        assert len(records) == 8
        assert records[7].moving_avg_7day == pytest.approx(5.0)  # mean(2..8)
        assert records[7].moving_avg_30day == pytest.approx(4.5)  # mean(1..8)

    def test_windows_truncate_and_slide(self):
        """Should average over available days, then over the trailing window."""
        start = date(2024, 1, 1)
        rows = [('101', start + timedelta(days=i), float(i + 1)) for i in range(10)]

        records = compute_trends(history(rows), '101')

        assert records[3].moving_avg_7day == pytest.approx(2.5)  # mean(1..4)
        assert records[9].moving_avg_7day == pytest.approx(7.0)  # mean(4..10)
        assert records[9].moving_avg_30day == pytest.approx(5.5)  # mean(1..10)

    def test_same_day_rows_summed(self):
        """Should sum several facts of one day."""
        totals = daily_totals(history([
            ('101', date(2024, 1, 1), 10.0),
            ('101', date(2024, 1, 1), 15.0),
            ('102', date(2024, 1, 1), 99.0),
        ]), 101)
        assert totals == {date(2024, 1, 1): 25.0}

    def test_other_products_ignored(self):
        records = compute_trends(history([
            ('101', date(2024, 1, 1), 10.0),
            ('102', date(2024, 1, 5), 99.0),
        ]), '101')
        assert len(records) == 1
        assert records[0].product_id == '101'

    def test_empty_history(self):
        assert compute_trends(history([]), '101') == []
        assert compute_trends(history([('102', date(2024, 1, 1), 1.0)]), '101') == []

    def test_accepts_timestamps(self):
        """Should group by calendar day when sale_date carries a time."""
        records = compute_trends(history([
            ('101', pd.Timestamp('2024-01-01 09:00'), 10.0),
            ('101', pd.Timestamp('2024-01-01 18:00'), 5.0),
        ]), '101')
        assert records[0].daily_total == 15.0


class TestRefreshSalesTrends:
    """Tests for refresh_sales_trends against the warehouse."""

    def setup_method(self):
        self.conn = connect_warehouse()
        process_dim_product(self.conn, pd.DataFrame([
            {'product_id': 101, 'product_name': 'Laptop', 'category': 'Electronics', 'supplier_id': 1, 'reorder_level': 5},
            {'product_id': 102, 'product_name': 'Desk', 'category': 'Furniture', 'supplier_id': 2, 'reorder_level': 3},
        ]), now=datetime(2024, 1, 1))
        load_sales_facts(self.conn, pd.DataFrame([
            {'transaction_id': 'T1', 'product_id': 101, 'sale_date': '2024-01-01', 'quantity': 1,
             'price': 100.0, 'store_id': 1, 'load_date': '2024-01-05'},
            {'transaction_id': 'T2', 'product_id': 101, 'sale_date': '2024-01-03', 'quantity': 2,
             'price': 100.0, 'store_id': 1, 'load_date': '2024-01-05'},
            {'transaction_id': 'T3', 'product_id': 102, 'sale_date': '2024-01-02', 'quantity': 1,
             'price': 50.0, 'store_id': 1, 'load_date': '2024-01-05'},
        ]), policy='reject')

    def teardown_method(self):
        self.conn.close()

    def test_writes_one_row_per_sales_day(self):
        """Should write a record per product and day with sales."""
        written = refresh_sales_trends(self.conn)

        assert written == 3  # 101: Jan 1 and 3, 102: Jan 2
        rows = self.conn.execute("""
            SELECT date, daily_total, sales_growth_rate FROM FactSalesTrend
            WHERE product_id = '101' ORDER BY date
        """).fetchall()
        assert rows == [
            (date(2024, 1, 1), 100.0, None),
            (date(2024, 1, 3), 200.0, 1.0),
        ]

    def test_recompute_replaces_rows(self):
        """Should replace a product's rows on every refresh."""
        refresh_sales_trends(self.conn)
        refresh_sales_trends(self.conn, ['101'])
        assert self.conn.execute("SELECT COUNT(*) FROM FactSalesTrend").fetchone()[0] == 3

    def test_history_split_per_product(self, monkeypatch):
        """Should hand each product only its own fact rows."""
        seen = {}
        original = trends.compute_trends

        def spy(fact_history, product_id):
            seen[product_id] = set(fact_history['product_id'])
            return original(fact_history, product_id)

        monkeypatch.setattr(trends, 'compute_trends', spy)

        refresh_sales_trends(self.conn)

        assert seen == {'101': {'101'}, '102': {'102'}}

    def test_no_history(self):
        assert refresh_sales_trends(self.conn, ['999']) == 0
