"""
DimDate dimension processor.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable

import duckdb

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
MONTH_NAMES = ['January', 'February', 'March', 'April', 'May', 'June', 'July',
               'August', 'September', 'October', 'November', 'December']


def date_key(value: date) -> int:
    """20240115 for 2024-01-15"""
    return value.year * 10000 + value.month * 100 + value.day


def process_dim_date(conn: duckdb.DuckDBPyConnection, dates: Iterable[date]) -> Dict[str, int]:
    """
    Make sure DimDate covers every day between the earliest and latest given date.

    Existing days are left untouched.
    """
    stats = {'inserted': 0, 'unchanged': 0}

    dates = [d for d in dates if d is not None]
    if not dates:
        return stats

    min_date, max_date = min(dates), max(dates)
    existing = {
        row[0] for row in conn.execute("""
            SELECT date_key FROM DimDate WHERE date BETWEEN ? AND ?
        """, [min_date, max_date]).fetchall()
    }

    rows = []
    current = min_date
    while current <= max_date:
        key = date_key(current)
        if key in existing:
            stats['unchanged'] += 1
        else:
            weekday = current.weekday()
            rows.append([
                key,
                current,
                current.day,
                current.month,
                current.year,
                (current.month - 1) // 3 + 1,
                current.isoweekday(),
                WEEKDAY_NAMES[weekday],
                MONTH_NAMES[current.month - 1],
                weekday >= 5,
            ])
        current += timedelta(days=1)

    if rows:
        conn.executemany("""
            INSERT INTO DimDate (date_key, date, day, month, year, quarter, day_of_week, day_name, month_name, is_weekend)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, rows)
        stats['inserted'] = len(rows)

    logger.info(f"DimDate: inserted={stats['inserted']}, unchanged={stats['unchanged']}")
    return stats
