"""
QuarantineRecord writer and shared load counters.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Counts from one fact load."""
    loaded: int = 0
    quarantined: int = 0  # referential violations
    invalid: int = 0  # validation violations
    skipped: int = 0  # at or before the watermark
    dates: Set[date] = field(default_factory=set)
    product_ids: Set[str] = field(default_factory=set)

    @property
    def eligible(self) -> int:
        return self.loaded + self.quarantined + self.invalid

    def as_dict(self) -> Dict[str, int]:
        stats = asdict(self)
        stats.pop('dates')
        stats.pop('product_ids')
        return stats


def _json_default(value):
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return value.isoformat()
    return str(value)


def quarantine_row(
    batch_id: Optional[str],
    source_table: str,
    natural_key: Optional[str],
    reason: str,
    detail: str,
    record: Dict,
    quarantined_at: datetime
) -> list:
    payload = {k: _payload_value(v) for k, v in record.items()}
    return [batch_id, source_table, natural_key, reason, detail,
            json.dumps(payload, default=_json_default), quarantined_at]


def _is_nan(value) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _payload_value(value):
    if _is_nan(value):
        return None
    if isinstance(value, float) and math.isinf(value):
        return str(value)
    return value


def write_quarantine(conn: duckdb.DuckDBPyConnection, rows: List[list]) -> int:
    """Insert quarantine rows built by quarantine_row(). Runs inside the caller's transaction."""
    if not rows:
        return 0
    conn.executemany("""
        INSERT INTO QuarantineRecord (quarantine_id, batch_id, source_table, natural_key, reason, detail, payload, quarantined_at)
        VALUES (NEXTVAL('seq_quarantine_id'), ?, ?, ?, ?, ?, ?, ?)
    """, rows)
    return len(rows)


def get_quarantine(
    conn: duckdb.DuckDBPyConnection,
    batch_id: Optional[str] = None,
    reason: Optional[str] = None
) -> pd.DataFrame:
    conditions, params = [], []
    if batch_id is not None:
        conditions.append('batch_id = ?')
        params.append(batch_id)
    if reason is not None:
        conditions.append('reason = ?')
        params.append(reason)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
    return conn.execute(f"""
        SELECT * FROM QuarantineRecord {where} ORDER BY quarantine_id
    """, params).fetchdf()
