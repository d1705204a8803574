"""
Generic SCD Type 2 conformance of staged records into a versioned dimension.

Per natural key in the batch:
- no current version       -> insert a new current version
- attributes differ        -> close current version + insert new one (one transaction)
- attributes identical     -> no write
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import duckdb
import pandas as pd

from src.etl.errors import StaleVersionError
from src.etl.staging.cleaners import normalize_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DimensionSpec:
    """Describes one SCD2 dimension table."""
    table: str
    natural_key: str
    surrogate_key: str
    sequence: str
    attributes: Tuple[Tuple[str, type], ...]  # (column, python type), compared field by field
    normalized: Tuple[str, ...] = ()  # compared trimmed and case-insensitively

    @property
    def columns(self) -> List[str]:
        return [column for column, _ in self.attributes]


@dataclass
class ConformResult:
    """Counts from one conformance run."""
    changed: int = 0
    new_entities: int = 0
    unchanged: int = 0
    invalid: int = 0
    superseded: int = 0  # earlier records for a key replaced by a later one in the same batch
    staged: int = 0

    @property
    def rows_affected(self) -> int:
        return self.changed + self.new_entities

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _coerce(value: Any, type_: type) -> Any:
    """Staged value -> declared attribute type. Raises ValueError if it can't be converted."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass

    if type_ is int:
        number = float(value)
        if not number.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(number)
    if type_ is float:
        return float(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _comparable(spec: DimensionSpec, column: str, value: Any) -> Any:
    if column in spec.normalized and value is not None:
        return str(value).strip().casefold()
    return value


def has_changes(spec: DimensionSpec, current: Dict[str, Any], staged: Dict[str, Any]) -> bool:
    """Field-by-field comparison of the current version against staged attributes."""
    return any(
        _comparable(spec, column, current.get(column)) != _comparable(spec, column, staged.get(column))
        for column in spec.columns
    )


def _latest_per_key(spec: DimensionSpec, staged_df: pd.DataFrame, result: ConformResult) -> Dict[str, Dict]:
    """
    Keep the last record per natural key in batch order. Malformed records are counted.

    A malformed last record leaves its key unapplied: an earlier record of the
    same key is superseded, never used in its place.
    """
    latest: Dict[str, Optional[Dict]] = {}

    for record in staged_df.to_dict('records'):
        result.staged += 1
        key = normalize_key(record.get(spec.natural_key))
        if key is None:
            result.invalid += 1
            continue

        try:
            attrs = {column: _coerce(record.get(column), type_) for column, type_ in spec.attributes}
        except (TypeError, ValueError) as e:
            logger.warning(f"{spec.table}: skipping malformed record for {spec.natural_key}={key}: {e}")
            result.invalid += 1
            attrs = None

        if latest.get(key) is not None:
            result.superseded += 1
        latest.pop(key, None)
        latest[key] = attrs

    return {key: attrs for key, attrs in latest.items() if attrs is not None}


def _fetch_current(conn: duckdb.DuckDBPyConnection, spec: DimensionSpec, keys: List[str]) -> Dict[str, Dict]:
    """Batch fetch current versions: natural key -> {sk, effective_date, attributes...}"""
    if not keys:
        return {}

    placeholders = ','.join(['?'] * len(keys))
    columns = ', '.join(spec.columns)
    rows = conn.execute(f"""
        SELECT {spec.natural_key}, {spec.surrogate_key}, effective_date, {columns}
        FROM {spec.table}
        WHERE {spec.natural_key} IN ({placeholders}) AND is_current = TRUE
    """, keys).fetchall()

    current = {}
    for row in rows:
        current[row[0]] = {
            '_sk': row[1],
            '_effective_date': row[2],
            **dict(zip(spec.columns, row[3:]))
        }
    return current


def apply_version(
    conn: duckdb.DuckDBPyConnection,
    spec: DimensionSpec,
    key: str,
    attrs: Dict[str, Any],
    effective: datetime,
    expected_sk: Optional[int] = None
) -> int:
    """
    Make attrs the current version of key as one atomic unit.

    With expected_sk the current version is closed first, but only if it is still
    current (compare-and-swap). Without it, the key must have no current version.
    Raises StaleVersionError when another writer got there first.
    """
    columns = spec.columns
    col_list = ', '.join(columns)
    placeholders = ', '.join(['?'] * len(columns))

    conn.execute("BEGIN TRANSACTION")
    try:
        if expected_sk is None:
            current = conn.execute(f"""
                SELECT COUNT(*) FROM {spec.table}
                WHERE {spec.natural_key} = ? AND is_current = TRUE
            """, [key]).fetchone()[0]
            if current:
                raise StaleVersionError(spec.table, key)
        else:
            closed = conn.execute(f"""
                UPDATE {spec.table}
                SET expiration_date = ?, is_current = FALSE
                WHERE {spec.surrogate_key} = ? AND is_current = TRUE
                RETURNING {spec.surrogate_key}
            """, [effective, expected_sk]).fetchall()
            if len(closed) != 1:
                raise StaleVersionError(spec.table, key)

        new_sk = conn.execute(f"""
            INSERT INTO {spec.table} ({spec.surrogate_key}, {spec.natural_key}, {col_list}, effective_date, expiration_date, is_current)
            VALUES (NEXTVAL('{spec.sequence}'), ?, {placeholders}, ?, NULL, TRUE)
            RETURNING {spec.surrogate_key}
        """, [key] + [attrs.get(c) for c in columns] + [effective]).fetchone()[0]

        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise

    return new_sk


def conform_dimension(
    conn: duckdb.DuckDBPyConnection,
    spec: DimensionSpec,
    staged_df: pd.DataFrame,
    now: Optional[datetime] = None
) -> ConformResult:
    """
    Merge staged records into the dimension under SCD Type 2.

    Re-running with an unchanged batch writes nothing.
    """
    result = ConformResult()
    now = now or datetime.now()

    if staged_df is None or staged_df.empty:
        return result

    latest = _latest_per_key(spec, staged_df, result)
    existing_map = _fetch_current(conn, spec, list(latest))

    for key, attrs in latest.items():
        existing = existing_map.get(key)

        if existing is None:
            apply_version(conn, spec, key, attrs, now)
            result.new_entities += 1
        elif has_changes(spec, existing, attrs):
            # New version never starts before the one it replaces
            effective = max(now, existing['_effective_date'])
            apply_version(conn, spec, key, attrs, effective, expected_sk=existing['_sk'])
            result.changed += 1
        else:
            result.unchanged += 1

    logger.info(
        f"{spec.table}: new={result.new_entities}, changed={result.changed}, "
        f"unchanged={result.unchanged}, invalid={result.invalid}, superseded={result.superseded}"
    )
    return result


def current_versions(conn: duckdb.DuckDBPyConnection, spec: DimensionSpec) -> pd.DataFrame:
    """Current version of every natural key."""
    return conn.execute(f"""
        SELECT * FROM {spec.table} WHERE is_current = TRUE ORDER BY {spec.natural_key}
    """).fetchdf()


def version_history(conn: duckdb.DuckDBPyConnection, spec: DimensionSpec, key) -> pd.DataFrame:
    """All versions of one natural key, oldest first."""
    return conn.execute(f"""
        SELECT * FROM {spec.table}
        WHERE {spec.natural_key} = ?
        ORDER BY effective_date, {spec.surrogate_key}
    """, [normalize_key(key)]).fetchdf()
