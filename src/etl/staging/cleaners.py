"""Data cleaning functions for staged extracts"""
import logging
import math
from datetime import date, datetime
from typing import Optional

import pandas as pd

from src.config.etl_config import CATEGORY_MAPPINGS, CATEGORY_SUFFIXES, NEGATIVE_VALUE_POLICY

logger = logging.getLogger(__name__)

POLICY_REJECT = 'reject'
POLICY_COERCE = 'coerce'

# Warehouse INTEGER columns
MAX_INTEGER = 2147483647


def _is_null(value) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_key(value) -> Optional[str]:
    """ Natural key as a stripped string. 101, 101.0 and ' 101 ' are the same key. """
    if _is_null(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def standardize_category(category) -> Optional[str]:
    """ Map category spellings to the canonical category """
    if _is_null(category) or not str(category).strip():
        return None

    text = str(category).strip()
    key = text.lower()

    if key in CATEGORY_MAPPINGS:
        return CATEGORY_MAPPINGS[key]

    for suffix, mapped in CATEGORY_SUFFIXES:
        if key.endswith(suffix):
            return mapped

    return text


def clean_staged_products(df: pd.DataFrame) -> pd.DataFrame:
    """ Standardize categories and strip product names. Returns a copy. """
    if df.empty:
        return df.copy()

    cleaned = df.copy()
    if 'category' in cleaned.columns:
        cleaned['category'] = cleaned['category'].apply(standardize_category)
    if 'product_name' in cleaned.columns:
        cleaned['product_name'] = cleaned['product_name'].apply(
            lambda v: None if _is_null(v) else str(v).strip()
        )

    changed = 0
    if 'category' in df.columns:
        changed = int((df['category'].astype(str) != cleaned['category'].astype(str)).sum())
    logger.info(f"Cleaned {len(cleaned)} staged products, {changed} categories standardized")
    return cleaned


def cleanse_measure(value, policy: str = None, allow_zero: bool = False) -> Optional[float]:
    """
    Cleanse a quantity/price value.

    Returns None when the value is missing, not numeric, not finite, zero, or negative under
    the 'reject' policy. Under 'coerce' a negative value becomes its absolute value.
    allow_zero keeps 0 (stock on hand can be empty).
    """
    policy = policy or NEGATIVE_VALUE_POLICY
    if policy not in (POLICY_REJECT, POLICY_COERCE):
        raise ValueError(f"Unknown negative value policy: {policy}")

    if _is_null(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None

    if number < 0 and policy == POLICY_COERCE:
        number = abs(number)
    if number < 0 or (number == 0 and not allow_zero):
        return None
    return number


def to_int(value) -> Optional[int]:
    """ Whole number within the INTEGER range, or None. 3.0 -> 3, 2.5 -> None """
    if _is_null(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer() or abs(number) > MAX_INTEGER:
        return None
    return int(number)


def to_timestamp(value) -> Optional[datetime]:
    """ Parse a staged timestamp. Unparseable values become None. """
    if _is_null(value):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.to_pydatetime()


def to_date(value) -> Optional[date]:
    ts = to_timestamp(value)
    return ts.date() if ts is not None else None
