"""ETL behaviour configuration"""
import os

# 'reject' excludes non-positive quantity/price, 'coerce' takes the absolute value
# (zero is rejected under both policies)
NEGATIVE_VALUE_POLICY = os.getenv("ETL_NEGATIVE_VALUE_POLICY", "reject")

# 0 disables the per-job timeout
JOB_TIMEOUT_SECONDS = int(os.getenv("ETL_JOB_TIMEOUT_SECONDS", "0"))

# Running audit rows older than this are closed as Failed before a new claim
STALE_RUN_MINUTES = int(os.getenv("ETL_STALE_RUN_MINUTES", "240"))

# Category standardisation applied to staged products before conformance
CATEGORY_MAPPINGS = {
    'electronics': 'Electronics',
    'electronic': 'Electronics',
    'furniture': 'Furniture',
    'furn': 'Furniture',
    'office furniture': 'Furniture',
    'kitchen': 'Kitchen',
    'kitchenware': 'Kitchen',
}

# Suffix patterns (lowercase) mapped to a category, checked after CATEGORY_MAPPINGS
CATEGORY_SUFFIXES = [
    ('phone', 'SmartPhone'),
    ('lap', 'Laptop'),
    ('furn', 'Furniture'),
]
