"""Data Quality configuration"""
import os

# Metric thresholds in percent (from env vars)
QUALITY_THRESHOLDS = {
    "product_name_completeness": float(os.getenv("DQ_PRODUCT_NAME_COMPLETENESS", "99.50")),
    "product_category_completeness": float(os.getenv("DQ_PRODUCT_CATEGORY_COMPLETENESS", "99.50")),
    "natural_key_completeness": float(os.getenv("DQ_NATURAL_KEY_COMPLETENESS", "100.00")),
    "sales_quantity_completeness": float(os.getenv("DQ_SALES_QUANTITY_COMPLETENESS", "99.90")),
    "valid_product_references": float(os.getenv("DQ_VALID_PRODUCT_REFERENCES", "99.00")),
    "positive_sales_quantities": float(os.getenv("DQ_POSITIVE_SALES_QUANTITIES", "99.80")),
    "positive_sales_prices": float(os.getenv("DQ_POSITIVE_SALES_PRICES", "99.80")),
    "unique_transaction_ids": float(os.getenv("DQ_UNIQUE_TRANSACTION_IDS", "100.00")),
}

# Dashboard default look-back window
DQ_DASHBOARD_DAYS = int(os.getenv("DQ_DASHBOARD_DAYS", "7"))
