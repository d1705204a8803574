"""Database configuration (PostgreSQL staging source)"""
import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "postgres"),
    "port": int(os.getenv("DB_PORT", "5432")),
    "user": os.getenv("DB_USER", "inventory"),
    "password": os.getenv("DB_PASSWORD", "inventory"),
    "database": os.getenv("DB_NAME", "inventory"),
    "staging_schema": os.getenv("DB_STAGING_SCHEMA", "staging"),
}
