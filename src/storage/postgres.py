"""PostgreSQL staging source operations"""
import logging
from typing import List, Optional

import psycopg2
import pandas as pd

from src.config import DB_CONFIG

logger = logging.getLogger(__name__)


def get_db_connection():
    """Get PostgreSQL connection"""
    return psycopg2.connect(
        host=DB_CONFIG["host"],
        port=DB_CONFIG["port"],
        user=DB_CONFIG["user"],
        password=DB_CONFIG["password"],
        dbname=DB_CONFIG["database"]
    )


def fetch_dataframe(query: str, params: Optional[List] = None) -> pd.DataFrame:
    """Run a read query against the staging database and return a DataFrame"""
    conn = None
    try:
        conn = get_db_connection()
        return pd.read_sql(query, conn, params=params)
    except psycopg2.Error as e:
        logger.error("Staging query failed: {}".format(e))
        raise
    finally:
        if conn:
            conn.close()
