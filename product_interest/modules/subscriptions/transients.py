"""
Transient Cache
===============

Short-lived key/value entries with an expiry, stored in the module
database. A missing or expired entry means "recompute on demand".
"""

import json
import logging
from datetime import datetime, timedelta, timezone

from product_interest.core import Config, Database, get_setting

logger = logging.getLogger(__name__)

CUSTOMER_KEY_PREFIX = 'subscribed_products_by_customer_'
PRODUCT_KEY_PREFIX = 'subscribed_customers_by_product_'


def customer_cache_key(customer_id):
    return f"{CUSTOMER_KEY_PREFIX}{int(customer_id)}"


def product_cache_key(product_id):
    return f"{PRODUCT_KEY_PREFIX}{int(product_id)}"


def _now():
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')


def get_transient(cache_key):
    """Return the cached value, or None if missing or expired"""
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT cache_data, expires_at FROM {Config.TRANSIENTS_TABLE}
            WHERE cache_key = ?
        """, (cache_key,))
        row = cursor.fetchone()
        if not row:
            return None

        if row['expires_at'] < _now():
            cursor.execute(f"DELETE FROM {Config.TRANSIENTS_TABLE} WHERE cache_key = ?", (cache_key,))
            conn.commit()
            return None

        return json.loads(row['cache_data'])
    finally:
        conn.close()


def set_transient(cache_key, data, ttl_seconds=None):
    """Store a JSON-serialisable value under cache_key"""
    if ttl_seconds is None:
        ttl_seconds = int(get_setting('TRANSIENT_TTL', 3600))
    expires_at = (datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)).strftime('%Y-%m-%d %H:%M:%S')

    conn = Database.connect()
    try:
        conn.execute(f"""
            INSERT OR REPLACE INTO {Config.TRANSIENTS_TABLE} (cache_key, cache_data, expires_at)
            VALUES (?, ?, ?)
        """, (cache_key, json.dumps(data), expires_at))
        conn.commit()
    finally:
        conn.close()


def delete_transient(cache_key):
    """Delete one entry. Returns True if something was removed."""
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"DELETE FROM {Config.TRANSIENTS_TABLE} WHERE cache_key = ?", (cache_key,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def flush_transients():
    """Delete every entry, returning how many were removed"""
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"DELETE FROM {Config.TRANSIENTS_TABLE}")
        conn.commit()
        return cursor.rowcount
    finally:
        conn.close()


def purge_expired_transients():
    """Remove all expired entries"""
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"DELETE FROM {Config.TRANSIENTS_TABLE} WHERE expires_at < ?", (_now(),))
        conn.commit()
        if cursor.rowcount:
            logger.info(f"Purged {cursor.rowcount} expired transients")
        return cursor.rowcount
    finally:
        conn.close()
