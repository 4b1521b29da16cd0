"""
Subscriptions Database
======================

Query functions over the product/customer subscription relationships
and the per-product meta flag. Per-product and per-customer lookups are
cached as transients; writers invalidate the keys they touch.
"""

import logging
from datetime import datetime, timezone

from product_interest.core import Config, Database, get_setting
from .transients import (
    get_transient, set_transient, delete_transient,
    customer_cache_key, product_cache_key,
)

logger = logging.getLogger(__name__)


def _db_log(level, message, details=None):
    """Log to the module's persistent DB logger"""
    try:
        from product_interest.core import db_log
        db_log(level, 'subscriptions', message, details)
    except Exception:
        pass  # Fall back to stdout logger only


def get_meta_key():
    return get_setting('PROD_META_KEY', Config.PROD_META_KEY)


# ===== Product meta =====

def get_product_meta(product_id, meta_key):
    """Get a single product meta value (None when unset)"""
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT meta_value FROM {Config.PRODUCT_META_TABLE}
            WHERE product_id = ? AND meta_key = ?
        """, (product_id, meta_key))
        row = cursor.fetchone()
        return row['meta_value'] if row else None
    finally:
        conn.close()


def update_product_meta(product_id, meta_key, meta_value):
    conn = Database.connect()
    try:
        conn.execute(f"""
            INSERT OR REPLACE INTO {Config.PRODUCT_META_TABLE} (product_id, meta_key, meta_value)
            VALUES (?, ?, ?)
        """, (product_id, meta_key, meta_value))
        conn.commit()
    finally:
        conn.close()


def delete_product_meta(product_id, meta_key):
    conn = Database.connect()
    try:
        conn.execute(f"""
            DELETE FROM {Config.PRODUCT_META_TABLE}
            WHERE product_id = ? AND meta_key = ?
        """, (product_id, meta_key))
        conn.commit()
    finally:
        conn.close()


def set_product_enabled(product_id, enabled=True):
    """Turn the subscribe feature on or off for a product"""
    if enabled:
        update_product_meta(product_id, get_meta_key(), 'yes')
    else:
        delete_product_meta(product_id, get_meta_key())
    delete_transient(product_cache_key(product_id))


# ===== Relationships =====

def get_enabled_products():
    """Get the IDs of every product with the subscribe flag set"""
    try:
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT product_id FROM {Config.PRODUCT_META_TABLE}
                WHERE meta_key = ? AND meta_value IS NOT NULL AND meta_value != ''
                ORDER BY product_id ASC
            """, (get_meta_key(),))
            return [row['product_id'] for row in cursor.fetchall()]
        finally:
            conn.close()
    except Exception as e:
        logger.error(f"Error getting enabled products: {e}")
        return []


def get_customers_for_product(product_id):
    """
    Get the subscribed customers for a product.

    Returns a list of {customer_id, relationship_id, created} dicts,
    oldest first. Served from the product transient when warm.
    """
    cache_key = product_cache_key(product_id)
    cached = get_transient(cache_key)
    if cached is not None:
        return cached

    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT customer_id, relationship_id, created
            FROM {Config.SUBSCRIPTIONS_TABLE}
            WHERE product_id = ?
            ORDER BY created ASC, relationship_id ASC
        """, (product_id,))
        customers = [dict(row) for row in cursor.fetchall()]
    finally:
        conn.close()

    set_transient(cache_key, customers)
    return customers


def get_products_for_customer(customer_id):
    """Get the products a customer is subscribed to, as {product_id, relationship_id, created}"""
    cache_key = customer_cache_key(customer_id)
    cached = get_transient(cache_key)
    if cached is not None:
        return cached

    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT product_id, relationship_id, created
            FROM {Config.SUBSCRIPTIONS_TABLE}
            WHERE customer_id = ?
            ORDER BY created ASC, relationship_id ASC
        """, (customer_id,))
        products = [dict(row) for row in cursor.fetchall()]
    finally:
        conn.close()

    set_transient(cache_key, products)
    return products


def get_relationship(relationship_id):
    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT relationship_id, product_id, customer_id, created
            FROM {Config.SUBSCRIPTIONS_TABLE}
            WHERE relationship_id = ?
        """, (relationship_id,))
        row = cursor.fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def subscribe_customer(product_id, customer_id, created=None):
    """
    Subscribe a customer to a product.

    Returns the new relationship ID, or None if the customer was
    already subscribed.
    """
    created = created or datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')

    conn = Database.connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"""
            INSERT OR IGNORE INTO {Config.SUBSCRIPTIONS_TABLE} (product_id, customer_id, created)
            VALUES (?, ?, ?)
        """, (product_id, customer_id, created))
        conn.commit()
        relationship_id = cursor.lastrowid if cursor.rowcount else None
    finally:
        conn.close()

    if relationship_id:
        delete_transient(product_cache_key(product_id))
        delete_transient(customer_cache_key(customer_id))
        logger.info(f"Customer {customer_id} subscribed to product {product_id}")
    return relationship_id


def delete_by_relationship(relationship_id):
    """
    Delete one subscription relationship.

    Deleting an ID that no longer exists is a no-op and returns False.
    Callers own cache invalidation for the affected keys.
    """
    try:
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                DELETE FROM {Config.SUBSCRIPTIONS_TABLE} WHERE relationship_id = ?
            """, (relationship_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
    except Exception as e:
        logger.error(f"Error deleting relationship {relationship_id}: {e}")
        _db_log('error', f"Failed to delete relationship {relationship_id}", {'error': str(e)})
        raise
