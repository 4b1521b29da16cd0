import os
import sqlite3
from datetime import datetime, timezone
from .config import Config, get_setting

class Database:

    @staticmethod
    def get_db_path():
        """Get the database path from app config or Config"""
        return get_setting('PRODUCT_INTEREST_DB', Config.PRODUCT_INTEREST_DB)

    @staticmethod
    def connect(path=None):
        conn = sqlite3.connect(path or Database.get_db_path())
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def init_schema():
        """
        Create every table the module reads or writes.
        Users and products stand in for the host shop's own records.
        """
        db_path = Database.get_db_path()
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        conn = Database.connect(db_path)
        try:
            cursor = conn.cursor()

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.USERS_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_login TEXT UNIQUE NOT NULL,
                    display_name TEXT,
                    user_email TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.PRODUCTS_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    slug TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.PRODUCT_META_TABLE} (
                    product_id INTEGER NOT NULL,
                    meta_key TEXT NOT NULL,
                    meta_value TEXT,
                    PRIMARY KEY (product_id, meta_key)
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.SUBSCRIPTIONS_TABLE} (
                    relationship_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id INTEGER NOT NULL,
                    customer_id INTEGER NOT NULL,
                    created TIMESTAMP NOT NULL,
                    UNIQUE (product_id, customer_id)
                )
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_subscriptions_product
                ON {Config.SUBSCRIPTIONS_TABLE}(product_id)
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_subscriptions_customer
                ON {Config.SUBSCRIPTIONS_TABLE}(customer_id)
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.TRANSIENTS_TABLE} (
                    cache_key TEXT PRIMARY KEY,
                    cache_data TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
            """)

            conn.commit()
            return db_path
        finally:
            conn.close()

    @staticmethod
    def get_user_by_id(user_id):
        """Get a customer profile by ID"""
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT id, user_login, display_name, user_email
                FROM {Config.USERS_TABLE}
                WHERE id = ?
            """, (user_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @staticmethod
    def create_user(user_login, user_email, display_name=None):
        """Create a customer record, returning its ID (None if the login exists)"""
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                INSERT INTO {Config.USERS_TABLE} (user_login, display_name, user_email, created_at)
                VALUES (?, ?, ?, ?)
            """, (user_login.strip(), (display_name or user_login).strip(),
                  user_email.lower().strip(), datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')))
            conn.commit()
            return cursor.lastrowid
        except sqlite3.IntegrityError:
            return None
        finally:
            conn.close()

    @staticmethod
    def get_product_by_id(product_id):
        """Get a catalog product by ID"""
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT id, name, slug FROM {Config.PRODUCTS_TABLE} WHERE id = ?
            """, (product_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @staticmethod
    def create_product(name, slug=None):
        """Create a catalog product, returning its ID"""
        conn = Database.connect()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                INSERT INTO {Config.PRODUCTS_TABLE} (name, slug, created_at)
                VALUES (?, ?, ?)
            """, (name.strip(), slug, datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()
