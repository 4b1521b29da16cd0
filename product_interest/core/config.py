import os
from dotenv import load_dotenv

load_dotenv(override=True)

class Config:
    """
    Base configuration for the Product Interest module.
    Host apps can override any of these through app.config.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Subscriptions, product meta, transients and app logs all live here
    PRODUCT_INTEREST_DB = os.getenv('PRODUCT_INTEREST_DB', os.path.join(DB_DIR, "product_interest.db"))

    # Table names
    SUBSCRIPTIONS_TABLE = "product_subscriptions"
    PRODUCT_META_TABLE = "product_meta"
    TRANSIENTS_TABLE = "transients"
    USERS_TABLE = "users"
    PRODUCTS_TABLE = "products"

    # Admin page settings
    MENU_SLUG = os.getenv('PRODUCT_INTEREST_MENU_SLUG', 'product-interest-list')
    PROD_META_KEY = '_product_interest_enabled'
    ADMIN_LOGIN_URL = os.getenv('ADMIN_LOGIN_URL', '/admin/login')

    # Links rendered in the table rows
    PRODUCT_VIEW_URL = os.getenv('PRODUCT_VIEW_URL', '/merchandise/product/{product_id}')
    PRODUCT_EDIT_URL = os.getenv('PRODUCT_EDIT_URL', '/admin/merchandise-editor/product/{product_id}')
    CUSTOMER_VIEW_URL = os.getenv('CUSTOMER_VIEW_URL', '/admin/users/{customer_id}')
    CUSTOMER_ORDERS_URL = os.getenv('CUSTOMER_ORDERS_URL', '/admin/orders-manager/')

    # Table display
    PER_PAGE = 10
    DATE_FORMAT = os.getenv('PRODUCT_INTEREST_DATE_FORMAT', '%Y-%m-%d')

    # Cached lookups expire after an hour
    TRANSIENT_TTL = int(os.getenv('PRODUCT_INTEREST_TRANSIENT_TTL', '3600'))


def get_setting(key, default=None):
    """Read a setting from the host app's config, falling back to Config"""
    try:
        from flask import current_app
        val = current_app.config.get(key)
        if val is not None:
            return val
    except RuntimeError:
        pass
    return getattr(Config, key, default)
