"""
Product Subscriptions Admin Module
==================================

Admin list of customers subscribed to product notifications.
Plugs into the host app's admin dashboard.

Provides:
- Paginated, sortable table of subscriptions (10 per page)
- Bulk unsubscribe with cache invalidation
- JSON rows endpoint and CSV export
"""

from flask import Blueprint

product_interest_bp = Blueprint(
    'product_interest',
    __name__,
    url_prefix='/admin/product-interest',
    template_folder='templates'
)

from . import routes

__all__ = ['product_interest_bp']
