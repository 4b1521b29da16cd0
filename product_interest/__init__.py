"""
Product Interest
================

Admin tools for product notification subscriptions:
- Paginated, sortable table of which customers follow which products
- Bulk unsubscribe with cache invalidation
- CSV/JSON export

Usage:
    from product_interest import ProductInterest

    app = Flask(__name__)
    ProductInterest(app)
"""

__version__ = '0.1.0'

from .extension import ProductInterest

__all__ = ['ProductInterest']
