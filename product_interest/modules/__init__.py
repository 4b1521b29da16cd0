"""
Product Interest Modules
========================

Flask blueprint modules for the product subscription admin pages.
"""

__all__ = ['subscriptions']
