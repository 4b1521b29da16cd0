"""
Subscription Hooks
==================

Named extension points for the subscriptions table. Filters receive a
value and return a (possibly changed) value; actions return nothing.
Callbacks run in registration order. With nothing registered every
filter hands its value back untouched.
"""

import logging
from flask import current_app

logger = logging.getLogger(__name__)


class HookRegistry:
    """Ordered callback lists keyed by hook name"""

    def __init__(self):
        self._filters = {}
        self._actions = {}

    def add_filter(self, name, callback):
        self._filters.setdefault(name, []).append(callback)
        return callback

    def add_action(self, name, callback):
        self._actions.setdefault(name, []).append(callback)
        return callback

    def filter(self, name):
        """Decorator form of add_filter"""
        def decorator(f):
            return self.add_filter(name, f)
        return decorator

    def action(self, name):
        """Decorator form of add_action"""
        def decorator(f):
            return self.add_action(name, f)
        return decorator

    def remove_all(self, name):
        self._filters.pop(name, None)
        self._actions.pop(name, None)

    def has_filter(self, name):
        return bool(self._filters.get(name))

    def apply_filters(self, name, value, *args):
        for callback in self._filters.get(name, []):
            value = callback(value, *args)
        return value

    def do_action(self, name, *args):
        callbacks = self._actions.get(name, [])
        for callback in callbacks:
            callback(*args)
        if callbacks:
            logger.debug(f"Ran {len(callbacks)} callbacks for action '{name}'")


# Used when no ProductInterest extension is attached to the app
_default_registry = HookRegistry()


def get_hooks():
    """Get the hook registry of the current app (or the module default)"""
    try:
        ext = current_app.extensions.get('product_interest')
        if ext is not None:
            return ext.hooks
    except RuntimeError:
        pass
    return _default_registry


def apply_filters(name, value, *args):
    return get_hooks().apply_filters(name, value, *args)
