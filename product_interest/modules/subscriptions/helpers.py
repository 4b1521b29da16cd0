"""
Subscriptions Helpers
=====================

Small functions shared by the table, the routes and host apps: the
product flag check, cart filtering, admin URLs and redirects, and the
text sanitisers used on submitted form data.
"""

import re
from datetime import datetime, timezone

from flask import abort, redirect, request, url_for, has_request_context
from markupsafe import Markup

from product_interest.core import Config, get_setting
from .database import get_product_meta, get_meta_key

RESPONSE_FLAG = 'wc-product-interest-response'

_LEADING_INT = re.compile(r'^\s*[+-]?\d+')
_OCTETS = re.compile(r'%[a-fA-F0-9]{2}')
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY
MONTH = 30 * DAY
YEAR = 365 * DAY


def absint(value):
    """Coerce a value to a non-negative integer (0 when not numeric)"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, float):
        return abs(int(value))
    match = _LEADING_INT.match(str(value)) if value is not None else None
    return abs(int(match.group(0))) if match else 0


def get_menu_slug():
    return str(get_setting('MENU_SLUG', Config.MENU_SLUG)).strip()


def is_product_enabled(product_id=0, strings=False):
    """Check a product ID to see if the subscribe feature is on for it"""
    meta = get_product_meta(product_id, get_meta_key())

    if strings:
        return 'yes' if meta else 'no'

    return bool(meta)


def filter_cart_for_enabled(cart=None, enabled=None):
    """
    Return the product IDs in a cart that are on the enabled list.

    Returns False when either input is empty or nothing matches.
    """
    if not cart or not enabled:
        return False

    items = cart.values() if isinstance(cart, dict) else cart
    data = []

    for item in items:
        product_id = absint(item.get('product_id', 0))
        if product_id in enabled:
            data.append(product_id)

    return data if data else False


def is_admin_request():
    """True while handling a request for an admin page"""
    if not has_request_context():
        return False
    return request.blueprint == 'product_interest' or request.path.startswith('/admin')


def build_settings_url():
    """Get the link to the subscriptions admin page (False outside admin)"""
    if not is_admin_request():
        return False

    return url_for('product_interest.subscriptions_list', page=get_menu_slug())


def redirect_with_status(args=None, response=True):
    """
    Redirect back to the subscriptions admin page with the given query args.

    Never returns when args are given: the redirect is raised through
    flask.abort so nothing after the call runs.
    """
    if not args:
        return

    redirect_args = {'page': get_menu_slug()}
    redirect_args.update(args)

    if response:
        redirect_args[RESPONSE_FLAG] = 1

    abort(redirect(url_for('product_interest.subscriptions_list', **redirect_args)))


def is_current_admin_page(hook=''):
    """Check a page hook against the subscriptions admin page"""
    if not is_admin_request() or not hook:
        return False

    return sanitize_text_field(hook) == f"product_page_{get_menu_slug()}"


def sanitize_text_field(value):
    """Strip tags, octets and control characters, then collapse whitespace"""
    if value is None:
        return ''
    text = Markup(str(value)).striptags()
    text = _OCTETS.sub('', text)
    text = _CONTROL_CHARS.sub('', text)
    return ' '.join(text.split())


def sanitize_nested(data, drop_empty=False):
    """
    Sanitise every value of a form mapping (or list), one level deep.

    Nested lists and dicts have each member sanitised. With drop_empty,
    entries that come out empty are left out.
    """
    output = {}
    items = data.items() if isinstance(data, dict) else enumerate(data or [])

    for key, value in items:
        if isinstance(value, dict):
            setup = {k: sanitize_text_field(v) for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            setup = [sanitize_text_field(v) for v in value]
        else:
            setup = sanitize_text_field(value)

        if drop_empty and not setup:
            continue

        output[key] = setup

    return output


def clean_export_value(value):
    """Prepare a single value for a spreadsheet-safe CSV cell"""
    text = '' if value is None else str(value)

    if text == 't':
        return 'TRUE'
    if text == 'f':
        return 'FALSE'

    # Keep spreadsheets from eating leading zeros, long numbers and dates
    if (re.match(r'^0', text) or re.match(r'^\+?\d{8,}$', text)
            or re.match(r'^\d{4}.\d{1,2}.\d{1,2}', text)):
        return f"'{text}"

    return text


def parse_timestamp(value):
    """Parse a stored timestamp (datetime, ISO string or epoch seconds)"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, timezone.utc)
    return datetime.fromisoformat(str(value).strip().replace(' ', 'T'))


def _as_utc(value):
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def human_time_diff(start, end=None):
    """Describe the gap between two datetimes ("5 mins", "2 weeks")"""
    end = end or datetime.now(timezone.utc)
    diff = abs((_as_utc(end) - _as_utc(start)).total_seconds())

    for limit, size, unit in (
        (HOUR, MINUTE, 'min'),
        (DAY, HOUR, 'hour'),
        (WEEK, DAY, 'day'),
        (MONTH, WEEK, 'week'),
        (YEAR, MONTH, 'month'),
    ):
        if diff < limit:
            count = max(1, round(diff / size))
            return f"{count} {unit}" if count == 1 else f"{count} {unit}s"

    count = max(1, round(diff / YEAR))
    return f"{count} year" if count == 1 else f"{count} years"


def antispambot(email_address):
    """Encode an email address as HTML character references"""
    return ''.join(f"&#{ord(char)};" for char in email_address or '')
