"""
Subscriptions Table
===================

The admin list of product subscriptions: builds flat rows out of the
subscription relationships, sorts and pages them, renders each cell,
and runs the bulk unsubscribe action posted back from the list.
"""

import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

from flask import request
from flask_wtf.csrf import generate_csrf, validate_csrf
from markupsafe import escape
from wtforms.validators import ValidationError

from product_interest.core import Config, Database, LoggingService, get_setting
from .database import get_enabled_products, get_customers_for_product, delete_by_relationship
from .helpers import (
    absint, antispambot, get_menu_slug, human_time_diff, is_product_enabled, parse_timestamp,
    redirect_with_status, sanitize_text_field,
)
from .hooks import apply_filters
from .pagination import DEFAULT_ORDER, DEFAULT_ORDERBY, paginate_rows, sort_rows
from .transients import customer_cache_key, delete_transient, product_cache_key

logger = logging.getLogger(__name__)

UNSUBSCRIBE_ACTION = 'wc_product_subs_unsubscribe'
NONCE_FIELD = 'wc_product_subs_nonce_name'
RELATIONSHIP_FIELD = 'wc_product_subs_relationship_ids[]'
CUSTOMER_FIELD = 'wc_product_subs_customer_ids[]'
PRODUCT_FIELD = 'wc_product_subs_product_ids[]'


class TableRequest:
    """
    Everything the table reads from the incoming request.

    Args:
        orderby: Column to sort on
        order: 'asc' or 'desc'
        paged: 1-indexed page number
        page: Admin page slug the request was made to
        action: Selected bulk action
        nonce: Submitted anti-forgery token
        relationship_ids / customer_ids / product_ids: Posted form lists
    """

    def __init__(self, orderby=None, order=None, paged=1, page=None, action=None,
                 nonce=None, relationship_ids=None, customer_ids=None, product_ids=None):
        self.orderby = orderby or DEFAULT_ORDERBY
        self.order = order or DEFAULT_ORDER
        self.paged = max(1, absint(paged))
        self.page = page
        self.action = action
        self.nonce = nonce
        self.relationship_ids = list(relationship_ids or [])
        self.customer_ids = list(customer_ids or [])
        self.product_ids = list(product_ids or [])

    @classmethod
    def from_request(cls, req=None):
        """Build from a Flask request (defaults to the current one)"""
        req = req or request

        # Bulk action dropdowns sit above and below the table
        action = req.values.get('action')
        if not action or action == '-1':
            action = req.values.get('action2')
        if action == '-1':
            action = None

        return cls(
            orderby=sanitize_text_field(req.args.get('orderby')) or None,
            order=sanitize_text_field(req.args.get('order')) or None,
            paged=req.args.get('paged', 1),
            page=sanitize_text_field(req.args.get('page')) or None,
            action=action,
            nonce=req.form.get(NONCE_FIELD),
            relationship_ids=req.form.getlist(RELATIONSHIP_FIELD),
            customer_ids=req.form.getlist(CUSTOMER_FIELD),
            product_ids=req.form.getlist(PRODUCT_FIELD),
        )

    def sort_args(self):
        return {'orderby': self.orderby, 'order': self.order}


class SubscriptionsTable:
    """Paginated, sortable list of product subscriptions"""

    per_page = Config.PER_PAGE

    def __init__(self, table_request=None, now=None):
        self.request = table_request or TableRequest()
        self.now = now
        self.items = []
        self.pagination = {}
        self.column_headers = ([], [], {})

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def get_columns(self):
        setup = {
            'cb': '<input type="checkbox" />',
            'visible_name': 'Customer Name',
            'product_name': 'Product Name',
            'signup_date': 'Signup Date',
        }
        return apply_filters('table_column_items', setup)

    def get_sortable_columns(self):
        """Column name -> (row key, initially sorted descending)"""
        setup = {
            'visible_name': ('visible_name', False),
            'product_name': ('product_name', True),
            'signup_date': ('signup_date', True),
        }
        return apply_filters('table_sortable_columns', setup)

    def get_bulk_actions(self):
        setup = {UNSUBSCRIBE_ACTION: 'Unsubscribe'}
        return apply_filters('table_bulk_actions', setup)

    def prepare_items(self):
        """Load, sort and slice the rows, then run any posted bulk action"""
        columns = self.get_columns()
        hidden = []
        sortable = self.get_sortable_columns()
        dataset = self.table_data()

        dataset = sort_rows(dataset, self.request.orderby, self.request.order, sortable)
        dataset, self.pagination = paginate_rows(dataset, self.request.paged, self.per_page)

        self.column_headers = (columns, hidden, sortable)

        self.process_bulk_action()

        self.items = dataset
        return self.items

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def table_data(self):
        """Flatten every enabled product's subscribers into table rows"""
        products = get_enabled_products()

        if not products:
            return []

        data = []

        for product_id in products:
            if not is_product_enabled(product_id):
                continue

            customers = get_customers_for_product(product_id)

            if not customers:
                continue

            product = Database.get_product_by_id(product_id) or {}

            for customer_data in customers:
                customer_id = absint(customer_data['customer_id'])
                user = Database.get_user_by_id(customer_id)

                if not user:
                    logger.warning(f"Skipping subscription {customer_data['relationship_id']}: "
                                   f"no profile for customer {customer_id}")
                    LoggingService.warning('subscriptions', 'Subscription row skipped: missing customer profile', {
                        'relationship_id': customer_data['relationship_id'],
                        'customer_id': customer_id,
                        'product_id': product_id,
                    })
                    continue

                setup = {
                    'id': absint(customer_data['relationship_id']),
                    'product_id': absint(product_id),
                    'customer_id': customer_id,
                    'username': user['user_login'],
                    'display_name': user['display_name'],
                    'visible_name': user['display_name'] or user['user_login'],
                    'email_address': user['user_email'],
                    'product_name': product.get('name', ''),
                    'signup_date': customer_data['created'],
                }

                data.append(apply_filters('table_data_item', setup))

        return apply_filters('table_data_array', data, products)

    # ------------------------------------------------------------------
    # Bulk actions
    # ------------------------------------------------------------------

    def current_action(self):
        return self.request.action or None

    def process_bulk_action(self):
        """
        Handle a posted bulk unsubscribe.

        Returns None when the request isn't a bulk unsubscribe for this
        page. Otherwise it always ends in a redirect.
        """
        if self.current_action() != UNSUBSCRIBE_ACTION:
            return

        if not self.request.page or self.request.page != get_menu_slug():
            return

        if not self.request.nonce or not self.verify_nonce(self.request.nonce):
            LoggingService.warning('subscriptions', 'Bulk unsubscribe rejected: bad nonce')
            redirect_with_status({'success': 0, 'errcode': 'bad_nonce'})

        if not self.request.relationship_ids:
            redirect_with_status({'success': 0, 'errcode': 'no_ids'})

        relationship_ids = [absint(relationship_id) for relationship_id in self.request.relationship_ids]

        for relationship_id in relationship_ids:
            try:
                delete_by_relationship(relationship_id)
            except Exception as e:
                logger.error(f"Could not delete relationship {relationship_id}: {e}")

        if self.request.customer_ids:
            self.purge_customer_transients(self.request.customer_ids)

        if self.request.product_ids:
            self.purge_product_transients(self.request.product_ids)

        LoggingService.log_user_action('subscriptions', 'bulk unsubscribe', details={
            'relationship_ids': relationship_ids,
        })

        redirect_with_status({'success': 1, 'action': 'unsubscribed', 'count': len(relationship_ids)})

    @staticmethod
    def verify_nonce(token):
        try:
            validate_csrf(token)
            return True
        except ValidationError as e:
            logger.warning(f"Anti-forgery check failed: {e}")
            return False

    @staticmethod
    def nonce_field():
        """Hidden input carrying a fresh anti-forgery token"""
        return f'<input type="hidden" name="{NONCE_FIELD}" value="{escape(generate_csrf())}" />'

    def purge_customer_transients(self, customer_ids=None):
        """Delete the cached subscriptions of each customer. Returns the keys."""
        keys = [customer_cache_key(customer_id) for customer_id in _unique_ids(customer_ids)]
        for key in keys:
            delete_transient(key)
        return keys

    def purge_product_transients(self, product_ids=None):
        """Delete the cached subscribers of each product. Returns the keys."""
        keys = [product_cache_key(product_id) for product_id in _unique_ids(product_ids)]
        for key in keys:
            delete_transient(key)
        return keys

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def single_row(self, item):
        """Render every visible column of one row"""
        columns, hidden, _ = self.column_headers
        if not columns:
            columns = self.get_columns()

        cells = {}
        for column_name in columns:
            if column_name in hidden:
                continue
            renderer = getattr(self, f'column_{column_name}', None)
            cells[column_name] = renderer(item) if renderer else self.column_default(item, column_name)
        return cells

    def column_cb(self, item):
        item_id = absint(item['id'])
        return (
            f'<input type="checkbox" name="{RELATIONSHIP_FIELD}" class="product-interest-admin-checkbox" '
            f'id="cb-{item_id}" value="{item_id}" />'
            f'<label for="cb-{item_id}" class="screen-reader-text">Select subscription</label>'
        )

    def column_visible_name(self, item):
        setup = ''
        setup += '<span class="product-interest-admin-table-display product-interest-admin-table-name">'
        setup += f"<strong>{escape(item.get('visible_name') or item.get('display_name') or '')}</strong>"
        setup += '</span>'
        setup += f'<input type="hidden" name="{CUSTOMER_FIELD}" value="{absint(item["customer_id"])}">'

        setup = apply_filters('column_visible_name', setup, item)

        return setup + self.row_actions(self.setup_row_action_items(item))

    def column_product_name(self, item):
        product_id = absint(item['product_id'])
        view = get_setting('PRODUCT_VIEW_URL', Config.PRODUCT_VIEW_URL).format(product_id=product_id)
        edit = get_setting('PRODUCT_EDIT_URL', Config.PRODUCT_EDIT_URL).format(product_id=product_id)

        setup = ''
        setup += '<span class="product-interest-admin-table-display product-interest-admin-table-product-name">'
        setup += f"<strong>{escape(item.get('product_name') or '')}</strong>"
        setup += '</span>'
        setup += '<br>'
        setup += '<span class="product-interest-admin-table-display product-interest-admin-table-product-links">'
        setup += f'<a title="View Product" href="{escape(view)}">View Product</a>'
        setup += '&nbsp;|&nbsp;'
        setup += f'<a title="Edit Product" href="{escape(edit)}">Edit Product</a>'
        setup += '</span>'
        setup += f'<input type="hidden" name="{PRODUCT_FIELD}" value="{product_id}">'

        return apply_filters('column_product_name', setup, item)

    def column_signup_date(self, item):
        date_format = apply_filters('column_date_format', get_setting('DATE_FORMAT', Config.DATE_FORMAT))

        stamp = parse_timestamp(item['signup_date'])
        show = f"{human_time_diff(stamp, self.now or datetime.now(timezone.utc))} ago"

        setup = ''
        setup += '<span class="product-interest-admin-table-display product-interest-admin-table-signup-date">'
        setup += f"{escape(stamp.strftime(date_format))}<br>"
        setup += f"<small><em>{escape(show)}</em></small>"
        setup += '</span>'

        return apply_filters('column_signup_date', setup, item)

    def column_default(self, item, column_name):
        if column_name in ('display_name', 'product_name', 'signup_date'):
            return str(escape(item.get(column_name) or ''))
        return apply_filters('table_column_default', '', item, column_name)

    def setup_row_action_items(self, item):
        customer_id = absint(item['customer_id'])
        view = get_setting('CUSTOMER_VIEW_URL', Config.CUSTOMER_VIEW_URL).format(customer_id=customer_id)
        orders = get_setting('CUSTOMER_ORDERS_URL', Config.CUSTOMER_ORDERS_URL) + '?' + urlencode(
            {'post_status': 'all', 'customer_id': customer_id})
        email = 'mailto:' + antispambot(item.get('email_address'))

        link_class = 'product-interest-admin-table-link'
        setup = {
            'view': f'<a class="{link_class} {link_class}-view" title="View Customer" '
                    f'href="{escape(view)}">View Customer</a>',
            'orders': f'<a class="{link_class} {link_class}-orders" title="View Orders" '
                      f'href="{escape(orders)}">View Orders</a>',
            'email': f'<a class="{link_class} {link_class}-email" title="Email Customer" '
                     f'href="{email}">Email Customer</a>',
        }

        return apply_filters('table_row_actions', setup, item)

    @staticmethod
    def row_actions(actions):
        if not actions:
            return ''
        links = ' | '.join(f'<span class="{name}">{link}</span>' for name, link in actions.items())
        return f'<div class="row-actions">{links}</div>'


def _unique_ids(values):
    """Normalise to non-negative ints and drop repeats, keeping first-seen order"""
    seen = []
    for value in values or []:
        value = absint(value)
        if value not in seen:
            seen.append(value)
    return seen
