"""
Product Subscriptions Routes
============================

Provides:
- GET  /         -- subscriptions table (admin)
- POST /         -- bulk unsubscribe, redirects back with a status
- GET  /api/rows -- one page of rows as JSON (admin)
- GET  /export   -- every row as CSV, or JSON with ?format=json (admin)
"""

import csv
import io
import logging
from datetime import datetime
from urllib.parse import urlencode

from flask import Response, jsonify, redirect, render_template, request, session

from product_interest.core import Config, LoggingService, get_setting
from . import product_interest_bp
from .helpers import RESPONSE_FLAG, absint, build_settings_url, clean_export_value, get_menu_slug
from .pagination import build_pagination_url, paginate_rows, sort_rows
from .table import SubscriptionsTable, TableRequest

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['id', 'product_id', 'product_name', 'customer_id', 'username',
                  'display_name', 'email_address', 'signup_date']

RESPONSE_MESSAGES = {
    'bad_nonce': 'The security check failed. Please reload the page and try again.',
    'no_ids': 'No subscriptions were selected.',
}


def _login_redirect():
    login_url = get_setting('ADMIN_LOGIN_URL', Config.ADMIN_LOGIN_URL)
    return redirect(f"{login_url}?{urlencode({'next': request.full_path})}")


def _response_notice(args):
    """Build the notice shown after a bulk action redirect"""
    if not args.get(RESPONSE_FLAG):
        return None

    if args.get('success') == '1':
        count = absint(args.get('count', 0))
        noun = 'subscription' if count == 1 else 'subscriptions'
        return {'type': 'success', 'message': f"{count} {noun} removed."}

    errcode = args.get('errcode', '')
    return {'type': 'error', 'message': RESPONSE_MESSAGES.get(errcode, 'There was an error with your request.')}


@product_interest_bp.route('/', methods=['GET', 'POST'])
def subscriptions_list():
    """Subscriptions table, also the target of the bulk action form"""
    if 'admin_id' not in session:
        return _login_redirect()

    table_request = TableRequest.from_request()
    table = SubscriptionsTable(table_request)
    table.prepare_items()

    rows = [table.single_row(item) for item in table.items]
    page_links = {
        page: build_pagination_url(request.path, page, {'page': get_menu_slug(), **table_request.sort_args()})
        for page in table.pagination['page_numbers'] if page != '...'
    }

    return render_template(
        'product_interest/subscriptions_table.html',
        table=table,
        rows=rows,
        page_links=page_links,
        notice=_response_notice(request.args),
        form_action=build_settings_url(),
    )


@product_interest_bp.route('/api/rows')
def api_rows():
    """One sorted page of subscription rows"""
    if 'admin_id' not in session:
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    try:
        table_request = TableRequest.from_request()
        table = SubscriptionsTable(table_request)

        dataset = sort_rows(table.table_data(), table_request.orderby, table_request.order,
                            table.get_sortable_columns())
        items, pagination = paginate_rows(dataset, table_request.paged, table.per_page)

        return jsonify({
            'success': True,
            'rows': items,
            'pagination': pagination,
            'orderby': table_request.orderby,
            'order': table_request.order,
        })

    except Exception as e:
        LoggingService.log_error_with_traceback('subscriptions', e, {'endpoint': 'api_rows'})
        return jsonify({'success': False, 'error': str(e)}), 500


@product_interest_bp.route('/export', methods=['GET'])
def export_subscriptions():
    """Export every subscription row (admin auth required)"""
    if 'admin_id' not in session:
        return jsonify({'error': 'Authentication required'}), 401

    try:
        table = SubscriptionsTable(TableRequest.from_request())
        rows = sort_rows(table.table_data(), 'signup_date', 'asc', table.get_sortable_columns())

        LoggingService.log_user_action('subscriptions', 'export', user_id=str(session.get('admin_id')),
                                       details={'rows': len(rows)})

        if request.args.get('format') == 'json':
            return jsonify({
                'subscriptions': rows,
                'total_count': len(rows),
                'exported_at': datetime.now().isoformat()
            })

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_COLUMNS)
        for row in rows:
            writer.writerow([clean_export_value(row.get(column)) for column in EXPORT_COLUMNS])

        filename = f"product-subscriptions-{datetime.now().strftime('%Y%m%d')}.csv"
        return Response(
            output.getvalue(),
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename={filename}'}
        )

    except Exception as e:
        LoggingService.log_error_with_traceback('subscriptions', e, {'endpoint': 'export'})
        return jsonify({'error': str(e)}), 500
