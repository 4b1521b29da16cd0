"""
Tests for the bulk unsubscribe flow posted from the subscriptions list.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from flask_wtf.csrf import generate_csrf
from werkzeug.exceptions import HTTPException

from product_interest.modules.subscriptions import database, transients
from product_interest.modules.subscriptions.table import (
    CUSTOMER_FIELD, NONCE_FIELD, PRODUCT_FIELD, RELATIONSHIP_FIELD, UNSUBSCRIBE_ACTION,
    SubscriptionsTable, TableRequest,
)

LIST_URL = "/admin/product-interest/?page=product-interest-list"


def _query(response):
    """Parse the query string of a redirect's Location header"""
    query = parse_qs(urlsplit(response.headers['Location']).query)
    return {key: values[0] for key, values in query.items()}


@pytest.fixture
def two_subscriptions(seeded):
    """Customer 1 subscribed to product 10 (relationship 100) and product 20 (101)."""
    seeded.subscription(101, 20, 1, "2024-01-06 10:00:00")
    return seeded


def _warm_caches(app):
    with app.app_context():
        database.get_customers_for_product(10)
        database.get_customers_for_product(20)
        database.get_products_for_customer(1)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

def test_unsubscribe_deletes_and_redirects(app, admin_client, fetch_nonce, two_subscriptions):
    nonce = fetch_nonce()
    _warm_caches(app)

    response = admin_client.post(LIST_URL, data={
        'action': UNSUBSCRIBE_ACTION,
        NONCE_FIELD: nonce,
        RELATIONSHIP_FIELD: ['100', '101'],
        CUSTOMER_FIELD: ['1', '1'],
        PRODUCT_FIELD: ['10', '20'],
    })

    assert response.status_code == 302
    query = _query(response)
    assert query['page'] == 'product-interest-list'
    assert query['wc-product-interest-response'] == '1'
    assert query['success'] == '1'
    assert query['action'] == 'unsubscribed'
    assert query['count'] == '2'

    assert two_subscriptions.relationship_ids() == []

    with app.app_context():
        assert transients.get_transient('subscribed_products_by_customer_1') is None
        assert transients.get_transient('subscribed_customers_by_product_10') is None
        assert transients.get_transient('subscribed_customers_by_product_20') is None


def test_lower_dropdown_action_is_honoured(admin_client, fetch_nonce, two_subscriptions):
    nonce = fetch_nonce()

    response = admin_client.post(LIST_URL, data={
        'action': '-1',
        'action2': UNSUBSCRIBE_ACTION,
        NONCE_FIELD: nonce,
        RELATIONSHIP_FIELD: ['101'],
    })

    assert response.status_code == 302
    assert _query(response)['count'] == '1'
    assert two_subscriptions.relationship_ids() == [100]


def test_count_is_number_of_submitted_ids(admin_client, fetch_nonce, seeded):
    nonce = fetch_nonce()

    # 100 exists, 555 was never there
    response = admin_client.post(LIST_URL, data={
        'action': UNSUBSCRIBE_ACTION,
        NONCE_FIELD: nonce,
        RELATIONSHIP_FIELD: ['100', '555'],
    })

    assert _query(response)['count'] == '2'
    assert seeded.relationship_ids() == []


def test_unsubscribing_twice_is_harmless(admin_client, fetch_nonce, seeded):
    nonce = fetch_nonce()
    data = {'action': UNSUBSCRIBE_ACTION, NONCE_FIELD: nonce, RELATIONSHIP_FIELD: ['100']}

    first = admin_client.post(LIST_URL, data=data)
    second = admin_client.post(LIST_URL, data=data)

    assert _query(first)['success'] == '1'
    assert _query(second)['success'] == '1'
    assert seeded.relationship_ids() == []


def test_failed_delete_does_not_stop_the_rest(monkeypatch, admin_client, fetch_nonce, two_subscriptions):
    nonce = fetch_nonce()
    real_delete = database.delete_by_relationship

    def flaky_delete(relationship_id):
        if relationship_id == 100:
            raise RuntimeError("database is locked")
        return real_delete(relationship_id)

    monkeypatch.setattr('product_interest.modules.subscriptions.table.delete_by_relationship', flaky_delete)

    response = admin_client.post(LIST_URL, data={
        'action': UNSUBSCRIBE_ACTION,
        NONCE_FIELD: nonce,
        RELATIONSHIP_FIELD: ['100', '101'],
    })

    assert _query(response)['success'] == '1'
    assert two_subscriptions.relationship_ids() == [100]


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("nonce", [None, "not-a-real-token"])
def test_bad_nonce_redirects_without_deleting(admin_client, seeded, nonce):
    data = {'action': UNSUBSCRIBE_ACTION, RELATIONSHIP_FIELD: ['100']}
    if nonce:
        data[NONCE_FIELD] = nonce

    response = admin_client.post(LIST_URL, data=data)

    assert response.status_code == 302
    query = _query(response)
    assert query['success'] == '0'
    assert query['errcode'] == 'bad_nonce'
    assert query['wc-product-interest-response'] == '1'
    assert seeded.relationship_ids() == [100]


def test_no_ids_redirects_with_error(admin_client, fetch_nonce, seeded):
    nonce = fetch_nonce()

    response = admin_client.post(LIST_URL, data={'action': UNSUBSCRIBE_ACTION, NONCE_FIELD: nonce})

    query = _query(response)
    assert query['success'] == '0'
    assert query['errcode'] == 'no_ids'
    assert seeded.relationship_ids() == [100]


def test_other_action_is_ignored(admin_client, fetch_nonce, seeded):
    nonce = fetch_nonce()

    response = admin_client.post(LIST_URL, data={
        'action': 'something_else', NONCE_FIELD: nonce, RELATIONSHIP_FIELD: ['100'],
    })

    assert response.status_code == 200
    assert seeded.relationship_ids() == [100]


def test_other_page_is_ignored(admin_client, fetch_nonce, seeded):
    nonce = fetch_nonce()

    response = admin_client.post("/admin/product-interest/?page=somewhere-else", data={
        'action': UNSUBSCRIBE_ACTION, NONCE_FIELD: nonce, RELATIONSHIP_FIELD: ['100'],
    })

    assert response.status_code == 200
    assert seeded.relationship_ids() == [100]


# ---------------------------------------------------------------------------
# Table object used directly
# ---------------------------------------------------------------------------

def test_process_bulk_action_raises_redirect(app, seeded):
    with app.test_request_context(LIST_URL, method='POST'):
        table = SubscriptionsTable(TableRequest(
            page='product-interest-list',
            action=UNSUBSCRIBE_ACTION,
            nonce=generate_csrf(),
            relationship_ids=['100'],
        ))

        with pytest.raises(HTTPException) as excinfo:
            table.process_bulk_action()

    response = excinfo.value.response
    assert response.status_code == 302
    assert _query(response)['count'] == '1'
    assert seeded.relationship_ids() == []


def test_process_bulk_action_without_action_returns(app, seeded):
    with app.test_request_context(LIST_URL):
        assert SubscriptionsTable(TableRequest(page='product-interest-list')).process_bulk_action() is None
    assert seeded.relationship_ids() == [100]


def test_purge_transients_dedupes_ids(app):
    with app.app_context():
        transients.set_transient('subscribed_products_by_customer_3', [])
        table = SubscriptionsTable()

        assert table.purge_customer_transients(["3", "3", 3]) == ['subscribed_products_by_customer_3']
        assert transients.get_transient('subscribed_products_by_customer_3') is None
        assert table.purge_product_transients(["7", "-7"]) == ['subscribed_customers_by_product_7']
        assert table.purge_customer_transients([]) == []


# ---------------------------------------------------------------------------
# Notice after the redirect
# ---------------------------------------------------------------------------

def test_success_notice_after_redirect(admin_client, fetch_nonce, two_subscriptions):
    nonce = fetch_nonce()

    response = admin_client.post(LIST_URL, data={
        'action': UNSUBSCRIBE_ACTION, NONCE_FIELD: nonce, RELATIONSHIP_FIELD: ['100', '101'],
        CUSTOMER_FIELD: ['1', '1'], PRODUCT_FIELD: ['10', '20'],
    }, follow_redirects=True)

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert '2 subscriptions removed.' in body
    assert 'No subscriptions found.' in body


def test_error_notice_for_bad_nonce(admin_client):
    response = admin_client.get(LIST_URL + "&wc-product-interest-response=1&success=0&errcode=bad_nonce")

    body = response.get_data(as_text=True)
    assert 'data-response="error"' in body
    assert 'The security check failed.' in body
