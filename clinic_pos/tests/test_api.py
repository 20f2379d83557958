import json
import os

import pytest

from conftest import login


def create_service(client, token, title='CBC', price=500, available=True):
    r = client.post('/api/services', json={
        'title': title, 'details': 'Standard', 'price': price, 'available': available, 'csrf_token': token,
    })
    assert r.status_code == 201, r.get_json()
    return r.get_json()['service']


def test_requires_login(client):
    assert client.get('/api/session').get_json()['staff'] is None
    r = client.get('/api/services')
    assert r.status_code == 401
    assert r.get_json() == {'ok': False, 'error': 'You must log in.'}


def test_post_without_csrf_is_rejected(client):
    r = client.post('/api/login', json={'email': 'admin@clinic.com', 'password': 'admin123'})
    assert r.status_code == 403


def test_wrong_password(client):
    token = client.get('/api/session').get_json()['csrf_token']
    r = client.post('/api/login', json={'email': 'admin@clinic.com', 'password': 'x', 'csrf_token': token})
    assert r.status_code == 401


def test_login_and_logout(client):
    token = login(client)
    assert client.get('/api/session').get_json()['staff'] == {'email': 'admin@clinic.com', 'role': 'admin'}

    assert client.post('/api/logout', headers={'X-CSRF-Token': token}).status_code == 200
    assert client.get('/api/services').status_code == 401


def test_security_headers(client):
    r = client.get('/api/session')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_checkout_flow(client, container):
    token = login(client)
    cbc = create_service(client, token, 'CBC', 500)
    xray = create_service(client, token, 'X-Ray', 300)

    for service in (cbc, xray):
        r = client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})
        assert r.status_code == 200

    cart = client.get('/api/cart?discount=10').get_json()['cart']
    assert (cart['subtotal'], cart['discount_amount'], cart['total']) == (800.0, 80.0, 720.0)

    r = client.post('/api/cart/checkout', json={
        'customer_name': 'Juan Dela Cruz', 'discount_percent': 10,
        'submission_token': 'checkout-1', 'csrf_token': token,
    })
    assert r.status_code == 201
    body = r.get_json()
    assert body['transaction']['total'] == 720.0
    assert body['invoice_url'] == f"/transactions/{body['transaction_id']}/invoice.pdf"
    assert os.path.exists(os.path.join(container.export_dir, body['invoice_filename']))

    # cart emptied only after the commit
    assert client.get('/api/cart').get_json()['cart']['items_count'] == 0

    listed = client.get('/api/transactions').get_json()['transactions']
    assert [t['id'] for t in listed] == [body['transaction_id']]


@pytest.mark.parametrize('customer_name', ['  ', 123, None, ['Ana']])
def test_checkout_validation_keeps_cart(client, container, customer_name):
    token = login(client, 'staff1@clinic.com', 'staff123')
    service = create_service(client, token)
    client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})

    r = client.post('/api/cart/checkout', json={'customer_name': customer_name, 'csrf_token': token})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Please enter customer name'
    assert client.get('/api/cart').get_json()['cart']['items_count'] == 1
    assert container.transaction_repo.get_all() == []


def test_remove_line_with_token_read_as_float(client):
    token = login(client)
    service = create_service(client, token)
    line = client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token}).get_json()['line']

    r = client.post('/api/cart/remove', json={'added_at': float(line['added_at']), 'csrf_token': token})
    assert r.status_code == 200
    assert r.get_json()['removed'] is True
    assert r.get_json()['cart']['items_count'] == 0


def test_empty_cart_checkout(client):
    token = login(client)
    r = client.post('/api/cart/checkout', json={'customer_name': 'Ana', 'csrf_token': token})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Please add at least one service'


def test_invoice_failure_keeps_the_sale(client, container, monkeypatch):
    token = login(client)
    service = create_service(client, token)
    client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})

    def broken(tx):
        raise RuntimeError('renderer down')

    monkeypatch.setattr(container.receipt_service, 'render_invoice', broken)
    r = client.post('/api/cart/checkout', json={'customer_name': 'Ana', 'csrf_token': token})

    assert r.status_code == 201
    body = r.get_json()
    assert 'invoice_error' in body
    assert 'invoice_url' not in body
    assert len(container.transaction_repo.get_all()) == 1


def test_receipt_download(client):
    token = login(client)
    service = create_service(client, token)
    client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})
    tx_id = client.post('/api/cart/checkout', json={
        'customer_name': 'Ana', 'csrf_token': token,
    }).get_json()['transaction_id']

    r = client.get(f"/transactions/{tx_id}/receipt.pdf")
    assert r.status_code == 200
    assert r.mimetype == 'application/pdf'
    assert r.data.startswith(b'%PDF')
    assert f"receipt-Ana-{tx_id}.pdf" in r.headers['Content-Disposition']

    assert client.get('/transactions/missing/invoice.pdf').status_code == 404


def test_staff_cannot_delete(client, container):
    admin_token = login(client)
    service = create_service(client, admin_token)
    client.post('/api/logout', headers={'X-CSRF-Token': admin_token})

    token = login(client, 'staff2@clinic.com', 'staff123')
    r = client.post(f"/api/services/{service['id']}/delete", json={'csrf_token': token})
    assert r.status_code == 403
    assert r.get_json()['error'] == 'Only administrators can delete services.'
    assert container.service_repo.get_by_id(service['id']) is not None


def test_admin_deletes_service(client, container):
    token = login(client)
    service = create_service(client, token)
    r = client.post(f"/api/services/{service['id']}/delete", json={'csrf_token': token})
    assert r.status_code == 200
    assert container.service_repo.get_all() == []
    r = client.post(f"/api/services/{service['id']}/delete", json={'csrf_token': token})
    assert r.status_code == 404


def test_toggle_and_unavailable_service(client):
    token = login(client)
    service = create_service(client, token)
    r = client.post(f"/api/services/{service['id']}/toggle", json={'csrf_token': token})
    assert r.get_json()['service']['available'] is False

    r = client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})
    assert r.status_code == 400

    listed = client.get('/api/services?availability=unavailable').get_json()
    assert [s['id'] for s in listed['services']] == [service['id']]
    assert listed['available_services'] == 0


def test_expenses(client):
    token = login(client)
    r = client.post('/api/expenses', json={'amount': 'abc', 'csrf_token': token})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Amount must be a number'

    r = client.post('/api/expenses', data={'amount': '250.50', 'note': 'Reagents', 'csrf_token': token})
    assert r.status_code == 201
    expense_id = r.get_json()['expense']['id']

    ledger = client.get('/api/expenses').get_json()
    assert ledger['total'] == 250.5

    r = client.post(f"/api/expenses/{expense_id}/delete", json={'csrf_token': token})
    assert r.status_code == 200
    assert client.get('/api/expenses').get_json()['total'] == 0


def test_dashboard(client):
    token = login(client)
    service = create_service(client, token, price=1000)
    client.post('/api/cart/add', json={'service_id': service['id'], 'csrf_token': token})
    client.post('/api/cart/checkout', json={'customer_name': 'Ana', 'csrf_token': token})
    client.post('/api/expenses', json={'amount': 400, 'csrf_token': token})

    dashboard = client.get('/api/dashboard?preset=today').get_json()['dashboard']
    assert dashboard['revenue'] == 1000.0
    assert dashboard['expense_total'] == 400.0
    assert dashboard['net'] == 600.0
    assert dashboard['window']['preset'] == 'today'

    assert client.get('/api/dashboard?preset=fortnight').status_code == 400
    assert client.get('/api/dashboard?start=nope').status_code == 400


def test_dashboard_stream_first_event(client, container):
    login(client)
    r = client.get('/api/dashboard/stream', buffered=False)
    assert r.mimetype == 'text/event-stream'

    chunk = next(iter(r.response))
    if isinstance(chunk, bytes):
        chunk = chunk.decode('utf-8')
    assert chunk.startswith('event: summary')
    payload = json.loads(chunk.split('data: ', 1)[1])
    assert payload['revenue'] == 0.0

    r.close()
    assert container.transaction_repo.subscription_count == 0
