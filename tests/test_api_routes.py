from stockroom.extensions import db
from stockroom.models import Issuance

from .factories import line, make_issuance, make_restock, stock_of


def test_create_and_release_issuance_over_http(client, app, seed):
    response = client.post('/api/issuances', json={
        'site_id': seed.site_id,
        'issued_to': 'Crew A',
        'lines': [line(42, 'L', 3)],
        'performed_by': 'Dana',
    })
    assert response.status_code == 201
    issuance_id = response.get_json()['data']['id']

    response = client.post(f'/api/issuances/{issuance_id}/release', json={})
    payload = response.get_json()
    assert response.status_code == 200
    assert payload['data']['status'] == 'released'
    assert payload['data']['record']['lines'][0]['released_quantity'] == 3

    with app.app_context():
        assert stock_of(42, 'L') == 7


def test_release_shortfall_returns_conflict(client, app, seed):
    with app.app_context():
        issuance_id = make_issuance(seed.site_id, [line(42, 'M', 5)]).id

    response = client.post(f'/api/issuances/{issuance_id}/release')
    payload = response.get_json()

    assert response.status_code == 409
    assert payload['success'] is False
    assert payload['messages'] == ['Safety Vest (M): needs 5, has 3']


def test_invalid_transition_and_unknown_entity(client, app, seed):
    with app.app_context():
        issuance_id = make_issuance(seed.site_id, [line(42, 'L', 1)]).id

    assert client.post(f'/api/issuances/{issuance_id}/issue').status_code == 409
    assert client.post('/api/issuances/9999/cancel').status_code == 404
    assert client.post(f'/api/issuances/{issuance_id}/explode').status_code == 422
    assert client.get('/api/issuances/9999').status_code == 404


def test_create_validation_error(client, seed):
    response = client.post('/api/issuances', json={'site_id': seed.site_id, 'issued_to': 'Crew A', 'lines': []})

    assert response.status_code == 422
    assert response.get_json()['errors']['type'] == 'validation'


def test_list_with_status_filter_and_counts(client, app, seed):
    with app.app_context():
        make_issuance(seed.site_id, [line(42, 'L', 1)])
        make_issuance(seed.site_id, [line(42, 'L', 1)], status='released')

    payload = client.get('/api/issuances?status=released').get_json()['data']

    assert [i['status'] for i in payload['issuances']] == ['released']
    assert payload['counts']['all'] == 2
    assert payload['issuances'][0]['line_summary'] == ['Safety Vest (L) - 1']


def test_edit_issuance_status_via_patch(client, app, seed):
    with app.app_context():
        issuance_id = make_issuance(seed.site_id, [line(42, 'L', 4)]).id

    response = client.patch(f'/api/issuances/{issuance_id}', json={'status': 'issued', 'note': 'rush'})
    assert response.status_code == 200

    with app.app_context():
        issuance = db.session.get(Issuance, issuance_id)
        assert (issuance.status, issuance.note) == ('issued', 'rush')
        assert stock_of(42, 'L') == 6


def test_bulk_issuance_action(client, app, seed):
    with app.app_context():
        ok = make_issuance(seed.site_id, [line(42, 'L', 2)]).id
        short = make_issuance(seed.site_id, [line(42, 'M', 9)]).id

    response = client.post('/api/issuances/bulk/release', json={'ids': [ok, short]})
    data = response.get_json()['data']

    assert response.status_code == 200
    assert data['changed'] == 1
    assert data['failed'][0]['id'] == short

    assert client.post('/api/issuances/bulk/release', json={'ids': []}).status_code == 422


def test_restock_partial_delivery_and_logs(client, app, seed):
    with app.app_context():
        restock = make_restock([line(42, 'M', 10)])
        restock_id, line_id = restock.id, restock.lines[0].id

    response = client.post(f'/api/restocks/{restock_id}/deliver', json={'quantities': {str(line_id): 4}})
    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'partial'

    logs = client.get(f'/api/restocks/{restock_id}/logs').get_json()['data']
    assert [entry['action'] for entry in logs] == ['partial', 'created']

    detail = client.get(f'/api/restocks/{restock_id}').get_json()['data']
    assert detail['lines'][0]['remaining_quantity'] == 6


def test_restock_bulk_cancel(client, app, seed):
    with app.app_context():
        a = make_restock([line(42, 'M', 1)]).id
        b = make_restock([line(42, 'M', 1)], status='cancelled').id

    data = client.post('/api/restocks/bulk/cancel', json={'ids': [a, b]}).get_json()['data']

    assert data['changed_ids'] == [a]
    assert data['skipped'][0]['id'] == b


def test_stock_endpoints(client, seed):
    listing = client.get(f'/api/stock?item_id={seed.vest_id}').get_json()['data']
    assert {(v['size'], v['quantity']) for v in listing} == {('M', 3), ('L', 10)}

    options = client.get(f'/api/stock/options/{seed.vest_id}').get_json()['data']
    assert [o['size'] for o in options] == ['L', 'M']
    assert client.get('/api/stock/options/9999').status_code == 404

    created = client.post('/api/stock', json={'item_id': seed.boots_id, 'size': '44', 'quantity': 2})
    assert created.status_code == 201
    duplicate = client.post('/api/stock', json={'item_id': seed.boots_id, 'size': '44'})
    assert duplicate.status_code == 422


def test_catalog_endpoints(client):
    category = client.post('/api/categories', json={'name': 'Gloves'}).get_json()['data']
    item = client.post('/api/items', json={'name': 'Nitrile Gloves', 'category_id': category['id'],
                                           'sizes': {'S': 50, 'M': 50}})
    assert item.status_code == 201

    items = client.get('/api/items').get_json()['data']
    gloves = next(i for i in items if i['name'] == 'Nitrile Gloves')
    assert gloves['sizes'] == ['M', 'S']

    assert client.post('/api/sites', json={'name': ''}).status_code == 422
    assert client.post('/api/items', json={'name': 'Hat', 'category_id': 999}).status_code == 422


def test_patch_back_to_pending_reports_restored_stock(client, app, seed):
    with app.app_context():
        issuance_id = make_issuance(seed.site_id, [line(42, 'L', 4)], status='issued').id

    response = client.patch(f'/api/issuances/{issuance_id}', json={'status': 'pending'})
    body = response.get_json()

    assert response.status_code == 200
    assert body['message'] == 'Issuance moved back to pending and stock restored.'
    assert body['data']['record']['status'] == 'pending'

    response = client.patch(f'/api/issuances/{issuance_id}', json={'status': 'lost'})
    assert response.status_code == 422
