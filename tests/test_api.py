import pytest


def enter(client, headers, plate="RAB123A", slot=5, entry_time="2026-03-02T08:00:00Z"):
    return client.post('/api/parking-records/entry', headers=headers, json={
        'plate_number': plate,
        'slot_number': slot,
        'driver_name': 'Jean Claude',
        'phone_number': '0788000000',
        'entry_time': entry_time,
    })


def test_health_check(client):
    resp = client.get('/')
    assert resp.status_code == 200
    assert b"SmartPark" in resp.data


def test_register_and_login(client):
    resp = client.post('/api/register', json={'username': 'eric', 'password': 'secret'})
    assert resp.status_code == 201

    resp = client.post('/api/register', json={'username': 'eric', 'password': 'other'})
    assert resp.status_code == 409

    resp = client.post('/api/login', json={'username': 'eric', 'password': 'secret'})
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'attendant'
    assert resp.get_json()['access_token']

    resp = client.post('/api/login', json={'username': 'eric', 'password': 'wrong'})
    assert resp.status_code == 401


def test_routes_require_a_token(client):
    assert client.get('/api/parking-slots').status_code == 401
    assert client.post('/api/parking-records/exit', json={'parking_record_id': 1}).status_code == 401


def test_entry_and_exit_flow(client, auth_headers):
    resp = enter(client, auth_headers)
    assert resp.status_code == 201
    record_id = resp.get_json()['parking_record_id']

    slots = client.get('/api/parking-slots', headers=auth_headers).get_json()
    assert {'slot_number': 5, 'status': 'occupied'} in slots

    active = client.get('/api/parking-records/active', headers=auth_headers).get_json()
    assert [a['id'] for a in active] == [record_id]
    assert active[0]['driver_name'] == 'Jean Claude'

    resp = client.post('/api/parking-records/exit', headers=auth_headers, json={
        'parking_record_id': record_id,
        'exit_time': '2026-03-02T09:30:00Z',
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['amount'] == 1000
    assert body['duration_hours'] == 2

    slots = client.get('/api/parking-slots', headers=auth_headers).get_json()
    assert {'slot_number': 5, 'status': 'available'} in slots
    assert client.get('/api/parking-records/active', headers=auth_headers).get_json() == []

    payment = client.get(f"/api/payments/{body['payment_id']}", headers=auth_headers).get_json()
    assert payment['received_by'] == 'clerk'
    assert payment['amount_paid'] == 1000


def test_error_mapping(client, auth_headers):
    assert enter(client, auth_headers, plate="X").status_code == 201

    resp = enter(client, auth_headers, plate="Y")
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'SlotOccupied'

    resp = enter(client, auth_headers, plate="Z", slot=99)
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'SlotNotFound'

    resp = enter(client, auth_headers, plate="Z", slot=0)
    assert resp.status_code == 400

    resp = enter(client, auth_headers, plate="Z", slot=1, entry_time="yesterday")
    assert resp.status_code == 400

    resp = client.post('/api/parking-records/exit', headers=auth_headers, json={'parking_record_id': 999})
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'SessionNotFound'


def test_double_exit_is_a_conflict(client, auth_headers):
    record_id = enter(client, auth_headers).get_json()['parking_record_id']
    payload = {'parking_record_id': record_id, 'exit_time': '2026-03-02T08:30:00Z'}

    assert client.post('/api/parking-records/exit', headers=auth_headers, json=payload).status_code == 200
    resp = client.post('/api/parking-records/exit', headers=auth_headers, json=payload)
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'SessionAlreadyClosed'
    assert len(client.get('/api/payments', headers=auth_headers).get_json()) == 1


def test_slot_admin_is_admin_only(client, auth_headers, admin_headers):
    resp = client.post('/api/parking-slots', headers=auth_headers, json={'slot_number': 6})
    assert resp.status_code == 403

    resp = client.post('/api/parking-slots', headers=admin_headers, json={'slot_number': 6})
    assert resp.status_code == 201
    assert client.post('/api/parking-slots', headers=admin_headers, json={'slot_number': 6}).status_code == 409

    enter(client, auth_headers, slot=6)
    resp = client.delete('/api/parking-slots/6', headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'SlotInUse'

    assert client.delete('/api/parking-slots/4', headers=admin_headers).status_code == 200
    slots = client.get('/api/parking-slots', headers=auth_headers).get_json()
    assert 4 not in [s['slot_number'] for s in slots]


def test_cars_directory(client, auth_headers):
    resp = client.post('/api/cars', headers=auth_headers, json={
        'plate_number': 'rab123a', 'driver_name': 'Jean', 'phone_number': '0788000000'
    })
    assert resp.status_code == 200
    assert resp.get_json()['plate_number'] == 'RAB123A'

    resp = client.post('/api/cars', headers=auth_headers, json={'plate_number': 'RAB123A'})
    assert resp.status_code == 400

    cars = client.get('/api/cars', headers=auth_headers).get_json()
    assert cars == [{'plate_number': 'RAB123A', 'driver_name': 'Jean', 'phone_number': '0788000000'}]

    assert client.get('/api/cars/rab123a', headers=auth_headers).get_json()['driver_name'] == 'Jean'
    resp = client.get('/api/cars/NOPE1', headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'CarNotFound'


@pytest.mark.parametrize("query, expected", [
    ('', 2),
    ('?startDate=2026-03-02&endDate=2026-03-02', 1),
    ('?startDate=2026-03-03', 1),
])
def test_payments_listing(client, auth_headers, query, expected):
    first = enter(client, auth_headers, plate="A1", slot=1).get_json()['parking_record_id']
    client.post('/api/parking-records/exit', headers=auth_headers, json={
        'parking_record_id': first, 'exit_time': '2026-03-02T10:00:00Z'
    })
    second = enter(client, auth_headers, plate="B2", slot=2, entry_time='2026-03-03T08:00:00Z').get_json()['parking_record_id']
    client.post('/api/parking-records/exit', headers=auth_headers, json={
        'parking_record_id': second, 'exit_time': '2026-03-03T08:10:00Z'
    })

    resp = client.get(f'/api/payments{query}', headers=auth_headers)
    assert resp.status_code == 200
    assert len(resp.get_json()) == expected


def test_daily_report(client, auth_headers):
    record_id = enter(client, auth_headers).get_json()['parking_record_id']
    client.post('/api/parking-records/exit', headers=auth_headers, json={
        'parking_record_id': record_id, 'exit_time': '2026-03-02T11:00:00Z'
    })

    report = client.get('/api/reports/daily?date=2026-03-02', headers=auth_headers).get_json()
    assert report['date'] == '2026-03-02'
    assert report['total_amount'] == 1500
    assert report['records'][0]['duration_hours'] == 3

    assert client.get('/api/reports/daily?date=03/02/2026', headers=auth_headers).status_code == 400


def test_current_user(client, auth_headers):
    resp = client.get('/api/user', headers=auth_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['username'] == 'clerk'
    assert body['role'] == 'attendant'
    assert isinstance(body['id'], int)

    assert client.get('/api/user').status_code == 401


def test_saving_a_car_refreshes_active_listing(client, auth_headers, monkeypatch):
    import smartpark.app as app_module

    cleared = []
    monkeypatch.setattr(app_module, 'clear_cache', lambda patterns: cleared.extend(patterns))

    resp = client.post('/api/cars', headers=auth_headers, json={
        'plate_number': 'RAB123A', 'driver_name': 'Aline', 'phone_number': '0788111111'
    })
    assert resp.status_code == 200
    assert app_module.ACTIVE_KEY in cleared
