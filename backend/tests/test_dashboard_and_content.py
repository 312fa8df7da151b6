from fastapi.testclient import TestClient

from campus_hub.main import app
from campus_hub.utils.rate_limit import SlidingWindowLimiter

client = TestClient(app)


def test_dashboard_stats(make_user, listing_payload):
    _, headers, _ = make_user('landlord')
    a = client.post('/accommodations', json=listing_payload(name='Open Flat', price=400), headers=headers).json()
    client.post('/accommodations', json=listing_payload(name='Let Flat', price=450, available=False), headers=headers)
    client.post('/accommodations', json=listing_payload(name='Let Studio', price=600, room_type='Studio', available=False), headers=headers)
    _, tenant, _ = make_user('student')
    client.post(f"/accommodations/{a['id']}/chats", headers=tenant)

    r = client.get('/landlord/dashboard', headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body['stats'] == {
        'total_properties': 3,
        'occupied_properties': 2,
        'active_chats': 1,
        'total_revenue': 1050,
    }
    assert body['chats'][0]['accommodation_name'] == 'Open Flat'


def test_dashboard_requires_landlord(make_user):
    _, headers, _ = make_user('student')
    assert client.get('/landlord/dashboard', headers=headers).status_code == 403


def test_faq_search():
    everything = client.get('/faqs').json()
    assert everything['total'] == everything['category_counts']['All']
    assert everything['popular_count'] == 4

    payment = client.get('/faqs', params={'category': 'Payment'}).json()
    assert payment['total'] == 1
    assert payment['results'][0]['category'] == 'Payment'

    refund = client.get('/faqs', params={'q': 'REFUND'}).json()
    assert any('cancel' in f['question'].lower() for f in refund['results'])

    assert client.get('/faqs', params={'category': 'Pets'}).status_code == 400


def test_contact_form():
    info = client.get('/contact/info').json()
    assert len(info['emergency']) == 3

    r = client.post('/contact', json={'name': 'Sam', 'email': 'sam@example.edu', 'subject': 'Help', 'message': 'Hi there'})
    assert r.status_code == 201
    assert 'within 24 hours' in r.json()['detail']

    bad = client.post('/contact', json={'name': 'Sam', 'email': 'nope', 'subject': 'Help', 'message': 'Hi'})
    assert bad.status_code == 400
    missing = client.post('/contact', json={'name': 'Sam', 'email': 'sam@example.edu'})
    assert missing.status_code == 400


def test_contact_rate_limit(monkeypatch):
    monkeypatch.setattr("campus_hub.main._contact_limiter", SlidingWindowLimiter(1, 60))
    payload = {'name': 'Sam', 'email': 'sam@example.edu', 'subject': 'Help', 'message': 'Hi there'}
    assert client.post('/contact', json=payload).status_code == 201
    second = client.post('/contact', json=payload)
    assert second.status_code == 429
    assert 'Retry-After' in second.headers


def test_health_home_and_request_id():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers
    echoed = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert echoed.headers['X-Request-ID'] == 'abc123'
    home = client.get('/')
    assert home.status_code == 200
    assert 'Campus Hub' in home.text
