from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlmodel import Session

from campus_hub.main import app
from campus_hub.database import engine
from campus_hub import models, storage

client = TestClient(app)


def test_post_and_view_item(make_user, item_payload):
    seller, headers, _ = make_user()
    r = client.post('/marketplace/items', json=item_payload(location=''), headers=headers)
    assert r.status_code == 201
    item = r.json()
    assert item['status'] == 'active'
    assert item['likes'] == 0
    assert item['location'] == 'Not specified'
    assert item['user_id'] == seller['id']

    detail = client.get(f"/marketplace/items/{item['id']}")
    assert detail.status_code == 200
    assert detail.json()['time_ago'] == 'Just now'


def test_missing_fields_are_rejected(make_user, item_payload):
    _, headers, _ = make_user()
    r = client.post('/marketplace/items', json=item_payload(seller_contact=''), headers=headers)
    assert r.status_code == 400
    assert r.json()['detail'] == 'Please fill in all required fields'
    assert client.post('/marketplace/items', json=item_payload(category='Cars'), headers=headers).status_code == 400
    assert client.post('/marketplace/items', json={'title': 'x'}, headers=headers).status_code == 400


def test_edit_is_owner_scoped(make_user, item_payload):
    _, headers, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(), headers=headers).json()
    edited = client.put(f"/marketplace/items/{item['id']}", json=item_payload(price=30, condition='Fair'), headers=headers)
    assert edited.status_code == 200
    assert edited.json()['price'] == 30
    assert edited.json()['condition'] == 'Fair'

    _, other, _ = make_user()
    assert client.put(f"/marketplace/items/{item['id']}", json=item_payload(), headers=other).status_code == 404
    assert client.delete(f"/marketplace/items/{item['id']}", headers=other).status_code == 404


def test_sold_items_leave_the_listing(make_user, item_payload):
    _, headers, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(title='Quokka Lamp'), headers=headers).json()
    assert [i['title'] for i in client.get('/marketplace/items', params={'search': 'quokka'}).json()] == ['Quokka Lamp']

    sold = client.post(f"/marketplace/items/{item['id']}/status", json={'status': 'sold'}, headers=headers)
    assert sold.status_code == 200
    assert client.get('/marketplace/items', params={'search': 'quokka'}).json() == []
    assert client.get(f"/marketplace/items/{item['id']}").status_code == 404
    mine = client.get('/marketplace/items/mine', headers=headers).json()
    assert item['id'] in [i['id'] for i in mine]

    assert client.post(f"/marketplace/items/{item['id']}/status", json={'status': 'lost'}, headers=headers).status_code == 400


def test_search_filters(make_user, item_payload):
    _, headers, _ = make_user()
    client.post('/marketplace/items', json=item_payload(title='Wombat Cheap Book', price=20), headers=headers)
    client.post('/marketplace/items', json=item_payload(title='Wombat Desk', price=75, category='Furniture', condition='Excellent'), headers=headers)
    client.post('/marketplace/items', json=item_payload(title='Wombat Laptop', price=700, category='Electronics'), headers=headers)

    def titles(**params):
        params['search'] = 'wombat'
        return sorted(i['title'] for i in client.get('/marketplace/items', params=params).json())

    assert titles() == ['Wombat Cheap Book', 'Wombat Desk', 'Wombat Laptop']
    assert titles(price_range='under50') == ['Wombat Cheap Book']
    assert titles(price_range='50to100') == ['Wombat Desk']
    assert titles(price_range='over100') == ['Wombat Laptop']
    assert titles(category='Furniture') == ['Wombat Desk']
    assert titles(condition='Good', category='all') == ['Wombat Cheap Book', 'Wombat Laptop']


def test_like_toggle(make_user, item_payload):
    _, headers, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(), headers=headers).json()
    _, fan, _ = make_user()
    first = client.post(f"/marketplace/items/{item['id']}/like", headers=fan).json()
    assert first == {'item_id': item['id'], 'liked': True, 'likes': 1}
    client.post(f"/marketplace/items/{item['id']}/like", headers=headers)
    second = client.post(f"/marketplace/items/{item['id']}/like", headers=fan).json()
    assert second['liked'] is False
    assert second['likes'] == 1


def test_contact_seller(make_user, item_payload):
    _, headers, _ = make_user()
    email_item = client.post('/marketplace/items', json=item_payload(), headers=headers).json()
    phone_item = client.post('/marketplace/items', json=item_payload(seller_contact='555-0102'), headers=headers).json()
    by_email = client.get(f"/marketplace/items/{email_item['id']}/contact").json()
    assert by_email['method'] == 'email'
    assert by_email['mailto'].startswith('mailto:sarah@example.edu')
    by_phone = client.get(f"/marketplace/items/{phone_item['id']}/contact").json()
    assert by_phone == {'method': 'other', 'contact': '555-0102', 'detail': 'Contact seller at: 555-0102'}


def test_item_images(make_user, item_payload, png_bytes):
    _, headers, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(), headers=headers).json()
    files = [('files', ('a.png', png_bytes('red'), 'image/png')), ('files', ('b.png', png_bytes('blue'), 'image/png'))]
    r = client.post(f"/marketplace/items/{item['id']}/images", files=files, headers=headers)
    assert r.status_code == 200
    assert len(r.json()['image_urls']) == 2
    assert all('/storage/marketplace-images/' in u for u in r.json()['image_urls'])


def test_time_ago_for_older_items(make_user, item_payload):
    _, headers, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(), headers=headers).json()
    with Session(engine) as session:
        row = session.get(models.MarketplaceItem, item['id'])
        row.created_at = datetime.now(timezone.utc) - timedelta(days=3, hours=1)
        session.add(row)
        session.commit()
    assert client.get(f"/marketplace/items/{item['id']}").json()['time_ago'] == '3 days ago'


def test_item_images_stay_with_their_uploader(make_user, item_payload, png_bytes):
    _, owner, _ = make_user()
    item = client.post('/marketplace/items', json=item_payload(), headers=owner).json()
    files = [('files', ('a.png', png_bytes(), 'image/png'))]
    url = client.post(f"/marketplace/items/{item['id']}/images", files=files, headers=owner).json()['image_urls'][0]
    bucket, key = storage.object_path_from_url(url)

    _, other, _ = make_user()
    assert client.post('/marketplace/items', json=item_payload(image_urls=[url]), headers=other).status_code == 400
    theirs = client.post('/marketplace/items', json=item_payload(), headers=other).json()
    assert client.put(f"/marketplace/items/{theirs['id']}", json=item_payload(image_urls=[url]), headers=other).status_code == 400
    assert client.delete(f"/marketplace/items/{theirs['id']}", headers=other).status_code == 200
    assert (storage.get_storage_root() / bucket / key).exists()
