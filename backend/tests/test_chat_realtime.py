import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from campus_hub.main import app
from campus_hub.realtime import ChannelHub, chat_channel, insert_event

client = TestClient(app)


@pytest.fixture
def listing(make_user, listing_payload):
    landlord, headers, token = make_user('landlord', display_name='Landlord Lee')
    acc = client.post('/accommodations', json=listing_payload(name='Chatty Towers'), headers=headers).json()
    return acc, landlord, headers, token


def test_open_chat_is_idempotent(listing, make_user):
    acc, landlord, landlord_headers, _ = listing
    tenant, headers, _ = make_user('student', display_name='Tina Tenant')
    first = client.post(f"/accommodations/{acc['id']}/chats", headers=headers)
    assert first.status_code == 200
    second = client.post(f"/accommodations/{acc['id']}/chats", headers=headers)
    assert second.json()['id'] == first.json()['id']
    chat = first.json()
    assert chat['landlord_id'] == landlord['id']
    assert chat['tenant_id'] == tenant['id']
    assert chat['accommodation_name'] == 'Chatty Towers'
    assert chat['tenant_display_name'] == 'Tina Tenant'

    own = client.post(f"/accommodations/{acc['id']}/chats", headers=landlord_headers)
    assert own.status_code == 400

    chats = client.get('/chats', headers=landlord_headers).json()
    assert chat['id'] in [c['id'] for c in chats]


def test_messages_are_ordered_and_private(listing, make_user):
    acc, _, landlord_headers, _ = listing
    _, headers, _ = make_user('student')
    chat_id = client.post(f"/accommodations/{acc['id']}/chats", headers=headers).json()['id']

    assert client.post(f'/chats/{chat_id}/messages', json={'message': '  Is it free in May?  '}, headers=headers).status_code == 201
    assert client.post(f'/chats/{chat_id}/messages', json={'message': 'Yes it is'}, headers=landlord_headers).status_code == 201
    assert client.post(f'/chats/{chat_id}/messages', json={'message': '   '}, headers=headers).status_code == 400

    msgs = client.get(f'/chats/{chat_id}/messages', headers=headers).json()
    assert [m['message'] for m in msgs] == ['Is it free in May?', 'Yes it is']

    _, outsider, _ = make_user('student')
    assert client.get(f'/chats/{chat_id}/messages', headers=outsider).status_code == 403
    assert client.post(f'/chats/{chat_id}/messages', json={'message': 'hi'}, headers=outsider).status_code == 403
    assert client.get('/chats/999999/messages', headers=headers).status_code == 404


def test_websocket_receives_inserted_messages(listing, make_user):
    acc, _, landlord_headers, landlord_token = listing
    _, headers, _ = make_user('student')
    chat_id = client.post(f"/accommodations/{acc['id']}/chats", headers=headers).json()['id']

    with client.websocket_connect(f'/chats/{chat_id}/ws?token={landlord_token}') as ws:
        ws.send_text('ping')
        assert ws.receive_text() == 'pong'
        sent = client.post(f'/chats/{chat_id}/messages', json={'message': 'Hello landlord'}, headers=headers)
        assert sent.status_code == 201
        event = ws.receive_json()
        assert event['event'] == 'INSERT'
        assert event['table'] == 'chat_messages'
        assert event['new']['message'] == 'Hello landlord'
        assert event['new']['chat_id'] == chat_id
        assert event['new']['id'] == sent.json()['id']


def test_websocket_ignores_binary_frames(listing, make_user):
    acc, _, _, landlord_token = listing
    _, headers, _ = make_user('student')
    chat_id = client.post(f"/accommodations/{acc['id']}/chats", headers=headers).json()['id']

    with client.websocket_connect(f'/chats/{chat_id}/ws?token={landlord_token}') as ws:
        ws.send_bytes(b'hello')
        ws.send_text('ping')
        assert ws.receive_text() == 'pong'
        client.post(f'/chats/{chat_id}/messages', json={'message': 'still here'}, headers=headers)
        assert ws.receive_json()['new']['message'] == 'still here'


def test_websocket_rejects_outsiders(listing, make_user):
    acc, _, _, _ = listing
    _, headers, _ = make_user('student')
    chat_id = client.post(f"/accommodations/{acc['id']}/chats", headers=headers).json()['id']
    _, _, outsider_token = make_user('student')
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f'/chats/{chat_id}/ws?token={outsider_token}') as ws:
            ws.receive_text()
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f'/chats/{chat_id}/ws?token=garbage') as ws:
            ws.receive_text()


def test_booking_request_posts_into_chat(listing, make_user, listing_payload):
    acc, _, landlord_headers, _ = listing
    _, headers, _ = make_user('student')
    r = client.post(
        f"/accommodations/{acc['id']}/book",
        json={'move_in_date': '2026-09-01', 'duration_months': 6, 'note': 'Quiet tenant'},
        headers=headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body['status'] == 'sent'
    assert body['message']['message'] == 'Booking request for Chatty Towers, move-in 2026-09-01, 6 months. Note: Quiet tenant'
    msgs = client.get(f"/chats/{body['chat_id']}/messages", headers=landlord_headers).json()
    assert msgs[-1]['message'].startswith('Booking request for Chatty Towers')

    taken = client.post('/accommodations', json=listing_payload(name='Full House', available=False), headers=landlord_headers).json()
    assert client.post(f"/accommodations/{taken['id']}/book", json={}, headers=headers).status_code == 400
    assert client.post(f"/accommodations/{acc['id']}/book", json={}, headers=landlord_headers).status_code == 400


def test_deleting_listing_removes_its_chats(listing, make_user):
    acc, _, landlord_headers, _ = listing
    _, headers, _ = make_user('student')
    chat_id = client.post(f"/accommodations/{acc['id']}/chats", headers=headers).json()['id']
    client.post(f'/chats/{chat_id}/messages', json={'message': 'hello'}, headers=headers)
    assert client.delete(f"/accommodations/{acc['id']}", headers=landlord_headers).status_code == 200
    assert client.get(f'/chats/{chat_id}/messages', headers=headers).status_code == 404


def test_hub_delivers_in_arrival_order_and_unsubscribes():
    hub = ChannelHub()

    async def scenario():
        sub = hub.subscribe(chat_channel(1))
        other = hub.subscribe(chat_channel(2))
        assert hub.subscriber_count('chat_1') == 1
        for n in range(3):
            hub.publish(chat_channel(1), insert_event('chat_messages', {'id': n}))
        received = [await sub.get() for _ in range(3)]
        assert [e['new']['id'] for e in received] == [0, 1, 2]
        assert other.pending() == 0
        hub.unsubscribe(sub)
        hub.unsubscribe(sub)
        assert hub.subscriber_count('chat_1') == 0
        assert hub.publish(chat_channel(1), insert_event('chat_messages', {'id': 9})) == 0
        hub.unsubscribe(other)

    asyncio.run(scenario())


def test_hub_accepts_publish_from_another_thread():
    hub = ChannelHub()

    async def scenario():
        sub = hub.subscribe('chat_7')
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, hub.publish, 'chat_7', {'event': 'INSERT'})
        event = await asyncio.wait_for(sub.get(), timeout=2)
        assert event == {'event': 'INSERT'}

    asyncio.run(scenario())
