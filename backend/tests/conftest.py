import io
import os
import tempfile
import uuid
from pathlib import Path

import pytest
from PIL import Image

# Point the app at throwaway storage before `campus_hub` is imported.
_TMP = Path(tempfile.mkdtemp(prefix="campus_hub_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["STORAGE_DIR"] = str(_TMP / "storage")
os.environ["CONTACT_RATE_LIMIT_PER_MIN"] = "1000"
os.environ["MESSAGE_RATE_LIMIT_PER_MIN"] = "1000"

from fastapi.testclient import TestClient  # noqa: E402
from campus_hub.main import app  # noqa: E402


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def make_user(client):
    """Register and log in a fresh user; return (user_json, headers, token)."""
    def _make(role="student", display_name=None):
        username = f"{role}_{uuid.uuid4().hex[:10]}"
        r = client.post('/auth/register', json={'username': username, 'password': 'pass123', 'role': role})
        assert r.status_code == 200, r.text
        login = client.post('/auth/login', json={'username': username, 'password': 'pass123'})
        assert login.status_code == 200, login.text
        token = login.json()['access_token']
        headers = {'Authorization': f'Bearer {token}'}
        if display_name:
            client.put('/profile/me', json={'display_name': display_name}, headers=headers)
        return r.json(), headers, token
    return _make


@pytest.fixture
def png_bytes():
    def _make(color="white"):
        img = Image.new("RGB", (32, 24), color)
        bio = io.BytesIO()
        img.save(bio, format="PNG")
        return bio.getvalue()
    return _make


@pytest.fixture
def listing_payload():
    def _make(**overrides):
        data = {
            'name': 'Pine Ridge',
            'location': 'Campus West',
            'price': 480,
            'room_type': 'Double',
            'capacity': 2,
            'amenities': ['WiFi', 'Parking'],
            'description': 'Spacious double rooms',
            'contact_email': 'owner@example.edu',
        }
        data.update(overrides)
        return data
    return _make


@pytest.fixture
def item_payload():
    def _make(**overrides):
        data = {
            'title': 'Calculus Textbook',
            'description': 'Minimal highlighting',
            'price': 45,
            'original_price': 120,
            'category': 'Books',
            'condition': 'Good',
            'seller_name': 'Sarah M.',
            'seller_contact': 'sarah@example.edu',
        }
        data.update(overrides)
        return data
    return _make
