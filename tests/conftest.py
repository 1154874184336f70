import os

os.environ['NOTES_DATABASE_URI'] = 'sqlite://'

import pytest

from app import app as flask_app
from models import db


@pytest.fixture
def client():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    with flask_app.test_client() as test_client:
        yield test_client
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_file(client):
    def _make(name, folder_id=None):
        payload = {'name': name}
        if folder_id is not None:
            payload['folder_id'] = folder_id
        resp = client.post('/api/files', json=payload)
        assert resp.status_code == 201
        return resp.get_json()
    return _make


@pytest.fixture
def make_folder(client):
    def _make(name):
        resp = client.post('/api/folders', json={'name': name})
        assert resp.status_code == 201
        return resp.get_json()
    return _make


@pytest.fixture
def make_note(client):
    def _make(file_id, content='', format='text', after_note_id=None):
        resp = client.post(
            f'/api/files/{file_id}/notes',
            json={'content': content, 'format': format, 'after_note_id': after_note_id},
        )
        assert resp.status_code == 201
        return resp.get_json()
    return _make
