"""Tests for transfer service API endpoints."""

import asyncio
import io
import json
import zipfile
from datetime import datetime
from urllib.parse import quote

import pytest

from server.auth import hash_password
from server.repositories.session_repository import SessionRepository


def upload(client, transfer_id, relative_path, data, content_type="text/plain"):
    """Grant + PUT, the way the uploader does it."""
    response = client.get('/sas', params={'file': f'{transfer_id}/{relative_path}', 'contentType': content_type})
    assert response.status_code == 200
    grant_url = response.json()['sasTokenUrl']

    response = client.put(grant_url, content=data, headers={'Content-Type': content_type})
    assert response.status_code == 200
    return grant_url


def test_root_endpoint(client):
    """Test health check endpoint."""
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_endpoint(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'healthy', 'service': 'transfer'}
    assert 'X-Request-ID' in response.headers


class TestUploadGrant:
    def test_missing_file_parameter(self, client):
        response = client.get('/sas')
        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'

    def test_traversal_key_rejected(self, client):
        response = client.get('/sas', params={'file': 'abc/../../etc/passwd', 'contentType': 'text/plain'})
        assert response.status_code == 400

    def test_upload_then_list(self, client):
        upload(client, 'flow-1', 'a.txt', b'hello')
        upload(client, 'flow-1', 'b/c.txt', b'hello world', 'application/json')

        response = client.get('/transfer/flow-1')

        assert response.status_code == 200
        data = response.json()
        assert data['name'] is None
        assert data['files'] == [
            {'name': 'a.txt', 'url': '/download/flow-1/a.txt', 'size': 5, 'contentType': 'text/plain'},
            {'name': 'b/c.txt', 'url': '/download/flow-1/b%2Fc.txt', 'size': 11, 'contentType': 'application/json'},
        ]

    def test_reserved_metadata_key_not_granted(self, client):
        response = client.get('/sas', params={'file': 'flow-3/.metadata.json', 'contentType': 'application/json'})

        assert response.status_code == 400
        assert response.json()['code'] == 'BAD_REQUEST'

    def test_nested_metadata_name_is_an_ordinary_file(self, client):
        upload(client, 'flow-4', 'docs/.metadata.json', b'{}', 'application/json')

        response = client.get('/transfer/flow-4')

        assert [f['name'] for f in response.json()['files']] == ['docs/.metadata.json']

    def test_legacy_password_cannot_be_overwritten(self, client, object_store):
        document = {'createdAt': '2024-03-01T10:00:00', 'passwordHash': hash_password('pw', rounds=4)}
        asyncio.run(object_store.write_bytes('legacy-x/.metadata.json', json.dumps(document).encode()))
        asyncio.run(object_store.write_bytes('legacy-x/secret.txt', b'top secret'))

        grant = client.get('/sas', params={'file': 'legacy-x/.metadata.json', 'contentType': 'application/json'})
        listing = client.get('/transfer/legacy-x')

        assert grant.status_code == 400
        assert listing.status_code == 401
        assert listing.json()['code'] == 'PASSWORD_REQUIRED'

    def test_tampered_grant_rejected(self, client):
        response = client.get('/sas', params={'file': 'flow-2/a.txt', 'contentType': 'text/plain'})
        grant_url = response.json()['sasTokenUrl'].replace('flow-2/a.txt', 'flow-2/b.txt')

        response = client.put(grant_url, content=b'x')

        assert response.status_code == 403
        assert response.json()['code'] == 'INVALID_GRANT'


class TestFinalizeAndLock:
    def test_finalize_sets_name(self, client):
        upload(client, 'fin-1', 'report.pdf', b'%PDF')

        response = client.post('/transfer/fin-1/finalize', json={'name': 'report.pdf', 'size': 4, 'fileCount': 1})

        assert response.status_code == 200
        assert response.json()['success'] is True
        assert client.get('/transfer/fin-1').json()['name'] == 'report.pdf'

    def test_finalize_rejects_negative_size(self, client):
        response = client.post('/transfer/fin-2/finalize', json={'name': 'x', 'size': -5, 'fileCount': 1})
        assert response.status_code == 400

    @pytest.mark.parametrize('body', [{}, {'password': ''}, {'password': '   '}])
    def test_lock_requires_password(self, client, body):
        response = client.post('/transfer/lock-1/lock', json=body)

        assert response.status_code == 400
        assert response.json()['error'] == 'Valid password is required'

    def test_locked_listing(self, client):
        upload(client, 'lock-2', 'a.txt', b'secret')
        assert client.post('/transfer/lock-2/lock', json={'password': 'pw'}).status_code == 200

        missing = client.get('/transfer/lock-2')
        wrong = client.get('/transfer/lock-2', headers={'x-transfer-password': 'nope'})
        right = client.get('/transfer/lock-2', headers={'x-transfer-password': 'pw'})

        assert missing.status_code == 401
        assert missing.json()['code'] == 'PASSWORD_REQUIRED'
        assert wrong.status_code == 401
        assert wrong.json()['code'] == 'INVALID_PASSWORD'
        assert right.status_code == 200
        assert [f['name'] for f in right.json()['files']] == ['a.txt']


class TestListing:
    def test_unknown_transfer(self, client):
        response = client.get('/transfer/does-not-exist')
        assert response.status_code == 404
        assert response.json()['code'] == 'NOT_FOUND'

    def test_finalized_empty_transfer(self, client):
        client.post('/transfer/empty-1/finalize', json={'name': 'Untitled Transfer', 'size': 0, 'fileCount': 0})

        response = client.get('/transfer/empty-1')

        assert response.status_code == 200
        assert response.json()['files'] == []

    def test_malformed_id(self, client):
        response = client.get('/transfer/bad..id')
        assert response.status_code == 400

    def test_legacy_document_with_bad_date(self, client, object_store):
        asyncio.run(object_store.write_bytes('legacy-y/.metadata.json', json.dumps({'createdAt': 'not-a-date'}).encode()))
        asyncio.run(object_store.write_bytes('legacy-y/a.txt', b'abc'))

        response = client.get('/transfer/legacy-y')

        assert response.status_code == 200
        assert [f['name'] for f in response.json()['files']] == ['a.txt']


class TestZipDownload:
    def test_streams_archive(self, client):
        upload(client, 'zip-1', 'report.pdf', b'a' * 10)
        upload(client, 'zip-1', 'notes.txt', b'b' * 20)

        response = client.get('/transfer/zip-1/zip')

        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/zip'
        assert 'filename="notes - Bulk Transfer.zip"' in response.headers['content-disposition']
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert archive.namelist() == ['notes.txt', 'report.pdf']
            assert archive.read('report.pdf') == b'a' * 10

    def test_empty_transfer_is_404(self, client):
        response = client.get('/transfer/zip-empty/zip')
        assert response.status_code == 404
        assert response.json()['error'] == 'No files found for this transfer'

    def test_locked_archive(self, client):
        upload(client, 'zip-2', 'a.txt', b'a')
        client.post('/transfer/zip-2/lock', json={'password': 'pw'})

        assert client.get('/transfer/zip-2/zip').status_code == 401
        response = client.get('/transfer/zip-2/zip', headers={'x-transfer-password': 'pw'})
        assert response.status_code == 200
        assert 'filename="a.zip"' in response.headers['content-disposition']


class TestSingleDownload:
    def test_redirects_to_signed_url(self, client):
        upload(client, 'dl-1', 'docs/a b.txt', b'content!')
        url = client.get('/transfer/dl-1').json()['files'][0]['url']

        response = client.get(url, follow_redirects=False)

        assert response.status_code == 307
        location = response.headers['location']
        assert location.startswith('http://testserver/storage/dl-1/docs/a%20b.txt?')
        assert client.get(location).content == b'content!'

    def test_missing_file(self, client):
        upload(client, 'dl-2', 'a.txt', b'a')

        response = client.get('/download/dl-2/b.txt', follow_redirects=False)

        assert response.status_code == 404

    @pytest.mark.parametrize('path', [
        '/download/dl-3/..%2Fsecret',
        '/download/dl-3/..%252Fsecret',
        '/download/dl-3/a%2F..%2F..%2Fsecret',
        '/download/..%2Fdl-3/secret',
    ])
    def test_traversal_rejected(self, client, path):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 400

    def test_password_gate(self, client):
        upload(client, 'dl-4', 'a.txt', b'a')
        client.post('/transfer/dl-4/lock', json={'password': 'pw'})

        denied = client.get('/download/dl-4/a.txt', follow_redirects=False)
        allowed = client.get('/download/dl-4/a.txt', headers={'x-transfer-password': 'pw'}, follow_redirects=False)

        assert denied.status_code == 401
        assert allowed.status_code == 307


class TestDelete:
    def _login(self, email):
        session_id = f'session-{email}'
        SessionRepository.create_session(session_id, email, created_at=datetime.utcnow())
        return {'Authorization': f'Bearer {session_id}'}

    def test_requires_session(self, client):
        response = client.delete('/transfer/del-1')
        assert response.status_code == 401
        assert response.json()['code'] == 'NOT_AUTHENTICATED'

    def test_creator_deletes(self, client):
        headers = self._login('owner@example.com')
        upload(client, 'del-2', 'a.txt', b'a')
        client.post('/transfer/del-2/finalize', json={'name': 'a.txt', 'size': 1, 'fileCount': 1}, headers=headers)

        response = client.delete('/transfer/del-2', headers=headers)

        assert response.status_code == 200
        assert response.json() == {'success': True, 'deletedObjects': 1}
        assert client.get('/transfer/del-2').status_code == 404

    def test_other_user_forbidden(self, client):
        owner = self._login('owner@example.com')
        other = self._login('other@example.com')
        upload(client, 'del-3', 'a.txt', b'a')
        client.post('/transfer/del-3/finalize', json={'name': 'a.txt'}, headers=owner)

        response = client.delete('/transfer/del-3', headers=other)

        assert response.status_code == 403


class TestShareEmail:
    def test_missing_fields(self, client):
        response = client.post('/send-email', json={'recipientEmail': 'r@example.com', 'files': []})
        assert response.status_code == 400

    def test_dev_mode_logs_instead(self, client, monkeypatch):
        monkeypatch.setattr('server.config.SMTP_USER', '')
        monkeypatch.setattr('server.config.SMTP_PASS', '')

        response = client.post('/send-email', json={
            'recipientEmail': 'r@example.com',
            'files': [{'name': 'a.txt', 'size': 10}],
            'shareLink': 'http://share.test/share/abc',
        })

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': 'Email logged'}


def test_storage_get_requires_signature(client):
    upload(client, 'raw-1', 'a.txt', b'a')

    response = client.get(f"/storage/{quote('raw-1/a.txt')}", params={'expires': 9999999999, 'signature': 'bad'})

    assert response.status_code == 403
