"""
REST backends: Firestore value codec and requests, Identity Toolkit calls
and error mapping. requests is patched, nothing touches the network.
"""

import time
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from shopadmin.backend.firestore import FirestoreClient, decode_value, encode_value
from shopadmin.backend.identity import IdentityClient
from shopadmin.core.exceptions import AuthError, BackendError


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    resp.text = str(payload)
    return resp


# ---------------------------------------------------------------------------
# Firestore codec
# ---------------------------------------------------------------------------

def test_encode_value_types():
    assert encode_value(None) == {'nullValue': None}
    assert encode_value(True) == {'booleanValue': True}
    assert encode_value(3) == {'integerValue': '3'}
    assert encode_value(1.5) == {'doubleValue': 1.5}
    assert encode_value('x') == {'stringValue': 'x'}
    assert encode_value(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == {
        'timestampValue': '2024-01-02T03:04:05Z'
    }
    assert encode_value({'a': [1, 'b']}) == {
        'mapValue': {'fields': {'a': {'arrayValue': {'values': [
            {'integerValue': '1'}, {'stringValue': 'b'},
        ]}}}}
    }


def test_encode_value_rejects_unknown_types():
    with pytest.raises(TypeError):
        encode_value(object())


def test_decode_value_types():
    assert decode_value({'integerValue': '42'}) == 42
    assert decode_value({'timestampValue': '2024-01-02T03:04:05Z'}) == '2024-01-02T03:04:05Z'
    assert decode_value({'mapValue': {}}) == {}
    assert decode_value({'arrayValue': {}}) == []
    assert decode_value({'nullValue': None}) is None


# ---------------------------------------------------------------------------
# Firestore client
# ---------------------------------------------------------------------------

@pytest.fixture
def firestore():
    return FirestoreClient('demo-project', base_url='http://localhost:8080/v1',
                           token_provider=lambda: 'id-token')


def test_get_decodes_document_and_sends_token(firestore):
    doc = {
        'name': 'projects/demo-project/databases/(default)/documents/admins/u1',
        'fields': {'role': {'stringValue': 'owner'}},
    }
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(200, doc)) as req:
        assert firestore.get('admins', 'u1') == {'role': 'owner'}

    method, url = req.call_args[0]
    assert method == 'GET'
    assert url.endswith('/documents/admins/u1')
    assert req.call_args[1]['headers']['Authorization'] == 'Bearer id-token'


def test_get_missing_document_returns_none(firestore):
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(404, {})):
        assert firestore.get('admins', 'nobody') is None


def test_list_follows_page_tokens(firestore):
    page1 = {
        'documents': [{'name': '.../shops/a', 'fields': {}}],
        'nextPageToken': 'next',
    }
    page2 = {'documents': [{'name': '.../shops/b', 'fields': {}}]}
    with patch('shopadmin.backend.firestore.requests.request',
               side_effect=[_response(200, page1), _response(200, page2)]) as req:
        rows = firestore.list('shops')

    assert [doc_id for doc_id, _ in rows] == ['a', 'b']
    assert req.call_args_list[1][1]['params']['pageToken'] == 'next'


def test_query_builds_equality_filter(firestore):
    rows = [
        {'document': {'name': '.../shops/a', 'fields': {'status': {'stringValue': 'pending'}}}},
        {'readTime': '2024-01-01T00:00:00Z'},
    ]
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(200, rows)) as req:
        result = firestore.query('shops', 'status', 'pending')

    assert result == [('a', {'status': 'pending'})]
    body = req.call_args[1]['json']['structuredQuery']
    assert body['from'] == [{'collectionId': 'shops'}]
    assert body['where']['fieldFilter']['op'] == 'EQUAL'
    assert body['where']['fieldFilter']['value'] == {'stringValue': 'pending'}


def test_count_reads_aggregate(firestore):
    rows = [{'result': {'aggregateFields': {'count': {'integerValue': '7'}}}}]
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(200, rows)) as req:
        assert firestore.count('shops', 'status', 'frozen') == 7

    assert req.call_args[0][1].endswith(':runAggregationQuery')


def test_update_uses_mask_and_requires_existing_document(firestore):
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(200, {})) as req:
        firestore.update('shops', 'a', {'status': 'approved', 'approvedAt': 'now'})

    assert req.call_args[0][0] == 'PATCH'
    params = req.call_args[1]['params']
    assert ('updateMask.fieldPaths', 'status') in params
    assert ('updateMask.fieldPaths', 'approvedAt') in params
    assert ('currentDocument.exists', 'true') in params


def test_add_returns_generated_id(firestore):
    with patch('shopadmin.backend.firestore.requests.request',
               return_value=_response(200, {'name': '.../shops/generated'})):
        assert firestore.add('shops', {'status': 'pending'}) == 'generated'


def test_http_errors_raise_backend_error(firestore):
    error = {'error': {'message': 'Missing or insufficient permissions.'}}
    with patch('shopadmin.backend.firestore.requests.request', return_value=_response(403, error)):
        with pytest.raises(BackendError) as exc_info:
            firestore.list('shops')

    assert exc_info.value.status_code == 403
    assert 'insufficient permissions' in str(exc_info.value)


def test_transport_errors_raise_backend_error(firestore):
    with patch('shopadmin.backend.firestore.requests.request',
               side_effect=requests.ConnectionError('refused')):
        with pytest.raises(BackendError):
            firestore.get('shops', 'a')


# ---------------------------------------------------------------------------
# Identity client
# ---------------------------------------------------------------------------

SIGN_IN_OK = {
    'localId': 'u1',
    'email': 'owner@example.com',
    'idToken': 'tok',
    'refreshToken': 'refresh',
}


def test_sign_in_persists_user_and_notifies():
    persistence = {}
    identity = IdentityClient('key', persistence=persistence)
    seen = []
    identity.on_auth_state_changed(seen.append)

    with patch('shopadmin.backend.identity.requests.post', return_value=_response(200, SIGN_IN_OK)) as post:
        user = identity.sign_in('owner@example.com', 'pw')

    assert post.call_args[0][0].endswith('accounts:signInWithPassword')
    assert post.call_args[1]['params'] == {'key': 'key'}
    assert user['uid'] == 'u1'
    assert persistence['authUser']['idToken'] == 'tok'
    assert identity.id_token == 'tok'
    assert seen == [None, user]


def test_new_client_restores_user_from_persistence():
    stored = {'uid': 'u1', 'email': 'owner@example.com', 'idToken': 'tok'}
    persistence = {'authUser': stored}
    identity = IdentityClient('key', persistence=persistence)

    seen = []
    unsubscribe = identity.on_auth_state_changed(seen.append)
    unsubscribe()
    identity.sign_out()

    assert seen == [stored]
    assert identity.current_user is None
    assert 'authUser' not in persistence


def test_sign_in_error_codes_raise_auth_error():
    error = {'error': {'message': 'INVALID_LOGIN_CREDENTIALS'}}
    identity = IdentityClient('key')
    with patch('shopadmin.backend.identity.requests.post', return_value=_response(400, error)):
        with pytest.raises(AuthError) as exc_info:
            identity.sign_in('owner@example.com', 'bad')

    assert exc_info.value.code == 'INVALID_LOGIN_CREDENTIALS'
    assert str(exc_info.value) == 'Invalid email or password'
    assert identity.current_user is None


def test_sign_up_error_with_detail_is_parsed():
    error = {'error': {'message': 'WEAK_PASSWORD : Password should be at least 6 characters'}}
    identity = IdentityClient('key')
    with patch('shopadmin.backend.identity.requests.post', return_value=_response(400, error)):
        with pytest.raises(AuthError) as exc_info:
            identity.sign_up('new@example.com', 'x')

    assert exc_info.value.code == 'WEAK_PASSWORD'


def test_identity_transport_error_is_backend_error():
    identity = IdentityClient('key')
    with patch('shopadmin.backend.identity.requests.post', side_effect=requests.Timeout('slow')):
        with pytest.raises(BackendError):
            identity.sign_in('owner@example.com', 'pw')


def test_secondary_context_is_isolated():
    primary_store = {'authUser': {'uid': 'admin', 'email': 'owner@example.com', 'idToken': 'a'}}
    primary = IdentityClient('key', persistence=primary_store)
    seen = []
    primary.on_auth_state_changed(seen.append)
    secondary = IdentityClient('key', persistence={}, name='admin-secondary-app')
    created = dict(SIGN_IN_OK, localId='shop-uid', email='shop@example.com')

    with patch('shopadmin.backend.identity.requests.post', return_value=_response(200, created)):
        secondary.sign_up('shop@example.com', 'ShopPass1')
    assert secondary.current_user['uid'] == 'shop-uid'
    secondary.sign_out()

    assert primary.current_user['uid'] == 'admin'
    assert len(seen) == 1
    assert secondary.current_user is None


def test_sign_in_records_token_expiry():
    identity = IdentityClient('key')
    with patch('shopadmin.backend.identity.requests.post',
               return_value=_response(200, dict(SIGN_IN_OK, expiresIn='3600'))):
        user = identity.sign_in('owner@example.com', 'pw')

    assert user['expiresAt'] > time.time() + 3000


def test_fresh_token_is_used_as_is():
    user = dict(SIGN_IN_OK, uid='u1', expiresAt=time.time() + 3600)
    identity = IdentityClient('key', persistence={'authUser': user})

    with patch('shopadmin.backend.identity.requests.post') as post:
        assert identity.id_token == 'tok'

    post.assert_not_called()


def test_expired_token_is_refreshed_without_notifying():
    persistence = {'authUser': {'uid': 'u1', 'email': 'owner@example.com', 'idToken': 'old',
                                'refreshToken': 'refresh', 'expiresAt': time.time() - 10}}
    identity = IdentityClient('key', persistence=persistence, token_url='http://localhost:9099/v1')
    seen = []
    identity.on_auth_state_changed(seen.append)
    token_reply = {'id_token': 'new', 'refresh_token': 'refresh-2', 'expires_in': '3600', 'user_id': 'u1'}

    with patch('shopadmin.backend.identity.requests.post', return_value=_response(200, token_reply)) as post:
        assert identity.id_token == 'new'

    assert post.call_args[0][0] == 'http://localhost:9099/v1/token'
    assert post.call_args[1]['data'] == {'grant_type': 'refresh_token', 'refresh_token': 'refresh'}
    assert persistence['authUser']['refreshToken'] == 'refresh-2'
    assert persistence['authUser']['expiresAt'] > time.time() + 3000
    assert len(seen) == 1


def test_firestore_requests_carry_refreshed_token():
    persistence = {'authUser': {'uid': 'u1', 'email': 'owner@example.com', 'idToken': 'old',
                                'refreshToken': 'refresh', 'expiresAt': time.time() - 10}}
    identity = IdentityClient('key', persistence=persistence)
    documents = FirestoreClient('demo-project', token_provider=lambda: identity.id_token)
    token_reply = {'id_token': 'new', 'refresh_token': 'refresh', 'expires_in': '3600'}

    with patch('shopadmin.backend.identity.requests.post', return_value=_response(200, token_reply)), \
            patch('shopadmin.backend.firestore.requests.request', return_value=_response(404, {})) as req:
        documents.get('admins', 'u1')

    assert req.call_args[1]['headers']['Authorization'] == 'Bearer new'


def test_rejected_refresh_token_raises_auth_error():
    persistence = {'authUser': {'uid': 'u1', 'email': 'owner@example.com', 'idToken': 'old',
                                'refreshToken': 'revoked', 'expiresAt': time.time() - 10}}
    identity = IdentityClient('key', persistence=persistence)
    error = {'error': {'message': 'TOKEN_EXPIRED'}}

    with patch('shopadmin.backend.identity.requests.post', return_value=_response(400, error)):
        with pytest.raises(AuthError) as exc_info:
            identity.refresh()

    assert exc_info.value.code == 'TOKEN_EXPIRED'
