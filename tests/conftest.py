"""
Shared fixtures and in-memory fakes of the identity provider and document store.
"""

import itertools
import os
import shutil
import tempfile

import pytest
from flask import Flask

from shopadmin import ShopAdmin
from shopadmin.core.exceptions import AuthError, BackendError

ADMIN_EMAIL = 'owner@example.com'
ADMIN_PASSWORD = 'OwnerPass1'


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeAuthBackend:
    """Accounts shared by every FakeIdentity context, keyed by email"""

    def __init__(self):
        self.accounts = {}
        self._ids = itertools.count(1)

    def add_account(self, email, password, uid=None):
        uid = uid or f"uid-{next(self._ids)}"
        self.accounts[email] = {'uid': uid, 'password': password}
        return uid


class FakeIdentity:
    """Behaves like IdentityClient without the network"""

    def __init__(self, backend, persistence, name='[DEFAULT]'):
        self.backend = backend
        self.persistence = persistence
        self.name = name
        self.listeners = []
        self.sign_out_calls = 0
        self.fail_sign_out = False

    @property
    def current_user(self):
        return self.persistence.get('authUser')

    @property
    def id_token(self):
        user = self.current_user
        return user.get('idToken') if user else None

    def on_auth_state_changed(self, callback):
        self.listeners.append(callback)
        callback(self.current_user)

        def unsubscribe():
            if callback in self.listeners:
                self.listeners.remove(callback)
        return unsubscribe

    def _set_user(self, user):
        if user:
            self.persistence['authUser'] = user
        else:
            self.persistence.pop('authUser', None)
        for listener in list(self.listeners):
            listener(user)

    def sign_in(self, email, password):
        account = self.backend.accounts.get(email)
        if not account or account['password'] != password:
            raise AuthError('Invalid email or password', code='INVALID_LOGIN_CREDENTIALS')
        user = {'uid': account['uid'], 'email': email, 'idToken': f"token-{account['uid']}"}
        self._set_user(user)
        return user

    def sign_up(self, email, password):
        if email in self.backend.accounts:
            raise AuthError('An account with this email already exists', code='EMAIL_EXISTS')
        uid = self.backend.add_account(email, password)
        user = {'uid': uid, 'email': email, 'idToken': f"token-{uid}"}
        self._set_user(user)
        return user

    def sign_out(self):
        self.sign_out_calls += 1
        if self.fail_sign_out:
            raise BackendError('sign out failed')
        self._set_user(None)


class FakeDocumentStore:
    """In-memory stand-in for FirestoreClient"""

    def __init__(self):
        self.collections = {}
        self.writes = []
        self.fail = False
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail:
            raise BackendError('simulated backend outage')

    def _col(self, collection):
        return self.collections.setdefault(collection, {})

    def seed(self, collection, doc_id, data):
        self._col(collection)[doc_id] = dict(data)

    def get(self, collection, doc_id):
        self._check()
        doc = self._col(collection).get(doc_id)
        return dict(doc) if doc is not None else None

    def list(self, collection):
        self._check()
        return [(doc_id, dict(data)) for doc_id, data in self._col(collection).items()]

    def query(self, collection, field, value):
        self._check()
        return [(doc_id, dict(data)) for doc_id, data in self._col(collection).items()
                if data.get(field) == value]

    def count(self, collection, field=None, value=None):
        self._check()
        if field is None:
            return len(self._col(collection))
        return len(self.query(collection, field, value))

    def update(self, collection, doc_id, fields):
        self._check()
        if doc_id not in self._col(collection):
            raise BackendError(f'No document to update: {doc_id}', status_code=404)
        self.writes.append(('update', collection, doc_id, dict(fields)))
        self._col(collection)[doc_id].update(fields)

    def set(self, collection, doc_id, fields):
        self._check()
        self.writes.append(('set', collection, doc_id, dict(fields)))
        self._col(collection)[doc_id] = dict(fields)

    def add(self, collection, fields):
        self._check()
        doc_id = f"doc-{next(self._ids)}"
        self.writes.append(('add', collection, doc_id, dict(fields)))
        self._col(collection)[doc_id] = dict(fields)
        return doc_id


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for the log database, cleaned up after."""
    d = tempfile.mkdtemp(prefix="shopadmin-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_log_db(tmp_db_dir, monkeypatch):
    """Keep log writes made outside an app context inside the temp dir"""
    from shopadmin.core.config import Config
    monkeypatch.setattr(Config, 'LOG_DB', os.path.join(tmp_db_dir, 'logs.db'))


@pytest.fixture
def auth_backend():
    backend = FakeAuthBackend()
    backend.add_account(ADMIN_EMAIL, ADMIN_PASSWORD, uid='admin-uid')
    return backend


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def identity(auth_backend):
    """A primary identity context over a plain dict"""
    return FakeIdentity(auth_backend, {})


@pytest.fixture
def app(tmp_db_dir, auth_backend, store):
    """Flask app with ShopAdmin wired to the in-memory fakes"""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["ADMIN_EMAIL"] = ADMIN_EMAIL
    app.config["DB_DIR"] = tmp_db_dir
    app.config["LOG_DB"] = os.path.join(tmp_db_dir, "logs.db")
    app.config["SHOPADMIN_DEBUG_TOOLS"] = True

    ShopAdmin(
        app,
        identity_factory=lambda persistence, name='[DEFAULT]': FakeIdentity(auth_backend, persistence, name),
        documents_factory=lambda identity: store,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """Test client already signed in as the configured admin"""
    response = client.post('/admin/login', data={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert response.status_code == 302
    return client
