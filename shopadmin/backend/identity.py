"""
Identity Provider Client
========================

Email/password authentication against Firebase Authentication through the
Identity Toolkit REST API.

Each IdentityClient is one auth context. The signed-in user is kept in the
``persistence`` mapping under ``authUser`` so a new client built on the same
mapping (e.g. the Flask session of the next request) restores it. A client
built on a fresh dict is an isolated context that never touches the primary
admin session.
"""

import logging
import time

import requests

from shopadmin.core.exceptions import AuthError, BackendError

logger = logging.getLogger(__name__)

PERSISTENCE_KEY = 'authUser'

# Refresh ID tokens this many seconds before they expire
EXPIRY_MARGIN = 60

# Identity Toolkit error codes and the message shown for them
ERROR_MESSAGES = {
    'EMAIL_NOT_FOUND': 'Invalid email or password',
    'INVALID_PASSWORD': 'Invalid email or password',
    'INVALID_LOGIN_CREDENTIALS': 'Invalid email or password',
    'USER_DISABLED': 'This account has been disabled',
    'TOO_MANY_ATTEMPTS_TRY_LATER': 'Too many login attempts. Please try again later',
    'EMAIL_EXISTS': 'An account with this email already exists',
    'INVALID_EMAIL': 'Invalid email address',
    'TOKEN_EXPIRED': 'Your session has expired. Please sign in again',
    'INVALID_REFRESH_TOKEN': 'Your session has expired. Please sign in again',
    'WEAK_PASSWORD': 'Password should be at least 6 characters',
    'OPERATION_NOT_ALLOWED': 'Email/password sign-in is disabled for this project',
}


class IdentityClient:
    """One Firebase Auth context (primary or secondary)."""

    def __init__(self, api_key, base_url='https://identitytoolkit.googleapis.com/v1',
                 persistence=None, name='[DEFAULT]', timeout=15,
                 token_url='https://securetoken.googleapis.com/v1'):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.token_url = token_url.rstrip('/')
        self.persistence = persistence if persistence is not None else {}
        self.name = name
        self.timeout = timeout
        self._listeners = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_user(self):
        """The signed-in user as a dict (uid, email, idToken, refreshToken) or None"""
        user = self.persistence.get(PERSISTENCE_KEY)
        if isinstance(user, dict) and user.get('uid'):
            return user
        return None

    @property
    def id_token(self):
        """A usable ID token for the signed-in user, refreshed when close to expiry"""
        user = self.current_user
        if not user:
            return None
        expires_at = user.get('expiresAt')
        if user.get('refreshToken') and expires_at and time.time() >= expires_at - EXPIRY_MARGIN:
            user = self.refresh()
        return user.get('idToken')

    def on_auth_state_changed(self, callback):
        """
        Register a listener for sign-in / sign-out.

        The listener is called straight away with the current user (or None),
        then again on every change. Returns a function that removes it.
        """
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user):
        if user:
            self.persistence[PERSISTENCE_KEY] = user
        else:
            self.persistence.pop(PERSISTENCE_KEY, None)
        for listener in list(self._listeners):
            listener(user)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _post(self, endpoint, payload):
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            resp = requests.post(url, params={'key': self.api_key}, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"Identity provider unreachable: {e}")

        if resp.status_code >= 400:
            code = _error_code(resp)
            if code:
                raise AuthError(ERROR_MESSAGES.get(code, code), code=code)
            raise BackendError(f"Identity provider error {resp.status_code}", status_code=resp.status_code)

        return resp.json()

    def sign_in(self, email, password):
        """Sign in with email and password. Raises AuthError when rejected."""
        data = self._post('signInWithPassword', {
            'email': email,
            'password': password,
            'returnSecureToken': True,
        })
        user = _user_from_response(data, email)
        self._set_user(user)
        logger.debug("Signed in %s on auth context %s", user['email'], self.name)
        return user

    def sign_up(self, email, password):
        """Create a new email/password account and sign it in on this context"""
        data = self._post('signUp', {
            'email': email,
            'password': password,
            'returnSecureToken': True,
        })
        user = _user_from_response(data, email)
        self._set_user(user)
        return user

    def refresh(self):
        """
        Exchange the refresh token for a new ID token.

        The user stays the same, so listeners are not notified.
        Raises AuthError when the refresh token is rejected.
        """
        user = self.current_user
        if not user or not user.get('refreshToken'):
            raise AuthError('Not signed in', code='NO_REFRESH_TOKEN')

        try:
            resp = requests.post(
                f"{self.token_url}/token",
                params={'key': self.api_key},
                data={'grant_type': 'refresh_token', 'refresh_token': user['refreshToken']},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(f"Token service unreachable: {e}")

        if resp.status_code >= 400:
            code = _error_code(resp)
            if code:
                raise AuthError(ERROR_MESSAGES.get(code, code), code=code)
            raise BackendError(f"Token service error {resp.status_code}", status_code=resp.status_code)

        data = resp.json()
        refreshed = dict(user)
        refreshed.update({
            'idToken': data.get('id_token'),
            'refreshToken': data.get('refresh_token') or user['refreshToken'],
            'expiresAt': _expires_at(data.get('expires_in')),
        })
        self.persistence[PERSISTENCE_KEY] = refreshed
        logger.debug("Refreshed ID token for %s on auth context %s", refreshed['email'], self.name)
        return refreshed

    def sign_out(self):
        """Forget the signed-in user. Firebase ID tokens are stateless, so this is local."""
        self._set_user(None)


def _error_code(resp):
    """Pull the Identity Toolkit error code out of an error response"""
    try:
        message = resp.json().get('error', {}).get('message', '')
    except ValueError:
        return None
    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    return message.split(' ', 1)[0].strip() or None


def _user_from_response(data, email):
    return {
        'uid': data.get('localId'),
        'email': data.get('email') or email,
        'idToken': data.get('idToken'),
        'refreshToken': data.get('refreshToken'),
        'expiresAt': _expires_at(data.get('expiresIn')),
    }


def _expires_at(expires_in):
    """Absolute expiry in epoch seconds from a relative expiresIn value"""
    try:
        return time.time() + int(expires_in)
    except (TypeError, ValueError):
        return None
