"""
Admin Session Gate
==================

Decides whether the caller is the console's admin.

A principal is an admin when an ``admins/{uid}`` document exists for it, or
when its email matches the configured ADMIN_EMAIL (case-insensitive). The
decorated principal is cached in memory (``admin_user``) and in persistent
storage under ``adminSession``.

On start a cached record whose email equals ADMIN_EMAIL is trusted without
asking the backend again. The storage is the Flask signed-cookie session, so
the record cannot be forged without SECRET_KEY.
"""

from shopadmin.core.exceptions import InvalidAdminCredentials
from shopadmin.core.logging_service import LoggingService

STORAGE_KEY = 'adminSession'


class Principal:
    """An identity-provider user decorated with the admin flag"""

    def __init__(self, uid, email, is_admin=False, extra=None):
        self.uid = uid
        self.email = email
        self.is_admin = is_admin
        self.extra = dict(extra or {})

    def to_dict(self):
        data = dict(self.extra)
        data.update({'uid': self.uid, 'email': self.email, 'isAdmin': self.is_admin})
        return data

    @classmethod
    def from_dict(cls, data):
        extra = {k: v for k, v in data.items() if k not in ('uid', 'email', 'isAdmin')}
        return cls(data.get('uid'), data.get('email'), bool(data.get('isAdmin')), extra=extra)

    def __eq__(self, other):
        return isinstance(other, Principal) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Principal(uid={self.uid!r}, email={self.email!r}, is_admin={self.is_admin})"


class AdminSession:
    """Admin session state for one console view (one Flask request)"""

    def __init__(self, identity, documents, storage, admin_email='', admins_collection='admins'):
        self.identity = identity
        self.documents = documents
        self.storage = storage
        self.admin_email = admin_email or ''
        self.admins_collection = admins_collection

        self.admin_user = None
        self.error = ''
        self.loading = True
        self._unsubscribe = None

    @property
    def is_admin(self):
        return bool(self.admin_user and self.admin_user.is_admin)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _matches_admin_email(self, email):
        return bool(self.admin_email and email and email.lower() == self.admin_email.lower())

    def _classify(self, user):
        """Admin Principal for a provider user, or None. Backend errors propagate."""
        admin_doc = self.documents.get(self.admins_collection, user['uid'])
        if admin_doc is not None:
            extra = {k: v for k, v in admin_doc.items() if k not in ('uid', 'email', 'isAdmin')}
            return Principal(user['uid'], user.get('email'), is_admin=True, extra=extra)

        if self._matches_admin_email(user.get('email')):
            return Principal(user['uid'], user.get('email'), is_admin=True)

        return None

    def _remember(self, principal):
        self.admin_user = principal
        self.storage[STORAGE_KEY] = principal.to_dict()

    def _forget(self):
        self.admin_user = None
        self.storage.pop(STORAGE_KEY, None)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(self, email, password):
        """
        Sign in and require the result to be an admin.

        Raises:
            AuthError: the provider rejected the credentials
            BackendError: the admins lookup failed (session left unset)
            InvalidAdminCredentials: signed in fine but not an admin; the
                provider session is signed out before this is raised
        """
        user = self.identity.sign_in(email, password)

        # A subscribed listener has already classified this user inside sign_in
        principal = self.admin_user if self.admin_user and self.admin_user.uid == user['uid'] else None
        if principal is None:
            principal = self._classify(user)
        if principal is None:
            self._forget()
            self.identity.sign_out()
            LoggingService.log_security_event('Non-admin sign-in rejected', {'email': email})
            raise InvalidAdminCredentials()

        self._remember(principal)
        LoggingService.log_user_action('auth', 'admin login', user_id=principal.uid)
        return principal

    def logout(self):
        email = self.admin_user.email if self.admin_user else None
        self._forget()
        self.identity.sign_out()
        LoggingService.log_user_action('auth', 'admin logout', details={'email': email})

    def start(self):
        """Restore the session: trust a matching cached record, else follow the provider"""
        cached = self.storage.get(STORAGE_KEY)
        if cached is not None:
            if isinstance(cached, dict) and self.admin_email and cached.get('email') == self.admin_email:
                self.admin_user = Principal.from_dict(cached)
                self.loading = False
                return self
            if not isinstance(cached, dict):
                self.storage.pop(STORAGE_KEY, None)

        self._unsubscribe = self.identity.on_auth_state_changed(self._on_auth_state_changed)
        return self

    def _on_auth_state_changed(self, user):
        try:
            if not user:
                self._forget()
                return
            try:
                principal = self._classify(user)
            except Exception as e:
                LoggingService.error('auth', f"Error checking admin status: {e}")
                self.error = 'Failed to verify admin credentials'
                self._forget()
                return
            if principal is None:
                self._forget()
            else:
                self._remember(principal)
        finally:
            self.loading = False

    def close(self):
        """Tear down the provider subscription"""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
