"""
ShopAdmin - A Flask Admin Console for Shop Accounts
===================================================

Admin console for a shop platform backed by Firebase:
- Admin sign-in restricted to the admins collection / ADMIN_EMAIL
- Review of pending shop registrations (approve / reject)
- Freezing and unfreezing shop accounts
- Direct provisioning of new shop accounts
- Dashboard counts

Usage:
    from flask import Flask
    from shopadmin import ShopAdmin

    app = Flask(__name__)
    ShopAdmin(app)
"""

import os

from flask import current_app

__version__ = '0.1.0'
__author__ = 'Laurence Stephan'


class ShopAdmin:
    """
    Flask extension wiring the console together.

    The backend clients are created through factories so a host app (or the
    test suite) can swap them:

        identity_factory(persistence) -> identity client
        documents_factory(identity)   -> document store client
    """

    def __init__(self, app=None, identity_factory=None, documents_factory=None):
        self.identity_factory = identity_factory
        self.documents_factory = documents_factory
        self.app = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        from .core.config import Config

        for key in ('ADMIN_EMAIL', 'FIREBASE_API_KEY', 'FIREBASE_PROJECT_ID', 'IDENTITY_BASE_URL',
                    'FIRESTORE_BASE_URL', 'SECURE_TOKEN_BASE_URL', 'REQUEST_TIMEOUT',
                    'SECONDARY_APP_NAME', 'DB_DIR', 'LOG_DB', 'SHOPADMIN_CORS_ORIGINS',
                    'SHOPADMIN_DEBUG_TOOLS', 'BRAND_NAME', 'SHOPS_COLLECTION', 'ADMINS_COLLECTION'):
            app.config.setdefault(key, getattr(Config, key))
        if not app.config.get('SECRET_KEY') and Config.SECRET_KEY:
            app.config['SECRET_KEY'] = Config.SECRET_KEY

        self._setup_database_dir(app)

        if self.identity_factory is None:
            self.identity_factory = self._default_identity_factory(app)
        if self.documents_factory is None:
            self.documents_factory = self._default_documents_factory(app)

        from .modules.admin_session import close_admin_session
        from .modules.dashboard import dashboard_bp

        app.register_blueprint(dashboard_bp)
        app.teardown_request(close_admin_session)
        self._setup_cors(app)

        @app.context_processor
        def inject_shopadmin():
            return dict(brand_name=app.config.get('BRAND_NAME') or 'Shop Admin')

        app.extensions['shopadmin'] = self
        self.app = app

    def _setup_database_dir(self, app):
        log_db = app.config.get('LOG_DB')
        directory = os.path.dirname(log_db) if log_db else app.config.get('DB_DIR')
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _setup_cors(self, app):
        origins = app.config.get('SHOPADMIN_CORS_ORIGINS')
        if not origins:
            return
        from flask_cors import CORS
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(',') if o.strip()]
        CORS(app, resources={r"/admin/api/*": {"origins": origins}}, supports_credentials=True)

    @staticmethod
    def _default_identity_factory(app):
        from .backend.identity import IdentityClient

        def factory(persistence, name='[DEFAULT]'):
            return IdentityClient(
                app.config['FIREBASE_API_KEY'],
                base_url=app.config['IDENTITY_BASE_URL'],
                persistence=persistence,
                name=name,
                timeout=app.config['REQUEST_TIMEOUT'],
                token_url=app.config['SECURE_TOKEN_BASE_URL'],
            )
        return factory

    @staticmethod
    def _default_documents_factory(app):
        from .backend.firestore import FirestoreClient

        def factory(identity):
            return FirestoreClient(
                app.config['FIREBASE_PROJECT_ID'],
                base_url=app.config['FIRESTORE_BASE_URL'],
                token_provider=lambda: identity.id_token,
                timeout=app.config['REQUEST_TIMEOUT'],
            )
        return factory

    # ------------------------------------------------------------------
    # Per-request objects
    # ------------------------------------------------------------------

    def build_admin_session(self, storage):
        """A fresh AdminSession over ``storage`` (the Flask session in views)"""
        from .modules.admin_session import AdminSession

        identity = self.identity_factory(storage)
        return AdminSession(
            identity,
            self.documents_factory(identity),
            storage,
            admin_email=current_app.config.get('ADMIN_EMAIL', ''),
            admins_collection=current_app.config.get('ADMINS_COLLECTION', 'admins'),
        )

    def build_secondary_identity(self):
        """An isolated identity context that never touches the admin session"""
        return self.identity_factory({}, name=current_app.config.get('SECONDARY_APP_NAME'))

    def build_shop_repository(self, admin_session):
        from .modules.shops import ShopRepository

        return ShopRepository(
            admin_session.documents,
            secondary_identity_factory=self.build_secondary_identity,
            admin_session=admin_session,
            collection=current_app.config.get('SHOPS_COLLECTION', 'shops'),
            admin_email=current_app.config.get('ADMIN_EMAIL', ''),
        )


__all__ = ['ShopAdmin', '__version__']
