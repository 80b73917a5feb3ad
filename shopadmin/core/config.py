import os
from dotenv import load_dotenv

load_dotenv(override=True)


class Config:
    """
    Base configuration for ShopAdmin.
    Projects can override any of these through Flask app.config or the environment.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY') or os.getenv('SECRET_KEY')
    BRAND_NAME = os.getenv('BRAND_NAME', 'Shop Admin')

    # The single admin address used as the fallback authorization rule
    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', '')

    # Firebase project
    FIREBASE_API_KEY = os.getenv('FIREBASE_API_KEY', '')
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID', '')

    # Point these at the Firebase emulator suite for local development
    IDENTITY_BASE_URL = os.getenv('IDENTITY_BASE_URL', 'https://identitytoolkit.googleapis.com/v1')
    FIRESTORE_BASE_URL = os.getenv('FIRESTORE_BASE_URL', 'https://firestore.googleapis.com/v1')
    SECURE_TOKEN_BASE_URL = os.getenv('SECURE_TOKEN_BASE_URL', 'https://securetoken.googleapis.com/v1')

    REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '15'))

    # Name of the isolated auth context used to provision shop accounts
    SECONDARY_APP_NAME = os.getenv('SECONDARY_APP_NAME', 'admin-secondary-app')

    # Local log storage
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))
    LOG_DB = os.getenv('LOG_DB', os.path.join(DB_DIR, 'shopadmin_logs.db'))

    # Comma separated list of origins allowed to call /admin/api/*
    SHOPADMIN_CORS_ORIGINS = os.getenv('SHOPADMIN_CORS_ORIGINS', '')

    SHOPADMIN_DEBUG_TOOLS = os.getenv('SHOPADMIN_DEBUG_TOOLS', '0') == '1'

    # Collection names
    SHOPS_COLLECTION = 'shops'
    ADMINS_COLLECTION = 'admins'


def get_config_value(key, default=None):
    """Get configuration value: Flask app config first, then Config, then env var"""
    try:
        from flask import current_app
        val = current_app.config.get(key)
        if val is not None and val != '':
            return val
    except RuntimeError:
        pass
    val = getattr(Config, key, None)
    if val is not None and val != '':
        return val
    return os.getenv(key, default)
