"""
Dashboard Module
================

Admin console interface for ShopAdmin.

Provides:
- Admin authentication (login/logout)
- Dashboard with shop counts
- Pending registration review (approve / reject)
- Shop account management (freeze / unfreeze / create)
- JSON endpoints for status, stats and shop listings
"""

from flask import Blueprint

# Blueprint name is 'admin' so url_for('admin.login') reads naturally
dashboard_bp = Blueprint(
    'admin',
    __name__,
    url_prefix='/admin',
    template_folder='templates',
)

# Import routes after blueprint is created
from . import routes

__all__ = ['dashboard_bp']
