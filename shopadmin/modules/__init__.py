"""
ShopAdmin Modules
=================

Feature modules of the admin console.
"""

__all__ = ['admin_session', 'dashboard', 'shops']
