"""
Shops Module
============

Shop account lifecycle (pending, approved, rejected, frozen) and the
repository the admin views use to list, provision and moderate shops.
"""

from .models import ShopStatus, ShopAction, next_status
from .password_policy import validate_password
from .repository import ShopRepository

__all__ = [
    'ShopStatus', 'ShopAction', 'next_status',
    'validate_password',
    'ShopRepository',
]
