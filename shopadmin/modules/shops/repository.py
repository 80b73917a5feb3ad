"""
Shop Account Repository
=======================

Reads and writes the ``shops`` collection.

Two error policies live side by side here:
- listings (list_pending, list_all, stats) never raise; failures are logged
  and an empty result is returned so dashboards still render
- mutations (create, approve, reject, toggle_freeze) log and re-raise
"""

import random

from shopadmin.core.config import get_config_value
from shopadmin.core.exceptions import AccountExistsError, PasswordPolicyError, ValidationError
from shopadmin.core.logging_service import LoggingService
from .models import (
    ShopAction, ShopStatus, TIMESTAMP_FIELDS, now_iso, target_status,
    shop_from_document, sort_newest_first,
)
from .password_policy import validate_password


class ShopRepository:

    def __init__(self, documents, secondary_identity_factory=None, admin_session=None,
                 collection=None, admin_email=None):
        """
        Args:
            documents: document store client (FirestoreClient or compatible)
            secondary_identity_factory: callable returning a fresh, isolated
                identity context used to provision new shop credentials
            admin_session: the AdminSession of the current request, used to
                stamp provenance on created accounts
        """
        self.documents = documents
        self.secondary_identity_factory = secondary_identity_factory
        self.admin_session = admin_session
        self.collection = collection or get_config_value('SHOPS_COLLECTION', 'shops')
        self.admin_email = admin_email if admin_email is not None else get_config_value('ADMIN_EMAIL', '')

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_pending(self):
        """Pending registrations, newest first. Returns [] on any failure."""
        try:
            rows = self.documents.query(self.collection, 'status', ShopStatus.PENDING.value)
            return sort_newest_first([shop_from_document(doc_id, data) for doc_id, data in rows])
        except Exception as e:
            LoggingService.error('shops', f"Error fetching pending users: {e}")
            return []

    def list_all(self):
        """Every shop account, newest first. Returns [] on any failure."""
        try:
            rows = self.documents.list(self.collection)
            return sort_newest_first([shop_from_document(doc_id, data) for doc_id, data in rows])
        except Exception as e:
            LoggingService.error('shops', f"Error fetching all users: {e}")
            return []

    def stats(self):
        """Dashboard counts. Zeros on failure."""
        stats = {'total': 0, 'pending': 0, 'approved': 0, 'frozen': 0}
        try:
            stats['total'] = self.documents.count(self.collection)
            for status in (ShopStatus.PENDING, ShopStatus.APPROVED, ShopStatus.FROZEN):
                stats[status.value] = self.documents.count(self.collection, 'status', status.value)
        except Exception as e:
            LoggingService.error('dashboard', f"Error fetching dashboard data: {e}")
        return stats

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _apply(self, shop_id, action):
        status = target_status(action)
        fields = {
            'status': status.value,
            TIMESTAMP_FIELDS[action]: now_iso(),
        }
        try:
            self.documents.update(self.collection, shop_id, fields)
        except Exception as e:
            LoggingService.log_error_with_traceback('shops', e, {'shop_id': shop_id, 'action': action.value})
            raise
        LoggingService.log_user_action('shops', f"{action.value} shop {shop_id}", user_id=self._admin_uid())
        return True

    def approve(self, shop_id):
        return self._apply(shop_id, ShopAction.APPROVE)

    def reject(self, shop_id):
        return self._apply(shop_id, ShopAction.REJECT)

    def toggle_freeze(self, shop_id, freeze):
        return self._apply(shop_id, ShopAction.FREEZE if freeze else ShopAction.UNFREEZE)

    def _email_taken(self, email):
        for field in ('userEmail', 'email'):
            if self.documents.query(self.collection, field, email):
                return True
        return False

    def create(self, shop_name, email, password, phone_number='', address='', status='approved'):
        """
        Provision a shop account directly from the admin console.

        The credential is created on an isolated identity context so the
        admin's own session is untouched; that context is always signed out
        afterwards.

        Returns:
            dict with {success, userId}
        """
        if not shop_name or not email or not password:
            raise ValidationError('Shop name, email, and password are required')

        is_valid, message = validate_password(password)
        if not is_valid:
            raise PasswordPolicyError(message)

        if self._email_taken(email):
            raise AccountExistsError('An account with this email already exists')

        normalized = ShopStatus.normalize(status)
        secondary = self.secondary_identity_factory()
        timestamp = now_iso()

        try:
            user = secondary.sign_up(email, password)
            self.documents.set(self.collection, user['uid'], {
                'shopName': shop_name,
                'userEmail': email,
                'phoneNumber': phone_number or '',
                'address': address or '',
                'status': normalized.value,
                'accountStatus': normalized.account_status,
                'createdAt': timestamp,
                'approvedAt': timestamp if normalized is ShopStatus.APPROVED else None,
                'createdViaAdmin': True,
                'createdByAdminId': self._admin_uid(),
                'createdByAdminEmail': self._admin_email(),
            })
        except Exception as e:
            LoggingService.log_error_with_traceback('shops', e, {'email': email})
            raise
        finally:
            try:
                secondary.sign_out()
            except Exception:
                pass

        LoggingService.log_user_action('shops', f"created shop account {email}", user_id=self._admin_uid())
        return {'success': True, 'userId': user['uid']}

    def add_test_registration(self):
        """Debug helper: add a random pending registration"""
        number = random.randint(0, 999)
        return self.documents.add(self.collection, {
            'shopName': f'Test Shop {number}',
            'email': f'testshop{number}@example.com',
            'address': '123 Test Street',
            'phoneNumber': '123-456-7890',
            'status': ShopStatus.PENDING.value,
            'createdAt': now_iso(),
        })

    # ------------------------------------------------------------------

    def _admin_uid(self):
        admin = self.admin_session.admin_user if self.admin_session else None
        return admin.uid if admin else None

    def _admin_email(self):
        admin = self.admin_session.admin_user if self.admin_session else None
        if admin and admin.email:
            return admin.email
        return self.admin_email or None
