"""
Exceptions raised by the ShopAdmin backends and services.
Views catch these and turn them into flash messages or JSON errors.
"""


class ShopAdminError(Exception):
    """Base class for all ShopAdmin errors"""

    def __init__(self, message=None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class AuthError(ShopAdminError):
    """Authentication failed"""

    def __init__(self, message=None, code=None):
        self.code = code
        super().__init__(message or code)


class InvalidAdminCredentials(AuthError):
    """Invalid admin credentials"""

    def __init__(self, message='Invalid admin credentials'):
        super().__init__(message, code='INVALID_ADMIN')


class BackendError(ShopAdminError):
    """The remote backend could not complete the request"""

    def __init__(self, message=None, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ShopAdminError):
    """Invalid input"""


class PasswordPolicyError(ValidationError):
    """Password does not meet requirements"""


class AccountExistsError(ValidationError):
    """An account with this email already exists"""
