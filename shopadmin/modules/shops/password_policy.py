MIN_LENGTH = 8


def validate_password(password):
    """
    Check a new shop password against the policy.

    Returns:
        (is_valid, message) tuple; message is empty when valid
    """
    if not password or len(password) < MIN_LENGTH:
        return False, f'Password must be at least {MIN_LENGTH} characters long'

    if not any(c.isupper() for c in password):
        return False, 'Password must contain at least one uppercase letter'
    if not any(c.islower() for c in password):
        return False, 'Password must contain at least one lowercase letter'
    if not any(c.isdigit() for c in password):
        return False, 'Password must contain at least one number'

    return True, ''
