def staff_authentication_rule(user):
    """SIMPLE_JWT USER_AUTHENTICATION_RULE: only active staff may obtain tokens."""
    return user is not None and user.is_active and user.is_staff
