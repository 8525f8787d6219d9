from app.security.auth import (
    get_password_hash, verify_password, create_access_token, decode_token,
    get_current_user, require_role, require_manager, require_staff, require_any_staff
)

__all__ = [
    'get_password_hash', 'verify_password', 'create_access_token', 'decode_token',
    'get_current_user', 'require_role', 'require_manager', 'require_staff', 'require_any_staff'
]
