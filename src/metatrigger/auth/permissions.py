"""Permission tokens and role checks for trigger operations."""

from metatrigger.auth.storage import UserStorage

PERMISSION_CREATE = "CREATE"
PERMISSION_EDIT = "EDIT"
PERMISSION_DELETE = "DELETE"

# Holders of this role pass every permission check
ROLE_SUPER_ADMIN = "ROLE_SUPER_ADMIN"


def has_permission(user_storage: UserStorage, permission: str) -> bool:
    """Check if the current user holds a permission token or is super admin.

    Args:
        user_storage: Accessor for the current user's permissions and roles
        permission: The exact permission token required

    Returns:
        True if the token is granted or the user has ROLE_SUPER_ADMIN
    """
    return (
        permission in user_storage.get_user_permissions()
        or ROLE_SUPER_ADMIN in user_storage.get_user_roles()
    )
