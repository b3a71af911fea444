"""Authentication and permission checks for trigger listeners."""

from metatrigger.auth.types import AuthToken, UserContext
from metatrigger.auth.storage import (
    RequestTokenStorage,
    TokenStorage,
    TokenStorageInterface,
    UserStorage,
)
from metatrigger.auth.permissions import (
    PERMISSION_CREATE,
    PERMISSION_DELETE,
    PERMISSION_EDIT,
    ROLE_SUPER_ADMIN,
    has_permission,
)

__all__ = [
    "AuthToken",
    "UserContext",
    "RequestTokenStorage",
    "TokenStorage",
    "TokenStorageInterface",
    "UserStorage",
    "PERMISSION_CREATE",
    "PERMISSION_DELETE",
    "PERMISSION_EDIT",
    "ROLE_SUPER_ADMIN",
    "has_permission",
]
