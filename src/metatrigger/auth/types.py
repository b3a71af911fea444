"""Type definitions for authentication."""

from dataclasses import dataclass, field


@dataclass
class UserContext:
    """Identity of the user behind the current request.

    Attributes:
        user_id: The authenticated user's ID
        tenant_id: The active tenant ID, if any
        roles: Role names held by the user (e.g. "ROLE_SUPER_ADMIN")
        permissions: Permission tokens granted to the user (e.g. "CREATE")
    """

    user_id: str | None = None
    tenant_id: str | None = None
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


@dataclass
class AuthToken:
    """Security token held by a token storage.

    A token without a user is anonymous.
    """

    user: UserContext | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None
