"""Token storage: where the current user's security token comes from."""

from typing import Protocol, runtime_checkable

from metatrigger.auth.types import AuthToken, UserContext
from metatrigger.http.requests import RequestStack


@runtime_checkable
class TokenStorageInterface(Protocol):
    """Anything that can hand out the current security token."""

    def get_token(self) -> AuthToken | None: ...


class TokenStorage:
    """Holds the security token set by the authentication layer."""

    def __init__(self, token: AuthToken | None = None):
        self._token = token

    def get_token(self) -> AuthToken | None:
        return self._token

    def set_token(self, token: AuthToken | None) -> None:
        self._token = token


class RequestTokenStorage:
    """Reads the token from the current request.

    Authentication middleware stores the user on
    ``request.state.user_context``; requests without one are anonymous.
    """

    def __init__(self, request_stack: RequestStack):
        self._request_stack = request_stack

    def get_token(self) -> AuthToken | None:
        request = self._request_stack.get_current_request()
        if request is None:
            return None
        user_context: UserContext | None = getattr(request.state, "user_context", None)
        return AuthToken(user=user_context)


class UserStorage:
    """Accessor for the permissions and roles of the current user."""

    def __init__(self, token_storage: TokenStorageInterface):
        self._token_storage = token_storage

    def get_user(self) -> UserContext | None:
        token = self._token_storage.get_token()
        if token is None or token.is_anonymous:
            return None
        return token.user

    def get_user_permissions(self) -> list[str]:
        user = self.get_user()
        return list(user.permissions) if user else []

    def get_user_roles(self) -> list[str]:
        user = self.get_user()
        return list(user.roles) if user else []
