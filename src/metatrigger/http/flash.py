"""Flash messages stored in the session until they are displayed."""

from collections.abc import MutableMapping
from typing import Any

from starlette.requests import Request


class FlashBag:
    """Per-type queues of one-time messages kept in a session.

    Requires the session to be available on the request (Starlette's
    SessionMiddleware).
    """

    SESSION_KEY = "_flashes"

    def __init__(self, session: MutableMapping[str, Any]):
        self._session = session

    @classmethod
    def from_request(cls, request: Request) -> "FlashBag":
        return cls(request.session)

    def _flashes(self) -> dict[str, list[str]]:
        return self._session.get(self.SESSION_KEY, {})

    def add(self, type: str, message: str) -> None:
        """Queue a message under the given type."""
        flashes = self._flashes()
        flashes.setdefault(type, []).append(message)
        # Reassign so the session sees the change
        self._session[self.SESSION_KEY] = flashes

    def has(self, type: str) -> bool:
        return bool(self._flashes().get(type))

    def peek(self, type: str) -> list[str]:
        """Return the messages of a type without consuming them."""
        return list(self._flashes().get(type, []))

    def get(self, type: str) -> list[str]:
        """Return and consume the messages of a type."""
        flashes = self._flashes()
        messages = flashes.pop(type, [])
        self._session[self.SESSION_KEY] = flashes
        return messages

    def all(self) -> dict[str, list[str]]:
        """Return and consume every queued message."""
        return self._session.pop(self.SESSION_KEY, {})
