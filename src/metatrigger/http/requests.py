"""Request stack: tracks the request currently being handled."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestStack:
    """Stack of requests in flight.

    The first request pushed is the main request; sub-requests forwarded
    while it is handled are pushed on top of it.
    """

    def __init__(self) -> None:
        self._requests: list[Request] = []

    def push(self, request: Request) -> None:
        self._requests.append(request)

    def pop(self) -> Request | None:
        """Remove and return the current request, None if the stack is empty."""
        if not self._requests:
            return None
        return self._requests.pop()

    def get_current_request(self) -> Request | None:
        return self._requests[-1] if self._requests else None

    def get_main_request(self) -> Request | None:
        return self._requests[0] if self._requests else None

    def __len__(self) -> int:
        return len(self._requests)


class RequestStackMiddleware(BaseHTTPMiddleware):
    """Middleware that keeps a RequestStack in sync with the app's requests."""

    def __init__(self, app, request_stack: RequestStack):
        """Initialize middleware with the stack to maintain.

        Args:
            app: The ASGI application
            request_stack: Stack shared with the trigger listeners
        """
        super().__init__(app)
        self._request_stack = request_stack

    async def dispatch(self, request: Request, call_next) -> Response:
        self._request_stack.push(request)
        try:
            return await call_next(request)
        finally:
            self._request_stack.pop()
