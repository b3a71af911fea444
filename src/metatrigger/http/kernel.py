"""HTTP kernel: dispatches sub-requests through an ASGI application in-process."""

import json
from typing import Any
from urllib.parse import urlencode

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import NoMatchFound
from starlette.types import Message

from metatrigger.exceptions import ControllerNotFoundError

# Scope keys filled in by routing; a duplicated request is routed again
_ROUTING_KEYS = {"app", "router", "route", "endpoint", "path_params"}


def _receive_body(body: bytes):
    sent = False

    async def receive() -> Message:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return receive


class HttpKernel:
    """Handles requests by running them through an ASGI app.

    Controllers are addressed by route name, the ``name`` given to a
    FastAPI/Starlette route (a FastAPI endpoint defaults to its function name).
    """

    MAIN_REQUEST = 1
    SUB_REQUEST = 2

    def __init__(self, app: Starlette):
        self.app = app

    def create_sub_request(
        self,
        request: Request,
        controller: str,
        path: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Request:
        """Duplicate a request, retargeted at another controller.

        Args:
            request: The request to copy headers, session and state from
            controller: Route name of the target controller
            path: Path parameters of the target route
            query: Query parameters of the sub-request
            body: Request body; bytes and str are sent as-is, anything else as
                JSON. A body turns the sub-request into a POST.

        Raises:
            ControllerNotFoundError: If no route matches the controller and
                path parameters
        """
        try:
            url_path = self.app.url_path_for(controller, **(path or {}))
        except NoMatchFound as e:
            raise ControllerNotFoundError(
                f"No route named '{controller}' accepts path parameters {sorted(path or {})}"
            ) from e

        scope = {
            key: value
            for key, value in request.scope.items()
            if key not in _ROUTING_KEYS and not key.startswith("fastapi_")
        }
        scope["path"] = str(url_path)
        scope["raw_path"] = str(url_path).encode()
        scope["query_string"] = urlencode(query or {}, doseq=True).encode()
        scope["metatrigger.controller"] = controller

        headers = [
            (name, value)
            for name, value in request.scope.get("headers", [])
            if name not in (b"content-length", b"content-type")
        ]

        payload = b""
        if body is None:
            scope["method"] = "GET"
        else:
            scope["method"] = "POST"
            if isinstance(body, bytes):
                payload = body
            elif isinstance(body, str):
                payload = body.encode()
                headers.append((b"content-type", b"text/plain; charset=utf-8"))
            else:
                payload = json.dumps(body).encode()
                headers.append((b"content-type", b"application/json"))
            headers.append((b"content-length", str(len(payload)).encode()))
        scope["headers"] = headers

        return Request(scope, receive=_receive_body(payload))

    async def handle(self, request: Request, request_type: int = SUB_REQUEST) -> Response:
        """Run a request through the app and collect its response."""
        status_code = 500
        raw_headers: list[tuple[bytes, bytes]] = []
        chunks: list[bytes] = []

        async def send(message: Message) -> None:
            nonlocal status_code, raw_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))

        scope = request.scope
        scope["metatrigger.request_type"] = request_type
        await self.app(scope, request.receive, send)

        response = Response(content=b"".join(chunks), status_code=status_code)
        response.raw_headers = raw_headers
        return response
