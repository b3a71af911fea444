"""Service container: named services shared by trigger listeners."""

from typing import Any

from metatrigger.exceptions import ServiceNotFoundError

# Well-known service ids
ENTITIES_CONTAINER = "metatrigger.entities_container"
TOKEN_STORAGE = "security.token_storage"
REQUEST_STACK = "request_stack"
HTTP_KERNEL = "http_kernel"


class ServiceContainer:
    """Registry of services by id.

    Services are registered at application startup and looked up
    by the listeners when they need them.
    """

    def __init__(self, services: dict[str, Any] | None = None):
        self._services: dict[str, Any] = dict(services or {})

    def set(self, service_id: str, service: Any) -> None:
        self._services[service_id] = service

    def get(self, service_id: str) -> Any:
        """Get a service by id.

        Raises:
            ServiceNotFoundError: If no service is registered under the id
        """
        if service_id not in self._services:
            raise ServiceNotFoundError(service_id)
        return self._services[service_id]

    def has(self, service_id: str) -> bool:
        return service_id in self._services

    def list_services(self) -> list[str]:
        return sorted(self._services)
