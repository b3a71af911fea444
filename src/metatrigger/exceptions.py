"""Exception types raised by MetaTrigger."""


class MappingError(Exception):
    """A mapping definition could not be applied to entity metadata."""


class MappingLoadError(ValueError):
    """A mapping file is malformed and cannot be registered."""


class MetadataApplicationError(RuntimeError):
    """Wraps a MappingError raised while loading an entity's metadata.

    Attributes:
        class_name: The entity whose metadata was being loaded
        status_code: HTTP-like status reported to the framework
    """

    def __init__(self, class_name: str, message: str, status_code: int = 404):
        super().__init__(f"Error with class {class_name} : {message}")
        self.class_name = class_name
        self.status_code = status_code


class ServiceNotFoundError(KeyError):
    """A service id is not registered in the ServiceContainer."""

    def __init__(self, service_id: str):
        super().__init__(service_id)
        self.service_id = service_id

    def __str__(self) -> str:
        return f"Service '{self.service_id}' is not registered"


class ControllerNotFoundError(LookupError):
    """A forward target does not match any route of the HTTP kernel's app."""
