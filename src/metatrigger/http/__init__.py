"""Framework services used by trigger listeners inside the request cycle."""

from metatrigger.http.flash import FlashBag
from metatrigger.http.kernel import HttpKernel
from metatrigger.http.requests import RequestStack, RequestStackMiddleware

__all__ = ["FlashBag", "HttpKernel", "RequestStack", "RequestStackMiddleware"]
