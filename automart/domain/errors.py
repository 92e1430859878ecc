# automart/domain/errors.py
"""
Error taxonomy shared by the shop client, the background worker and the API.

Cart and checkout errors are raised synchronously and are never retried.
Transport errors are produced only at the API client boundary;
TransientError subclasses are eligible for the offline order queue.
"""


class AutomartError(Exception):
    pass


class ValidationError(AutomartError):
    """Bad input shape or range."""


class NotFoundError(AutomartError):
    pass


class CheckoutError(AutomartError):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class LocationRequiredError(CheckoutError):
    def __init__(self, message: str = "Please choose a pickup location"):
        super().__init__(message)


class InvalidLocationError(CheckoutError):
    def __init__(self, location_key: str):
        super().__init__(f"Unknown pickup location: {location_key}")
        self.location_key = location_key


class TransientError(AutomartError):
    """Connectivity problem, the request may succeed later."""


class NetworkError(TransientError):
    pass


class RequestTimeoutError(TransientError):
    pass


class ServerError(AutomartError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OfflineQueueError(AutomartError):
    """An order could not be stored for background sync."""


class CacheInstallError(AutomartError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to cache {url}: {reason}")
        self.url = url
