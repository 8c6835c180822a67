"""
Error taxonomy for the storefront service.

Everything except StorageError and StoreTimeout is an ordinary,
recoverable outcome reported back to the caller.
"""


class StorefrontError(Exception):
    error_code = "STOREFRONT_ERROR"
    status_code = 500


class ValidationError(StorefrontError):
    """Malformed input to a mutating call; raised before any state change."""
    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(StorefrontError):
    error_code = "NOT_FOUND"
    status_code = 404


class StockConflict(StorefrontError):
    error_code = "STOCK_CONFLICT"
    status_code = 409

    def __init__(self, failures):
        self.failures = dict(failures)
        super().__init__(f"Unavailable products: {', '.join(sorted(self.failures))}")


class AuthFailure(StorefrontError):
    error_code = "AUTH_FAILURE"
    status_code = 401


class StorageError(StorefrontError):
    """The durable store rejected a write; the operation had no effect."""
    error_code = "STORAGE_ERROR"
    status_code = 500


class StoreTimeout(StorefrontError):
    error_code = "STORE_TIMEOUT"
    status_code = 503
