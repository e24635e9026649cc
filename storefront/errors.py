"""
Error taxonomy shared by the services and rendered by the handlers in main.py.
"""


class StorefrontError(Exception):
    """Base error. `details` are merged into the JSON error body."""
    category = "error"
    status_code = 500

    def __init__(self, message: str, **details):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_body(self) -> dict:
        return {"error": self.message, "category": self.category, **self.details}


class ValidationError(StorefrontError):
    category = "validation"
    status_code = 400


class NotFoundError(StorefrontError):
    category = "not_found"
    status_code = 404


class AuthorizationError(StorefrontError):
    """Same message for every failed check so callers learn nothing about the credential."""
    category = "unauthorized"
    status_code = 401

    def __init__(self):
        super().__init__("Could not validate credentials")


class StoreUnavailableError(StorefrontError):
    """Store unreachable after the client's own retries. Safe to retry."""
    category = "unavailable"
    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)
