"""
Error taxonomy shared by the repositories and the HTTP layer.

Every error carries the HTTP status it maps to, so route handlers can turn
any of them into the `{success: false, error}` envelope without a lookup
table.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Missing required field, malformed body or unknown action."""

    status_code = 400


class NotFoundError(StoreError):
    """Entity absent, or present but not publicly available."""

    status_code = 404


class SectionNotFound(NotFoundError):
    def __init__(self, message: str = "Section not found"):
        super().__init__(message)


class ProductNotFound(NotFoundError):
    def __init__(self, message: str = "Product not found"):
        super().__init__(message)


class BackendError(StoreError):
    """The underlying store call failed. The message is safe to show clients."""

    status_code = 500
