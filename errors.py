"""
Error kinds shared by every storefront operation.

Operations raise one of these; the HTTP layer turns them into
``{"error": kind, "detail": message}`` responses.
"""


class StoreError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    kind = "validation"
    status_code = 400


class AuthenticationError(StoreError):
    kind = "authentication"
    status_code = 401


class AuthorizationError(StoreError):
    kind = "authorization"
    status_code = 403


class NotFoundError(StoreError):
    kind = "not_found"
    status_code = 404


class ServiceError(StoreError):
    kind = "service"
    status_code = 503
