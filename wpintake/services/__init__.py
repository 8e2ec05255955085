"""Service layer — business logic over the DAOs."""


class ServiceError(Exception):
    """Base service exception."""


class NotFoundError(ServiceError):
    """Resource not found (-> HTTP 404)."""


class ConflictError(ServiceError):
    """Business rule conflict, e.g. an item busy in another job (-> HTTP 409)."""


class ValidationError(ServiceError):
    """Invalid input or status transition (-> HTTP 422)."""


class AuthenticationError(ServiceError):
    """Missing or wrong admin token (-> HTTP 401)."""
