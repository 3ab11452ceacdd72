# --- Service layer exceptions, translated to HTTP status codes by the routers ---

class ServiceError(Exception):
    """General exception class for the service layer (400)."""
    pass


class AuthorizationError(ServiceError):
    """The caller is authenticated but may not perform the operation (403)."""
    pass


class NotFoundError(ServiceError):
    """The addressed row does not exist (404)."""
    pass
