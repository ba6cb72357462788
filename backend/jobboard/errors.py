"""
Domain error taxonomy.

Services raise these; main.py maps each class to an HTTP status so the
routers never have to translate them.
"""


class DomainError(Exception):
    """Base class for errors raised by the domain services."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or missing input. Client fault, never retried."""
    status_code = 400


class NotFoundError(DomainError):
    """Referenced job listing, application or sub-item does not exist."""
    status_code = 404


class ConflictError(DomainError):
    """Uniqueness violation or invalid state transition."""
    status_code = 409


class InternalError(DomainError):
    """The store or blob storage failed where success was expected."""
    status_code = 500
