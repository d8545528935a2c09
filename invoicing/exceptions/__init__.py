"""Custom exceptions for the invoicing application."""


class InvoicingError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class Unauthorized(InvoicingError):
    """No valid session."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class AccessDenied(InvoicingError):
    """Authenticated, but the role or tenant does not allow the action."""
    def __init__(self, message="You do not have permission to perform this action"):
        super().__init__(message, 403)


class NotFoundError(InvoicingError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ValidationError(InvoicingError):
    """
    Input failed schema constraints.

    ``errors`` is a list of ``{'field': ..., 'message': ...}``; the first
    violated constraint becomes the top-level message.
    """
    def __init__(self, errors, status_code=400):
        if isinstance(errors, str):
            errors = [{'field': None, 'message': errors}]
        self.errors = list(errors)
        message = self.errors[0]['message'] if self.errors else 'Invalid input'
        super().__init__(message, status_code, {'errors': self.errors})


class InvalidOrExpiredToken(InvoicingError):
    """Reset token unknown, consumed or expired. Callers cannot tell which."""
    def __init__(self):
        super().__init__("Invalid or expired reset token", 400)


class BusinessLogicError(InvoicingError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class InvalidTransition(BusinessLogicError):
    """Raised when an invoice cannot move to the requested state."""
    def __init__(self, message):
        super().__init__(message, status_code=409)


class OperationFailed(InvoicingError):
    """Unexpected persistence or provider failure. The cause is logged, never returned."""
    def __init__(self, message="The operation could not be completed. Please try again.", status_code=500):
        super().__init__(message, status_code)
