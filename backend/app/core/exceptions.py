class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class InvalidInputError(AppError):
    """Raised when a request carries a malformed or missing parameter."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class InvalidTimeRangeError(InvalidInputError):
    """Raised when a time window does not satisfy start < end."""
    def __init__(self, message: str = "start_time must be before end_time", details: dict = None):
        super().__init__(message, details=details)

class PermissionDeniedError(AppError):
    """Raised when the caller lacks the role or ownership for an action."""
    def __init__(self, message: str = "Insufficient permissions", details: dict = None):
        super().__init__(message, status_code=403, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} '{resource_id}' not found", status_code=404)

class ConflictError(AppError):
    """Raised when a write would duplicate an existing row."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)
