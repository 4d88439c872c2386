class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error

class APIClientError(AppError):
    """Raised when a call to the AI server fails."""
    pass

class APITimeoutError(APIClientError):
    """Raised when a call to the AI server times out."""
    pass

class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass

class ValidationError(AppError):
    """Raised when input validation fails."""
    pass

class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass

class JobNotFoundError(AppError):
    """Raised when a processing job does not exist."""
    pass
