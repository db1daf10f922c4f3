import enum


class ErrorKind(enum.Enum):
    """Error taxonomy shared by services and the HTTP boundary."""
    NOT_FOUND = 'not_found'
    VALIDATION = 'validation'
    CONFLICT = 'conflict'
    UPLOAD = 'upload'
    STATE_CONFLICT = 'state_conflict'
    TIMEOUT = 'timeout'
    INTERNAL = 'internal'


class ConnectChainError(Exception):
    """Base exception for ConnectChain admin backend errors."""

    kind = ErrorKind.INTERNAL
    default_message = "An error occurred in the ConnectChain admin backend"

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to the public error envelope."""
        error_dict = {
            'success': False,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(ConnectChainError):
    """Exception raised for configuration errors."""
    default_message = "Configuration error"


class DatabaseError(ConnectChainError):
    """Exception raised for database-related errors."""
    default_message = "Database error"


class ValidationError(ConnectChainError):
    """Exception raised for malformed or out-of-range input."""
    kind = ErrorKind.VALIDATION
    default_message = "Validation error"


class NotFoundError(ConnectChainError):
    """Exception raised when a requested resource is not found."""
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class ConflictError(ConnectChainError):
    """Exception raised on unique-constraint style conflicts."""
    kind = ErrorKind.CONFLICT
    default_message = "Duplicate entry"


class StateConflictError(ConnectChainError):
    """Exception raised when an entity cannot move to the requested state."""
    kind = ErrorKind.STATE_CONFLICT
    default_message = "Invalid state transition"


class UploadError(ConnectChainError):
    """Exception raised when the external media store rejects or fails."""
    kind = ErrorKind.UPLOAD
    default_message = "Media upload failed"


class OperationTimeoutError(ConnectChainError):
    """Exception raised when a unit of work exceeds its deadline."""
    kind = ErrorKind.TIMEOUT
    default_message = "Operation timed out"
