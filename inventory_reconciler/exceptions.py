class ReconcilerError(Exception):
    """Base exception for Inventory Reconciler errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the Inventory Reconciler"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(ReconcilerError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class StoreError(ReconcilerError):
    """Exception raised when a call to the backing store fails."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Store error"
        super().__init__(message, code, details)


class PayloadError(ReconcilerError):
    """Exception raised for malformed source payloads."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Malformed payload"
        super().__init__(message, code, details)


class ResolutionError(ReconcilerError):
    """Exception raised when a SKU or order cannot be resolved."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Resolution error"
        super().__init__(message, code, details)

