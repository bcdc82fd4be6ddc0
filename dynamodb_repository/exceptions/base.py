from typing import Any, Dict, Optional

from botocore.exceptions import ClientError


class TableRepositoryError(Exception):
    """Root of every error raised by the table repository.

    Attributes:
        message: Human-readable error message
        original_error: Underlying exception, usually a botocore ClientError
        context: Key/value details rendered after the message
    """

    retryable = False

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(message)

    @property
    def error_code(self) -> Optional[str]:
        """DynamoDB error code of the wrapped ClientError, if there is one."""
        if isinstance(self.original_error, ClientError):
            return self.original_error.response.get('Error', {}).get('Code')
        return None

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} (Context: {details})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_code={self.error_code!r})"
