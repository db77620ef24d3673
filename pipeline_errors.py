"""
Error Kinds for the Uppercase Stream Pipeline
=============================================

Every failure a run can hit is terminal: nothing here is retried. Each error
carries the underlying cause and a short code so the CLI and the logs can
report it uniformly.
"""

import time
import traceback
from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for terminal pipeline errors"""

    error_code = "PIPELINE"

    def __init__(self, message: str, cause: Optional[Exception] = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize a pipeline error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc() if cause else None

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"
        return self.message

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={self.message!r}, "
                f"cause={self.cause!r}, details={self.details!r})")

    def log_context(self) -> Dict[str, Any]:
        """Get error context for structured logging"""
        return {
            'error_type': type(self).__name__,
            'error_code': self.error_code,
            'message': str(self),
            'timestamp': self.timestamp,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class UsageError(PipelineError):
    """Missing or invalid command line arguments"""

    error_code = "USAGE"


class PipelineIOError(PipelineError):
    """A source or sink could not be opened, read or written"""

    error_code = "IO"

    def __init__(self, message: str, path: Optional[object] = None,
                 cause: Optional[Exception] = None):
        details = {'path': str(path)} if path is not None else None
        super().__init__(message, cause=cause, details=details)
        self.path = path


class DecodeError(PipelineError):
    """Input is not valid gzip data"""

    error_code = "DECODE"


class PipelineTimeoutError(PipelineError, TimeoutError):
    """The pipeline did not finish before its deadline"""

    error_code = "TIMEOUT"

    def __init__(self, timeout: float, message: Optional[str] = None):
        super().__init__(message or f"Took too long! (timeout after {timeout}s)",
                         details={'timeout': timeout})
        self.timeout = timeout
