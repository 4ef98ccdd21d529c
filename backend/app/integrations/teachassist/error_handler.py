"""
Error taxonomy and logging for the external attendance system collaborator.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional, Type
from contextlib import asynccontextmanager


# TeachAssist-specific logger
teachassist_logger = logging.getLogger('teachassist')


class ExternalErrorSeverity:
    """Error severity levels for external system operations."""
    LOW = "low"           # One row affected, run continues
    MEDIUM = "medium"     # One date or view affected
    HIGH = "high"         # Session unusable, job cannot continue
    CRITICAL = "critical" # Configuration broken for every run


class ExternalErrorCategory:
    """Error categories for better classification."""
    AUTHENTICATION = "authentication"
    NAVIGATION = "navigation"
    FORM_SUBMISSION = "form_submission"
    TIMEOUT = "timeout"
    SESSION_LOST = "session_lost"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ExternalSystemError(Exception):
    """Base exception for external system errors with classification metadata."""
    
    def __init__(
        self,
        message: str,
        category: str = ExternalErrorCategory.UNKNOWN,
        severity: str = ExternalErrorSeverity.MEDIUM,
        operation_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        fatal: bool = False,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.operation_type = operation_type
        self.details = details or {}
        self.fatal = fatal
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)
        
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/storage."""
        return {
            'message': self.message,
            'category': self.category,
            'severity': self.severity,
            'operation_type': self.operation_type,
            'details': self.details,
            'fatal': self.fatal,
            'timestamp': self.timestamp.isoformat(),
        }


class ExternalAuthenticationError(ExternalSystemError):
    """Login to the external system was rejected."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.AUTHENTICATION,
            severity=ExternalErrorSeverity.HIGH,
            fatal=True,
            **kwargs
        )


class ExternalNavigationError(ExternalSystemError):
    """A page, frame, course or date view could not be reached."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.NAVIGATION,
            severity=ExternalErrorSeverity.MEDIUM,
            **kwargs
        )


class ExternalFormSubmissionError(ExternalSystemError):
    """Writing one row to the external form failed."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.FORM_SUBMISSION,
            severity=ExternalErrorSeverity.LOW,
            **kwargs
        )


class ExternalTimeoutError(ExternalSystemError):
    """A bounded collaborator call did not finish in time."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.TIMEOUT,
            severity=ExternalErrorSeverity.MEDIUM,
            **kwargs
        )


class ExternalSessionLostError(ExternalSystemError):
    """The browser session disconnected; nothing more can be done in this job."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.SESSION_LOST,
            severity=ExternalErrorSeverity.HIGH,
            fatal=True,
            **kwargs
        )


class ExternalConfigurationError(ExternalSystemError):
    """Classroom is not configured for the external system."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ExternalErrorCategory.CONFIGURATION,
            severity=ExternalErrorSeverity.CRITICAL,
            fatal=True,
            **kwargs
        )


class ExternalErrorHandler:
    """Central error log for external system operations."""
    
    def __init__(self, max_log_entries: int = 1000):
        self._error_log: List[Dict[str, Any]] = []
        self._max_log_entries = max_log_entries
        
    def log_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an error with full context.
        
        Args:
            error: The error to log
            context: Additional context information
        """
        if isinstance(error, ExternalSystemError):
            error_dict = error.to_dict()
        else:
            error_dict = {
                'message': str(error),
                'category': ExternalErrorCategory.UNKNOWN,
                'severity': ExternalErrorSeverity.MEDIUM,
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }
            
        if context:
            error_dict.update(context)
            
        severity = error_dict.get('severity', ExternalErrorSeverity.MEDIUM)
        log_message = f"TeachAssist error [{severity.upper()}]: {error_dict['message']}"
        
        if severity == ExternalErrorSeverity.CRITICAL:
            teachassist_logger.critical(log_message)
        elif severity == ExternalErrorSeverity.HIGH:
            teachassist_logger.error(log_message)
        elif severity == ExternalErrorSeverity.MEDIUM:
            teachassist_logger.warning(log_message)
        else:
            teachassist_logger.info(log_message)
            
        self._error_log.append(error_dict)
        if len(self._error_log) > self._max_log_entries:
            self._error_log.pop(0)
            
    def get_recent_errors(
        self,
        limit: int = 50,
        category_filter: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get recent errors with optional filtering."""
        filtered_errors = self._error_log.copy()
        
        if category_filter:
            filtered_errors = [e for e in filtered_errors if e.get('category') == category_filter]
            
        return filtered_errors[-limit:]


@asynccontextmanager
async def external_error_context(
    operation_type: str,
    error_class: Type[ExternalSystemError] = ExternalSystemError,
    error_handler: Optional[ExternalErrorHandler] = None,
    scrub: Optional[Callable[[str], str]] = None
):
    """
    Translate any failure inside the block into an ExternalSystemError.
    
    Errors that are already classified keep their class; anything else is
    wrapped in ``error_class``. The error is logged once and re-raised.
    ``scrub`` removes secrets from the message before it is logged.
    """
    handler = error_handler or external_error_handler
    
    try:
        yield handler
    except ExternalSystemError as e:
        e.operation_type = e.operation_type or operation_type
        if scrub is not None:
            e.message = scrub(e.message)
            e.args = (e.message,)
        handler.log_error(e)
        raise
    except Exception as e:
        wrapped = error_class(
            (scrub or str)(f"{operation_type} failed: {e}"),
            operation_type=operation_type,
            original_exception=e
        )
        handler.log_error(wrapped)
        raise wrapped from e


# Global error handler instance
external_error_handler = ExternalErrorHandler()
