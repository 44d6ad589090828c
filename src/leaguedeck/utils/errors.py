"""
Error handling utilities and boundaries for leaguedeck.

Provides the exception taxonomy used across the service and consistent
error handling patterns for component boundaries.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

# Type variable for generic function decoration
F = TypeVar("F", bound=Callable[..., Any])


def error_boundary(
    *,
    reraise: bool = False,
    default_return: Any = None,
    log_level: int = logging.ERROR,
) -> Callable[[F], F]:
    """
    Decorator to create consistent error boundaries around functions.

    Used on event listeners and periodic sweeps so that one failing callback
    never takes down the loop that invoked it.

    Args:
        reraise: If True, re-raise the exception after logging
        default_return: Value to return if error occurs and not reraising
        log_level: Logging level for the error (default: ERROR)

    Returns:
        Decorated function with error handling

    Example:
        >>> @error_boundary(default_return=0)
        ... def perform_cleanup(self):
        ...     # If this raises, it will be logged and return 0
        ...     return self._sweep()
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.log(
                    log_level,
                    f"Error in {func.__name__}: {e}",
                    exc_info=True,
                    extra={"function": func.__name__, "source_module": func.__module__},
                )

                if reraise:
                    raise

                return default_return

        return wrapper  # type: ignore

    return decorator


def safe_execute(
    func: Callable[[], Any],
    *,
    description: str = "safe_execute",
    on_error: Optional[Callable[[Exception], Any]] = None,
    default: Any = None,
) -> Any:
    """
    Run a callable, logging instead of raising.

    The event bus runs every listener through this so one broken listener
    cannot stop delivery to the rest.

    Args:
        func: Zero-argument callable
        description: What is being run, for the log line
        on_error: Called with the exception when func raises
        default: Returned when func raises

    Returns:
        func's result, or default
    """
    try:
        return func()
    except Exception as e:
        logger.error(f"Error in {description}: {e}", exc_info=True)
        if on_error:
            on_error(e)
        return default


class LeagueDeckError(Exception):
    """Base exception for all leaguedeck-specific errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(LeagueDeckError):
    """Raised when there's an issue with configuration."""

    pass


class DiscoveryError(LeagueDeckError):
    """
    Raised when the local client cannot be found or its credentials fail.

    Always recoverable: the connection monitor keeps retrying.
    """

    NOT_RUNNING = "not running"
    VALIDATION_FAILED = "validation failed"

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"League client discovery failed: {reason}", details)
        self.reason = reason


class PollError(LeagueDeckError):
    """Raised when a single endpoint poll fails."""

    def __init__(self, endpoint: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.endpoint = endpoint


class LiveDataError(PollError):
    """Raised when the in-match live client API is unreachable."""

    pass


class RenderError(LeagueDeckError):
    """
    Raised when a host draw call fails.

    ``terminal`` is True when the widget or its device is gone and retrying
    is pointless.
    """

    TERMINAL_PATTERNS = ("not alive", "not connected")

    def __init__(self, widget_id: Any, message: str, terminal: bool = False):
        super().__init__(message, {"widget_id": str(widget_id)})
        self.widget_id = widget_id
        self.terminal = terminal

    @classmethod
    def is_terminal_message(cls, message: str) -> bool:
        lowered = message.lower()
        return any(pattern in lowered for pattern in cls.TERMINAL_PATTERNS)

    @classmethod
    def classify(cls, widget_id: Any, exc: BaseException) -> "RenderError":
        """Wrap an arbitrary draw failure, classifying it as terminal or transient."""
        if isinstance(exc, RenderError):
            return exc
        message = str(exc) or exc.__class__.__name__
        return cls(widget_id, message, terminal=cls.is_terminal_message(message))


class PersistenceError(LeagueDeckError):
    """Raised when the state file cannot be read or written."""

    def __init__(self, path: Any, message: str):
        super().__init__(message, {"path": str(path)})
        self.path = path
