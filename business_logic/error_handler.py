"""
Error handling and user feedback for the game engine.

This module defines the game's error kinds, classifies failures coming
from the AI service, retries transient failures and turns errors into
notifications the presentation layer can show.
"""

import asyncio
import logging
from typing import Dict, Any, Optional, Callable, Awaitable, Tuple
from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import openai

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better classification."""
    API_ERROR = "api_error"
    CREDENTIAL_ERROR = "credential_error"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    GAME_RULE_ERROR = "game_rule_error"
    SYSTEM_ERROR = "system_error"


@dataclass
class ErrorInfo:
    """Structured error information."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    technical_details: Optional[str] = None
    suggested_action: Optional[str] = None
    retry_possible: bool = False
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


class GameError(Exception):
    """Base class for every error raised by the game engine."""


class CredentialMissing(GameError):
    """No API key is configured."""


class ProviderFailure(GameError):
    """A generation or evaluation call failed or returned unusable data."""

    def __init__(self, message: str, error_info: Optional[ErrorInfo] = None,
                 retry_possible: bool = False):
        super().__init__(message)
        self.error_info = error_info
        self.retry_possible = retry_possible


class BudgetExceeded(GameError):
    """The allocation is larger than the available budget."""

    def __init__(self, allocated: float, budget: float):
        super().__init__(f"Allocated {allocated:,.0f} exceeds budget {budget:,.0f}")
        self.allocated = allocated
        self.budget = budget


class DuplicateSubmission(GameError):
    """The same operation was submitted twice."""


class InvalidTransition(GameError):
    """The requested operation is not legal in the current view."""

    def __init__(self, action: str, view: Any):
        view_name = getattr(view, "value", view)
        super().__init__(f"Cannot {action} while in view '{view_name}'")
        self.action = action
        self.view = view


class RetryConfig:
    """Configuration for retry mechanisms."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0,
                 exponential_backoff: bool = True, max_delay: float = 30.0):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential_backoff = exponential_backoff
        self.max_delay = max_delay


class ErrorHandler:
    """
    Centralized error handling and user feedback system.

    Classifies AI service and game rule errors, retries transient
    failures and keeps a short history of what went wrong.
    """

    def __init__(self):
        self.error_history = []

    def handle_openai_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Handle OpenAI API specific errors with appropriate user feedback.

        Args:
            error: The OpenAI exception
            context: Additional context about the operation

        Returns:
            ErrorInfo object with structured error information
        """
        if isinstance(error, openai.AuthenticationError):
            return ErrorInfo(
                category=ErrorCategory.CREDENTIAL_ERROR,
                severity=ErrorSeverity.CRITICAL,
                message=f"OpenAI API authentication failed in {context}: {str(error)}",
                user_message="API authentication failed. Please check your API key.",
                suggested_action="Re-enter a valid API key.",
                retry_possible=False
            )

        if isinstance(error, openai.RateLimitError):
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"OpenAI API rate limit exceeded in {context}: {str(error)}",
                user_message="The client is busy right now. Retrying in a moment.",
                suggested_action="Please wait a moment and try again.",
                retry_possible=True
            )

        if isinstance(error, openai.APITimeoutError):
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"OpenAI API timeout in {context}: {str(error)}",
                user_message="The AI service request timed out. Please try again.",
                suggested_action="Check your internet connection and retry.",
                retry_possible=True
            )

        if isinstance(error, openai.APIConnectionError):
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Failed to connect to OpenAI in {context}: {str(error)}",
                user_message="Cannot reach the AI service. Please check your internet connection.",
                suggested_action="Check your connection and try again.",
                retry_possible=True
            )

        if isinstance(error, openai.BadRequestError):
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Invalid request to OpenAI in {context}: {str(error)}",
                user_message="The AI service rejected the request.",
                technical_details=str(error),
                retry_possible=False
            )

        if isinstance(error, openai.InternalServerError):
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"OpenAI API server error in {context}: {str(error)}",
                user_message="The AI service encountered an internal error. Please try again.",
                retry_possible=True
            )

        # Generic OpenAI error
        return ErrorInfo(
            category=ErrorCategory.API_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"OpenAI API error in {context}: {str(error)}",
            user_message="An error occurred while communicating with the AI service.",
            technical_details=str(error),
            suggested_action="Please try again.",
            retry_possible=True
        )

    def handle_game_error(self, error: GameError, context: str = "") -> ErrorInfo:
        """
        Handle errors raised by the game engine itself.

        Args:
            error: The game exception
            context: Additional context about the operation

        Returns:
            ErrorInfo object with structured error information
        """
        if isinstance(error, ProviderFailure):
            if error.error_info is not None:
                return error.error_info
            return ErrorInfo(
                category=ErrorCategory.VALIDATION_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Provider failure in {context}: {str(error)}",
                user_message="The client's reply could not be understood. Please try again.",
                technical_details=str(error),
                retry_possible=error.retry_possible
            )

        if isinstance(error, CredentialMissing):
            return ErrorInfo(
                category=ErrorCategory.CREDENTIAL_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"Credentials missing in {context}: {str(error)}",
                user_message="Please enter an API key to start.",
                suggested_action="Enter your OpenAI API key.",
                retry_possible=False
            )

        if isinstance(error, BudgetExceeded):
            return ErrorInfo(
                category=ErrorCategory.GAME_RULE_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"Budget exceeded in {context}: {str(error)}",
                user_message="The allocation exceeds this month's budget.",
                suggested_action="Reduce spend on one or more channels.",
                retry_possible=False
            )

        # DuplicateSubmission, InvalidTransition
        return ErrorInfo(
            category=ErrorCategory.GAME_RULE_ERROR,
            severity=ErrorSeverity.INFO,
            message=f"Rejected operation in {context}: {str(error)}",
            user_message=str(error),
            retry_possible=False
        )

    def classify_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Classify an error and return appropriate ErrorInfo.

        Args:
            error: The exception to classify
            context: Additional context about the operation

        Returns:
            ErrorInfo object with structured error information
        """
        if isinstance(error, GameError):
            return self.handle_game_error(error, context)

        if isinstance(error, openai.OpenAIError):
            return self.handle_openai_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Network error in {context}: {str(error)}",
                user_message="A network error occurred while contacting the AI service.",
                retry_possible=True
            )

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorInfo(
                category=ErrorCategory.VALIDATION_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Malformed data in {context}: {str(error)}",
                user_message="The client's reply could not be understood. Please try again.",
                technical_details=str(error),
                retry_possible=False
            )

        # Generic system error
        return ErrorInfo(
            category=ErrorCategory.SYSTEM_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"Unexpected error in {context}: {str(error)}",
            user_message="An unexpected error occurred. Please try again.",
            technical_details=str(error),
            retry_possible=False
        )

    async def retry_with_backoff(self, func: Callable[[], Awaitable[Any]], config: RetryConfig = None,
                                 context: str = "",
                                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
                                 ) -> Tuple[bool, Any, Optional[ErrorInfo]]:
        """
        Await a coroutine factory with retry logic and exponential backoff.

        Args:
            func: Zero-argument callable returning an awaitable
            config: Retry configuration
            context: Context for error reporting
            sleep: Coroutine used to wait between attempts

        Returns:
            Tuple of (success, result, error_info)
        """
        if config is None:
            config = RetryConfig()

        last_error = None

        for attempt in range(config.max_attempts):
            try:
                result = await func()
                return True, result, None

            except Exception as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{config.max_attempts} failed in {context}: {str(e)}")

                if attempt == config.max_attempts - 1:
                    break

                error_info = self.classify_error(e, context)
                if not error_info.retry_possible:
                    break

                if config.exponential_backoff:
                    delay = min(config.base_delay * (2 ** attempt), config.max_delay)
                else:
                    delay = config.base_delay

                logger.info(f"Retrying in {delay} seconds...")
                await sleep(delay)

        # All attempts failed
        error_info = self.classify_error(last_error, context)
        return False, None, error_info

    def create_user_notification(self, error_info: ErrorInfo) -> Dict[str, Any]:
        """
        Create a user-friendly notification from error information.

        Args:
            error_info: Structured error information

        Returns:
            Dictionary with notification data for UI display
        """
        notification_type_map = {
            ErrorSeverity.INFO: "info",
            ErrorSeverity.WARNING: "warning",
            ErrorSeverity.ERROR: "error",
            ErrorSeverity.CRITICAL: "error"
        }

        notification = {
            'type': notification_type_map[error_info.severity],
            'title': self._get_error_title(error_info),
            'message': error_info.user_message,
            'timestamp': error_info.timestamp.isoformat(),
            'retry_possible': error_info.retry_possible
        }

        if error_info.suggested_action:
            notification['action'] = error_info.suggested_action

        return notification

    def _get_error_title(self, error_info: ErrorInfo) -> str:
        """Get appropriate title for error notification."""
        title_map = {
            ErrorCategory.API_ERROR: "AI Service Error",
            ErrorCategory.CREDENTIAL_ERROR: "API Key Required",
            ErrorCategory.NETWORK_ERROR: "Connection Error",
            ErrorCategory.VALIDATION_ERROR: "Unexpected Reply",
            ErrorCategory.GAME_RULE_ERROR: "Not Allowed",
            ErrorCategory.SYSTEM_ERROR: "System Error"
        }

        return title_map.get(error_info.category, "Error")

    def log_error(self, error_info: ErrorInfo, context: str = ""):
        """
        Log error information and remember it.

        Args:
            error_info: Structured error information
            context: Additional context
        """
        self.error_history.append(error_info)

        # Keep only recent errors
        if len(self.error_history) > 100:
            self.error_history = self.error_history[-100:]

        log_message = f"{context}: {error_info.message}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
        elif error_info.severity == ErrorSeverity.ERROR:
            logger.error(log_message)
        elif error_info.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)


# Global error handler instance
error_handler = ErrorHandler()
