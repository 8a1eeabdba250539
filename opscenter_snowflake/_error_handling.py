"""Shared error handling utilities for opscenter-snowflake.

This module provides the standardized logging patterns used across the
connection layer, the classification of warehouse failures into retryable and
fatal ones, and the translation of typed errors into HTTP error payloads.
"""

import logging
from typing import Any, Dict, NoReturn, Optional, Tuple

from .exceptions import AgentTimeoutError, OpsCenterSnowflakeError

logger = logging.getLogger(__name__)

# Warehouse error numbers that mean "reconnect and try again".
# 407002: OAuth access token expired. 390114: authentication token has expired.
RETRYABLE_ERROR_CODES = frozenset({407002, 390114})

# Message markers for drivers that surface only text. Matched case-insensitively.
# New warehouse error variants may need this table extended.
RETRYABLE_ERROR_MARKERS = (
    "oauth access token expired",
    "terminated connection",
    "authentication token has expired",
)


class SnowflakeErrorHandler:
    """Centralized error handling for the Snowflake connection layer."""

    @staticmethod
    def log_and_raise(
        error: Exception,
        operation: str,
        logger_instance: Optional[logging.Logger] = None,
    ) -> NoReturn:
        """Log error and re-raise it.

        Must be called from inside the ``except`` block handling ``error``.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed
            logger_instance: Specific logger to use (defaults to module logger)
        """
        log = logger_instance or logger
        log.error(f"Error in {operation}: {error}")
        raise

    @staticmethod
    def log_error(
        operation: str,
        error: Exception,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """Log an error with standardized format."""
        log = logger_instance or logger
        log.error(f"Error in {operation}: {error}")

    @staticmethod
    def log_warning_and_fallback(
        error: Exception,
        operation: str,
        fallback_action: str,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """Log warning for failed operation with fallback.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed
            fallback_action: Description of fallback being taken
            logger_instance: Specific logger to use (defaults to module logger)
        """
        log = logger_instance or logger
        log.warning(f"{operation} failed: {error}")
        log.info(f"Using fallback: {fallback_action}")

    @staticmethod
    def log_info(
        operation: str,
        message: str,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """Log info with standardized format."""
        log = logger_instance or logger
        log.info(f"{operation}: {message}")

    @staticmethod
    def log_debug(
        operation: str,
        message: str,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """Log debug with standardized format."""
        log = logger_instance or logger
        log.debug(f"{operation}: {message}")

    @staticmethod
    def handle_sql_error(
        error: Exception,
        sql_query: str,
        operation: str,
        logger_instance: Optional[logging.Logger] = None,
    ) -> None:
        """Log a SQL execution failure with a truncated statement preview.

        Args:
            error: The SQL exception that occurred
            sql_query: The SQL query that failed (truncated for logging)
            operation: Description of the operation
            logger_instance: Specific logger to use
        """
        log = logger_instance or logger

        sql_preview = " ".join(sql_query.split())
        sql_preview = sql_preview[:100] + "..." if len(sql_preview) > 100 else sql_preview
        log.error(f"SQL error during {operation}: {error}")
        log.debug(f"Failed SQL: {sql_preview}")

    @staticmethod
    def error_code(error: BaseException) -> Optional[int]:
        """Extract the numeric warehouse error code from a driver exception, if any.

        The connector exposes it as ``errno``; Snowpark's SQL exceptions expose
        ``sql_error_code``.
        """
        for attribute in ("errno", "sql_error_code", "code"):
            value = getattr(error, attribute, None)
            if value is None:
                continue
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
        return None

    @staticmethod
    def is_retryable_error(error: BaseException) -> bool:
        """Decide whether a query failure warrants a forced reconnect and retry.

        Structured error codes are checked first, message markers second.
        """
        if SnowflakeErrorHandler.error_code(error) in RETRYABLE_ERROR_CODES:
            return True

        message = str(error).lower()
        return any(marker in message for marker in RETRYABLE_ERROR_MARKERS)

    @staticmethod
    def to_error_payload(error: BaseException) -> Tuple[int, Dict[str, Any]]:
        """Translate an exception into the HTTP status and body the route layer returns.

        Returns:
            Tuple of (status code, JSON-serializable error body)
        """
        if isinstance(error, AgentTimeoutError):
            return error.status_code, {"error": "Request timed out. Please try a simpler question."}

        if isinstance(error, OpsCenterSnowflakeError):
            return error.status_code, {"error": error.message, "error_type": type(error).__name__}

        if isinstance(error, ValueError):
            return 400, {"error": str(error)}

        return 500, {"error": f"Failed to process request: {error}"}
