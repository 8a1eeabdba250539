"""Exception hierarchy for opscenter-snowflake.

Every exception carries a ``status_code`` that the HTTP route layer uses when
it turns a failure into a structured error payload.
"""

from typing import Optional


class OpsCenterSnowflakeError(Exception):
    """Base exception for all opscenter-snowflake errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CredentialError(OpsCenterSnowflakeError):
    """No usable credential shape, or JWT signing without a resolvable key."""


class SnowflakeConnectionError(OpsCenterSnowflakeError):
    """Session establishment failed (bad credentials, network, unreachable host)."""

    status_code: int = 503


class QueryError(OpsCenterSnowflakeError):
    """A statement failed on the warehouse.

    The failing SQL text is kept on ``sql`` so callers can log it next to the
    warehouse message.
    """

    def __init__(self, message: str, sql: str, errno: Optional[int] = None) -> None:
        super().__init__(message)
        self.sql = sql
        self.errno = errno


class RetryableQueryError(QueryError):
    """Expired token or terminated connection, still failing after the retry budget."""


class NonRetryableQueryError(QueryError):
    """Any other warehouse execution failure (bad SQL, permission denied)."""


class AgentError(OpsCenterSnowflakeError):
    """The Cortex Agent API returned an error or an unusable response."""

    status_code: int = 502


class AgentTimeoutError(AgentError):
    """The Cortex Agent call exceeded its deadline."""

    status_code: int = 504
