import logging
from importlib import metadata
from typing import Any, Optional, Union

from ._connection import (
    AuthMethod,
    CredentialInputs,
    CredentialSource,
    EnvironmentCredentialSource,
    QueryResult,
    SnowflakeAuthUtils,
    SnowflakeSessionManager,
    SqlExecutionClient,
)
from ._connection.session_manager import SessionFactory
from ._error_handling import SnowflakeErrorHandler

# Natural-language gateway - Snowflake Cortex Agents
from .agents import AnalystAnswer, SnowflakeCortexAgentGateway

# Authentication self-check
from .diagnostics import AuthCheckResult, check_authentication

# Error taxonomy
from .exceptions import (
    AgentError,
    AgentTimeoutError,
    CredentialError,
    NonRetryableQueryError,
    OpsCenterSnowflakeError,
    QueryError,
    RetryableQueryError,
    SnowflakeConnectionError,
)

logger = logging.getLogger(__name__)


class OpsCenterSnowflake:
    """Connection and question-answering service for the operations dashboard.

    Wires one credential source, one session manager, one SQL executor and one
    Cortex Agent gateway together. The session manager owns the only live
    Snowflake session; the gateway shares the executor for its fallback path.

    Key init args:
        credential_source: Optional[CredentialSource]
            Where credentials come from (defaults to the environment)
        session_factory: Optional[Callable]
            Turns a connection config into a session (defaults to Snowpark)
        **gateway_kwargs:
            Forwarded to SnowflakeCortexAgentGateway (name, database, schema,
            timeout, fallback_model, verify_ssl)

    Usage:
        .. code-block:: python

            service = OpsCenterSnowflake()
            rows = await service.query("SELECT COUNT(*) AS N FROM DEMO.DEMO.CAMERAS")
            answer = await service.ask("Which borough has the most open 311 complaints?")
            await service.close()
    """

    def __init__(
        self,
        credential_source: Optional[CredentialSource] = None,
        session_factory: Optional[SessionFactory] = None,
        **gateway_kwargs: Any,
    ) -> None:
        self.credential_source = credential_source or EnvironmentCredentialSource()
        self.session_manager = SnowflakeSessionManager(self.credential_source, session_factory)
        self.executor = SqlExecutionClient(self.session_manager)
        self.gateway = SnowflakeCortexAgentGateway(self.executor, self.credential_source, **gateway_kwargs)

    async def query(self, sql: str) -> QueryResult:
        """Run a SQL statement and return its rows as dicts.

        Raises:
            RetryableQueryError: If the statement kept failing on expired sessions
            NonRetryableQueryError: For any other execution failure
        """
        return await self.executor.execute(sql)

    async def ask(self, question: str) -> AnalystAnswer:
        """Answer a natural-language question through the Cortex Agent."""
        return await self.gateway.ask(question)

    async def close(self) -> None:
        """Close the live session, if any."""
        await self.session_manager.close()


_default_service: Optional[OpsCenterSnowflake] = None


def get_default_service() -> OpsCenterSnowflake:
    """Return the process-wide service, creating it from the environment on first use."""
    global _default_service
    if _default_service is None:
        _default_service = OpsCenterSnowflake()
    return _default_service


def reset_default_service() -> None:
    """Forget the process-wide service; the next call builds a fresh one.

    The old service's session is left to the caller; use ``close()`` on it
    first when it may still be live.
    """
    global _default_service
    _default_service = None


async def query(sql: str) -> QueryResult:
    """Run ``sql`` on the default service."""
    return await get_default_service().query(sql)


async def ask(question: str) -> AnalystAnswer:
    """Answer ``question`` with the default service."""
    return await get_default_service().ask(question)


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Set the package log level and quiet the Snowflake driver loggers.

    Handlers are left to the application; this only adjusts levels.
    """
    logging.getLogger(__name__).setLevel(level)
    for noisy in ("snowflake.connector", "snowflake.snowpark"):
        logging.getLogger(noisy).setLevel(logging.ERROR)


try:
    __version__ = metadata.version(__package__)
except metadata.PackageNotFoundError:
    # Case where package metadata is not available.
    __version__ = ""
del metadata  # optional, avoids polluting the results of dir(__package__)

__all__ = [
    # Service
    "OpsCenterSnowflake",
    "get_default_service",
    "reset_default_service",
    "query",
    "ask",
    # Gateway
    "SnowflakeCortexAgentGateway",
    "AnalystAnswer",
    # Connection
    "AuthMethod",
    "CredentialInputs",
    "CredentialSource",
    "EnvironmentCredentialSource",
    "SnowflakeAuthUtils",
    "SnowflakeSessionManager",
    "SqlExecutionClient",
    # Diagnostics
    "AuthCheckResult",
    "check_authentication",
    # Errors
    "OpsCenterSnowflakeError",
    "CredentialError",
    "SnowflakeConnectionError",
    "QueryError",
    "RetryableQueryError",
    "NonRetryableQueryError",
    "AgentError",
    "AgentTimeoutError",
    "SnowflakeErrorHandler",
    # Logging
    "configure_logging",
    # Version
    "__version__",
]
