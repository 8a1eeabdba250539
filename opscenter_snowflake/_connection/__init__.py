"""Connection and authentication core for opscenter-snowflake.

This internal module provides credential resolution, session ownership, SQL
execution with reconnect-on-expiry, and REST API authentication.

Key Components:
- CredentialSource / EnvironmentCredentialSource: resolve the active AuthMethod
- SnowflakeAuthUtils: key-pair JWT signing and REST API headers
- SnowflakeSessionManager: owns the single live Snowflake session
- SqlExecutionClient: runs statements with one forced-reconnect retry
- RestApiClient: async REST transport for Cortex endpoints
"""

from .auth_utils import SnowflakeAuthUtils
from .credentials import (
    OAUTH_TOKEN_PATH,
    AuthMethod,
    CredentialInputs,
    CredentialSource,
    EnvironmentCredentialSource,
    normalize_private_key,
    resolve_auth_method,
)
from .rest_client import RestApiClient, RestApiRequestBuilder
from .session_manager import LiveSession, SnowflakeSessionManager
from .sql_client import QueryResult, SqlExecutionClient

__all__ = [
    "OAUTH_TOKEN_PATH",
    "AuthMethod",
    "CredentialInputs",
    "CredentialSource",
    "EnvironmentCredentialSource",
    "LiveSession",
    "QueryResult",
    "RestApiClient",
    "RestApiRequestBuilder",
    "SnowflakeAuthUtils",
    "SnowflakeSessionManager",
    "SqlExecutionClient",
    "normalize_private_key",
    "resolve_auth_method",
]
