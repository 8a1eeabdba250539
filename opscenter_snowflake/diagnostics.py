"""Authentication self-check.

Probes every configured authentication method independently (not just the
one the resolver would pick) and reports which of them can actually connect.
"""

import asyncio
import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ._connection import (
    AuthMethod,
    CredentialSource,
    EnvironmentCredentialSource,
    SnowflakeSessionManager,
    SqlExecutionClient,
)
from ._connection.session_manager import SessionFactory
from ._error_handling import SnowflakeErrorHandler

logger = logging.getLogger(__name__)

IDENTITY_SQL = "SELECT CURRENT_USER() AS USER, CURRENT_ROLE() AS ROLE, CURRENT_WAREHOUSE() AS WAREHOUSE"


class AuthCheckResult(BaseModel):
    """Outcome of probing one authentication method."""

    method: AuthMethod
    status: Literal["success", "failed", "skipped"]
    message: str
    details: Optional[Dict[str, Optional[str]]] = Field(default=None)


def _skip_reason(method: AuthMethod, source: CredentialSource) -> Optional[str]:
    """Return why ``method`` cannot be probed, or None if it is configured."""
    inputs = source.current_inputs()

    if method is AuthMethod.OAUTH:
        return None if source.current_oauth_token() else "No OAuth token found"
    if method is AuthMethod.KEYPAIR:
        if not source.current_private_key():
            return "No private key configured"
        return None if inputs.user else "No SNOWFLAKE_USER set for key-pair authentication"
    if method is AuthMethod.PAT:
        return None if inputs.pat else "No PAT configured"
    if method is AuthMethod.PASSWORD:
        return None if inputs.password else "No password configured"
    return "Not supported in non-interactive mode"


def _probe(method: AuthMethod, source: CredentialSource, session_factory: SessionFactory) -> AuthCheckResult:
    """Connect with one method, read the session identity, and disconnect. Blocking."""
    inputs = source.current_inputs()
    token = source.current_token(method)
    private_key = source.current_private_key() if method is AuthMethod.KEYPAIR else None

    try:
        config = SnowflakeSessionManager.build_connection_config(method, inputs, token=token, private_key=private_key)
        session = session_factory(config)
    except Exception as e:
        SnowflakeErrorHandler.log_error(f"probe {method.value} authentication", e, logger)
        return AuthCheckResult(method=method, status="failed", message=str(e))

    try:
        rows = SqlExecutionClient.execute_sync(session, IDENTITY_SQL)
    except Exception as e:
        SnowflakeErrorHandler.log_error(f"probe {method.value} identity query", e, logger)
        return AuthCheckResult(method=method, status="failed", message=str(e))
    finally:
        SnowflakeSessionManager._close_session(session)

    row = rows[0] if rows else {}
    return AuthCheckResult(
        method=method,
        status="success",
        message=f"Connected as {row.get('USER')}",
        details={"role": row.get("ROLE"), "warehouse": row.get("WAREHOUSE")},
    )


async def check_authentication(
    credential_source: Optional[CredentialSource] = None,
    session_factory: Optional[SessionFactory] = None,
) -> List[AuthCheckResult]:
    """Probe every authentication method in priority order.

    Args:
        credential_source: Credential source (defaults to the environment)
        session_factory: Session factory (defaults to Snowpark)

    Returns:
        One result per AuthMethod, in resolution priority order
    """
    source = credential_source or EnvironmentCredentialSource()
    factory = session_factory or SnowflakeSessionManager.create_session

    results = []
    for method in AuthMethod:
        reason = _skip_reason(method, source)
        if reason:
            results.append(AuthCheckResult(method=method, status="skipped", message=reason))
            continue

        logger.info(f"Testing {method.value} authentication")
        results.append(await asyncio.to_thread(_probe, method, source, factory))

    return results
