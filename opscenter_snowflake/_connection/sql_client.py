"""SQL execution client for Snowflake operations.

Runs statements on the manager's live session and drives the bounded
reconnect-and-retry loop for expired tokens and dropped connections.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .._error_handling import SnowflakeErrorHandler
from .._validation_utils import SnowflakeValidationUtils
from ..exceptions import NonRetryableQueryError, RetryableQueryError
from .session_manager import SnowflakeSessionManager

logger = logging.getLogger(__name__)

QueryResult = List[Dict[str, Any]]


class SqlExecutionClient:
    """Executes SQL against the live session with one transparent retry.

    Only a narrow class of failures is retried (see
    ``SnowflakeErrorHandler.is_retryable_error``): the assumption is a single
    transient cause such as token rotation, not generic flakiness. The retry
    happens even when the token source has not changed yet, in which case it
    fails the same way and the second error propagates.
    """

    def __init__(self, session_manager: SnowflakeSessionManager) -> None:
        self.session_manager = session_manager

    @staticmethod
    def _row_to_dict(row: Any) -> Dict[str, Any]:
        if isinstance(row, dict):
            return row
        if hasattr(row, "as_dict"):
            return row.as_dict()
        return dict(row)

    @staticmethod
    def execute_sync(session: Any, sql: str, params: Optional[List[Any]] = None) -> QueryResult:
        """Run one statement on a session and return rows as column-name mappings.

        Blocking; raises whatever the driver raises.
        """
        if params:
            rows = session.sql(sql, params=params).collect()
        else:
            rows = session.sql(sql).collect()
        return [SqlExecutionClient._row_to_dict(row) for row in rows or []]

    async def execute(self, sql: str, max_retries: int = 1, params: Optional[List[Any]] = None) -> QueryResult:
        """Execute SQL and return its rows, reconnecting once on retryable failures.

        Args:
            sql: SQL statement to execute
            max_retries: Remaining forced-reconnect retries (default: 1)
            params: Optional bind parameters

        Returns:
            Ordered list of row mappings (column name to value)

        Raises:
            RetryableQueryError: Retryable failure with no retry budget left
            NonRetryableQueryError: Any other warehouse failure
            SnowflakeConnectionError: If no session can be established
            CredentialError: If the selected credentials are unusable
        """
        async with self.session_manager.acquire() as session:
            try:
                return await asyncio.to_thread(self.execute_sync, session, sql, params)
            except Exception as e:
                SnowflakeErrorHandler.handle_sql_error(e, sql, "query execution", logger)
                retryable = SnowflakeErrorHandler.is_retryable_error(e)
                errno = SnowflakeErrorHandler.error_code(e)

                if not retryable:
                    raise NonRetryableQueryError(str(e), sql=sql, errno=errno) from e
                if max_retries <= 0:
                    raise RetryableQueryError(str(e), sql=sql, errno=errno) from e

                logger.info(f"Retryable query error, reconnecting ({max_retries} retries left)")
                await self.session_manager.invalidate(session)

        return await self.execute(sql, max_retries=max_retries - 1, params=params)

    @staticmethod
    def _escape_sql_arg(arg: Any) -> str:
        """Escape a single SQL argument for use in Cortex functions."""
        escaped = str(arg).replace("'", "''")
        return f"'{escaped}'"

    async def execute_cortex_complete(self, model: str, prompt: str, column: str = "RESPONSE") -> Optional[str]:
        """Run ``SNOWFLAKE.CORTEX.COMPLETE`` with proper SQL escaping.

        Args:
            model: Cortex model name
            prompt: Prompt text
            column: Result column alias

        Returns:
            Completion text, or None if the function returned no row
        """
        model = SnowflakeValidationUtils.validate_model_name(model)
        sql = (
            f"SELECT SNOWFLAKE.CORTEX.COMPLETE({self._escape_sql_arg(model)}, {self._escape_sql_arg(prompt)})"
            f" AS {column}"
        )
        rows = await self.execute(sql)
        if not rows:
            return None
        return rows[0].get(column)
