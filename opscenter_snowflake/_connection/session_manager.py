"""Snowflake session ownership: one live session per manager, rebuilt on credential change."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

from snowflake.snowpark import Session

from .._error_handling import SnowflakeErrorHandler
from ..exceptions import SnowflakeConnectionError
from .auth_utils import SnowflakeAuthUtils
from .credentials import AuthMethod, CredentialInputs, CredentialSource, EnvironmentCredentialSource

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Dict[str, Any]], Any]

IDENTIFIER_PARAMS = frozenset({"account", "user", "warehouse", "database", "schema", "role", "host"})


class LiveSession:
    """A connected session plus the credential context it was built under.

    Never mutated after creation except for its usage bookkeeping; an
    invalidated session is replaced, not repaired.
    """

    def __init__(self, session: Any, auth_method: AuthMethod, token: Optional[str]) -> None:
        self.session = session
        self.auth_method = auth_method
        self.token = token
        self.in_flight = 0
        self.retired = False


class SnowflakeSessionManager:
    """Owns the single live Snowflake session for the process.

    The session is created lazily, reused while the resolved authentication
    method and token are unchanged, and replaced when either changes or when
    the query executor reports a retryable failure. A session is only closed
    once no query is outstanding on it.

    Example:
        >>> manager = SnowflakeSessionManager(EnvironmentCredentialSource())
        >>> async with manager.acquire() as session:
        ...     rows = session.sql("SELECT 1").collect()
    """

    def __init__(
        self,
        credential_source: Optional[CredentialSource] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.credential_source = credential_source or EnvironmentCredentialSource()
        self._session_factory = session_factory or SnowflakeSessionManager.create_session
        self._live: Optional[LiveSession] = None
        self._lock = asyncio.Lock()

    @property
    def is_live(self) -> bool:
        """Whether a session is currently cached."""
        return self._live is not None

    @property
    def auth_method(self) -> Optional[AuthMethod]:
        """Authentication method of the cached session, if any."""
        return self._live.auth_method if self._live else None

    @staticmethod
    def _get_package_version() -> str:
        """Get the current package version for query tagging."""
        try:
            import importlib.metadata

            return importlib.metadata.version("opscenter-snowflake")
        except Exception as e:
            SnowflakeErrorHandler.log_debug("detect package version", str(e), logger)
            return "0.1.0"

    @staticmethod
    def _create_query_tag() -> str:
        """Create a standardized query tag for Snowflake sessions.

        Returns:
            Query tag string (JSON format for tracking)
        """
        version_str = SnowflakeSessionManager._get_package_version()

        try:
            version_parts = version_str.split(".")
            major = int(version_parts[0]) if len(version_parts) > 0 else 0
            minor = int(version_parts[1]) if len(version_parts) > 1 else 0
        except (ValueError, IndexError):
            major, minor = 0, 1

        tag_dict = {"origin": "opscenter", "name": "opscenter_snowflake", "version": {"major": major, "minor": minor}}
        return json.dumps(tag_dict, separators=(",", ":"))

    @staticmethod
    def _normalize_connection_params(connection_params: Dict[str, Any]) -> Dict[str, Any]:
        """Drop unset parameters and strip identifier parameters.

        Secrets (password, token, private key) are passed through untouched.
        """
        normalized = {}
        for key, value in connection_params.items():
            if value is None or value == "":
                continue
            if key in IDENTIFIER_PARAMS and isinstance(value, str):
                value = value.strip()
            normalized[key] = value
        return normalized

    @staticmethod
    def build_connection_config(
        method: AuthMethod,
        inputs: CredentialInputs,
        token: Optional[str] = None,
        private_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the Snowpark connection configuration for one credential shape.

        Args:
            method: Resolved authentication method
            inputs: Credential inputs snapshot
            token: OAuth token (oauth) or programmatic access token (pat)
            private_key: PEM private key material (keypair)

        Returns:
            Dictionary suitable for ``Session.builder.configs()``

        Raises:
            CredentialError: If key-pair material cannot be loaded
        """
        config: Dict[str, Any] = {
            "account": inputs.account,
            "warehouse": inputs.warehouse,
            "database": inputs.database,
            "schema": inputs.snowflake_schema,
            "role": inputs.role,
        }

        if method is AuthMethod.OAUTH:
            config.update({"host": inputs.host, "token": token, "authenticator": "oauth"})

        elif method is AuthMethod.KEYPAIR:
            passphrase = inputs.private_key_passphrase.get_secret_value() if inputs.private_key_passphrase else None
            config.update(
                {
                    "user": inputs.user,
                    "private_key": SnowflakeAuthUtils.private_key_to_der(private_key, passphrase),
                    "authenticator": "SNOWFLAKE_JWT",
                }
            )

        elif method is AuthMethod.PAT:
            config.update({"user": inputs.user, "token": token, "authenticator": "PROGRAMMATIC_ACCESS_TOKEN"})

        elif method is AuthMethod.PASSWORD:
            config.update({"user": inputs.user, "password": inputs.password.get_secret_value()})

        else:
            config.update({"user": inputs.user, "authenticator": "externalbrowser"})

        return SnowflakeSessionManager._normalize_connection_params(config)

    @staticmethod
    def create_session(connection_params: Dict[str, Any]) -> Session:
        """Create a Snowflake session with standardized configuration.

        Blocking; call through ``asyncio.to_thread`` from async code.
        """
        session = Session.builder.configs(connection_params).create()
        session.query_tag = SnowflakeSessionManager._create_query_tag()
        return session

    @staticmethod
    def _close_session(session: Any) -> None:
        """Close a session, logging rather than raising if the transport is already broken."""
        try:
            session.close()
        except Exception as e:
            SnowflakeErrorHandler.log_debug("session close", f"ignoring error while closing session: {e}", logger)

    async def _connect(self, method: AuthMethod, token: Optional[str]) -> LiveSession:
        inputs = self.credential_source.current_inputs()
        private_key = self.credential_source.current_private_key() if method is AuthMethod.KEYPAIR else None
        config = self.build_connection_config(method, inputs, token=token, private_key=private_key)

        SnowflakeErrorHandler.log_info(
            "session management", f"Connecting with {method.value} authentication (params: {sorted(config)})", logger
        )
        try:
            session = await asyncio.to_thread(self._session_factory, config)
        except Exception as e:
            SnowflakeErrorHandler.log_error(f"connect with {method.value} authentication", e, logger)
            message = f"Failed to connect to Snowflake using {method.value} authentication: {e}"
            if method is AuthMethod.BROWSER:
                message += (
                    ". External browser authentication needs an interactive session; configure "
                    "SNOWFLAKE_PAT, SNOWFLAKE_PRIVATE_KEY_PATH/SNOWFLAKE_PRIVATE_KEY, or SNOWFLAKE_PASSWORD."
                )
            raise SnowflakeConnectionError(message) from e

        return LiveSession(session, method, token)

    async def _retire(self, live: LiveSession) -> None:
        live.retired = True
        if live.in_flight == 0:
            await asyncio.to_thread(self._close_session, live.session)

    async def _ensure_live(self) -> LiveSession:
        """Return a valid live session, replacing the cached one if needed. Caller holds the lock."""
        method = self.credential_source.current_method()
        token = self.credential_source.current_token(method)

        live = self._live
        if live is not None and live.auth_method is method and live.token == token:
            return live

        if live is not None:
            logger.info("Auth method or token changed, reconnecting")
            self._live = None
            await self._retire(live)

        self._live = await self._connect(method, token)
        return self._live

    async def get_session(self) -> Any:
        """Get the live session, connecting or reconnecting as needed.

        The returned session is not pinned and may be closed by a later rotation
        or invalidation. Use :meth:`acquire` to run queries on it.

        Raises:
            SnowflakeConnectionError: If the session cannot be established
            CredentialError: If the selected credentials are unusable
        """
        async with self._lock:
            live = await self._ensure_live()
        return live.session

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """Pin the live session for the duration of one query.

        A session pinned here is not closed until every holder has released it,
        even if it is invalidated or replaced in the meantime.
        """
        async with self._lock:
            live = await self._ensure_live()
            live.in_flight += 1

        try:
            yield live.session
        finally:
            live.in_flight -= 1
            if live.retired and live.in_flight == 0:
                await asyncio.to_thread(self._close_session, live.session)

    async def invalidate(self, session: Any = None) -> None:
        """Drop the cached session so the next caller reconnects.

        Args:
            session: Only drop the cache if it still holds this session; a
                replacement built by another caller is left alone.
        """
        live = self._live
        if live is None or (session is not None and live.session is not session):
            return

        SnowflakeErrorHandler.log_debug("session management", "invalidating cached session", logger)
        self._live = None
        await self._retire(live)

    async def close(self) -> None:
        """Release the cached session (shutdown hook)."""
        await self.invalidate()
