"""Credential inputs and authentication method resolution.

The active authentication method is never stored: it is recomputed from the
current environment on every call, because the hosting platform may rotate the
OAuth token file while the process is running.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .._validation_utils import SnowflakeValidationUtils

logger = logging.getLogger(__name__)

# Written by Snowpark Container Services; read-only from our side.
OAUTH_TOKEN_PATH = "/snowflake/session/token"

DEFAULT_WAREHOUSE = "COMPUTE_WH"
DEFAULT_DATABASE = "DEMO"
DEFAULT_SCHEMA = "DEMO"


class AuthMethod(str, Enum):
    """Authentication methods in resolution priority order."""

    OAUTH = "oauth"
    KEYPAIR = "keypair"
    PAT = "pat"
    PASSWORD = "password"
    BROWSER = "browser"


class CredentialInputs(BaseModel):
    """Snapshot of the credential-related environment at one point in time."""

    account: Optional[str] = Field(default=None, description="Snowflake account identifier")
    user: Optional[str] = Field(default=None, description="Snowflake username")
    warehouse: str = Field(default=DEFAULT_WAREHOUSE, description="Snowflake warehouse")
    database: str = Field(default=DEFAULT_DATABASE, description="Snowflake database")
    snowflake_schema: str = Field(default=DEFAULT_SCHEMA, alias="schema", description="Snowflake schema")
    role: Optional[str] = Field(default=None, description="Snowflake role")
    host: Optional[str] = Field(default=None, description="Host override (used with OAuth)")
    private_key_path: Optional[str] = Field(default=None, description="Path to PEM private key file")
    private_key: Optional[SecretStr] = Field(default=None, description="Inline PEM private key content")
    private_key_passphrase: Optional[SecretStr] = Field(default=None, description="Private key passphrase")
    pat: Optional[SecretStr] = Field(default=None, description="Programmatic access token")
    password: Optional[SecretStr] = Field(default=None, description="Snowflake password")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_env(cls) -> "CredentialInputs":
        """Read credential inputs from ``SNOWFLAKE_*`` environment variables.

        Expected environment variables (all optional):
        - SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER
        - SNOWFLAKE_WAREHOUSE, SNOWFLAKE_DATABASE, SNOWFLAKE_SCHEMA, SNOWFLAKE_ROLE
        - SNOWFLAKE_HOST
        - SNOWFLAKE_PRIVATE_KEY_PATH, SNOWFLAKE_PRIVATE_KEY, SNOWFLAKE_PRIVATE_KEY_PASSPHRASE
        - SNOWFLAKE_PAT
        - SNOWFLAKE_PASSWORD
        """
        fields = [
            "account",
            "user",
            "warehouse",
            "database",
            "schema",
            "role",
            "host",
            "private_key_path",
            "private_key",
            "private_key_passphrase",
            "pat",
            "password",
        ]
        env_values = SnowflakeValidationUtils.validate_optional_env_vars([f"SNOWFLAKE_{f.upper()}" for f in fields])

        values = {}
        for field in fields:
            value = env_values[f"SNOWFLAKE_{field.upper()}"]
            if value is not None:
                values[field] = value

        return cls(**values)


def normalize_private_key(key_content: str) -> str:
    """Turn literal ``\\n`` escape sequences (common in env files) into real newlines."""
    return key_content.replace("\\n", "\n")


def resolve_auth_method(
    inputs: CredentialInputs,
    oauth_token: Optional[str],
    private_key: Optional[str],
) -> AuthMethod:
    """Select exactly one authentication method; first match wins.

    1. oauth    - the platform token file exists and is non-empty
    2. keypair  - a private key is resolvable and a username is configured
    3. pat      - a programmatic access token is configured
    4. password - a password is configured
    5. browser  - fallback; does not work in a headless server process
    """
    if oauth_token:
        return AuthMethod.OAUTH

    if private_key and inputs.user:
        return AuthMethod.KEYPAIR

    if inputs.pat and inputs.pat.get_secret_value():
        return AuthMethod.PAT

    if inputs.password and inputs.password.get_secret_value():
        return AuthMethod.PASSWORD

    return AuthMethod.BROWSER


class CredentialSource(ABC):
    """Query interface over the credentials currently available to the process.

    Implementations must not cache between calls.
    """

    @abstractmethod
    def current_inputs(self) -> CredentialInputs:
        """Return the credential inputs as they are right now."""

    @abstractmethod
    def current_oauth_token(self) -> Optional[str]:
        """Return the platform OAuth token, or None when no token file is present."""

    @abstractmethod
    def current_private_key(self) -> Optional[str]:
        """Return PEM private key material, or None when no key is resolvable."""

    def current_method(self) -> AuthMethod:
        """Resolve the authentication method from the current state."""
        method = resolve_auth_method(self.current_inputs(), self.current_oauth_token(), self.current_private_key())
        if method is AuthMethod.BROWSER:
            logger.warning(
                "WARNING: External browser auth not supported in server context. Use PAT, key-pair, or password."
            )
        return method

    def current_token(self, method: Optional[AuthMethod] = None) -> Optional[str]:
        """Return the token value a session under ``method`` would be built with.

        Only token-bearing methods (oauth, pat) have one; others return None.
        """
        method = method or self.current_method()
        if method is AuthMethod.OAUTH:
            return self.current_oauth_token()
        if method is AuthMethod.PAT:
            pat = self.current_inputs().pat
            return pat.get_secret_value() if pat else None
        return None


class EnvironmentCredentialSource(CredentialSource):
    """Credential source backed by environment variables and the platform token file."""

    def __init__(self, token_path: str = OAUTH_TOKEN_PATH) -> None:
        self.token_path = token_path

    def current_inputs(self) -> CredentialInputs:
        return CredentialInputs.from_env()

    def current_oauth_token(self) -> Optional[str]:
        token = SnowflakeValidationUtils.read_optional_file(self.token_path, "OAuth token")
        if token is None:
            return None
        token = token.strip()
        return token or None

    def current_private_key(self) -> Optional[str]:
        inputs = self.current_inputs()

        # Inline key material takes precedence over the key file.
        if inputs.private_key and inputs.private_key.get_secret_value():
            return normalize_private_key(inputs.private_key.get_secret_value())

        if inputs.private_key_path:
            key = SnowflakeValidationUtils.read_optional_file(inputs.private_key_path, "private key")
            if key and key.strip():
                return key

        return None
