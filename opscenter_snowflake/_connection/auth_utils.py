"""Authentication utilities for Snowflake REST API and connections."""

import base64
import hashlib
import logging
import time
from typing import Dict, Optional, Tuple, Union

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ..exceptions import CredentialError
from .credentials import CredentialSource

logger = logging.getLogger(__name__)

JWT_LIFETIME_SECONDS = 3600

TOKEN_TYPE_PAT = "PROGRAMMATIC_ACCESS_TOKEN"
TOKEN_TYPE_KEYPAIR_JWT = "KEYPAIR_JWT"


class SnowflakeAuthUtils:
    """Shared authentication utilities for Snowflake REST API and SQL connections."""

    @staticmethod
    def normalize_account(account: str) -> str:
        """Normalize an account identifier for use in JWT claims.

        Uppercases, drops a ``.GLOBAL`` suffix, then keeps only the segment
        before the first remaining dot (region and cloud qualifiers).

        Example:
            >>> SnowflakeAuthUtils.normalize_account("xy12345.us-east-1.aws")
            'XY12345'
        """
        return account.upper().replace(".GLOBAL", "").split(".")[0]

    @staticmethod
    def qualified_username(account: str, user: str) -> str:
        """Build the ``ACCOUNT.USER`` identity used as the JWT subject."""
        return f"{SnowflakeAuthUtils.normalize_account(account)}.{user.upper()}"

    @staticmethod
    def load_private_key(
        private_key: Union[str, bytes, RSAPrivateKey],
        passphrase: Optional[str] = None,
    ) -> RSAPrivateKey:
        """Load PEM private key material into a key object.

        Args:
            private_key: PEM text, PEM bytes, or an already loaded key
            passphrase: Optional passphrase for an encrypted key

        Returns:
            Loaded private key

        Raises:
            CredentialError: If the key is missing or cannot be decoded
        """
        if not private_key:
            raise CredentialError("Private key not available for JWT generation")

        if not isinstance(private_key, (str, bytes)):
            return private_key

        if isinstance(private_key, str):
            private_key = private_key.encode()

        password = passphrase.encode() if passphrase else None
        try:
            return serialization.load_pem_private_key(private_key, password=password)
        except (ValueError, TypeError) as e:
            raise CredentialError(f"Invalid or undecryptable private key: {e}") from e

    @staticmethod
    def public_key_fingerprint(private_key: RSAPrivateKey) -> str:
        """Compute the ``SHA256:`` fingerprint Snowflake registers for the public key.

        The public key is encoded as SubjectPublicKeyInfo DER, hashed with
        SHA-256 and the digest base64 encoded (standard alphabet, padded).
        """
        public_key_der = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return base64.b64encode(hashlib.sha256(public_key_der).digest()).decode("utf-8")

    @staticmethod
    def create_jwt_token(
        account: str,
        user: str,
        private_key: Union[str, bytes, RSAPrivateKey, None],
        passphrase: Optional[str] = None,
        now: Optional[int] = None,
    ) -> str:
        """Create a key-pair JWT for Snowflake authentication.

        Args:
            account: Snowflake account identifier
            user: Snowflake username
            private_key: Private key data (string, bytes, or key object)
            passphrase: Optional passphrase for private key
            now: Issue time as a Unix timestamp (defaults to the current time)

        Returns:
            JWT token string ``header.payload.signature``

        Raises:
            CredentialError: If no private key is available or it cannot be used
        """
        if not private_key:
            raise CredentialError("Private key not available for JWT generation")

        private_key_obj = SnowflakeAuthUtils.load_private_key(private_key, passphrase)

        qualified_username = SnowflakeAuthUtils.qualified_username(account, user)
        fingerprint = SnowflakeAuthUtils.public_key_fingerprint(private_key_obj)

        issued_at = int(time.time()) if now is None else int(now)
        payload = {
            "iss": f"{qualified_username}.SHA256:{fingerprint}",
            "sub": qualified_username,
            "iat": issued_at,
            "exp": issued_at + JWT_LIFETIME_SECONDS,
        }

        try:
            token = jwt.encode(payload, private_key_obj, algorithm="RS256", headers={"typ": "JWT"})
        except Exception as e:
            logger.error(f"Error creating JWT token: {e}")
            raise CredentialError(f"Failed to create JWT token: {e}") from e

        logger.debug(f"Created JWT for {qualified_username} with key fingerprint {fingerprint[:12]}...")
        return token

    @staticmethod
    def private_key_to_der(private_key: Union[str, bytes, RSAPrivateKey], passphrase: Optional[str] = None) -> bytes:
        """Convert PEM key material to unencrypted PKCS8 DER, the form the connector accepts."""
        private_key_obj = SnowflakeAuthUtils.load_private_key(private_key, passphrase)
        return private_key_obj.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @staticmethod
    def get_auth_token(credential_source: CredentialSource) -> Tuple[str, str]:
        """Get a bearer token for the REST API, independent of any SQL session.

        Priority:
        1. Programmatic Access Token (PAT)
        2. Freshly signed key-pair JWT

        Returns:
            Tuple of (token, token type for ``X-Snowflake-Authorization-Token-Type``)

        Raises:
            CredentialError: If neither a PAT nor a usable key pair is configured
        """
        inputs = credential_source.current_inputs()

        if inputs.pat and inputs.pat.get_secret_value():
            return inputs.pat.get_secret_value(), TOKEN_TYPE_PAT

        private_key = credential_source.current_private_key()
        if private_key and inputs.user:
            passphrase = inputs.private_key_passphrase.get_secret_value() if inputs.private_key_passphrase else None
            token = SnowflakeAuthUtils.create_jwt_token(
                account=inputs.account or "",
                user=inputs.user,
                private_key=private_key,
                passphrase=passphrase,
            )
            return token, TOKEN_TYPE_KEYPAIR_JWT

        raise CredentialError("No valid authentication method available for Cortex Agent API")

    @staticmethod
    def get_rest_api_headers(token: str, token_type: str) -> Dict[str, str]:
        """Get REST API headers with bearer authentication."""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "opscenter-snowflake",
            "Authorization": f"Bearer {token}",
            "X-Snowflake-Authorization-Token-Type": token_type,
        }

    @staticmethod
    def build_account_url(account: Optional[str]) -> str:
        """Build the account base URL for REST API calls.

        Accepts either a bare account identifier or a full
        ``<account>.snowflakecomputing.com`` host.

        Raises:
            CredentialError: If no account identifier is configured
        """
        if not account:
            raise CredentialError("SNOWFLAKE_ACCOUNT is required for REST API calls")

        if ".snowflakecomputing.com" in account:
            return f"https://{account}"
        return f"https://{account}.snowflakecomputing.com"

