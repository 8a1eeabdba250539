"""Unit tests for key-pair JWT signing and REST API authentication helpers."""

import base64
import hashlib

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from pydantic import SecretStr

from opscenter_snowflake._connection import SnowflakeAuthUtils
from opscenter_snowflake._connection.auth_utils import (
    JWT_LIFETIME_SECONDS,
    TOKEN_TYPE_KEYPAIR_JWT,
    TOKEN_TYPE_PAT,
)
from opscenter_snowflake.exceptions import CredentialError

ISSUED_AT = 1_700_000_000


def expected_fingerprint(private_key) -> str:
    der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(hashlib.sha256(der).digest()).decode()


def decode(token: str, private_key) -> dict:
    return jwt.decode(
        token,
        private_key.public_key(),
        algorithms=["RS256"],
        options={"verify_exp": False, "verify_iat": False},
    )


class TestAccountNormalization:
    """Test account identifier handling for JWT claims."""

    @pytest.mark.parametrize(
        "account, expected",
        [
            ("xy12345", "XY12345"),
            ("xy12345.us-east-1.aws", "XY12345"),
            ("myorg-myacct.global", "MYORG-MYACCT"),
            ("XY12345.GLOBAL.us-east-1", "XY12345"),
        ],
    )
    def test_normalize_account(self, account, expected):
        assert SnowflakeAuthUtils.normalize_account(account) == expected

    def test_qualified_username(self):
        assert SnowflakeAuthUtils.qualified_username("xy12345.us-east-1", "alice") == "XY12345.ALICE"
        assert SnowflakeAuthUtils.qualified_username("XY12345.US-EAST-1.aws", "Alice") == "XY12345.ALICE"


class TestCreateJwtToken:
    """Test key-pair JWT creation."""

    def test_claims(self, rsa_private_key, private_key_pem):
        token = SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", private_key_pem, now=ISSUED_AT)
        claims = decode(token, rsa_private_key)

        fingerprint = expected_fingerprint(rsa_private_key)
        assert claims["iss"] == f"XY12345.ALICE.SHA256:{fingerprint}"
        assert claims["sub"] == "XY12345.ALICE"
        assert claims["iat"] == ISSUED_AT
        assert claims["exp"] == ISSUED_AT + JWT_LIFETIME_SECONDS

    def test_header(self, private_key_pem):
        token = SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", private_key_pem, now=ISSUED_AT)

        assert jwt.get_unverified_header(token) == {"alg": "RS256", "typ": "JWT"}

    def test_deterministic_for_fixed_time(self, private_key_pem):
        first = SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", private_key_pem, now=ISSUED_AT)
        second = SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", private_key_pem, now=ISSUED_AT)

        assert first == second

    def test_fingerprint_matches(self, rsa_private_key):
        assert SnowflakeAuthUtils.public_key_fingerprint(rsa_private_key) == expected_fingerprint(rsa_private_key)

    def test_encrypted_key_with_passphrase(self, rsa_private_key):
        encrypted_pem = rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(b"s3cret"),
        )

        token = SnowflakeAuthUtils.create_jwt_token(
            "xy12345", "alice", encrypted_pem, passphrase="s3cret", now=ISSUED_AT
        )

        assert decode(token, rsa_private_key)["sub"] == "XY12345.ALICE"

    @pytest.mark.parametrize("private_key", [None, "", b""])
    def test_missing_key(self, private_key):
        with pytest.raises(CredentialError, match="Private key not available"):
            SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", private_key)

    def test_invalid_key(self):
        with pytest.raises(CredentialError, match="Invalid or undecryptable private key"):
            SnowflakeAuthUtils.create_jwt_token("xy12345", "alice", "not a pem key")

    def test_private_key_to_der(self, rsa_private_key, private_key_pem):
        der = SnowflakeAuthUtils.private_key_to_der(private_key_pem)
        loaded = serialization.load_der_private_key(der, password=None)

        assert loaded.private_numbers() == rsa_private_key.private_numbers()


class TestRestApiAuthentication:
    """Test bearer token selection for the Cortex Agent API."""

    def test_pat_preferred(self, make_credential_source, private_key_pem):
        source = make_credential_source(private_key=private_key_pem, user="alice", pat=SecretStr("pat-value"))

        assert SnowflakeAuthUtils.get_auth_token(source) == ("pat-value", TOKEN_TYPE_PAT)

    def test_keypair_jwt(self, make_credential_source, rsa_private_key, private_key_pem):
        source = make_credential_source(private_key=private_key_pem, user="alice")

        token, token_type = SnowflakeAuthUtils.get_auth_token(source)

        assert token_type == TOKEN_TYPE_KEYPAIR_JWT
        assert decode(token, rsa_private_key)["sub"] == "XY12345.ALICE"

    def test_no_credentials(self, make_credential_source):
        source = make_credential_source(user="alice", password=SecretStr("pw"))

        with pytest.raises(CredentialError):
            SnowflakeAuthUtils.get_auth_token(source)

    def test_headers(self):
        headers = SnowflakeAuthUtils.get_rest_api_headers("abc", TOKEN_TYPE_PAT)

        assert headers["Authorization"] == "Bearer abc"
        assert headers["X-Snowflake-Authorization-Token-Type"] == "PROGRAMMATIC_ACCESS_TOKEN"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.parametrize(
        "account, expected",
        [
            ("xy12345", "https://xy12345.snowflakecomputing.com"),
            ("xy12345.us-east-1.snowflakecomputing.com", "https://xy12345.us-east-1.snowflakecomputing.com"),
        ],
    )
    def test_build_account_url(self, account, expected):
        assert SnowflakeAuthUtils.build_account_url(account) == expected

    def test_build_account_url_requires_account(self):
        with pytest.raises(CredentialError):
            SnowflakeAuthUtils.build_account_url(None)
