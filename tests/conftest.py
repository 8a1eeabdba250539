"""Shared test fixtures and configuration."""

import os
from typing import Optional
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from opscenter_snowflake._connection import CredentialInputs, CredentialSource, normalize_private_key


class FakeCredentialSource(CredentialSource):
    """In-memory credential source whose values tests can change between calls."""

    def __init__(
        self,
        oauth_token: Optional[str] = None,
        private_key: Optional[str] = None,
        **inputs,
    ) -> None:
        self.oauth_token = oauth_token
        self.private_key = private_key
        self.inputs = {"account": "xy12345", **inputs}

    def current_inputs(self) -> CredentialInputs:
        return CredentialInputs(**self.inputs)

    def current_oauth_token(self) -> Optional[str]:
        return self.oauth_token

    def current_private_key(self) -> Optional[str]:
        return normalize_private_key(self.private_key) if self.private_key else None


def make_session(rows=None, error: Optional[Exception] = None) -> Mock:
    """Mock Snowpark session whose ``sql().collect()`` returns ``rows`` or raises ``error``."""
    session = Mock()
    if error is not None:
        session.sql.return_value.collect.side_effect = error
    else:
        session.sql.return_value.collect.return_value = rows if rows is not None else [{"RESULT": 1}]
    return session


@pytest.fixture(autouse=True)
def clean_snowflake_env(monkeypatch):
    """Keep developer credentials out of unit tests."""
    for name in list(os.environ):
        if name.startswith("SNOWFLAKE_") or name.startswith("OPSCENTER_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_snowflake_session():
    """Mock Snowflake session for all tests."""
    return make_session()


@pytest.fixture
def session_factory():
    """Session factory that hands out a fresh mock session on every connect."""
    return Mock(side_effect=lambda config: make_session())


@pytest.fixture(scope="session")
def rsa_private_key():
    """A throwaway 2048-bit RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    """Unencrypted PKCS8 PEM for ``rsa_private_key``."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def token_file(tmp_path):
    """Path for a platform OAuth token file; tests write it as needed."""
    return tmp_path / "token"


@pytest.fixture
def make_credential_source():
    """Factory for FakeCredentialSource instances."""
    return FakeCredentialSource


@pytest.fixture
def make_mock_session():
    """Factory for mock Snowpark sessions."""
    return make_session
