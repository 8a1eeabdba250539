"""Live connection tests.

Set the following environment variables before the tests (any one complete
credential shape is enough):
export SNOWFLAKE_ACCOUNT=<snowflake_account>
export SNOWFLAKE_USER=<snowflake_user>
export SNOWFLAKE_PAT=<programmatic_access_token>   # or SNOWFLAKE_PRIVATE_KEY_PATH / SNOWFLAKE_PASSWORD
export SNOWFLAKE_WAREHOUSE=<snowflake_warehouse>
"""

import os

import pytest

from opscenter_snowflake import AuthMethod, OpsCenterSnowflake, check_authentication

pytestmark = pytest.mark.integration

CREDENTIAL_VARS = ["SNOWFLAKE_PAT", "SNOWFLAKE_PRIVATE_KEY", "SNOWFLAKE_PRIVATE_KEY_PATH", "SNOWFLAKE_PASSWORD"]

# Snapshot taken at import, before the unit-test fixture clears SNOWFLAKE_* variables.
LIVE_ENV = {name: value for name, value in os.environ.items() if name.startswith("SNOWFLAKE_")}


@pytest.fixture(autouse=True)
def require_credentials(monkeypatch):
    """Skip unless real credentials were exported before the run."""
    for name, value in LIVE_ENV.items():
        monkeypatch.setenv(name, value)

    if not LIVE_ENV.get("SNOWFLAKE_ACCOUNT") or not any(LIVE_ENV.get(var) for var in CREDENTIAL_VARS):
        pytest.skip(f"Integration tests require SNOWFLAKE_ACCOUNT and one of: {CREDENTIAL_VARS}")


@pytest.mark.asyncio
async def test_query_round_trip():
    service = OpsCenterSnowflake()
    try:
        rows = await service.query("SELECT CURRENT_USER() AS USER, 1 AS ONE")
    finally:
        await service.close()

    assert rows[0]["ONE"] == 1
    assert rows[0]["USER"]


@pytest.mark.asyncio
async def test_check_authentication_finds_a_working_method():
    results = await check_authentication()

    assert [result.method for result in results] == list(AuthMethod)
    assert any(result.status == "success" for result in results)
