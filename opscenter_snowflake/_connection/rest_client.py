"""REST API client for Snowflake Cortex operations.

The REST API authenticates with its own bearer token and does not share the
SQL session.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from .._error_handling import SnowflakeErrorHandler
from ..exceptions import AgentError
from .auth_utils import SnowflakeAuthUtils

logger = logging.getLogger(__name__)


class RestApiClient:
    """Async REST API client for Snowflake Cortex endpoints."""

    @staticmethod
    def prepare_request(
        base_url: str,
        endpoint: str,
        token: str,
        token_type: str,
        method: str = "POST",
        payload: Optional[Dict] = None,
        url_params: Optional[Dict] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """Prepare request parameters for a Snowflake REST API endpoint.

        Args:
            base_url: Account URL, e.g. ``https://xy12345.snowflakecomputing.com``
            endpoint: API endpoint (e.g., "/databases/{database}/schemas/{schema}/agents/{name}:run")
            token: Bearer token
            token_type: Value for ``X-Snowflake-Authorization-Token-Type``
            method: HTTP method
            payload: Request body payload
            url_params: Parameters for URL templating
            **kwargs: Additional config (verify_ssl)

        Returns:
            Dict containing all request configuration
        """
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        if not endpoint.startswith("/api/v2"):
            endpoint = "/api/v2" + endpoint

        for param, value in (url_params or {}).items():
            placeholder = "{" + param + "}"
            if placeholder in endpoint:
                endpoint = endpoint.replace(placeholder, quote(str(value)))

        request_config = {
            "url": base_url.rstrip("/") + endpoint,
            "method": method.upper(),
            "headers": SnowflakeAuthUtils.get_rest_api_headers(token, token_type),
            "verify": kwargs.get("verify_ssl", True),
        }

        if payload:
            request_config["json"] = payload

        return request_config

    @staticmethod
    async def make_async_request(
        request_config: Dict[str, Any], operation_name: str = "REST API request"
    ) -> Dict[str, Any]:
        """Make an asynchronous REST API request using aiohttp.

        No client-side timeout is set here; callers bound the whole call.

        Args:
            request_config: Request configuration from prepare_request()
            operation_name: Description for error logging

        Returns:
            Parsed JSON response data

        Raises:
            AgentError: If the API answers with a non-2xx status
        """
        request_config = dict(request_config)
        method = request_config.pop("method")
        ssl = request_config.pop("verify")

        logger.debug(f"Making {method} request to: {request_config.get('url', 'Unknown URL')}")

        async with aiohttp.ClientSession() as client:
            async with client.request(method, ssl=ssl, **request_config) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    SnowflakeErrorHandler.log_error(operation_name, Exception(f"status {response.status}"), logger)
                    raise AgentError(f"Cortex Agent API error: {response.status} - {error_text}")

                response_data = await response.json(content_type=None)

                snowflake_request_id = response.headers.get("X-Snowflake-Request-Id")
                if snowflake_request_id and isinstance(response_data, dict):
                    response_data["_snowflake_request_id"] = snowflake_request_id

                SnowflakeErrorHandler.log_debug(f"async {operation_name}", "completed successfully", logger)
                return response_data


class RestApiRequestBuilder:
    """Helper class for building common REST API request configurations."""

    @staticmethod
    def agent_run_request(
        base_url: str, database: str, schema: str, name: str, token: str, token_type: str, **kwargs
    ) -> Dict[str, Any]:
        """Build request config for agent execution (``:run`` uses a colon prefix)."""
        endpoint = "/databases/{database}/schemas/{schema}/agents/{name}:run"
        url_params = {"database": database, "schema": schema, "name": name}
        return RestApiClient.prepare_request(
            base_url=base_url,
            endpoint=endpoint,
            token=token,
            token_type=token_type,
            url_params=url_params,
            **kwargs,
        )
