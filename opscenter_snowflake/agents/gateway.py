"""Natural-language gateway over the Snowflake Cortex Agents REST API.

The gateway asks a warehouse-hosted Cortex Agent to answer a free-text
question and falls back to a plain ``CORTEX.COMPLETE`` query when the agent
fails or times out.
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, Optional, Sequence, Union

from langchain_core.messages import BaseMessage, HumanMessage
from langchain_core.runnables import Runnable, RunnableConfig
from pydantic import ValidationError

from .._connection import (
    CredentialSource,
    EnvironmentCredentialSource,
    RestApiClient,
    RestApiRequestBuilder,
    SnowflakeAuthUtils,
    SqlExecutionClient,
)
from .._error_handling import SnowflakeErrorHandler
from .._validation_utils import SnowflakeValidationUtils
from ..exceptions import AgentError, AgentTimeoutError
from .schemas import AgentResponse, AnalystAnswer

logger = logging.getLogger(__name__)

DEFAULT_AGENT_DATABASE = "DEMO"
DEFAULT_AGENT_SCHEMA = "DEMO"
DEFAULT_AGENT_NAME = "NYC_OPS_CENTER_AGENT"

AGENT_TIMEOUT_SECONDS = 180.0
FALLBACK_MODEL = "mistral-large2"
FALLBACK_PROMPT = "You are an NYC Operations assistant. Answer this question concisely: {question}"

GatewayInput = Union[str, Dict[str, Any], Sequence[BaseMessage]]


class SnowflakeCortexAgentGateway(Runnable[GatewayInput, AnalystAnswer]):
    """Answer questions about the operations data through a Cortex Agent.

    The agent call authenticates with its own bearer token (PAT if configured,
    otherwise a freshly signed key-pair JWT) and never touches the SQL
    session. The fallback path goes through the shared ``SqlExecutionClient``.

    Key init args:
        executor: SqlExecutionClient
            Executor used for the COMPLETE fallback
        credential_source: Optional[CredentialSource]
            Source of PAT / key-pair credentials (defaults to the environment)
        name, database, schema: Optional[str]
            Agent location; default to ``OPSCENTER_AGENT_*`` environment
            variables, then ``DEMO.DEMO.NYC_OPS_CENTER_AGENT``
        timeout: float
            Ceiling in seconds for the agent call (default: 180)

    Usage:
        .. code-block:: python

            gateway = SnowflakeCortexAgentGateway(executor=executor)
            answer = await gateway.ask("How many cameras are offline?")
            print(answer.answer, answer.sql, answer.row_count)
    """

    def __init__(
        self,
        executor: SqlExecutionClient,
        credential_source: Optional[CredentialSource] = None,
        name: Optional[str] = None,
        database: Optional[str] = None,
        schema: Optional[str] = None,
        timeout: float = AGENT_TIMEOUT_SECONDS,
        fallback_model: str = FALLBACK_MODEL,
        verify_ssl: bool = True,
    ) -> None:
        self.executor = executor
        self.credential_source = credential_source or EnvironmentCredentialSource()
        self.name = SnowflakeValidationUtils.validate_non_empty_string(
            name or os.getenv("OPSCENTER_AGENT_NAME") or DEFAULT_AGENT_NAME, "name"
        )
        self.database = SnowflakeValidationUtils.validate_non_empty_string(
            database or os.getenv("OPSCENTER_AGENT_DATABASE") or DEFAULT_AGENT_DATABASE, "database"
        )
        self.schema = SnowflakeValidationUtils.validate_non_empty_string(
            schema or os.getenv("OPSCENTER_AGENT_SCHEMA") or DEFAULT_AGENT_SCHEMA, "schema"
        )
        self.timeout = timeout
        self.fallback_model = fallback_model
        self.verify_ssl = verify_ssl

    @property
    def agent_name(self) -> str:
        """Fully qualified agent name."""
        return f"{self.database}.{self.schema}.{self.name}"

    # ============================================================================
    # SHARED HELPER METHODS
    # ============================================================================

    @staticmethod
    def _extract_question(input: GatewayInput) -> str:
        """Extract the question from a string, an input dict, or a message sequence."""
        if isinstance(input, str):
            return input

        if isinstance(input, dict):
            if "messages" in input:
                return SnowflakeCortexAgentGateway._extract_question(input["messages"])
            question = input.get("question") or input.get("input") or input.get("query")
            if not question:
                raise ValueError("Input dict must contain 'question', 'input', 'query', or 'messages' key")
            return question

        if isinstance(input, (list, tuple)):
            for message in reversed(input):
                if isinstance(message, HumanMessage):
                    return message.content
                elif isinstance(message, dict) and message.get("role") == "user":
                    return message.get("content", "")
            raise ValueError("No human message found in message sequence")

        raise ValueError(f"Unsupported input type: {type(input)}")

    @staticmethod
    def _build_agent_payload(question: str) -> Dict[str, Any]:
        return {
            "messages": [{"role": "user", "content": [{"type": "text", "text": question}]}],
            "stream": False,
        }

    @staticmethod
    def _parse_agent_response(response_data: Dict[str, Any]) -> Dict[str, Any]:
        """Pull answer text, generated SQL, result rows and tool name out of an agent response.

        Raises:
            AgentError: If the response does not match the expected shape
        """
        try:
            response = AgentResponse.model_validate(response_data)
        except ValidationError as e:
            raise AgentError(f"Unexpected Cortex Agent response: {e}") from e

        answer = ""
        sql = None
        results = None
        tool_name = None

        for item in response.content:
            if item.type == "text" and item.text:
                answer += item.text

            if item.type == "tool_result" and item.tool_result:
                tool_name = item.tool_result.name

                for content in item.tool_result.content:
                    if content.type != "json" or content.payload is None:
                        continue

                    if content.payload.sql:
                        sql = content.payload.sql

                    if content.payload.result_set:
                        rows = content.payload.result_set.to_rows()
                        if rows is not None:
                            results = rows

                    if content.payload.text and not answer:
                        answer = content.payload.text

        return {"answer": answer, "sql": sql, "results": results, "tool_name": tool_name}

    # ============================================================================
    # AGENT AND FALLBACK CALLS
    # ============================================================================

    async def _call_agent(self, question: str) -> Dict[str, Any]:
        """Run the Cortex Agent once and parse its answer."""
        token, token_type = SnowflakeAuthUtils.get_auth_token(self.credential_source)
        base_url = SnowflakeAuthUtils.build_account_url(self.credential_source.current_inputs().account)

        request_config = RestApiRequestBuilder.agent_run_request(
            base_url=base_url,
            database=self.database,
            schema=self.schema,
            name=self.name,
            token=token,
            token_type=token_type,
            payload=self._build_agent_payload(question),
            verify_ssl=self.verify_ssl,
        )

        response_data = await RestApiClient.make_async_request(request_config, "Cortex Agent run")
        request_id = response_data.get("_snowflake_request_id")
        if request_id:
            SnowflakeErrorHandler.log_info("Cortex Agent run", f"request id {request_id}", logger)
        return self._parse_agent_response(response_data)

    async def _call_agent_with_timeout(self, question: str) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(self._call_agent(question), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise AgentTimeoutError(f"Cortex Agent call exceeded {self.timeout:g}s") from e

    async def _fallback_to_direct_query(self, question: str) -> str:
        """Answer with a plain COMPLETE call through the shared SQL executor."""
        response = await self.executor.execute_cortex_complete(
            self.fallback_model, FALLBACK_PROMPT.format(question=question)
        )
        return response or "Unable to process your question."

    async def ask(self, question: str) -> AnalystAnswer:
        """Answer a natural-language question.

        Args:
            question: Free-text question

        Returns:
            AnalystAnswer with the agent's text, SQL and rows, or a text-only
            fallback answer

        Raises:
            ValueError: If the question is empty
            QueryError: If the fallback query itself fails
        """
        question = SnowflakeValidationUtils.validate_non_empty_string(question, "question")
        start_time = time.monotonic()

        try:
            agent_result = await self._call_agent_with_timeout(question)
        except Exception as e:
            SnowflakeErrorHandler.log_warning_and_fallback(e, "Cortex Agent", "direct COMPLETE query", logger)
            answer = await self._fallback_to_direct_query(question)
            return AnalystAnswer(
                answer=answer,
                used_agent=False,
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        results = agent_result["results"]
        return AnalystAnswer(
            answer=agent_result["answer"],
            sql=agent_result["sql"],
            results=results,
            row_count=len(results) if results else 0,
            tool_name=agent_result["tool_name"],
            used_agent=True,
            agent_name=self.agent_name,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    # ============================================================================
    # RUNNABLE INTERFACE
    # ============================================================================

    async def ainvoke(
        self, input: GatewayInput, config: Optional[RunnableConfig] = None, **kwargs: Any
    ) -> AnalystAnswer:
        """Answer a question given as a string, input dict, or message sequence."""
        return await self.ask(self._extract_question(input))

    def invoke(self, input: GatewayInput, config: Optional[RunnableConfig] = None, **kwargs: Any) -> AnalystAnswer:
        """Synchronous wrapper around ``ainvoke``; must not be called from a running event loop."""
        return asyncio.run(self.ainvoke(input, config, **kwargs))
