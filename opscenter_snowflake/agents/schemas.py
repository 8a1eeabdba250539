"""Pydantic schemas for the Cortex Agent natural-language gateway.

The response models mirror the subset of the ``agents/{name}:run`` response
the gateway reads; unknown fields are ignored.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentColumn(BaseModel):
    """Column metadata from a tool result set."""

    model_config = ConfigDict(extra="ignore")

    name: str
    type: Optional[str] = None


class AgentResultSetMetadata(BaseModel):
    """``resultSetMetaData`` block of a tool result set."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    row_type: List[AgentColumn] = Field(default_factory=list, alias="rowType")
    num_rows: Optional[int] = Field(default=None, alias="numRows")


class AgentResultSet(BaseModel):
    """Tabular data returned by the agent's SQL tool."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    data: Optional[List[List[Any]]] = None
    metadata: Optional[AgentResultSetMetadata] = Field(default=None, alias="resultSetMetaData")

    def to_rows(self) -> Optional[List[Dict[str, Any]]]:
        """Zip the row arrays with column names; None when either is missing."""
        if self.data is None or not self.metadata or not self.metadata.row_type:
            return None
        columns = [column.name for column in self.metadata.row_type]
        return [dict(zip(columns, row)) for row in self.data]


class AgentToolJson(BaseModel):
    """JSON payload of a tool result: generated SQL, results and/or text."""

    model_config = ConfigDict(extra="ignore")

    sql: Optional[str] = None
    result_set: Optional[AgentResultSet] = None
    text: Optional[str] = None
    query_id: Optional[str] = None


class AgentToolResultContent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    payload: Optional[AgentToolJson] = Field(default=None, alias="json")


class AgentToolResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    content: List[AgentToolResultContent] = Field(default_factory=list)


class AgentContentItem(BaseModel):
    """One typed item of the agent response content list."""

    model_config = ConfigDict(extra="ignore")

    type: str
    text: Optional[str] = None
    tool_result: Optional[AgentToolResult] = None


class AgentResponse(BaseModel):
    """Non-streaming response body of an agent run."""

    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: List[AgentContentItem] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None


class AnalystAnswer(BaseModel):
    """Structured answer returned by ``ask``.

    ``sql`` and ``results`` are only set when the agent generated and ran a
    query; fallback answers carry free text only.
    """

    answer: str = Field(description="Natural language answer")
    sql: Optional[str] = Field(default=None, description="Generated SQL statement")
    results: Optional[List[Dict[str, Any]]] = Field(default=None, description="Rows returned by the generated SQL")
    row_count: int = Field(default=0, description="Number of result rows")
    tool_name: Optional[str] = Field(default=None, description="Agent tool that produced the result")
    used_agent: bool = Field(default=False, description="False when the COMPLETE fallback answered")
    agent_name: Optional[str] = Field(default=None, description="Fully qualified agent name when used")
    duration_ms: int = Field(default=0, description="Wall-clock time spent answering")
