"""
Shared Data Schemas
Validiert alles, was von außen kommt: Tool-Katalog vom MCP-Server und
Entscheidungen vom Modell.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolDescriptor(BaseModel):
    """Ein Eintrag aus tools/list. Identität ist der Name."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Tool name, unique per catalog")
    description: Optional[str] = Field(default=None, description="Human-readable description")
    input_schema: Dict[str, Any] = Field(
        default_factory=dict,
        alias="inputSchema",
        description="JSON schema of the tool arguments (opaque here)"
    )


class Decision(BaseModel):
    """Planner-Ergebnis: Tool aufrufen oder direkt antworten."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    use_tool: bool = Field(default=False, description="Whether a tool should be called")
    tool_name: str = Field(default="", description="Tool to call, empty for direct answer")
    args: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")

    @field_validator("tool_name", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("args", mode="before")
    @classmethod
    def _none_to_dict(cls, v):
        return {} if v is None else v

    @property
    def wants_tool(self) -> bool:
        return self.use_tool and bool(self.tool_name.strip())


__all__ = [
    "ToolDescriptor",
    "Decision",
]
