# core/__init__.py
from .models import (
    ConnectorState,
    ConnectorSnapshot,
    DecisionOutcome,
    ToolCatalog,
    ToolInvocationResult,
)
from .planner import DecisionPlanner
from .orchestrator import Orchestrator

__all__ = [
    "ConnectorState",
    "ConnectorSnapshot",
    "DecisionOutcome",
    "ToolCatalog",
    "ToolInvocationResult",
    "DecisionPlanner",
    "Orchestrator",
]
