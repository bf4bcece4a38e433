# core/models.py
"""
Interne Datenmodelle für Connector, Planner und Orchestrator.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from shared_schemas import Decision, ToolDescriptor

ToolCatalog = Tuple[ToolDescriptor, ...]


class ConnectorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ConnectorSnapshot:
    """
    Zustand des Tool-Connectors als getaggte Variante.

    READY trägt den Katalog, UNAVAILABLE trägt reason_kind/reason.
    Wird bei jedem Übergang komplett ersetzt, nie mutiert.
    """
    state: ConnectorState = ConnectorState.UNINITIALIZED
    catalog: ToolCatalog = ()
    reason_kind: Optional[str] = None
    reason: str = ""

    @classmethod
    def ready(cls, catalog: ToolCatalog) -> "ConnectorSnapshot":
        return cls(state=ConnectorState.READY, catalog=tuple(catalog))

    @classmethod
    def unavailable(cls, reason_kind: str, reason: str) -> "ConnectorSnapshot":
        return cls(state=ConnectorState.UNAVAILABLE, reason_kind=reason_kind, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "tools": [t.name for t in self.catalog],
            "reason_kind": self.reason_kind,
            "reason": self.reason,
        }


@dataclass
class ToolInvocationResult:
    """Normalisiertes Ergebnis eines tools/call."""
    tool_name: str
    content_parts: List[str] = field(default_factory=list)
    latency_ms: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.content_parts

    @classmethod
    def from_raw(cls, tool_name: str, raw: Any, latency_ms: float = 0.0) -> "ToolInvocationResult":
        """
        MCP-Result → Textteile.

        - content[] vorhanden: pro Item `text`, sonst das Item als JSON
        - content[] fehlt: das ganze Result als JSON (pretty)
        - content[] leer: leere Liste (gültig, wird explizit gerendert)
        """
        content = raw.get("content") if isinstance(raw, dict) else None
        if not isinstance(content, list):
            return cls(tool_name, [json.dumps(raw, indent=2, ensure_ascii=False, default=str)], latency_ms)

        parts: List[str] = []
        for item in content:
            text = item.get("text") if isinstance(item, dict) else None
            if isinstance(text, str) and text:
                parts.append(text)
            else:
                parts.append(json.dumps(item, ensure_ascii=False, default=str))
        return cls(tool_name, parts, latency_ms)


@dataclass
class DecisionOutcome:
    """
    Decision plus Herkunft.

    parsed=False heißt: Modell hat geantwortet, aber ohne verwertbares JSON
    (Default-Decision). parsed=True + use_tool=False heißt: Modell will kein Tool.
    """
    decision: Decision
    parsed: bool
    reason: str = ""
    raw_reply: str = ""
