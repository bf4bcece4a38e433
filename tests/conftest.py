# tests/conftest.py
"""
Pytest Fixtures - Fakes für Transport, Connector und Modell.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add parent dir to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from toolhub.preflight import PreflightResult  # noqa: E402
from toolhub.transports import TransportError  # noqa: E402

FIXTURES = Path(__file__).parent / "fixtures"


# ═══════════════════════════════════════════════════════════
# FAKE TRANSPORT
# ═══════════════════════════════════════════════════════════

class FakeTransport:
    """Stellt sich wie StdioTransport dar, ohne Prozess."""

    def __init__(
        self,
        tools: Optional[List[Any]] = None,
        start_error: Optional[Exception] = None,
        list_error: Optional[Exception] = None,
        start_delay: float = 0.0,
        call_results: Optional[Dict[str, Any]] = None,
    ):
        self.tools = tools if tools is not None else [{"name": "list_alerts", "inputSchema": {}}]
        self.start_error = start_error
        self.list_error = list_error
        self.start_delay = start_delay
        self.call_results = call_results or {}
        self.started = False
        self.closed = False
        self.calls: List[tuple] = []
        self.running_override: Optional[bool] = None

    @property
    def running(self) -> bool:
        if self.running_override is not None:
            return self.running_override
        return self.started and not self.closed

    async def start(self):
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        self.started = True
        if self.start_error:
            raise self.start_error

    async def list_tools(self):
        if self.list_error:
            raise self.list_error
        return self.tools

    async def call_tool(self, tool_name, arguments, timeout=None):
        self.calls.append((tool_name, arguments))
        result = self.call_results.get(tool_name, {"content": [{"type": "text", "text": "ok"}]})
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


class TransportFactory:
    """Zählt Launches und merkt sich alle erzeugten Transports."""

    def __init__(self, **transport_kwargs):
        self.transport_kwargs = transport_kwargs
        self.created: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(**self.transport_kwargs)
        self.created.append(transport)
        return transport


def passing_check() -> PreflightResult:
    return PreflightResult(ok=True)


def failing_check(kind: str, reason: str = "failed"):
    def _check() -> PreflightResult:
        return PreflightResult(ok=False, kind=kind, reason=reason)
    return _check


def make_connector(factory=None, credentials=passing_check, host=passing_check, **kwargs):
    from toolhub.connector import ToolConnector
    return ToolConnector(
        transport_factory=factory or TransportFactory(),
        credentials_check=credentials,
        host_check=host,
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════
# FAKE MODEL
# ═══════════════════════════════════════════════════════════

class FakeChat:
    """Ersetzt utils.ollama.chat; Antworten werden der Reihe nach geliefert."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, messages, model=None, temperature=None, **kwargs):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


# ═══════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def transport_factory():
    return TransportFactory()


@pytest.fixture
def fake_server_command():
    return [sys.executable, str(FIXTURES / "fake_mcp_server.py")]


@pytest.fixture
def transport_error():
    return TransportError("broken pipe")
