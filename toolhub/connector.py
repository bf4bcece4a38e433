# toolhub/connector.py
"""
Tool Connector - Lifecycle der Verbindung zum Vision-One-MCP-Server.

Zustände: UNINITIALIZED → INITIALIZING → READY | UNAVAILABLE

- ensure_ready() ist idempotent und darf beliebig oft parallel aufgerufen
  werden. Es läuft immer höchstens EIN Init-Versuch; alle Aufrufer warten
  auf denselben Task (Single-Slot-Cache in self._inflight).
- UNAVAILABLE ist kein Endzustand: der nächste ensure_ready() versucht es
  komplett neu (optional mit Cooldown).
- Jeder fehlgeschlagene Versuch gibt den Prozess wieder frei.
- shutdown() räumt genau einmal auf und wartet einen laufenden Versuch ab.
"""

import asyncio
import os
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from config import (
    DOCKER_BIN,
    MCP_SERVER_IMAGE,
    TOOL_CALL_RETRIES,
    TOOL_CALL_TIMEOUT,
    TOOL_HANDSHAKE_TIMEOUT,
    TOOL_RETRY_COOLDOWN,
    TREND_VISION_ONE_API_KEY,
    TREND_VISION_ONE_REGION,
)
from core.errors import ConnectorInitFailed, InvocationError, NotReady
from core.models import ConnectorSnapshot, ConnectorState, ToolCatalog, ToolInvocationResult
from shared_schemas import ToolDescriptor
from toolhub.preflight import PreflightResult, check_credentials, check_tool_host
from toolhub.transports import StdioTransport, TransportError, TransportTimeout
from utils.logger import log_debug, log_error, log_info, log_warning

SHUTDOWN_KIND = "Shutdown"


def build_server_command(
    region: str = TREND_VISION_ONE_REGION,
    image: str = MCP_SERVER_IMAGE,
    docker_bin: str = DOCKER_BIN,
) -> List[str]:
    """docker run für den MCP-Server (stdio, read-only)."""
    return [
        docker_bin, "run", "-i", "--rm",
        "-e", "TREND_VISION_ONE_API_KEY",
        image,
        "-region", region,
        "-readonly=true",
    ]


def default_transport_factory() -> StdioTransport:
    env = dict(os.environ)
    env["TREND_VISION_ONE_API_KEY"] = TREND_VISION_ONE_API_KEY
    return StdioTransport(
        build_server_command(),
        env=env,
        handshake_timeout=TOOL_HANDSHAKE_TIMEOUT,
        call_timeout=TOOL_CALL_TIMEOUT,
    )


def parse_catalog(raw_tools: Any) -> ToolCatalog:
    """tools/list → ToolCatalog. Alles Unerwartete ist ein Init-Fehler."""
    if not isinstance(raw_tools, list):
        raise ConnectorInitFailed(f"tool catalog is not a list: {type(raw_tools).__name__}")

    catalog = []
    seen = set()
    for entry in raw_tools:
        try:
            tool = ToolDescriptor.model_validate(entry)
        except ValidationError as e:
            raise ConnectorInitFailed(f"malformed tool entry {str(entry)[:120]}: {e}") from e
        if tool.name in seen:
            raise ConnectorInitFailed(f"duplicate tool name in catalog: {tool.name}")
        seen.add(tool.name)
        catalog.append(tool)
    return tuple(catalog)


class ToolConnector:
    """Besitzt den MCP-Prozess und den Tool-Katalog."""

    def __init__(
        self,
        transport_factory: Callable[[], StdioTransport] = default_transport_factory,
        credentials_check: Callable[[], PreflightResult] = check_credentials,
        host_check: Callable[[], PreflightResult] = check_tool_host,
        call_timeout: float = TOOL_CALL_TIMEOUT,
        call_retries: int = TOOL_CALL_RETRIES,
        retry_cooldown: float = TOOL_RETRY_COOLDOWN,
        shutdown_wait: float = TOOL_HANDSHAKE_TIMEOUT + 5,
    ):
        self._transport_factory = transport_factory
        self._credentials_check = credentials_check
        self._host_check = host_check
        self.call_timeout = call_timeout
        self.call_retries = max(0, call_retries)
        self.retry_cooldown = retry_cooldown
        self.shutdown_wait = shutdown_wait

        self._snapshot = ConnectorSnapshot()
        self._transport: Optional[StdioTransport] = None
        self._inflight: Optional[asyncio.Task] = None
        self._last_failure_at: Optional[float] = None
        self._shutdown_started = False
        self.attempts = 0

    # ─────────────────────────────────────────────────────────
    # Lesende Sicht
    # ─────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectorState:
        return self._snapshot.state

    @property
    def is_ready(self) -> bool:
        return self._snapshot.state is ConnectorState.READY

    @property
    def transport(self) -> Optional[StdioTransport]:
        return self._transport

    def snapshot(self) -> ConnectorSnapshot:
        return self._snapshot

    def list_tools(self) -> ToolCatalog:
        return self._snapshot.catalog if self.is_ready else ()

    def tool_names(self) -> List[str]:
        return [t.name for t in self.list_tools()]

    # ─────────────────────────────────────────────────────────
    # ensure_ready
    # ─────────────────────────────────────────────────────────

    async def ensure_ready(self) -> bool:
        if self.is_ready:
            return True
        if self._shutdown_started:
            return False

        # Kein await zwischen Prüfen und Setzen von _inflight → atomar im Event-Loop
        if self._inflight is None:
            if self._in_cooldown():
                log_debug("[Connector] Cooldown active, skipping attempt")
                return False
            self._snapshot = ConnectorSnapshot(state=ConnectorState.INITIALIZING)
            self._inflight = asyncio.create_task(self._initialize())

        # shield: ein abbrechender Aufrufer darf den Versuch der anderen nicht killen
        task = self._inflight
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Versuch wurde von shutdown() abgebrochen, nicht der Aufrufer
            if task.cancelled():
                log_debug("[Connector] In-flight attempt was cancelled")
                return False
            raise

    def _in_cooldown(self) -> bool:
        if self.retry_cooldown <= 0 or self._last_failure_at is None:
            return False
        return time.monotonic() - self._last_failure_at < self.retry_cooldown

    async def _initialize(self) -> bool:
        self.attempts += 1
        attempt = self.attempts
        transport: Optional[StdioTransport] = None
        log_info(f"[Connector] Initialization attempt #{attempt}")

        try:
            creds = self._credentials_check()
            if not creds.ok:
                return self._fail(creds.kind, creds.reason)

            host = await asyncio.to_thread(self._host_check)
            if not host.ok:
                return self._fail(host.kind, host.reason)

            transport = self._transport_factory()
            await transport.start()
            catalog = parse_catalog(await transport.list_tools())

            if self._shutdown_started:
                await self._release(transport)
                return self._fail(SHUTDOWN_KIND, "shutdown during initialization")

            self._transport = transport
            self._snapshot = ConnectorSnapshot.ready(catalog)
            self._last_failure_at = None
            log_info(f"[Connector] Ready with {len(catalog)} tools: {', '.join(t.name for t in catalog)}")
            return True

        except asyncio.CancelledError:
            if transport is not None:
                await self._release(transport)
            self._fail(ConnectorInitFailed.kind, "initialization cancelled")
            raise
        except Exception as e:
            if transport is not None:
                await self._release(transport)
            return self._fail(ConnectorInitFailed.kind, f"{type(e).__name__}: {e}")
        finally:
            self._inflight = None

    def _fail(self, kind: str, reason: str) -> bool:
        self._snapshot = ConnectorSnapshot.unavailable(kind, reason)
        self._last_failure_at = time.monotonic()
        log_error(f"[Connector] Unavailable ({kind}): {reason}")
        return False

    async def _release(self, transport: StdioTransport):
        try:
            await transport.close()
        except Exception as e:
            log_warning(f"[Connector] Transport close failed: {e}")

    # ─────────────────────────────────────────────────────────
    # invoke
    # ─────────────────────────────────────────────────────────

    async def invoke(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> ToolInvocationResult:
        """
        Führt ein Tool aus.

        Raises:
            NotReady: Connector nicht READY
            InvocationError: Fehler oder Timeout (nach allen Retries)
        """
        transport = self._transport
        if not self.is_ready or transport is None:
            raise NotReady(f"tool subsystem is {self.state.value}")

        attempts = 1 + self.call_retries
        error: Optional[InvocationError] = None

        for attempt in range(1, attempts + 1):
            started = time.monotonic()
            try:
                raw = await transport.call_tool(tool_name, args or {}, timeout=self.call_timeout)
            except TransportTimeout:
                error = InvocationError(tool_name, f"timed out after {self.call_timeout:g}s")
            except TransportError as e:
                error = InvocationError(tool_name, str(e))
            else:
                latency_ms = (time.monotonic() - started) * 1000
                if isinstance(raw, dict) and raw.get("isError"):
                    log_warning(f"[Connector] {tool_name} reported isError=true")
                log_info(f"[Connector] {tool_name} finished in {latency_ms:.0f}ms")
                return ToolInvocationResult.from_raw(tool_name, raw, latency_ms)

            log_warning(f"[Connector] {tool_name} attempt {attempt}/{attempts} failed: {error.reason}")

            if not transport.running:
                await self._drop_dead_transport(transport)
                break

        raise error

    async def _drop_dead_transport(self, transport: StdioTransport):
        """Prozess ist weg → UNAVAILABLE, nächster ensure_ready() startet neu."""
        if self._transport is not transport:
            return
        self._transport = None
        self._fail(ConnectorInitFailed.kind, "tool process exited")
        await self._release(transport)

    # ─────────────────────────────────────────────────────────
    # shutdown
    # ─────────────────────────────────────────────────────────

    async def shutdown(self):
        """Gibt den MCP-Prozess frei. Genau einmal wirksam, wirft nie."""
        if self._shutdown_started:
            return
        self._shutdown_started = True
        log_info("[Connector] Shutting down")

        inflight = self._inflight
        if inflight is not None:
            try:
                await asyncio.wait_for(asyncio.shield(inflight), timeout=self.shutdown_wait)
            except asyncio.TimeoutError:
                log_warning("[Connector] Initialization still running, cancelling it")
                inflight.cancel()
                try:
                    await inflight
                except asyncio.CancelledError:
                    pass
            except Exception as e:
                log_warning(f"[Connector] In-flight initialization failed during shutdown: {e}")

        transport, self._transport = self._transport, None
        self._snapshot = ConnectorSnapshot.unavailable(SHUTDOWN_KIND, "connector shut down")
        if transport is not None:
            await self._release(transport)


# ═══════════════════════════════════════════════════════════════
# Prozessweite Instanz
# ═══════════════════════════════════════════════════════════════

_connector: Optional[ToolConnector] = None


def get_connector() -> ToolConnector:
    global _connector
    if _connector is None:
        _connector = ToolConnector()
    return _connector
