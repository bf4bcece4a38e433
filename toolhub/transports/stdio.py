# toolhub/transports/stdio.py
"""
STDIO Transport für den MCP-Server-Prozess.

Spricht JSON-RPC 2.0 (eine Nachricht pro Zeile) über stdin/stdout eines
Subprocess. Ablauf: start() → initialize → notifications/initialized,
danach tools/list und tools/call, am Ende close().

Antworten werden über die Request-ID einem wartenden Future zugeordnet,
damit parallele Tool-Calls verschiedener Sessions sich nicht vermischen.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

from config import TOOL_CALL_TIMEOUT, TOOL_HANDSHAKE_TIMEOUT
from utils.logger import log_debug, log_error, log_info, log_warning

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "vision-one-mcp-chat", "version": "1.0.0"}

# Tool-Antworten können groß werden (Alert-Listen etc.)
STREAM_LIMIT = 16 * 1024 * 1024
MAX_LIST_PAGES = 50


class TransportError(Exception):
    """Prozess nicht startbar, beendet, oder JSON-RPC-Fehler."""


class TransportTimeout(TransportError):
    """Keine Antwort innerhalb des Timeouts."""


class StdioTransport:
    """Async STDIO Transport für einen lokalen MCP-Prozess."""

    def __init__(
        self,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        handshake_timeout: float = TOOL_HANDSHAKE_TIMEOUT,
        call_timeout: float = TOOL_CALL_TIMEOUT,
        terminate_grace: float = 5.0,
    ):
        self.command = command
        self.env = env
        self.handshake_timeout = handshake_timeout
        self.call_timeout = call_timeout
        self.terminate_grace = terminate_grace
        self.process: Optional[asyncio.subprocess.Process] = None
        self.server_info: Dict[str, Any] = {}
        self._pending: Dict[int, asyncio.Future] = {}
        self._next_id = 0
        self._write_lock = asyncio.Lock()
        self._reader_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def running(self) -> bool:
        return (
            not self._closed
            and self.process is not None
            and self.process.returncode is None
        )

    # ─────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────

    async def start(self):
        """Startet den Prozess und führt den MCP-Handshake durch."""
        if self.process is not None or self._closed:
            raise TransportError("transport already used")

        log_debug(f"[STDIO] Starting: {' '.join(self.command)}")
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.env,
                limit=STREAM_LIMIT,
            )
        except (OSError, ValueError) as e:
            raise TransportError(f"failed to start {self.command[0]}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_stdout())
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        log_info(f"[STDIO] Process started: PID {self.process.pid}")

        result = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
            timeout=self.handshake_timeout,
        )
        if isinstance(result, dict):
            self.server_info = result.get("serverInfo") or {}

        await self._notify("notifications/initialized", {})
        log_debug(f"[STDIO] Initialize successful: {self.server_info}")

    async def close(self):
        """Beendet den Prozess. Mehrfacher Aufruf ist ein No-op."""
        if self._closed:
            return
        self._closed = True

        proc = self.process
        if proc is not None and proc.returncode is None:
            if proc.stdin is not None and not proc.stdin.is_closing():
                proc.stdin.close()
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.terminate_grace)
            except asyncio.TimeoutError:
                log_warning(f"[STDIO] PID {proc.pid} ignored SIGTERM, killing")
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._fail_pending(TransportError("transport closed"))
        if proc is not None:
            log_info(f"[STDIO] Process terminated: PID {proc.pid}")

    # ─────────────────────────────────────────────────────────
    # MCP Methoden
    # ─────────────────────────────────────────────────────────

    async def list_tools(self) -> List[Dict[str, Any]]:
        """Holt die komplette Tool-Liste (folgt nextCursor)."""
        tools: List[Dict[str, Any]] = []
        cursor = None

        for _ in range(MAX_LIST_PAGES):
            params = {"cursor": cursor} if cursor else {}
            result = await self._request("tools/list", params, timeout=self.handshake_timeout)
            if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
                raise TransportError(f"malformed tools/list reply: {str(result)[:200]}")
            tools.extend(result["tools"])
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

        raise TransportError(f"tools/list did not terminate after {MAX_LIST_PAGES} pages")

    async def call_tool(
        self,
        tool_name: str,
        arguments: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Ruft ein Tool auf und gibt das rohe MCP-Result zurück."""
        log_debug(f"[STDIO] tools/call {tool_name}")
        result = await self._request(
            "tools/call",
            {"name": tool_name, "arguments": arguments},
            timeout=timeout or self.call_timeout,
        )
        return result if isinstance(result, dict) else {"result": result}

    # ─────────────────────────────────────────────────────────
    # JSON-RPC intern
    # ─────────────────────────────────────────────────────────

    async def _request(self, method: str, params: Dict[str, Any], timeout: float) -> Any:
        if not self.running:
            raise TransportError(f"{method}: process not running")

        self._next_id += 1
        request_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self._write({
                "jsonrpc": "2.0",
                "id": request_id,
                "method": method,
                "params": params,
            })
            response = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            raise TransportTimeout(f"{method} timed out after {timeout:g}s") from None
        finally:
            self._pending.pop(request_id, None)

        error = response.get("error")
        if error is not None:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise TransportError(f"{method} failed: {message}")
        return response.get("result", {})

    async def _notify(self, method: str, params: Dict[str, Any]):
        await self._write({"jsonrpc": "2.0", "method": method, "params": params})

    async def _write(self, payload: Dict[str, Any]):
        line = json.dumps(payload) + "\n"
        async with self._write_lock:
            try:
                self.process.stdin.write(line.encode("utf-8"))
                await self.process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
                raise TransportError(f"write failed: {e}") from e

    async def _read_stdout(self):
        """Ordnet eingehende Antworten den wartenden Requests zu."""
        stdout = self.process.stdout
        try:
            while True:
                line = await stdout.readline()
                if not line:
                    break
                try:
                    message = json.loads(line.decode("utf-8").strip())
                except (UnicodeDecodeError, json.JSONDecodeError):
                    log_debug(f"[STDIO] Ignoring non-JSON line: {line[:120]!r}")
                    continue
                if not isinstance(message, dict):
                    continue

                future = self._pending.get(message.get("id"))
                if future is not None and ("result" in message or "error" in message):
                    if not future.done():
                        future.set_result(message)
                elif "method" in message:
                    log_debug(f"[STDIO] Server message ignored: {message.get('method')}")
        except ValueError as e:
            # Zeile größer als STREAM_LIMIT
            log_error(f"[STDIO] Read error: {e}")

        self._fail_pending(TransportError("tool process closed its output"))

    async def _drain_stderr(self):
        stderr = self.process.stderr
        while True:
            line = await stderr.readline()
            if not line:
                return
            log_debug(f"[STDIO:stderr] {line.decode('utf-8', 'replace').rstrip()}")

    def _fail_pending(self, error: Exception):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()
