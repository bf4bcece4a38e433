# adapters/visionone/gateway.py
"""
Session Gateway: WebSocket-Handler für die Chat-Seite.

Protokoll (reine UTF-8-Textframes, kein JSON):
  Server → Client:  eine Banner-Zeile beim Verbinden
  Client → Server:  eine Frage pro Frame
  Server → Client:  eine Antwort pro Frage, in Eingangsreihenfolge
"""

import asyncio

from fastapi import WebSocket, WebSocketDisconnect

from toolhub.preflight import check_credentials, check_tool_host
from utils.logger import log_error, log_info

BANNER = "Connected to Vision One MCP. Ask about alerts, CREM, CAM, containers, endpoints."


async def build_banner(connector) -> str:
    """Bereitschafts-Status, pro Verbindung neu berechnet (Config kann sich ändern)."""
    creds = check_credentials()
    host = await asyncio.to_thread(check_tool_host)
    return (
        f"{BANNER} "
        f"[credentials: {'ok' if creds.ok else 'missing'}] "
        f"[tool host: {'ok' if host.ok else 'unavailable'}] "
        f"[tools: {'ready' if connector.is_ready else 'not ready'}]"
    )


async def handle_session(websocket: WebSocket, orchestrator, connector):
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "?"
    log_info(f"[Gateway] Client connected: {client}")

    try:
        await websocket.send_text(await build_banner(connector))
        while True:
            text = await websocket.receive_text()
            reply = await orchestrator.respond(text)
            await websocket.send_text(reply)
    except WebSocketDisconnect:
        log_info(f"[Gateway] Client disconnected: {client}")
    except Exception as e:
        log_error(f"[Gateway] Session error ({client}): {e}")
