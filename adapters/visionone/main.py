# adapters/visionone/main.py
"""
Vision One MCP Chat - Standalone FastAPI Server

GET /            Chat-Seite
WS  /ws          Session Gateway (Banner + eine Antwort pro Nachricht)
GET /health      Ollama erreichbar?
GET /api/tools   aktueller Tool-Katalog
GET /api/status  Preflight + Connector-Zustand
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.responses import HTMLResponse, JSONResponse

from adapters.visionone.gateway import handle_session
from adapters.visionone.page import render_page
from config import HOST, OLLAMA_BASE, OLLAMA_MODEL, PORT, TREND_VISION_ONE_REGION
from core.orchestrator import Orchestrator
from toolhub.connector import get_connector
from toolhub.preflight import preflight_report
from utils import ollama
from utils.logger import log_error, log_info


def create_app(connector=None, orchestrator=None) -> FastAPI:
    connector = connector or get_connector()
    orchestrator = orchestrator or Orchestrator(connector=connector)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Tools werden lazy beim ersten Chat verbunden, nicht hier
        log_info(f"[Startup] Chat on http://localhost:{PORT}")
        yield
        log_info("[Shutdown] Releasing tool connection...")
        await connector.shutdown()

    app = FastAPI(
        title="Vision One MCP Chat",
        description="Chat relay: Ollama decides, Vision One MCP tools answer",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.connector = connector
    app.state.orchestrator = orchestrator

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return render_page(TREND_VISION_ONE_REGION, OLLAMA_BASE, OLLAMA_MODEL, connector.tool_names())

    @app.websocket("/ws")
    async def chat_socket(websocket: WebSocket):
        await handle_session(websocket, orchestrator, connector)

    @app.get("/health")
    async def health():
        try:
            models = await ollama.list_models()
        except ollama.OllamaUnavailable as e:
            log_error(f"[Health] Ollama unreachable: {e}")
            return JSONResponse(
                {"status": "error", "message": f"Ollama not reachable at {OLLAMA_BASE}: {e}"},
                status_code=500,
            )
        return {
            "status": "ok",
            "message": f"Ollama reachable at {OLLAMA_BASE}",
            "models": len(models),
        }

    @app.get("/api/tools")
    async def tools():
        return {
            "ready": connector.is_ready,
            "tools": [{"name": t.name, "description": t.description or ""} for t in connector.list_tools()],
        }

    @app.get("/api/status")
    async def status():
        report = await asyncio.to_thread(preflight_report)
        return {"preflight": report, "connector": connector.snapshot().to_dict()}

    return app


app = create_app()


def main():
    # uvicorn fängt SIGINT/SIGTERM ab und fährt die Lifespan herunter
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
