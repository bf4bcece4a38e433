import os
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()


def _docker_socket_default() -> str:
    host = os.getenv("DOCKER_HOST", "")
    if host.startswith("unix://"):
        return urlparse(host).path
    return "/var/run/docker.sock"


# ═══════════════════════════════════════════════════════════════
# TREND VISION ONE (Tool-Subsystem)
# ═══════════════════════════════════════════════════════════════
# Fehlt der Key, startet der Server trotzdem - nur ohne Tools.
TREND_VISION_ONE_API_KEY = os.getenv("TREND_VISION_ONE_API_KEY", "")
TREND_VISION_ONE_REGION = os.getenv("TREND_VISION_ONE_REGION", "us")

MCP_SERVER_IMAGE = os.getenv("MCP_SERVER_IMAGE", "ghcr.io/trendmicro/vision-one-mcp-server")

# ═══════════════════════════════════════════════════════════════
# DOCKER
# ═══════════════════════════════════════════════════════════════
DOCKER_BIN = os.getenv("DOCKER_BIN", "docker")
DOCKER_SOCKET = os.getenv("DOCKER_SOCKET", _docker_socket_default())
DOCKER_PROBE_TIMEOUT = float(os.getenv("DOCKER_PROBE_TIMEOUT", "5"))

# ═══════════════════════════════════════════════════════════════
# OLLAMA
# ═══════════════════════════════════════════════════════════════
OLLAMA_BASE = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3:8b-instruct-q4_K_M")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "60"))

# Decision-Step soll (fast) deterministisch sein
DECISION_TEMPERATURE = float(os.getenv("DECISION_TEMPERATURE", "0.1"))

# ═══════════════════════════════════════════════════════════════
# TOOL CONNECTOR
# ═══════════════════════════════════════════════════════════════
TOOL_HANDSHAKE_TIMEOUT = float(os.getenv("TOOL_HANDSHAKE_TIMEOUT", "60"))
TOOL_CALL_TIMEOUT = float(os.getenv("TOOL_CALL_TIMEOUT", "30"))

# 0 = kein Retry (Default). Werte > 0 = zusätzliche Versuche pro Tool-Call.
TOOL_CALL_RETRIES = int(os.getenv("TOOL_CALL_RETRIES", "0"))

# Sekunden Pause zwischen zwei Connector-Versuchen nach einem Fehlschlag.
TOOL_RETRY_COOLDOWN = float(os.getenv("TOOL_RETRY_COOLDOWN", "0"))

# ═══════════════════════════════════════════════════════════════
# SERVER
# ═══════════════════════════════════════════════════════════════
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))

# ═══════════════════════════════════════════════════════════════
# LOGGING
# ═══════════════════════════════════════════════════════════════
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
