# toolhub/preflight.py
"""
Preflight-Checks vor dem (teuren) Start des MCP-Containers.

Beide Checks sind reine Funktionen ohne State und werfen nie.
Sie sind nur beratend: ein grüner Docker-Check garantiert keinen
erfolgreichen Launch, der Connector behandelt Fehlschläge selbst.
"""

import os
import shutil
from dataclasses import dataclass
from typing import Any, Dict, Optional

import docker

from config import (
    DOCKER_BIN,
    DOCKER_PROBE_TIMEOUT,
    DOCKER_SOCKET,
    TREND_VISION_ONE_API_KEY,
    TREND_VISION_ONE_REGION,
)
from core.errors import ConfigIncomplete, ToolHostUnavailable
from utils.logger import log_debug, log_warning


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    kind: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "kind": self.kind, "reason": self.reason}


PASSED = PreflightResult(ok=True)


# ═══════════════════════════════════════════════════════════════
# CREDENTIALS
# ═══════════════════════════════════════════════════════════════

def check_credentials(
    api_key: str = TREND_VISION_ONE_API_KEY,
    region: str = TREND_VISION_ONE_REGION,
) -> PreflightResult:
    missing = []
    if not (api_key or "").strip():
        missing.append("TREND_VISION_ONE_API_KEY")
    if not (region or "").strip():
        missing.append("TREND_VISION_ONE_REGION")

    if missing:
        return PreflightResult(False, ConfigIncomplete.kind, f"missing {', '.join(missing)}")
    return PASSED


def check_credentials_present(
    api_key: str = TREND_VISION_ONE_API_KEY,
    region: str = TREND_VISION_ONE_REGION,
) -> bool:
    return check_credentials(api_key, region).ok


# ═══════════════════════════════════════════════════════════════
# DOCKER
# ═══════════════════════════════════════════════════════════════

def check_tool_host(
    docker_bin: str = DOCKER_BIN,
    socket_path: str = DOCKER_SOCKET,
    timeout: float = DOCKER_PROBE_TIMEOUT,
) -> PreflightResult:
    """
    Docker ist nutzbar wenn:
    1. das Binary im PATH liegt (wird für `docker run` gebraucht)
    2. der Socket existiert
    3. der Daemon auf eine Version-Abfrage antwortet
    """
    if shutil.which(docker_bin) is None:
        return PreflightResult(False, ToolHostUnavailable.kind, f"'{docker_bin}' not found in PATH")

    if not os.path.exists(socket_path):
        return PreflightResult(False, ToolHostUnavailable.kind, f"socket {socket_path} does not exist")

    client = None
    try:
        client = docker.DockerClient(base_url=f"unix://{socket_path}", timeout=max(1, int(timeout)))
        version = client.version()
        log_debug(f"[Preflight] Docker {version.get('Version', '?')} via {socket_path}")
    except Exception as e:
        # PermissionError, DockerException, ReadTimeout ... alles heißt "nicht verfügbar"
        log_warning(f"[Preflight] Docker version query failed: {e}")
        return PreflightResult(False, ToolHostUnavailable.kind, f"docker daemon not responding: {e}")
    finally:
        if client is not None:
            try:
                client.close()
            except Exception as e:
                log_debug(f"[Preflight] Docker client close failed: {e}")

    return PASSED


def check_tool_host_available(
    docker_bin: str = DOCKER_BIN,
    socket_path: str = DOCKER_SOCKET,
    timeout: float = DOCKER_PROBE_TIMEOUT,
) -> bool:
    return check_tool_host(docker_bin, socket_path, timeout).ok


def preflight_report() -> Dict[str, Dict[str, Any]]:
    """Beide Checks frisch ausgeführt (für Banner und /api/status)."""
    return {
        "credentials": check_credentials().to_dict(),
        "tool_host": check_tool_host().to_dict(),
    }
