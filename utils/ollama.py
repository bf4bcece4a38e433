# utils/ollama.py
"""
Dünner async Client für die Ollama HTTP API.

- chat():        POST /api/chat  (non-streaming, eine Assistant-Message zurück)
- list_models(): GET  /api/tags  (leichtgewichtiger Erreichbarkeits-Check)

Netzwerk-/HTTP-Fehler werden als OllamaUnavailable geworfen, damit Aufrufer
"Modell nicht erreichbar" von "Modell hat leer geantwortet" unterscheiden können.
"""

from typing import Any, Dict, List, Optional

import httpx

from config import OLLAMA_BASE, OLLAMA_MODEL, OLLAMA_TIMEOUT
from utils.logger import log_debug, log_error


class OllamaUnavailable(Exception):
    """Ollama nicht erreichbar, Timeout oder HTTP-Fehlerstatus."""


async def chat(
    messages: List[Dict[str, str]],
    model: str = OLLAMA_MODEL,
    temperature: Optional[float] = None,
    base_url: str = OLLAMA_BASE,
    timeout: float = OLLAMA_TIMEOUT,
) -> str:
    """
    Schickt eine Chat-Anfrage und gibt den Text der Assistant-Message zurück.

    Leerer Text ist ein gültiges Ergebnis (kein Fehler).
    """
    payload: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "stream": False,
    }
    if temperature is not None:
        payload["options"] = {"temperature": temperature}

    url = f"{base_url}/api/chat"
    log_debug(f"[Ollama] POST {url} model={model} messages={len(messages)}")

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.post(url, json=payload)
            r.raise_for_status()
            data = r.json()
    except httpx.TimeoutException as e:
        log_error(f"[Ollama] Timeout after {timeout}s: {e}")
        raise OllamaUnavailable(f"timeout after {timeout}s") from e
    except httpx.HTTPStatusError as e:
        log_error(f"[Ollama] HTTP {e.response.status_code} from {url}")
        raise OllamaUnavailable(f"HTTP {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        log_error(f"[Ollama] Request failed: {e}")
        raise OllamaUnavailable(str(e)) from e

    message = data.get("message") if isinstance(data, dict) else None
    if not isinstance(message, dict):
        return ""
    return message.get("content") or ""


async def list_models(base_url: str = OLLAMA_BASE, timeout: float = 5.0) -> List[str]:
    """Namen der lokal verfügbaren Modelle (wirft OllamaUnavailable)."""
    url = f"{base_url}/api/tags"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.get(url)
            r.raise_for_status()
            data = r.json()
    except (httpx.HTTPError, ValueError) as e:
        raise OllamaUnavailable(str(e)) from e

    return [m.get("name", "") for m in data.get("models", []) if isinstance(m, dict)]
