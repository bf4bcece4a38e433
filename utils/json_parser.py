# utils/json_parser.py
"""
JSON aus LLM-Antworten herausholen.

Modelle liefern selten "nur JSON", sondern gerne:
- Kommentar vor dem JSON ("Sure! Here is my decision: {...}")
- JSON in Markdown-Codeblocks
- mehrere Blöcke (Beispiel + eigentliche Antwort)
- Trailing commas oder Python-Literale (True/None)

Regel: Es zählt der LETZTE Top-Level-Block { ... }. Alles davor ist Kommentar.
Kein Treffer oder kaputtes JSON → None, der Aufrufer entscheidet über den Default.
"""

import json
import re
from typing import Any, Dict, List, Optional

from utils.logger import log_debug


def iter_json_blocks(raw: str) -> List[str]:
    """
    Findet alle Top-Level-Blöcke mit balancierten Klammern.

    String-Literale werden beachtet, d.h. '{' oder '}' innerhalb von
    "..." zählen nicht. Bleibt eine Klammer offen, wird ab dem Zeichen
    danach weitergesucht; ein nicht geschlossener Block selbst zählt nie.
    """
    blocks: List[str] = []
    offset = 0

    while offset < len(raw):
        depth = 0
        start = -1
        in_string = False
        escaped = False

        for i in range(offset, len(raw)):
            ch = raw[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue

            if ch == '"' and depth > 0:
                in_string = True
            elif ch == "{":
                if depth == 0:
                    start = i
                depth += 1
            elif ch == "}" and depth > 0:
                depth -= 1
                if depth == 0:
                    blocks.append(raw[start:i + 1])

        if depth == 0:
            break
        # Offene Klammer im Kommentar ("I think {maybe ...") → dahinter neu suchen
        offset = start + 1

    return blocks


def extract_last_json_block(raw: Optional[str]) -> Optional[str]:
    """Letzter balancierter {...}-Block oder None."""
    if not raw or "{" not in raw:
        return None
    blocks = iter_json_blocks(raw)
    return blocks[-1] if blocks else None


def _attempt_json_repair(block: str) -> str:
    """Repariert die häufigsten LLM-Fehler in einem einzelnen Block."""
    fixed = re.sub(r",\s*}", "}", block)
    fixed = re.sub(r",\s*]", "]", fixed)

    # Single quotes nur ersetzen, wenn gar keine double quotes vorkommen
    if '"' not in fixed and "'" in fixed:
        fixed = fixed.replace("'", '"')

    fixed = re.sub(r"\bTrue\b", "true", fixed)
    fixed = re.sub(r"\bFalse\b", "false", fixed)
    fixed = re.sub(r"\bNone\b", "null", fixed)
    return fixed


def parse_last_json_object(raw: Optional[str], context: str = "unknown") -> Optional[Dict[str, Any]]:
    """
    Parst den letzten {...}-Block einer Modell-Antwort.

    Args:
        raw: Rohtext des Modells
        context: Für Logging (z.B. "Planner")

    Returns:
        Dict oder None (kein Block / nicht parsebar / kein Objekt)
    """
    block = extract_last_json_block(raw)
    if block is None:
        log_debug(f"[JSON:{context}] No brace block in reply")
        return None

    for candidate in (block, _attempt_json_repair(block)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        return None

    log_debug(f"[JSON:{context}] Unparseable block: {block[:200]}")
    return None
