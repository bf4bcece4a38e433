# core/orchestrator.py
"""
Orchestrator (plan-and-act)

respond(text) ist die einzige Schnittstelle nach außen und wirft NIE.
Jeder Fehlerpfad endet in einem festen, lesbaren Text.

    ensure_ready (best effort)
        → Planner (Tool ja/nein)
            → Tool-Call            (nur wenn Connector gerade READY)
            → Direktantwort        (sonst)
"""

from config import OLLAMA_BASE, OLLAMA_MODEL
from core.errors import DirectAnswerFailed, InvocationError, NotReady, PlannerUnavailable
from core.models import ToolInvocationResult
from core.planner import DecisionPlanner
from utils import ollama
from utils.logger import log_error, log_info, log_warning

DIRECT_ANSWER_PROMPT = "Be concise and accurate about Trend Vision One topics."

# ═══════════════════════════════════════════════════════════════
# Antworttexte für Fehlerpfade
# ═══════════════════════════════════════════════════════════════
MSG_EMPTY_INPUT = "Please type a question about your Vision One environment."
MSG_PLANNER_UNAVAILABLE = (
    f"⚠️ Could not reach the language model at {OLLAMA_BASE}. "
    "Check that Ollama is running and the model is pulled, then try again."
)
MSG_TOOL_FAILED = (
    "⚠️ The tool '{tool}' failed ({reason}). "
    "Check the Vision One API key permissions and connectivity to the MCP server."
)
MSG_DIRECT_FAILED = (
    "⚠️ The language model did not answer. "
    "Check the Ollama endpoint and try again."
)
MSG_NO_RESPONSE = "(The model returned no response.)"
MSG_TOOL_EMPTY = "(tool returned no content)"
MSG_INTERNAL_ERROR = "⚠️ Something went wrong while handling your message. Please try again."


def format_tool_result(result: ToolInvocationResult) -> str:
    body = "\n".join(result.content_parts) if not result.is_empty else MSG_TOOL_EMPTY
    return f"📎 {result.tool_name} →\n{body}"


class Orchestrator:
    def __init__(self, connector=None, planner=None, chat=None, model: str = OLLAMA_MODEL):
        if connector is None:
            from toolhub.connector import get_connector
            connector = get_connector()
        self.connector = connector
        self.planner = planner or DecisionPlanner(model=model)
        self.model = model
        self._chat = chat or ollama.chat

    async def respond(self, user_text: str) -> str:
        try:
            return await self._respond(user_text)
        except Exception as e:
            log_error(f"[Orchestrator] Unhandled {type(e).__name__}: {e}")
            return MSG_INTERNAL_ERROR

    async def _respond(self, user_text: str) -> str:
        text = (user_text or "").strip()
        if not text:
            return MSG_EMPTY_INPUT

        # 1. Best effort - Ergebnis egal, READY wird unten erneut geprüft
        try:
            await self.connector.ensure_ready()
        except Exception as e:
            log_warning(f"[Orchestrator] ensure_ready raised {type(e).__name__}: {e}")

        # 2. Entscheidung
        try:
            outcome = await self.planner.decide_outcome(text, self.connector.list_tools())
        except PlannerUnavailable as e:
            log_error(f"[Orchestrator] {e.kind}: {e}")
            return MSG_PLANNER_UNAVAILABLE

        decision = outcome.decision
        if not outcome.parsed:
            log_warning(f"[Orchestrator] Could not determine a decision ({outcome.reason}), answering directly")

        # 3. Tool
        if decision.wants_tool and self.connector.is_ready:
            return await self._run_tool(decision.tool_name, decision.args)

        if decision.wants_tool:
            log_info(f"[Orchestrator] Tool '{decision.tool_name}' requested but subsystem not ready")

        # 4. Direktantwort
        return await self._direct_answer(text)

    async def _run_tool(self, tool_name: str, args: dict) -> str:
        try:
            result = await self.connector.invoke(tool_name, args)
        except (InvocationError, NotReady) as e:
            log_warning(f"[Orchestrator] {e.kind} for {tool_name}: {e}")
            reason = getattr(e, "reason", str(e))
            return MSG_TOOL_FAILED.format(tool=tool_name, reason=reason)
        return format_tool_result(result)

    async def _direct_answer(self, text: str) -> str:
        messages = [
            {"role": "system", "content": DIRECT_ANSWER_PROMPT},
            {"role": "user", "content": text},
        ]
        try:
            answer = await self._chat(messages, model=self.model)
        except ollama.OllamaUnavailable as e:
            log_error(f"[Orchestrator] {DirectAnswerFailed.kind}: {e}")
            return MSG_DIRECT_FAILED

        answer = (answer or "").strip()
        return answer or MSG_NO_RESPONSE
