# core/planner.py
"""
Decision Planner

Fragt das Modell, ob für die User-Frage ein Vision-One-Tool aufgerufen
werden soll, und holt die Entscheidung aus dem (freien) Antworttext.

- Kein/kaputtes JSON → Decision() (use_tool=False), wird nur geloggt
- Modell nicht erreichbar → PlannerUnavailable
"""

from typing import Iterable, List, Optional

from pydantic import ValidationError

from config import DECISION_TEMPERATURE, OLLAMA_MODEL
from core.errors import DecisionParseFailure, PlannerUnavailable
from core.models import DecisionOutcome
from shared_schemas import Decision, ToolDescriptor
from utils import ollama
from utils.json_parser import parse_last_json_object
from utils.logger import log_debug, log_info, log_warning

DECISION_PROMPT = """You are a security assistant with MCP tools for Trend Vision One.
Decide if a tool should be called to answer the question.
Return JSON only: {"use_tool":true|false,"tool_name":"...","args":{}}"""


class DecisionPlanner:
    def __init__(
        self,
        model: str = OLLAMA_MODEL,
        temperature: float = DECISION_TEMPERATURE,
        chat=None,
    ):
        self.model = model
        self.temperature = temperature
        self._chat = chat or ollama.chat

    @staticmethod
    def build_messages(user_text: str, tool_names: List[str]) -> List[dict]:
        tools = ", ".join(tool_names) if tool_names else "(none)"
        return [
            {"role": "system", "content": DECISION_PROMPT},
            {"role": "user", "content": f"User: {user_text}\nAvailable tools: {tools}"},
        ]

    async def decide_outcome(
        self,
        user_text: str,
        catalog: Iterable[ToolDescriptor],
    ) -> DecisionOutcome:
        tool_names = [t.name for t in catalog]
        messages = self.build_messages(user_text, tool_names)

        try:
            reply = await self._chat(messages, model=self.model, temperature=self.temperature)
        except ollama.OllamaUnavailable as e:
            raise PlannerUnavailable(str(e)) from e

        outcome = self.parse_reply(reply)
        if outcome.decision.wants_tool and outcome.decision.tool_name not in tool_names:
            outcome.reason = "unknown_tool"
            log_warning(f"[Planner] Model picked unknown tool '{outcome.decision.tool_name}'")

        log_info(
            f"[Planner] use_tool={outcome.decision.use_tool} "
            f"tool={outcome.decision.tool_name or '-'} parsed={outcome.parsed}"
        )
        return outcome

    async def decide(self, user_text: str, catalog: Iterable[ToolDescriptor]) -> Decision:
        return (await self.decide_outcome(user_text, catalog)).decision

    @staticmethod
    def parse_reply(reply: Optional[str]) -> DecisionOutcome:
        """Letzter {...}-Block → Decision, sonst Default."""
        data = parse_last_json_object(reply, context="Planner")
        if data is None:
            log_debug(f"[Planner] {DecisionParseFailure.kind}: no usable JSON block")
            return DecisionOutcome(Decision(), parsed=False, reason="no_json", raw_reply=reply or "")

        try:
            decision = Decision.model_validate(data)
        except ValidationError as e:
            log_debug(f"[Planner] {DecisionParseFailure.kind}: {e.error_count()} validation errors")
            return DecisionOutcome(Decision(), parsed=False, reason="invalid_decision", raw_reply=reply or "")

        return DecisionOutcome(decision, parsed=True, raw_reply=reply or "")
