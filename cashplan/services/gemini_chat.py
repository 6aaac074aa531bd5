# cashplan/services/gemini_chat.py

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional
import logging
import threading

from cashplan import config

logger = logging.getLogger("cashplan.chat")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_with_gemini(prompt: str) -> str:
    """
    Send one prompt to Gemini and return the answer text.
    Requires GOOGLE_API_KEY.
    """
    api_key = config.GOOGLE_API_KEY
    if not api_key:
        raise RuntimeError("Gemini not configured. Set GOOGLE_API_KEY.")

    # Lazy import
    try:
        import google.generativeai as genai
    except ImportError as e:
        raise RuntimeError(f"google-generativeai not installed/importable: {repr(e)}")

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(config.GEMINI_MODEL)

    resp = model.generate_content(prompt)
    return (resp.text or "").strip()


def context_from_job(job: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Prompt context built from a job's stored diagnosis, if it has one."""
    if not job:
        return {}
    metrics = (job.get("diagnosis") or {}).get("metrics") or {}
    ctx: Dict[str, Any] = {"jobId": job.get("id")}
    if metrics:
        ctx.update({
            "cashBalance": metrics.get("cashBalance"),
            "monthlyBurn": metrics.get("monthlyBurn"),
            "runway": metrics.get("runway"),
            "revenue": metrics.get("monthlyRevenue"),
        })
    return ctx


def _fmt_money(x: Any) -> str:
    if x is None:
        return "not available"
    return f"${float(x):,.0f}"


def build_system_prompt(context: Dict[str, Any]) -> str:
    base = """
You are an AI financial assistant specialized in cash-flow analysis and business decisions.

Rules:
- Be professional but approachable.
- Focus on cash flow, forecasts and financial recommendations.
- Give specific, actionable insights.
- If you do not have enough data, ask for clarification.

Business context:""".strip()

    if context.get("jobId"):
        runway = context.get("runway")
        return "\n".join([
            base,
            f"- Active analysis (job id: {context['jobId']})",
            f"- Current cash balance: {_fmt_money(context.get('cashBalance'))}",
            f"- Monthly burn: {_fmt_money(context.get('monthlyBurn'))}",
            f"- Runway: {f'{runway} months' if runway else 'not available'}",
            f"- Monthly revenue: {_fmt_money(context.get('revenue'))}",
        ])

    return "\n".join([
        base,
        "- Mode: general guidance (no company data uploaded)",
        "- Focus on general advice and best practices",
        "- Invite the user to upload their data for a personalized analysis",
    ])


def generate_suggestions(message: str, context: Dict[str, Any]) -> List[str]:
    if context.get("jobId"):
        suggestions = [
            "How can I extend my runway?",
            "What risks do you see in my forecast?",
            "Suggest ways to optimize my cash flow",
        ]
    else:
        suggestions = [
            "Which financial metrics should I monitor?",
            "How do I build a cash flow forecast?",
            "What are the best financial practices?",
        ]

    m = (message or "").lower()
    if "cash" in m or "flow" in m:
        suggestions.insert(0, "Analyze my projected cash flow")
    if "risk" in m or "problem" in m:
        suggestions.insert(0, "Which red alerts should I consider?")
    if "grow" in m or "expand" in m:
        suggestions.insert(0, "Sustainable growth strategies")

    return suggestions[:3]


class ChatService:
    """
    Chat proxy with per-session history.

    `generate` is the text-generation backend (Gemini by default); only the last
    `history_limit` exchanges are kept per session.
    """

    def __init__(self, generate: Callable[[str], str] = generate_with_gemini, history_limit: int = config.CHAT_HISTORY_LIMIT):
        self._generate = generate
        self._history_limit = history_limit
        self._history: Dict[str, List[Dict[str, str]]] = {}
        self._lock = threading.Lock()

    def build_prompt(self, message: str, session_id: str, context: Dict[str, Any]) -> str:
        turns = "\n\n".join(
            f"User: {h['user']}\nAssistant: {h['assistant']}" for h in self.history(session_id)
        )
        return f"{build_system_prompt(context)}\n\nConversation history:\n{turns}\n\nUser: {message}\nAssistant:"

    def reply(self, message: str, session_id: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = context or {}
        prompt = self.build_prompt(message, session_id, context)

        answer = self._generate(prompt)
        logger.info("Chat response generated for session %s", session_id)

        with self._lock:
            turns = self._history.setdefault(session_id, [])
            turns.append({"user": message, "assistant": answer, "timestamp": _now_iso()})
            if len(turns) > self._history_limit:
                del turns[: len(turns) - self._history_limit]

        return {
            "response": answer,
            "suggestions": generate_suggestions(message, context),
            "sessionId": session_id,
            "timestamp": _now_iso(),
        }

    def history(self, session_id: str) -> List[Dict[str, str]]:
        with self._lock:
            return list(self._history.get(session_id, []))

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._history.pop(session_id, None)


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    """Shared chat service, built once. Used as a FastAPI dependency."""
    return ChatService()
