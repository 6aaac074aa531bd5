# cashplan/routes/chat.py

from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from cashplan.db.job_store import JobStore, get_job_store
from cashplan.services.gemini_chat import ChatService, context_from_job, get_chat_service

router = APIRouter()
logger = logging.getLogger("cashplan.chat")


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    job_id: Optional[str] = None


@router.post("/chat")
def chat(
    body: ChatRequest,
    store: JobStore = Depends(get_job_store),
    service: ChatService = Depends(get_chat_service),
):
    """
    Forward a message to the LLM. When job_id points to an analysed job its
    metrics are added to the prompt.
    """
    context = {}
    if body.job_id:
        job = store.get(body.job_id)
        if not job:
            raise HTTPException(status_code=404, detail="job not found")
        context = context_from_job(job)

    try:
        result = service.reply(body.message, body.session_id, context)
    except RuntimeError as e:
        raise HTTPException(
            status_code=501,
            detail=f"Chat model not available. Configure GOOGLE_API_KEY (and install google-generativeai). Error: {e}",
        )
    except Exception as e:
        logger.exception("Chat generation failed for session %s", body.session_id)
        raise HTTPException(status_code=502, detail=f"Chat generation failed: {e}")

    return {
        "success": True,
        "message": result["response"],
        "suggestions": result["suggestions"],
        "session_id": result["sessionId"],
        "timestamp": result["timestamp"],
    }


@router.get("/chat/history/{session_id}")
def chat_history(session_id: str, service: ChatService = Depends(get_chat_service)):
    return {"success": True, "session_id": session_id, "history": service.history(session_id)}


@router.delete("/chat/history/{session_id}")
def clear_chat_history(session_id: str, service: ChatService = Depends(get_chat_service)):
    service.clear(session_id)
    return {"success": True, "session_id": session_id, "message": "Chat history cleared"}
