"""
WhatsApp Cloud API webhook: verification handshake and inbound messages.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from sales_agent.chatbot.dependencies import AppContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()


def extract_text_messages(payload: Dict[str, Any]) -> List[Tuple[str, str]]:
    """(sender, text) pairs for every text message in a webhook delivery; other types are skipped."""
    found: List[Tuple[str, str]] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for message in value.get("messages") or []:
                if message.get("type") != "text":
                    continue
                sender = message.get("from")
                body = (message.get("text") or {}).get("body")
                if sender and body:
                    found.append((str(sender), body))
    return found


async def process_inbound(container: AppContainer, sender: str, text: str) -> None:
    """Background task: one serialized processing cycle for `sender`."""
    try:
        async with container.locks.hold(sender):
            await container.orchestrator.process_message(sender, text)
    except Exception:
        logger.exception("[WhatsApp] processing failed for %s", sender)


@router.get("/whatsapp/webhook", tags=["WhatsApp"])
async def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    container: AppContainer = Depends(get_container),
):
    if not mode or not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing verification parameters")

    expected = container.settings.whatsapp.verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("[WhatsApp] webhook verified")
        return PlainTextResponse(challenge or "")

    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("/whatsapp/webhook", tags=["WhatsApp"])
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    container: AppContainer = Depends(get_container),
):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    messages = extract_text_messages(payload if isinstance(payload, dict) else {})
    for sender, text in messages:
        logger.info("[WhatsApp] message received from %s", sender)
        background_tasks.add_task(process_inbound, container, sender, text)

    return {"status": "EVENT_RECEIVED", "messages": len(messages)}
