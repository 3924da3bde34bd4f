"""Conversation-Router: die sechs Endpunkte, die 1:1 an den Counsellor-Service
weitergereicht werden."""
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Request

from counsellor_gateway.core.proxy import UpstreamProxy

router = APIRouter(tags=["Conversation"])
logger = logging.getLogger(__name__)


def new_conversation_id() -> str:
    return uuid4().hex


def ensure_conversation_id(status_code: int, data: Any) -> Any:
    """Ergänzt eine Conversation-ID, falls der Upstream bei Erfolg keine liefert."""
    if not 200 <= status_code < 300 or not isinstance(data, dict):
        return data
    if data.get("conversation_id"):
        return data
    conversation_id = new_conversation_id()
    logger.warning(f"Upstream returned no conversation_id, generated {conversation_id}")
    return {**data, "conversation_id": conversation_id}


def _proxy(request: Request) -> UpstreamProxy:
    return request.app.state.proxy


@router.post("/create_conversation")
async def create_conversation(request: Request):
    """Startet eine Konversation; die ID vergibt der Upstream (Policy "upstream")
    oder immer das Gateway (Policy "gateway")."""
    if request.app.state.settings.conversation_id_policy == "gateway":
        payload = {"conversation_id": new_conversation_id()}
        return await _proxy(request).forward(request, "/create_conversation", payload=payload)
    return await _proxy(request).forward(request, "/create_conversation", transform=ensure_conversation_id)


@router.post("/send_message")
async def send_message(request: Request):
    return await _proxy(request).forward(request, "/send_message")


@router.post("/generate_message")
async def generate_message(request: Request):
    return await _proxy(request).forward(request, "/generate_message")


@router.get("/get_messages")
async def get_messages(request: Request):
    return await _proxy(request).forward(request, "/get_messages")


@router.post("/generate_report")
async def generate_report(request: Request):
    return await _proxy(request).forward(request, "/generate_report")


@router.post("/delete_conversation")
async def delete_conversation(request: Request):
    return await _proxy(request).forward(request, "/delete_conversation")
