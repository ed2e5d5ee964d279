from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..core.swap import SwapEvent
from .sessions import SessionRegistry, get_session_registry

router = APIRouter()


class SessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: str = Field(alias="accountId", min_length=1, max_length=128)


class ChatRequest(SessionRequest):
    message: str = Field(min_length=1, max_length=2000)


class EventsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: str = Field(serialization_alias="accountId")
    state: str
    events: List[Dict[str, Any]]


def _respond(account_id: str, state: str, events: List[SwapEvent]) -> EventsResponse:
    return EventsResponse(account_id=account_id, state=state, events=[event.to_dict() for event in events])


@router.post("/chat")
async def chat_endpoint(
    request: ChatRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> EventsResponse:
    """Route a chat message to the swap pipeline or the conversational reply."""
    session = await registry.get(request.account_id)
    events = await session.handle_message(request.message)
    return _respond(request.account_id, session.orchestrator.state.value, events)


@router.post("/swap/confirm")
async def confirm_swap(
    request: SessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> EventsResponse:
    session = await registry.get(request.account_id)
    events = await session.confirm()
    return _respond(request.account_id, session.orchestrator.state.value, events)


@router.post("/swap/cancel")
async def cancel_swap(
    request: SessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> EventsResponse:
    session = await registry.get(request.account_id)
    events = session.cancel()
    return _respond(request.account_id, session.orchestrator.state.value, events)


@router.get("/swap/{account_id}")
async def swap_status(
    account_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    return registry.swap_status(account_id)
