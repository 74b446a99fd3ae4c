from typing import List, Optional
from fastapi import APIRouter, Query

from tourbook.api.schemas.conversation_schemas import (
    ConversationOut, MessageOut, SupportRequestIn, SupportRequestOut
)
from tourbook.deps import SessionDep
from tourbook.services import ConversationService


router = APIRouter()


@router.get("/conversations", response_model=List[ConversationOut])
async def list_conversations(
    sess: SessionDep,
    filter: str = Query("all"),
    limit: int = Query(50, gt=0, le=200),
):
    """Every WhatsApp thread with its latest message and hand-off state"""
    summaries = await ConversationService(sess).conversations(filter=filter, limit=limit)
    return [
        ConversationOut.model_validate({
            **s,
            "last_message": MessageOut.model_validate(s["last_message"]),
            "support_request": SupportRequestOut.model_validate(s["support_request"]) if s["support_request"] else None,
        })
        for s in summaries
    ]


@router.get("/conversations/{phone}", response_model=List[MessageOut])
async def get_conversation(
    phone: str,
    sess: SessionDep,
    limit: int = Query(200, gt=0, le=1000),
    offset: int = Query(0, ge=0),
):
    messages = await ConversationService(sess).thread(phone, skip=offset, limit=limit)
    return [MessageOut.model_validate(m) for m in messages]


@router.get("/support-requests", response_model=List[SupportRequestOut])
async def list_support_requests(
    sess: SessionDep,
    status: Optional[str] = Query(None),
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
):
    requests = await ConversationService(sess).support_requests(status=status, skip=offset, limit=limit)
    return [SupportRequestOut.model_validate(r) for r in requests]


@router.post("/support-requests", response_model=SupportRequestOut)
async def open_support_request(payload: SupportRequestIn, sess: SessionDep):
    """Hand a thread to an operator; returns the open request if there already is one"""
    request = await ConversationService(sess).open_support_request(
        payload.phone, reservation_id=payload.reservation_id, reason=payload.reason
    )
    await sess.commit()
    return SupportRequestOut.model_validate(request)


@router.post("/support-requests/{request_id}/resolve", response_model=SupportRequestOut)
async def resolve_support_request(request_id: int, sess: SessionDep):
    """Hand the conversation back to the bot"""
    request = await ConversationService(sess).resolve(request_id)
    await sess.commit()
    return SupportRequestOut.model_validate(request)
