# chatbot/routers/message_router.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from chatbot.errors import StatusCode
from chatbot.security import require_api_key
from chatbot.services.message_store import MessageLogStore

router = APIRouter(prefix="/api/v1", tags=["messages"], dependencies=[Depends(require_api_key)])


# ---------- Models ----------
# Fields are optional so a missing one reaches the store and comes back as
# MISSING_REQUIRED_PARAMETERS instead of a framework validation error.
class SendReq(BaseModel):
    userId: Optional[str] = None
    text: Optional[str] = None

class EditReq(BaseModel):
    userId: Optional[str] = None
    messageId: Optional[str] = None
    newText: Optional[str] = None

class DeleteReq(BaseModel):
    userId: Optional[str] = None
    messageId: Optional[str] = None


def get_message_store(request: Request) -> MessageLogStore:
    return request.app.state.message_store


# ---------- Routes ----------
@router.post("/sendMessage")
async def send_message(req: Optional[SendReq] = None, store: MessageLogStore = Depends(get_message_store)):
    req = req or SendReq()
    result = await store.send(req.userId, req.text)
    return {
        "code": StatusCode.SUCCESS,
        "message": result.reply_text,
        "botResponseId": result.bot_reply_id,
        "userMessageId": result.user_message_id,
    }

@router.post("/editMessage")
async def edit_message(req: Optional[EditReq] = None, store: MessageLogStore = Depends(get_message_store)):
    req = req or EditReq()
    result = await store.edit(req.userId, req.messageId, req.newText)
    return {"code": StatusCode.SUCCESS, "message": result.reply_text, "botResponseId": result.bot_reply_id}

@router.delete("/deleteMessage")
async def delete_message(req: Optional[DeleteReq] = None, store: MessageLogStore = Depends(get_message_store)):
    req = req or DeleteReq()
    await store.delete(req.userId, req.messageId)
    return {"code": StatusCode.SUCCESS, "message": "Message deleted"}

@router.get("/messages")
async def list_messages(
    userId: Optional[str] = Query(None),
    store: MessageLogStore = Depends(get_message_store),
):
    entries = await store.history(userId)
    return {
        "code": StatusCode.SUCCESS,
        "messages": [{"id": e.id, "text": e.text, "by": e.author.value} for e in entries],
    }
