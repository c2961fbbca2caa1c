"""Chats: list, save transcript, load messages, delete."""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.deps import get_chat_service, to_http_error
from auth.jwt import get_current_user_id
from chats.service import ChatNotFoundError, ChatService
from models import Chat
from storage.blob import StorageError

router = APIRouter(prefix="/api/chats", tags=["chats"])


class ChatOut(BaseModel):
    id: str
    title: str
    model: str | None = None
    message_count: int
    created_at: str
    updated_at: str


class ChatSave(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    messages: list[dict]
    model: str | None = None


class ChatMessages(BaseModel):
    id: str
    messages: list[dict]


def _chat_out(chat: Chat) -> ChatOut:
    return ChatOut(
        id=chat.id,
        title=chat.title,
        model=chat.model,
        message_count=chat.message_count,
        created_at=chat.created_at.isoformat(),
        updated_at=chat.updated_at.isoformat(),
    )


@router.get("", response_model=list[ChatOut])
async def list_chats(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
):
    """List user's chats ordered by most recently updated."""
    return [_chat_out(c) for c in await chats.list_chats(user_id, limit)]


@router.post("", response_model=ChatOut)
async def save_chat(
    body: ChatSave,
    user_id: str = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
):
    """Store the full transcript and create or refresh the chat row."""
    try:
        chat = await chats.save_chat(body.id, user_id, body.messages, model=body.model)
    except (ChatNotFoundError, StorageError) as e:
        raise to_http_error(e)
    return _chat_out(chat)


@router.get("/{chat_id}", response_model=ChatMessages)
async def get_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
):
    messages = await chats.get_chat_messages(chat_id, user_id)
    if messages is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return ChatMessages(id=chat_id, messages=messages)


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    chats: ChatService = Depends(get_chat_service),
):
    """Delete a chat and its stored transcript."""
    try:
        await chats.delete_chat(chat_id, user_id)
    except ChatNotFoundError as e:
        raise to_http_error(e)
    return {"ok": True}
