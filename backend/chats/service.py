"""Chat transcript persistence.

The chats table is an index (owner, title, message count); the transcript
itself is one JSON blob per chat, overwritten on every save.
"""

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import Chat
from storage.blob import BlobStore, StorageError
from storage.keys import chat_storage_key

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
MAX_TITLE_CHARS = 100


class ChatNotFoundError(Exception):
    """No chat with that id is owned by the caller."""


def chat_title(messages: list[dict]) -> str:
    """First text of the first user message, or the default title.

    Message content is either a string or a list of typed parts
    (``{"type": "text", "text": ...}``).
    """
    for message in messages:
        if message.get("role") != "user":
            continue
        text = message.get("content")
        if not isinstance(text, str):
            parts = message.get("parts") or message.get("content") or []
            text = next(
                (p.get("text") for p in parts if isinstance(p, dict) and p.get("type") == "text" and p.get("text")),
                None,
            )
        if text:
            return text[:MAX_TITLE_CHARS]
        break
    return DEFAULT_TITLE


class ChatService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], storage: BlobStore):
        self._session_factory = session_factory
        self.storage = storage

    async def _owned(self, session: AsyncSession, chat_id: str, user_id: str) -> Chat | None:
        result = await session.execute(
            select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_chats(self, user_id: str, limit: int = 50) -> list[Chat]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Chat)
                .where(Chat.user_id == user_id)
                .order_by(Chat.updated_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_chat(self, chat_id: str, user_id: str) -> Chat | None:
        async with self._session_factory() as session:
            return await self._owned(session, chat_id, user_id)

    async def get_chat_messages(self, chat_id: str, user_id: str) -> list[dict] | None:
        """Stored transcript, or None if the chat is absent, foreign or unreadable."""
        chat = await self.get_chat(chat_id, user_id)
        if chat is None or not chat.storage_key:
            return None
        try:
            data = json.loads(await self.storage.read(chat.storage_key))
        except (StorageError, json.JSONDecodeError):
            logger.error(f"Failed to load chat {chat_id} from storage", exc_info=True)
            return None
        return data.get("messages", [])

    async def save_chat(
        self,
        chat_id: str,
        user_id: str,
        messages: list[dict],
        model: str | None = None,
    ) -> Chat:
        """Write the transcript blob and upsert the chat row.

        The title is set once, from the first user message, when the chat is
        first saved.
        """
        storage_key = chat_storage_key(user_id, chat_id)
        await self.storage.write(storage_key, json.dumps({
            "chatId": chat_id,
            "userId": user_id,
            "model": model,
            "messages": messages,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }))

        async with self._session_factory() as session:
            chat = await session.get(Chat, chat_id)
            if chat is not None and chat.user_id != user_id:
                raise ChatNotFoundError(f"Chat {chat_id} not found")
            if chat is None:
                chat = Chat(
                    id=chat_id,
                    user_id=user_id,
                    title=chat_title(messages),
                    storage_key=storage_key,
                )
                session.add(chat)
            chat.model = model
            chat.message_count = len(messages)
            chat.updated_at = datetime.now(timezone.utc)
            await session.commit()

        logger.info(f"Saved chat {chat_id} ({len(messages)} messages)")
        return chat

    async def delete_chat(self, chat_id: str, user_id: str) -> None:
        async with self._session_factory() as session:
            chat = await self._owned(session, chat_id, user_id)
            if chat is None:
                raise ChatNotFoundError(f"Chat {chat_id} not found")
            if chat.storage_key:
                try:
                    await self.storage.delete(chat.storage_key)
                except StorageError:
                    # Keep going; the row is the source of truth for listing.
                    logger.warning(f"Failed to delete transcript blob for chat {chat_id}", exc_info=True)
            await session.delete(chat)
            await session.commit()
        logger.info(f"Deleted chat {chat_id}")
