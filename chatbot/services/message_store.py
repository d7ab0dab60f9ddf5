# chatbot/services/message_store.py
"""Per-user message log: send / edit / delete of user turns plus the bot replies.

A user's log is one document in the DocumentStore, keyed by user id, mapping
message id -> {"text": ..., "by": "user" | "bot"}. Message ids are decimal
millisecond timestamps; a bot reply id is its triggering id + 1000, so the
reply always sorts after the turn that produced it.

Every operation is a single read followed by a single write, run under a
per-user asyncio.Lock so two requests for the same user never interleave.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from chatbot.errors import InvalidArgument, MessageNotFound, StorageUnavailable, UserNotFound
from chatbot.services.document_store import Document, DocumentStore
from chatbot.services.intent_responder import respond

BOT_REPLY_OFFSET_MS = 1000
DEFAULT_STORAGE_TIMEOUT = 5.0


class Author(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class MessageEntry:
    id: str
    text: str
    author: Author

    def to_doc(self) -> Dict[str, str]:
        return {"text": self.text, "by": self.author.value}

    @classmethod
    def from_doc(cls, message_id: str, raw: Dict[str, Any]) -> "MessageEntry":
        return cls(id=message_id, text=raw.get("text", ""), author=Author(raw.get("by")))


@dataclass(frozen=True)
class SendResult:
    reply_text: str
    bot_reply_id: str
    user_message_id: str


@dataclass(frozen=True)
class EditResult:
    reply_text: str
    bot_reply_id: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def _id_sort_key(message_id: str):
    # numeric ids first, in numeric order; anything else after, lexically
    return (0, int(message_id), "") if message_id.isdigit() else (1, 0, message_id)


def _is_user_entry(raw: Any) -> bool:
    return isinstance(raw, dict) and raw.get("by") == Author.USER.value


def _require(**params: Optional[str]) -> None:
    missing = [name for name, value in params.items() if not value]
    if missing:
        logging.warning(json.dumps({"event": "params.missing", "missing": missing}))
        raise InvalidArgument(missing)


class MessageLogStore:
    def __init__(
        self,
        documents: DocumentStore,
        *,
        responder: Callable[[str], str] = respond,
        clock: Callable[[], int] = _now_ms,
        storage_timeout: float = DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        self._documents = documents
        self._responder = responder
        self._clock = clock
        self._storage_timeout = storage_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_issued: Dict[str, int] = {}

    # ---------- helpers ----------
    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def _next_id(self, user_id: str, log: Document) -> int:
        """Millisecond id, strictly increasing for this user and free in `log`
        together with its bot-reply slot (id + offset). Call under the user's lock."""
        candidate = max(self._clock(), self._last_issued.get(user_id, 0) + 1)
        while str(candidate) in log or str(candidate + BOT_REPLY_OFFSET_MS) in log:
            candidate += 1
        self._last_issued[user_id] = candidate
        return candidate

    async def _storage(
        self, op: str, fn: Callable[..., Any], *args: Any,
        undo: Optional[Callable[[], None]] = None,
    ) -> Any:
        """Run one blocking storage call off the loop, bounded by the timeout.

        A worker thread cannot be stopped, so on timeout the call is awaited to
        completion before returning; callers hold the user's lock, so nothing
        else touches the log meanwhile. If the late call did commit, `undo`
        reverts it so the failed operation leaves no trace.
        """
        call = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(call), timeout=self._storage_timeout)
        except asyncio.TimeoutError as e:
            logging.error(json.dumps({"event": "storage.error", "op": op, "err": "timeout"}))
            try:
                await call
            except Exception as late:
                logging.error(json.dumps({"event": "storage.error", "op": op, "err": str(late)}))
            else:
                if undo is not None:
                    await self._revert(op, undo)
            raise StorageUnavailable() from e
        except Exception as e:
            logging.error(json.dumps({"event": "storage.error", "op": op, "err": str(e)}))
            raise StorageUnavailable() from e

    async def _revert(self, op: str, undo: Callable[[], None]) -> None:
        try:
            await asyncio.to_thread(undo)
        except Exception as e:
            logging.error(json.dumps({"event": "storage.revert_failed", "op": op, "err": str(e)}))
        else:
            logging.warning(json.dumps({"event": "storage.reverted", "op": op}))

    async def _load_existing(self, user_id: str) -> Document:
        log = await self._storage("get", self._documents.get, user_id)
        if log is None:
            logging.warning(json.dumps({"event": "user.not_found", "user_id": user_id}))
            raise UserNotFound()
        return log

    # ---------- operations ----------
    async def send(self, user_id: str, text: str) -> SendResult:
        _require(userId=user_id, text=text)
        async with self._lock_for(user_id):
            log = await self._storage("get", self._documents.get, user_id) or {}
            user_ts = self._next_id(user_id, log)
            user_message_id = str(user_ts)
            bot_reply_id = str(user_ts + BOT_REPLY_OFFSET_MS)
            reply_text = self._responder(text)

            user_entry = MessageEntry(user_message_id, text, Author.USER)
            bot_entry = MessageEntry(bot_reply_id, reply_text, Author.BOT)

            def undo() -> None:
                self._documents.delete_field(user_id, user_message_id)
                self._documents.delete_field(user_id, bot_reply_id)

            await self._storage("merge_set", self._documents.merge_set, user_id, {
                user_message_id: user_entry.to_doc(),
                bot_reply_id: bot_entry.to_doc(),
            }, undo=undo)

        logging.info(json.dumps({
            "event": "message.send", "user_id": user_id,
            "user_message_id": user_message_id, "bot_reply_id": bot_reply_id,
        }))
        return SendResult(reply_text=reply_text, bot_reply_id=bot_reply_id, user_message_id=user_message_id)

    async def edit(self, user_id: str, message_id: str, new_text: str) -> EditResult:
        _require(userId=user_id, messageId=message_id, newText=new_text)
        async with self._lock_for(user_id):
            log = await self._load_existing(user_id)
            if not _is_user_entry(log.get(message_id)):
                logging.warning(json.dumps({"event": "message.not_found", "op": "edit",
                                            "user_id": user_id, "message_id": message_id}))
                raise MessageNotFound()

            original = dict(log)
            # the reply paired with the old text stays in the log
            log[message_id] = MessageEntry(message_id, new_text, Author.USER).to_doc()
            bot_reply_id = str(self._next_id(user_id, log) + BOT_REPLY_OFFSET_MS)
            reply_text = self._responder(new_text)
            log[bot_reply_id] = MessageEntry(bot_reply_id, reply_text, Author.BOT).to_doc()
            await self._storage("overwrite", self._documents.overwrite, user_id, log,
                                undo=lambda: self._documents.overwrite(user_id, original))

        logging.info(json.dumps({
            "event": "message.edit", "user_id": user_id,
            "message_id": message_id, "bot_reply_id": bot_reply_id,
        }))
        return EditResult(reply_text=reply_text, bot_reply_id=bot_reply_id)

    async def delete(self, user_id: str, message_id: str) -> None:
        _require(userId=user_id, messageId=message_id)
        async with self._lock_for(user_id):
            log = await self._load_existing(user_id)
            if not _is_user_entry(log.get(message_id)):
                logging.warning(json.dumps({"event": "message.not_found", "op": "delete",
                                            "user_id": user_id, "message_id": message_id}))
                raise MessageNotFound()
            removed = log[message_id]
            await self._storage("delete_field", self._documents.delete_field, user_id, message_id,
                                undo=lambda: self._documents.merge_set(user_id, {message_id: removed}))

        logging.info(json.dumps({"event": "message.delete", "user_id": user_id, "message_id": message_id}))

    async def history(self, user_id: str) -> List[MessageEntry]:
        """The user's log in display order (ids sorted numerically)."""
        _require(userId=user_id)
        async with self._lock_for(user_id):
            log = await self._load_existing(user_id)
        return [MessageEntry.from_doc(mid, log[mid]) for mid in sorted(log, key=_id_sort_key)]
