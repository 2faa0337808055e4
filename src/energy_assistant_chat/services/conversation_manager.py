"""Client-side controller owning the chat state.

The manager holds the conversation list, the active selection, pending
attachments, scenario inputs and the loading/listening flags. Every change
to the conversation list is written back to storage. A UI layer calls the
public coroutines and re-renders from ``manager.state``.
"""

from typing import Callable, Iterable, List, Optional

import structlog
from pydantic import TypeAdapter

from ..config import ClientSettings
from ..domain.models import Attachment, ChatState, Conversation
from ..domain.prompts import build_scenario_prompt
from ..repositories.base import Storage
from ..repositories.file import FileStorage
from ..repositories.memory import InMemoryStorage
from .attachments import AttachmentReadError, PathLike, read_attachments
from .conversation_state import (
    SendResult,
    apply_optimistic_update,
    apply_result,
    build_api_messages,
    create_conversation,
)
from .relay_client import RelayClient, interpret_reply
from .speech import SpeechRecognitionError, SpeechRecognizer

logger = structlog.get_logger()

STORAGE_KEY = "ml-chat-conversations-v1"
ATTACHMENT_READ_ALERT = "There was a problem reading one of the files."
SPEECH_UNSUPPORTED_ALERT = "Speech recognition is not supported on this system."

_conversation_list = TypeAdapter(List[Conversation])


def _log_alert(message: str) -> None:
    logger.warning("user_alert", message=message)


class ConversationManager:
    """Owns chat state and drives sends, attachments, scenarios and voice input."""

    def __init__(
        self,
        storage: Storage,
        relay_client: RelayClient,
        recognizer: Optional[SpeechRecognizer] = None,
        alert: Optional[Callable[[str], None]] = None,
    ):
        self.storage = storage
        self.relay_client = relay_client
        self.recognizer = recognizer
        self.alert = alert or _log_alert
        self.state = ChatState()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        recognizer: Optional[SpeechRecognizer] = None,
        alert: Optional[Callable[[str], None]] = None,
    ) -> "ConversationManager":
        if settings.storage_dir:
            storage: Storage = FileStorage(settings.storage_dir)
        else:
            storage = InMemoryStorage()
        relay_client = RelayClient(settings.relay_url, timeout=settings.timeout_seconds)
        return cls(storage, relay_client, recognizer, alert)

    @property
    def active_conversation(self) -> Optional[Conversation]:
        return self.state.active_conversation

    def _commit(self, state: ChatState) -> None:
        conversations_changed = state.conversations is not self.state.conversations
        self.state = state
        if conversations_changed:
            self._save()

    def _load(self) -> Optional[List[Conversation]]:
        try:
            raw = self.storage.get_item(STORAGE_KEY)
            if raw:
                return _conversation_list.validate_json(raw)
        except Exception as e:
            logger.error("history_load_failed", error=str(e))
        return None

    def _save(self) -> None:
        try:
            payload = _conversation_list.dump_json(self.state.conversations).decode("utf-8")
            self.storage.set_item(STORAGE_KEY, payload)
        except Exception as e:
            logger.error("history_save_failed", error=str(e))

    def initialize(self) -> None:
        """Restore persisted conversations, or start with a single new one."""
        conversations = self._load()
        if conversations:
            logger.info("history_loaded", conversations=len(conversations))
            self._commit(
                self.state.model_copy(
                    update={"conversations": conversations, "active_id": conversations[0].id}
                )
            )
            return

        first = create_conversation()
        self._commit(self.state.model_copy(update={"conversations": [first], "active_id": first.id}))

    def new_chat(self) -> Conversation:
        conversation = create_conversation()
        self._commit(
            self.state.model_copy(
                update={
                    "conversations": [conversation, *self.state.conversations],
                    "active_id": conversation.id,
                    "input_text": "",
                    "pending_attachments": [],
                }
            )
        )
        logger.info("conversation_created", conversation_id=conversation.id)
        return conversation

    def select_conversation(self, conversation_id: str) -> None:
        if not any(c.id == conversation_id for c in self.state.conversations):
            logger.warning("conversation_not_found", conversation_id=conversation_id)
            return
        self._commit(self.state.model_copy(update={"active_id": conversation_id}))

    def set_input(self, text: str) -> None:
        self._commit(self.state.model_copy(update={"input_text": text}))

    def update_scenario(self, **fields: str) -> None:
        scenario = self.state.scenario.model_copy(update=fields)
        self._commit(self.state.model_copy(update={"scenario": scenario}))

    async def add_attachments(self, paths: Iterable[PathLike]) -> None:
        """Read the selected files and queue them for the next send.

        All files are read together; if one fails nothing is queued.
        """
        paths = list(paths)
        if not paths:
            return
        try:
            attachments = await read_attachments(paths)
        except AttachmentReadError as e:
            logger.error("attachment_read_failed", path=e.path, error=str(e))
            self.alert(ATTACHMENT_READ_ALERT)
            return

        pending = [*self.state.pending_attachments, *attachments]
        self._commit(self.state.model_copy(update={"pending_attachments": pending}))

    def remove_attachment(self, attachment_id: str) -> None:
        pending = [a for a in self.state.pending_attachments if a.id != attachment_id]
        self._commit(self.state.model_copy(update={"pending_attachments": pending}))

    async def send(
        self,
        text: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> None:
        """Send the input (or the given text/attachments) to the assistant.

        The conversation always receives a reply: the model's answer on
        success, a warning message on any failure.
        """
        if text is None:
            text = self.state.input_text
        if attachments is None:
            attachments = self.state.pending_attachments

        state, conversation_id = apply_optimistic_update(self.state, text, attachments)
        if conversation_id is None:
            return
        self._commit(state)

        conversation = next(c for c in state.conversations if c.id == conversation_id)
        result = SendResult.failure(None)
        try:
            reply = await self.relay_client.post_messages(build_api_messages(conversation))
            result = interpret_reply(reply)
            if not result.ok:
                logger.warning(
                    "relay_request_failed",
                    conversation_id=conversation_id,
                    status=reply.status_code,
                    error=result.error,
                )
        except Exception as e:
            logger.error("send_failed", conversation_id=conversation_id, error=str(e))
            result = SendResult.failure(str(e) or None)
        finally:
            self._commit(apply_result(self.state, conversation_id, result))

    async def run_scenario(self) -> None:
        if self.active_conversation is None or self.state.is_loading:
            return
        await self.send(text=build_scenario_prompt(self.state.scenario), attachments=[])

    async def toggle_voice_input(self) -> None:
        """Start listening, or stop if already listening."""
        if self.recognizer is None:
            self.alert(SPEECH_UNSUPPORTED_ALERT)
            return
        if self.state.is_listening:
            self.recognizer.stop()
            return

        self._commit(self.state.model_copy(update={"is_listening": True}))
        try:
            transcript = await self.recognizer.listen()
            if transcript:
                previous = self.state.input_text
                joined = f"{previous} {transcript}" if previous else transcript
                self._commit(self.state.model_copy(update={"input_text": joined}))
        except SpeechRecognitionError as e:
            logger.warning("speech_recognition_failed", error=str(e))
        finally:
            self._commit(self.state.model_copy(update={"is_listening": False}))

    async def aclose(self) -> None:
        await self.relay_client.aclose()
