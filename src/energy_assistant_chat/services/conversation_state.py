"""Pure state transitions for the chat client.

Sending a message is split in two phases so the UI can render the user's
message before the relay answers:

    state, conversation_id = apply_optimistic_update(state, text, attachments)
    ...call the relay...
    state = apply_result(state, conversation_id, result)

Functions here never mutate their inputs and perform no I/O.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel

from ..domain.models import (
    ASSISTANT_ROLE,
    KNOWN_ROLES,
    USER_ROLE,
    Attachment,
    ChatState,
    ChatTurn,
    Conversation,
    Message,
    new_id,
)
from ..domain.prompts import (
    ATTACHMENT_ONLY_TEXT,
    EMPTY_REPLY_TEXT,
    GENERIC_ERROR_TEXT,
    SYSTEM_MESSAGE,
    WARNING_PREFIX,
    WELCOME_TEXT,
)

TITLE_MAX_LENGTH = 40
ELLIPSIS = "…"


class SendResult(BaseModel):
    """Outcome of a relay call as seen by the conversation."""

    ok: bool
    text: str = ""
    error: Optional[str] = None

    @classmethod
    def success(cls, text: str) -> "SendResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, error: Optional[str]) -> "SendResult":
        return cls(ok=False, error=error)


def create_conversation() -> Conversation:
    """A fresh conversation holding only the welcome message."""
    return Conversation(
        messages=[
            Message(id=new_id("msg", "welcome"), role=ASSISTANT_ROLE, text=WELCOME_TEXT)
        ]
    )


def derive_title(text: str) -> str:
    trimmed = text.strip()
    if len(trimmed) > TITLE_MAX_LENGTH:
        return trimmed[: TITLE_MAX_LENGTH - 3] + ELLIPSIS
    return trimmed


def summarize_attachments(attachments: List[Attachment]) -> str:
    summary = "; ".join(
        f"Image: {att.name}" if att.kind == "image" else f"Document: {att.name}"
        for att in attachments
    )
    return f"[Attachments: {summary}]"


def build_api_messages(conversation: Conversation) -> List[ChatTurn]:
    """Translate a conversation into the outbound message sequence.

    The system instruction always comes first. Attachment payloads are never
    included, only a name/kind summary line. Roles other than user, assistant
    and system are sent as user.
    """
    api_messages = [SYSTEM_MESSAGE]
    for message in conversation.messages:
        content = message.text or ""
        if message.attachments:
            content += "\n\n" + summarize_attachments(message.attachments)
        role = message.role if message.role in KNOWN_ROLES else USER_ROLE
        api_messages.append(ChatTurn(role=role, content=content))
    return api_messages


def replace_conversation(state: ChatState, conversation: Conversation) -> ChatState:
    conversations = [conversation if c.id == conversation.id else c for c in state.conversations]
    return state.model_copy(update={"conversations": conversations})


def apply_optimistic_update(
    state: ChatState, text: str, attachments: List[Attachment]
) -> Tuple[ChatState, Optional[str]]:
    """Append the user's message and enter the loading state.

    Returns the new state and the id of the conversation awaiting a reply.
    The id is None, and the state unchanged, when the send is rejected.
    """
    conversation = state.active_conversation
    trimmed = (text or "").strip()
    if conversation is None or state.is_loading:
        return state, None
    if not trimmed and not attachments:
        return state, None

    user_message = Message(
        id=new_id("msg", "user"),
        role=USER_ROLE,
        text=trimmed or ATTACHMENT_ONLY_TEXT,
        attachments=list(attachments),
    )
    update = {"messages": [*conversation.messages, user_message]}
    if trimmed and not conversation.has_user_message():
        update["title"] = derive_title(trimmed)

    state = replace_conversation(state, conversation.model_copy(update=update))
    state = state.model_copy(
        update={"is_loading": True, "input_text": "", "pending_attachments": []}
    )
    return state, conversation.id


def apply_result(state: ChatState, conversation_id: str, result: SendResult) -> ChatState:
    """Append the assistant's reply, or a warning, and leave the loading state."""
    if result.ok:
        reply = Message(
            id=new_id("msg", "assistant"),
            role=ASSISTANT_ROLE,
            text=result.text or EMPTY_REPLY_TEXT,
        )
    else:
        reply = Message(
            id=new_id("msg", "error"),
            role=ASSISTANT_ROLE,
            text=WARNING_PREFIX + (result.error or GENERIC_ERROR_TEXT),
        )

    for conversation in state.conversations:
        if conversation.id == conversation_id:
            updated = conversation.model_copy(
                update={"messages": [*conversation.messages, reply]}
            )
            state = replace_conversation(state, updated)
            break
    return state.model_copy(update={"is_loading": False})
