"""Domain models for the energy assistant chat."""

import time
from datetime import datetime, timezone
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
KNOWN_ROLES = (USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE)

DEFAULT_TITLE = "New chat"


def new_id(prefix: str, tag: Optional[str] = None) -> str:
    """Build an identifier from the current time in ms plus a random suffix."""
    parts = [prefix, str(int(time.time() * 1000))]
    if tag:
        parts.append(tag)
    parts.append(uuid4().hex[:12])
    return "-".join(parts)


class Attachment(BaseModel):
    """A user-supplied file attached to a single message."""

    id: str = Field(default_factory=lambda: new_id("att"))
    kind: Literal["image", "text"]
    name: str
    mime: str
    data_url: Optional[str] = None  # image payload
    content: Optional[str] = None  # text payload


class Message(BaseModel):
    """Message model."""

    id: str = Field(default_factory=lambda: new_id("msg"))
    role: str = USER_ROLE
    text: str = ""
    attachments: List[Attachment] = Field(default_factory=list)


class Conversation(BaseModel):
    """Conversation model."""

    id: str = Field(default_factory=lambda: new_id("conv"))
    title: str = DEFAULT_TITLE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    messages: List[Message] = Field(default_factory=list)

    def has_user_message(self) -> bool:
        return any(m.role == USER_ROLE for m in self.messages)


class ScenarioInput(BaseModel):
    """Scenario simulation fields, kept as text the way the form holds them."""

    solar: str = "20"
    ev: str = "15"
    storage: str = "5"


class ChatTurn(BaseModel):
    """A single {role, content} message on the wire."""

    role: str
    content: str


class ChatState(BaseModel):
    """Everything the chat UI renders from."""

    conversations: List[Conversation] = Field(default_factory=list)
    active_id: Optional[str] = None
    input_text: str = ""
    pending_attachments: List[Attachment] = Field(default_factory=list)
    is_loading: bool = False
    is_listening: bool = False
    scenario: ScenarioInput = Field(default_factory=ScenarioInput)

    @property
    def active_conversation(self) -> Optional[Conversation]:
        for conversation in self.conversations:
            if conversation.id == self.active_id:
                return conversation
        return self.conversations[0] if self.conversations else None
