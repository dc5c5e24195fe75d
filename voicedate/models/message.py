from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConversationDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conversation_id: str = Field(alias="conversationId")
    participants: List[str]
    pair_key: str = Field(alias="pairKey")
    created_at: int = Field(alias="createdAt")

    def other_participant(self, user_id: str) -> Optional[str]:
        for participant in self.participants:
            if participant != user_id:
                return participant
        return None


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(alias="messageId")
    conversation_id: str = Field(alias="conversationId")
    sender_id: str = Field(alias="senderId")
    content: str
    created_at: int = Field(alias="createdAt")
    read_at: Optional[int] = Field(default=None, alias="readAt")


class OutgoingMessage(Message):
    """A message as the sender sees it before and after the store confirms it."""

    status: Literal["pending", "sent", "failed"] = "pending"
    error: Optional[str] = None


class MessageCreateRequest(BaseModel):
    content: str = Field(max_length=4000)


class ConversationCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    other_user_id: str = Field(alias="otherUserId", min_length=1)


class ConversationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId")


class MessageListResponse(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    next: Optional[int] = None


class UnreadSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    per_conversation: Dict[str, int] = Field(default_factory=dict, alias="perConversation")
    # Keyed by the other participant's user id
    per_match: Dict[str, int] = Field(default_factory=dict, alias="perMatch")


class MarkReadResponse(BaseModel):
    updated: int = 0


__all__ = [
    "ConversationDocument",
    "Message",
    "OutgoingMessage",
    "MessageCreateRequest",
    "ConversationCreateRequest",
    "ConversationResponse",
    "MessageListResponse",
    "UnreadSummary",
    "MarkReadResponse",
]
