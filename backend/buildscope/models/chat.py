from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator


class ConversationType(str, Enum):
    SCOPE = "scope"
    PROPOSAL = "proposal"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    name: str
    url: str
    type: str
    content: str | None = None


class ChatTurn(BaseModel):
    id: str
    role: Role
    content: str
    type: ConversationType
    attachments: list[Attachment] = []
    timestamp: datetime
    incomplete: bool = False


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    project_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("project_id", "projectId"),
    )
    type: ConversationType
    attachments: list[Attachment] = []

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatCompleteResponse(BaseModel):
    message: ChatTurn


class ChatHistoryResponse(BaseModel):
    project_id: str
    type: ConversationType | None = None
    messages: list[ChatTurn]
