from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

FilledVariables = Dict[str, str]
UserSecrets = Dict[str, str]


class ChatRole(str, Enum):
    AI = "AI"
    USER = "USER"


class ChatMessage(BaseModel):
    """One turn of a conversation. Immutable once built."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content: str
    role: ChatRole
    created_at: str = Field(alias="createdAt")
    id: str
    provider_id: Optional[str] = Field(default=None, alias="providerId")
    input_tokens: Optional[int] = Field(default=None, alias="inputTokens")
    output_tokens: Optional[int] = Field(default=None, alias="outputTokens")

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(
            content=content,
            role=ChatRole.USER,
            created_at=datetime.now(timezone.utc).isoformat(),
            id=str(uuid4()),
        )


class ChatResponse(BaseModel):
    # one unit of a stream, or the whole answer of a blocking call
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    new_message: ChatMessage = Field(alias="newMessage")
    chat_id: str = Field(alias="chatId")
    stream_finished: Optional[bool] = Field(default=None, alias="streamFinished")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ChatRequest(BaseModel):
    """
    Body POSTed to <base>/<kind>/<id>.
    stream is the string "true"/"false" on the wire, not a JSON boolean.
    Absent user_id / user_secrets are left out of the payload entirely.
    """

    model_config = ConfigDict(populate_by_name=True)

    variables: FilledVariables = Field(default_factory=dict)
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: Literal["true", "false"]
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_secrets: Optional[UserSecrets] = Field(default=None, alias="userSecrets", repr=False)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReviewRequest(BaseModel):
    # all four keys are always sent; absent values go out as null
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    review_score: Optional[Union[int, float]] = Field(default=None, alias="reviewScore")
    review_text: Optional[str] = Field(default=None, alias="reviewText")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
