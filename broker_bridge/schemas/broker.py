from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BrokerAnswer(BaseModel):
    content: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class BrokerConversationResponse(BaseModel):
    sessionCode: str = ""
    answers: list[BrokerAnswer] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ConversationExchange(BaseModel):
    """One request to the broker and its parsed reply. Never persisted."""

    text: str
    request_session_code: str = ""
    session_code: str = ""
    answers: list[str] = Field(default_factory=list)

    @property
    def session_changed(self) -> bool:
        return bool(self.session_code) and self.session_code != self.request_session_code
