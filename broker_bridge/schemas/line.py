from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class LineSource(BaseModel):
    type: Optional[str] = None  # user, group, room
    userId: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class LineMessage(BaseModel):
    id: Optional[str] = None
    type: str  # text, image, audio, video, file, location, sticker
    text: Optional[str] = None
    duration: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


class LinePostback(BaseModel):
    data: Optional[str] = None
    params: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")


class LineEvent(BaseModel):
    type: str
    source: Optional[LineSource] = None
    message: Optional[LineMessage] = None
    postback: Optional[LinePostback] = None
    replyToken: Optional[str] = None
    timestamp: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def user_id(self) -> Optional[str]:
        return self.source.userId if self.source else None


class LineWebhookRequest(BaseModel):
    destination: Optional[str] = None
    events: list[Any] = Field(default_factory=list)


class LineTextMessage(BaseModel):
    type: str = "text"
    text: str


class EventResult(BaseModel):
    status: str  # delivered, dropped, replied, ignored, invalid
    reason: Optional[str] = None
