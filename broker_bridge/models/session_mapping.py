from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Text

from broker_bridge.config import settings
from broker_bridge.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionMapping(Base):
    """Current broker session code for one LINE user."""

    __tablename__ = settings.session_table

    platform_user_id = Column(Text, primary_key=True)
    session_code = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<SessionMapping user={self.platform_user_id} code={self.session_code}>"
