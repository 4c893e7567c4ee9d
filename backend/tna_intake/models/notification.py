"""
Notification record model.

One row per attempted delivery channel, for traceability only.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime

from ..core.database import Base


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationOutcome(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"


class NotificationRecord(Base):
    """
    Delivery attempt record.

    Attributes:
        channel: email or sms
        recipient: Address or phone number the message was meant for
        message: Short summary of what was sent (not the full body)
        provider: Name of the sink that delivered it, None if every sink failed
        outcome: sent or failed
        error: Last provider error when the attempt failed
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel = Column(String(10), nullable=False)
    recipient = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    provider = Column(String(50), nullable=True)
    outcome = Column(String(20), nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<NotificationRecord(id={self.id}, channel={self.channel}, "
            f"outcome={self.outcome}, provider={self.provider})>"
        )

    @property
    def delivered(self) -> bool:
        return self.outcome == NotificationOutcome.SENT.value
