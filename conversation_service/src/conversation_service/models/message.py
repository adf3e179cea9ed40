from sqlalchemy import JSON, BigInteger, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class ConversationMessage(Base):
    """Append-only chat message. Insertion order is the primary key order."""

    __tablename__ = "conversation_messages"

    id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sender_id = Column(String(64), nullable=False, index=True)
    text = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=True)
    timestamp = Column(UTCDateTime(), nullable=False, default=utcnow)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
