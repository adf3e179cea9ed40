from enum import Enum

from sqlalchemy import Column, Index, String, text
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UTCDateTime, UUIDMixin, utcnow


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"
    AUTO_CLOSED = "auto-closed"


# Statuses that occupy the single open slot for a participant pair.
OPEN_STATUSES = (ConversationStatus.ACTIVE, ConversationStatus.PAUSED)

_OPEN_PAIR_PREDICATE = text("status IN ('active', 'paused')")


class Conversation(UUIDMixin, TimestampMixin, Base):
    """
    Two-party chat thread.

    Participants are stored sorted (participant_a < participant_b) so the
    pair is represented identically whichever side started the chat.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index(
            "uq_conversations_open_pair",
            "participant_a",
            "participant_b",
            unique=True,
            postgresql_where=_OPEN_PAIR_PREDICATE,
            sqlite_where=_OPEN_PAIR_PREDICATE,
        ),
        Index("ix_conversations_participant_a_last_active", "participant_a", "last_active"),
        Index("ix_conversations_participant_b_last_active", "participant_b", "last_active"),
    )

    participant_a = Column(String(64), nullable=False)
    participant_b = Column(String(64), nullable=False)
    status = Column(
        String(32), nullable=False, default=ConversationStatus.ACTIVE.value, index=True
    )

    paused_by = Column(String(64), nullable=True)
    paused_at = Column(UTCDateTime(), nullable=True)
    last_active = Column(UTCDateTime(), nullable=False, default=utcnow)
    closed_at = Column(UTCDateTime(), nullable=True)

    # Relationships
    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.id",
    )

    @property
    def participants(self) -> list[str]:
        return [self.participant_a, self.participant_b]

    def has_participant(self, user_id: str) -> bool:
        return str(user_id) in (self.participant_a, self.participant_b)

    def other_participants(self, user_id: str) -> list[str]:
        return [p for p in self.participants if p != str(user_id)]

    def __repr__(self):
        return (
            f"<Conversation(id='{self.id}', participants={self.participants}, "
            f"status='{self.status}')>"
        )
