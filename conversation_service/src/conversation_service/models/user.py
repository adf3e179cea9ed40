from sqlalchemy import Boolean, Column, Integer, String

from .base import Base, TimestampMixin, UTCDateTime


class ChatUser(TimestampMixin, Base):
    """
    Local projection of the platform user record.

    Only the fields the conversation core reads: identity, suspension,
    admin flag and the plan-derived active conversation slots.
    """

    __tablename__ = "chat_users"

    id = Column(String(64), primary_key=True)
    display_name = Column(String(255), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    suspended_until = Column(UTCDateTime(), nullable=True)
    plan = Column(String(32), nullable=False, default="free")
    active_conversations = Column(Integer, nullable=False, default=0)
    # Null means "use the plan limit"
    max_active_conversations = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<ChatUser(id='{self.id}', plan='{self.plan}')>"
