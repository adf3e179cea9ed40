"""
User directory client.

The conversation core does not own users. It only needs to know whether a
user exists, what to call them, whether they are suspended, and how many
active conversation slots their plan allows.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..logging_config import logger
from ..models import ChatUser


@dataclass(frozen=True)
class UserInfo:
    id: str
    display_name: Optional[str] = None
    is_admin: bool = False
    suspended_until: Optional[datetime] = None
    plan: str = "free"
    active_conversations: int = 0
    max_active_conversations: int = 0

    def is_suspended(self, now: Optional[datetime] = None) -> bool:
        """Suspension never applies to admins."""
        if self.is_admin or self.suspended_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.suspended_until > now

    @property
    def has_free_slot(self) -> bool:
        return self.active_conversations < self.max_active_conversations


class UserDirectory(ABC):
    """Read/write access to the user attributes the conversation core consumes."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserInfo]:
        ...

    @abstractmethod
    async def set_active_conversations(self, user_id: str, count: int) -> None:
        ...

    @abstractmethod
    async def list_user_ids(self) -> list[str]:
        ...


class DatabaseUserDirectory(UserDirectory):
    """UserDirectory backed by the chat_users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _to_info(user: ChatUser) -> UserInfo:
        return UserInfo(
            id=user.id,
            display_name=user.display_name,
            is_admin=bool(user.is_admin),
            suspended_until=user.suspended_until,
            plan=user.plan,
            active_conversations=user.active_conversations or 0,
            max_active_conversations=(
                user.max_active_conversations
                if user.max_active_conversations is not None
                else settings.max_active_for_plan(user.plan)
            ),
        )

    async def get_user(self, user_id: str) -> Optional[UserInfo]:
        if not user_id:
            return None
        user = await self.db.get(ChatUser, str(user_id))
        if user is None:
            logger.debug(f"User {user_id} not found in directory")
            return None
        return self._to_info(user)

    async def set_active_conversations(self, user_id: str, count: int) -> None:
        await self.db.execute(
            update(ChatUser)
            .where(ChatUser.id == str(user_id))
            .values(active_conversations=count)
        )
        await self.db.commit()

    async def list_user_ids(self) -> list[str]:
        result = await self.db.execute(select(ChatUser.id))
        return [row[0] for row in result.all()]
