"""
Conversation business rules.

Every mutation is committed through the conversation store first. Realtime
pushes and notifications follow as best-effort side effects, so by the time
they run the caller's change is already durable.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..clients.user_directory import UserDirectory, UserInfo
from ..config import settings
from ..crud import conversations as conversation_crud
from ..errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from ..logging_config import logger
from ..models import (
    OPEN_STATUSES,
    Conversation,
    ConversationMessage,
    ConversationStatus,
    NotificationType,
)
from ..schemas.chat import (
    ConversationMessageEvent,
    ConversationMessages,
    ConversationRead,
    ConversationStatusEvent,
    ConversationSummary,
    MessagePreview,
    MessageRead,
    UserPublic,
)
from .dispatch import DispatchResult, best_effort
from .notifications import NotificationSink
from .publisher import (
    Publisher,
    chat_messages_topic,
    chat_status_topic,
    user_messages_queue,
    user_status_queue,
)


class ConversationService:
    def __init__(
        self,
        db: AsyncSession,
        users: UserDirectory,
        publisher: Publisher,
        notifications: NotificationSink,
        preview_length: Optional[int] = None,
    ):
        self.db = db
        self.users = users
        self.publisher = publisher
        self.notifications = notifications
        self.preview_length = preview_length or settings.NOTIFICATION_PREVIEW_LENGTH

    # --- lookups ---

    async def _require_user(self, user_id: str) -> UserInfo:
        user = await self.users.get_user(str(user_id))
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _require_participant(
        self, user_id: str, conversation_id: UUID, with_messages: bool = True
    ) -> Conversation:
        conversation = await conversation_crud.get_conversation(
            self.db, conversation_id, with_messages=with_messages
        )
        if conversation is None:
            raise NotFoundError("Chat not found")
        if not conversation.has_participant(user_id):
            raise ForbiddenError("Not a participant")
        return conversation

    @staticmethod
    def _check_quota(user: UserInfo) -> None:
        if not user.has_free_slot:
            raise QuotaExceededError(
                blocked_for=user.id,
                current_count=user.active_conversations,
                max_allowed=user.max_active_conversations,
            )

    async def _resolve_users(self, user_ids: Iterable[str]) -> Dict[str, Optional[UserInfo]]:
        resolved: Dict[str, Optional[UserInfo]] = {}
        for user_id in set(user_ids):
            resolved[user_id] = await self.users.get_user(user_id)
        return resolved

    # --- serialization ---

    @staticmethod
    def _message_read(message: ConversationMessage, users: Dict[str, Optional[UserInfo]]) -> MessageRead:
        sender = users.get(message.sender_id)
        return MessageRead(
            id=message.id,
            sender=UserPublic(
                id=message.sender_id,
                display_name=sender.display_name if sender else None,
            ),
            text=message.text,
            attachments=message.attachments or [],
            timestamp=message.timestamp,
        )

    async def _conversation_read(self, conversation: Conversation) -> ConversationRead:
        users = await self._resolve_users(m.sender_id for m in conversation.messages)
        return ConversationRead(
            id=conversation.id,
            participants=conversation.participants,
            status=conversation.status,
            paused_by=conversation.paused_by,
            paused_at=conversation.paused_at,
            last_active=conversation.last_active,
            closed_at=conversation.closed_at,
            created_at=conversation.created_at,
            messages=[self._message_read(m, users) for m in conversation.messages],
        )

    # --- side effects ---

    async def _publish_status(self, conversation: Conversation) -> List[DispatchResult]:
        payload = ConversationStatusEvent(
            chat_id=conversation.id,
            status=conversation.status,
            paused_by=conversation.paused_by,
            paused_at=conversation.paused_at,
            last_active=conversation.last_active,
        ).model_dump(mode="json", by_alias=True)

        destinations = [chat_status_topic(conversation.id)]
        destinations += [user_status_queue(p) for p in conversation.participants]
        return [
            await best_effort(
                f"publish {destination}",
                lambda destination=destination: self.publisher.publish(destination, payload),
            )
            for destination in destinations
        ]

    async def _publish_message(self, conversation: Conversation, message: MessageRead) -> List[DispatchResult]:
        payload = ConversationMessageEvent(
            chat_id=conversation.id, message=message
        ).model_dump(mode="json", by_alias=True)

        destinations = [chat_messages_topic(conversation.id)]
        destinations += [user_messages_queue(p) for p in conversation.participants]
        return [
            await best_effort(
                f"publish {destination}",
                lambda destination=destination: self.publisher.publish(destination, payload),
            )
            for destination in destinations
        ]

    async def _notify(
        self,
        recipients: Iterable[str],
        type: NotificationType,
        title: str,
        body: str,
        conversation: Conversation,
    ) -> List[DispatchResult]:
        results = []
        for recipient in recipients:
            results.append(
                await best_effort(
                    f"notify {recipient}",
                    lambda recipient=recipient: self.notifications.emit(
                        user_id=recipient,
                        type=type,
                        title=title,
                        body=body,
                        data={"chatId": str(conversation.id)},
                    ),
                )
            )
        return results

    # --- operations ---

    async def create_conversation(self, requester_id: str, other_user_id: str) -> ConversationRead:
        """
        Start a chat between two users, or return the one already open.

        Only the requester's active slots gate creation.
        """
        requester_id, other_user_id = str(requester_id), str(other_user_id)
        if requester_id == other_user_id:
            raise ValidationError("Cannot start a conversation with yourself")

        requester = await self._require_user(requester_id)
        other = await self._require_user(other_user_id)

        existing = await conversation_crud.find_by_pair(
            self.db, requester_id, other_user_id, statuses=OPEN_STATUSES, with_messages=True
        )
        if existing is not None:
            return await self._conversation_read(existing)

        self._check_quota(requester)

        try:
            conversation = await conversation_crud.create_conversation(
                self.db, requester_id, other_user_id
            )
        except ConflictError:
            # Lost a concurrent create race: the winner's chat is the answer
            existing = await conversation_crud.find_by_pair(
                self.db, requester_id, other_user_id, statuses=OPEN_STATUSES, with_messages=True
            )
            if existing is None:
                raise
            return await self._conversation_read(existing)

        await self._publish_status(conversation)
        requester_name = requester.display_name or "Someone"
        await self._notify(
            [other.id],
            NotificationType.MESSAGE,
            "New conversation started",
            f"You have a new conversation with {requester_name}",
            conversation,
        )
        return await self._conversation_read(conversation)

    async def append_message(
        self,
        sender_id: str,
        conversation_id: UUID,
        text: Optional[str],
        attachments: Optional[list] = None,
    ) -> ConversationRead:
        sender_id = str(sender_id)
        text = text.strip() if isinstance(text, str) else ""
        if not text:
            raise ValidationError("Message text required")

        conversation = await self._require_participant(sender_id, conversation_id, with_messages=False)
        if conversation.status != ConversationStatus.ACTIVE:
            raise ConflictError("Chat is not active", current_status=conversation.status)

        stored = await conversation_crud.append_message(
            self.db, conversation.id, sender_id, text, attachments=attachments
        )
        conversation = await conversation_crud.get_conversation(
            self.db, conversation.id, with_messages=True
        )
        result = await self._conversation_read(conversation)

        message = next((m for m in result.messages if m.id == stored.id), result.messages[-1])
        await self._publish_message(conversation, message)
        await self._notify(
            conversation.other_participants(sender_id),
            NotificationType.MESSAGE,
            "New message",
            text[: self.preview_length],
            conversation,
        )
        return result

    async def pause_conversation(self, requester_id: str, conversation_id: UUID) -> ConversationRead:
        requester_id = str(requester_id)
        conversation = await self._require_participant(requester_id, conversation_id)

        if conversation.status == ConversationStatus.PAUSED:
            return await self._conversation_read(conversation)
        if conversation.status != ConversationStatus.ACTIVE:
            raise ConflictError("Only active chats can be paused", current_status=conversation.status)

        try:
            conversation = await conversation_crud.set_status(
                self.db,
                conversation.id,
                ConversationStatus.PAUSED,
                actor_id=requester_id,
                expected=[ConversationStatus.ACTIVE],
            )
        except ConflictError as e:
            if e.current_status != ConversationStatus.PAUSED:
                raise
            # Paused concurrently by someone else: same outcome, no second notification
            conversation = await self._require_participant(requester_id, conversation_id)
            return await self._conversation_read(conversation)

        await self._publish_status(conversation)
        await self._notify(
            conversation.other_participants(requester_id),
            NotificationType.SYSTEM,
            "Conversation paused",
            f"A conversation was paused by {requester_id}",
            conversation,
        )
        return await self._conversation_read(conversation)

    async def resume_conversation(self, requester_id: str, conversation_id: UUID) -> ConversationRead:
        requester_id = str(requester_id)
        conversation = await self._require_participant(requester_id, conversation_id)

        if conversation.status != ConversationStatus.PAUSED:
            raise ConflictError("Only paused chats can be resumed", current_status=conversation.status)

        # Only the requester's slots are re-checked
        requester = await self._require_user(requester_id)
        self._check_quota(requester)

        conversation = await conversation_crud.set_status(
            self.db,
            conversation.id,
            ConversationStatus.ACTIVE,
            actor_id=requester_id,
            expected=[ConversationStatus.PAUSED],
        )
        await self._publish_status(conversation)
        await self._notify(
            conversation.other_participants(requester_id),
            NotificationType.SYSTEM,
            "Conversation resumed",
            f"A conversation was resumed by {requester_id}",
            conversation,
        )
        return await self._conversation_read(conversation)

    async def _summarize(self, conversation: Conversation, user_id: str) -> ConversationSummary:
        others = conversation.other_participants(user_id)
        other = await self.users.get_user(others[0]) if others else None
        if others and other is None:
            raise LookupError(f"Participant {others[0]} no longer exists")

        last = conversation.messages[-1] if conversation.messages else None
        return ConversationSummary(
            id=conversation.id,
            participants=conversation.participants,
            status=conversation.status,
            paused_by=conversation.paused_by,
            paused_at=conversation.paused_at,
            last_active=conversation.last_active,
            other_participant=UserPublic(id=other.id, display_name=other.display_name) if other else None,
            last_message=MessagePreview(
                sender_id=last.sender_id,
                text=last.text[: self.preview_length],
                timestamp=last.timestamp,
            ) if last else None,
            # No read cursor is modelled: everything not authored by the viewer counts
            unread_count=sum(1 for m in conversation.messages if m.sender_id != user_id),
        )

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        """Inbox for a user, newest activity first, enriched per conversation."""
        user_id = str(user_id)
        conversations = await conversation_crud.list_for_user(self.db, user_id)

        summaries = []
        for conversation in conversations:
            try:
                summaries.append(await self._summarize(conversation, user_id))
            except Exception as e:
                logger.warning(f"Could not enrich conversation {conversation.id} for {user_id}: {e}")
                summaries.append(
                    ConversationSummary(
                        id=conversation.id,
                        participants=conversation.participants,
                        status=conversation.status,
                        paused_by=conversation.paused_by,
                        paused_at=conversation.paused_at,
                        last_active=conversation.last_active,
                    )
                )
        return summaries

    async def get_conversation_for_user(self, user_id: str, conversation_id: UUID) -> ConversationMessages:
        user_id = str(user_id)
        conversation = await self._require_participant(user_id, conversation_id)
        read = await self._conversation_read(conversation)

        others = conversation.other_participants(user_id)
        other = await self.users.get_user(others[0]) if others else None
        other_name = other.display_name if other and other.display_name else "User"

        return ConversationMessages(
            messages=read.messages,
            status=conversation.status,
            paused_by=conversation.paused_by,
            paused_at=conversation.paused_at,
            participants=conversation.participants,
            name=f"Chat with {other_name}",
        )
