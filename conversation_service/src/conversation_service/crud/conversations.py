from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging_config import logger
from ..models import Conversation, ConversationMessage, ConversationStatus
from ..models.base import utcnow


def normalize_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """
    Canonical participant order: string-lexicographic.

    (A, B) and (B, A) always normalize to the same tuple.
    """
    a, b = str(user_a), str(user_b)
    return (a, b) if a <= b else (b, a)


def _status_values(statuses: Optional[Iterable[ConversationStatus]]) -> Optional[List[str]]:
    if statuses is None:
        return None
    return [ConversationStatus(s).value for s in statuses]


async def get_conversation(
    db: AsyncSession, conversation_id: UUID, with_messages: bool = False
) -> Optional[Conversation]:
    """
    Get a conversation by ID.

    Args:
        db: Database session
        conversation_id: ID of the conversation
        with_messages: Whether to eagerly load the message list

    Returns:
        Conversation if found, None otherwise
    """
    query = select(Conversation).where(Conversation.id == conversation_id)
    if with_messages:
        query = query.options(selectinload(Conversation.messages))
    # Always reload so concurrent writers' changes are visible
    query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def find_by_pair(
    db: AsyncSession,
    user_a: str,
    user_b: str,
    statuses: Optional[Iterable[ConversationStatus]] = None,
    with_messages: bool = False,
) -> Optional[Conversation]:
    """
    Find the newest conversation between two users, regardless of who started it.

    Args:
        db: Database session
        user_a: One participant
        user_b: The other participant
        statuses: Optional status filter (e.g. the open statuses only)
        with_messages: Whether to eagerly load the message list

    Returns:
        The matching conversation or None
    """
    low, high = normalize_pair(user_a, user_b)
    query = select(Conversation).where(
        Conversation.participant_a == low,
        Conversation.participant_b == high,
    )
    values = _status_values(statuses)
    if values is not None:
        query = query.where(Conversation.status.in_(values))
    if with_messages:
        query = query.options(selectinload(Conversation.messages))
    query = query.order_by(Conversation.last_active.desc()).limit(1)
    query = query.execution_options(populate_existing=True)

    result = await db.execute(query)
    return result.scalars().first()


async def create_conversation(
    db: AsyncSession, user_a: str, user_b: str, now: Optional[datetime] = None
) -> Conversation:
    """
    Create a new active conversation for a normalized pair.

    Raises:
        ValidationError: If both participants are the same user
        ConflictError: If an open conversation for the pair already exists
                       (lost a concurrent create race)
    """
    low, high = normalize_pair(user_a, user_b)
    if low == high:
        raise ValidationError("A conversation needs two different participants")

    now = now or utcnow()
    conversation = Conversation(
        participant_a=low,
        participant_b=high,
        status=ConversationStatus.ACTIVE.value,
        last_active=now,
    )
    db.add(conversation)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.info(f"Open conversation already exists for pair ({low}, {high}): {e.orig}")
        raise ConflictError(
            "An open conversation already exists for this pair",
            current_status=None,
        )

    created = await get_conversation(db, conversation.id, with_messages=True)
    logger.info(f"Created conversation {conversation.id} for pair ({low}, {high})")
    return created


async def append_message(
    db: AsyncSession,
    conversation_id: UUID,
    sender_id: str,
    text: str,
    attachments: Optional[list] = None,
    now: Optional[datetime] = None,
) -> ConversationMessage:
    """
    Atomically append a message and bump last_active.

    The conditional update only matches an active conversation, so a
    concurrent pause wins or loses cleanly and no message is lost.

    Raises:
        NotFoundError: If the conversation does not exist
        ConflictError: If the conversation is not active
    """
    now = now or utcnow()
    result = await db.execute(
        update(Conversation)
        .where(
            Conversation.id == conversation_id,
            Conversation.status == ConversationStatus.ACTIVE.value,
        )
        .values(last_active=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        existing = await get_conversation(db, conversation_id)
        if existing is None:
            raise NotFoundError("Chat not found")
        raise ConflictError("Chat is not active", current_status=existing.status)

    message = ConversationMessage(
        conversation_id=conversation_id,
        sender_id=str(sender_id),
        text=text,
        attachments=list(attachments) if attachments else None,
        timestamp=now,
    )
    db.add(message)
    await db.commit()
    return message


async def set_status(
    db: AsyncSession,
    conversation_id: UUID,
    status: ConversationStatus,
    actor_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    expected: Optional[Iterable[ConversationStatus]] = None,
) -> Conversation:
    """
    Transition a conversation's status and stamp the matching fields.

    - paused: records paused_by/paused_at
    - active: clears paused_by/paused_at
    - closed/auto-closed: records closed_at

    Args:
        expected: Only apply the transition from one of these statuses

    Raises:
        NotFoundError: If the conversation does not exist
        ConflictError: If the current status is not one of `expected`
    """
    status = ConversationStatus(status)
    timestamp = timestamp or utcnow()

    values = {"status": status.value, "last_active": timestamp, "updated_at": timestamp}
    if status == ConversationStatus.PAUSED:
        values.update(paused_by=str(actor_id) if actor_id else None, paused_at=timestamp)
    elif status == ConversationStatus.ACTIVE:
        values.update(paused_by=None, paused_at=None)
    else:
        values.update(closed_at=timestamp)

    query = update(Conversation).where(Conversation.id == conversation_id)
    expected_values = _status_values(expected)
    if expected_values is not None:
        query = query.where(Conversation.status.in_(expected_values))

    result = await db.execute(
        query.values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        existing = await get_conversation(db, conversation_id)
        if existing is None:
            raise NotFoundError("Chat not found")
        raise ConflictError(
            f"Chat cannot move from {existing.status} to {status.value}",
            current_status=existing.status,
        )

    await db.commit()
    logger.info(f"Conversation {conversation_id} -> {status.value} (actor={actor_id})")
    return await get_conversation(db, conversation_id, with_messages=True)


async def list_for_user(db: AsyncSession, user_id: str) -> List[Conversation]:
    """
    List every conversation the user participates in, newest activity first.
    """
    user_id = str(user_id)
    result = await db.execute(
        select(Conversation)
        .where(
            or_(
                Conversation.participant_a == user_id,
                Conversation.participant_b == user_id,
            )
        )
        .options(selectinload(Conversation.messages))
        .order_by(Conversation.last_active.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def count_active_by_participant(db: AsyncSession) -> Dict[str, int]:
    """Count active conversations per participant."""
    counts: Dict[str, int] = {}
    for column in (Conversation.participant_a, Conversation.participant_b):
        result = await db.execute(
            select(column, func.count())
            .where(Conversation.status == ConversationStatus.ACTIVE.value)
            .group_by(column)
        )
        for user_id, count in result.all():
            counts[user_id] = counts.get(user_id, 0) + count
    return counts
