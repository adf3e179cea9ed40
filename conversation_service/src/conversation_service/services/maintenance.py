"""
Housekeeping jobs that run outside the request path.

The conversation core only reads the per-user active conversation counter;
this module recomputes it from the conversations that are actually active.
"""
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..clients.user_directory import UserDirectory
from ..crud import conversations as conversation_crud
from ..logging_config import logger


async def reconcile_active_counts(
    db: AsyncSession, users: UserDirectory, dry_run: bool = False
) -> Dict[str, int]:
    """
    Set every user's active conversation counter to the number of active
    conversations they participate in.

    Args:
        db: Database session used to count conversations
        users: Directory whose counters are corrected
        dry_run: Compute and report changes without writing them

    Returns:
        Mapping of user id to corrected count, for users whose counter changed
    """
    counts = await conversation_crud.count_active_by_participant(db)
    changed: Dict[str, int] = {}

    for user_id in await users.list_user_ids():
        user = await users.get_user(user_id)
        if user is None:
            continue
        expected = counts.get(user_id, 0)
        if user.active_conversations == expected:
            continue
        changed[user_id] = expected
        logger.info(
            f"Active conversations for {user_id}: {user.active_conversations} -> {expected}"
            + (" (dry run)" if dry_run else "")
        )
        if not dry_run:
            await users.set_active_conversations(user_id, expected)

    orphans = set(counts) - set(await users.list_user_ids())
    if orphans:
        logger.warning(f"Active conversations reference unknown users: {sorted(orphans)}")

    return changed


async def reconcile_user(db: AsyncSession, users: UserDirectory, user_id: str) -> Optional[int]:
    """Reconcile a single user's counter. Returns the new count, or None if unknown."""
    user = await users.get_user(user_id)
    if user is None:
        return None
    counts = await conversation_crud.count_active_by_participant(db)
    expected = counts.get(str(user_id), 0)
    if user.active_conversations != expected:
        await users.set_active_conversations(user.id, expected)
    return expected
