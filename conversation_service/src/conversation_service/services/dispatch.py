"""
Best-effort dispatch.

Realtime pushes and notifications are side effects of an already-committed
mutation. Their failures are logged here and reported in a result the
caller is free to ignore; they never propagate.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..logging_config import logger


@dataclass(frozen=True)
class DispatchResult:
    label: str
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


async def best_effort(label: str, action: Callable[[], Awaitable[Any]]) -> DispatchResult:
    try:
        value = await action()
    except Exception as e:
        logger.warning(f"Best-effort {label} failed: {e}", exc_info=True)
        return DispatchResult(label=label, ok=False, error=e)
    return DispatchResult(label=label, ok=True, value=value)
