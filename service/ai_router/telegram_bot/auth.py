"""
Whitelist gate.

Checked before any session or AI work. An empty whitelist allows everyone.
"""

from typing import AbstractSet, Optional

from ai_router.schemas import ResultItem

ACCESS_DENIED_ITEM = ResultItem(
    id="denied",
    title="⛔ Access denied",
    reply_text="You are not allowed to use this bot.",
)


def is_allowed(user_id: Optional[int], whitelist: AbstractSet[int]) -> bool:
    if not whitelist:
        return True
    return user_id is not None and user_id in whitelist
