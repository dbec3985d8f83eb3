"""
Actor identity for stock operations.

Authentication is handled upstream; this module only extracts who is
acting so writes can be attributed in updated_by and the audit log.

Usage:
    from api.auth import get_actor_id

    @router.post("/{stock_id}/assign")
    async def assign(stock_id: str, actor_id: str = Depends(get_actor_id)):
        ...
"""

from typing import Optional

from fastapi import Header

from core.config import get_config
from core.logging_config import set_context


async def get_actor_id(
    x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
) -> str:
    """Actor from the X-Actor-Id header, falling back to the configured default."""
    actor_id = (x_actor_id or "").strip() or get_config().api.default_actor
    set_context(actor_id=actor_id)
    return actor_id
