"""Ownership checks shared by every service that touches user-owned rows."""

import logging
from typing import Optional, TypeVar

from app.core.errors import NotFoundOrForbidden

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure_owner(entity: Optional[T], user_id: str, entity_name: str, entity_id: str) -> T:
    """Return ``entity`` if it exists and belongs to ``user_id``.

    Missing rows and rows owned by another user raise the same error.

    Raises:
        NotFoundOrForbidden
    """
    if entity is None:
        raise NotFoundOrForbidden(entity_name, entity_id)
    if getattr(entity, "user_id", None) != user_id:
        logger.warning(f"User {user_id} attempted to access {entity_name} {entity_id} owned by another user")
        raise NotFoundOrForbidden(entity_name, entity_id)
    return entity
