from dataclasses import dataclass
from typing import Optional

from fastapi import Header


@dataclass(frozen=True)
class PortalContext:
    """Who is calling. Resolved per request; authentication is stubbed, so the headers are trusted."""

    user_id: Optional[str] = None
    organization_id: Optional[str] = None


def get_portal_context(
    x_user_id: Optional[str] = Header(default=None),
    x_organization_id: Optional[str] = Header(default=None),
) -> PortalContext:
    return PortalContext(
        user_id=(x_user_id or "").strip() or None,
        organization_id=(x_organization_id or "").strip() or None,
    )
