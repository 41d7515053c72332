"""
Request guards for draw and group endpoints.

Provides reusable guards for:
- Loading a draw or group, or 404
- Checking the caller's capability (X-User-Role header) against the policy table
"""

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from suite_draw.database import get_session
from suite_draw.models.draw import Draw
from suite_draw.models.group import Group
from suite_draw.models.student import StudentRole
from suite_draw.policies import can, can_drawless, status_of

ROLE_HEADER = "X-User-Role"


def get_draw_or_404(session: Session, draw_id: int) -> Draw:
    """
    Get a draw or raise 404.

    Raises:
        HTTPException 404: Draw not found
    """
    draw = session.get(Draw, draw_id)
    if not draw:
        raise HTTPException(status_code=404, detail="Draw not found")
    return draw


def get_group_or_404(session: Session, group_id: int) -> Group:
    group = session.get(Group, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


def require_capability(action: str):
    """
    Build a dependency that loads the path's draw and checks the caller may `action` it.

    Raises:
        HTTPException 404: Draw not found
        HTTPException 403: Role lacks the capability in the draw's current phase
    """

    def dependency(
        draw_id: int,
        x_user_role: str = Header(default=StudentRole.student.value),
        session: Session = Depends(get_session),
    ) -> Draw:
        draw = get_draw_or_404(session, draw_id)
        if not can(action, x_user_role, draw):
            raise HTTPException(
                status_code=403,
                detail=f"FORBIDDEN: role '{x_user_role}' cannot {action} draw {draw.id} in status '{status_of(draw)}'",
            )
        return draw

    return dependency


def require_group_capability(action: str):
    """Like require_capability, for endpoints addressed by group id (drawless groups included)."""

    def dependency(
        group_id: int,
        x_user_role: str = Header(default=StudentRole.student.value),
        session: Session = Depends(get_session),
    ) -> Group:
        group = get_group_or_404(session, group_id)
        if group.draw_id is None:
            allowed = can_drawless(action, x_user_role)
        else:
            allowed = can(action, x_user_role, get_draw_or_404(session, group.draw_id))
        if not allowed:
            raise HTTPException(status_code=403, detail=f"FORBIDDEN: role '{x_user_role}' cannot {action} group {group.id}")
        return group

    return dependency
