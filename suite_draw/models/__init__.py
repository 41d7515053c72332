from suite_draw.models.building import Building
from suite_draw.models.clip import Clip, ClipMembership
from suite_draw.models.draw import DRAW_STATUS_ORDER, Draw, DrawStatus
from suite_draw.models.draw_suite import DrawSuite
from suite_draw.models.group import Group, GroupStatus
from suite_draw.models.membership import Membership
from suite_draw.models.student import Intent, Student, StudentRole
from suite_draw.models.suite import Suite

__all__ = [
    "Building",
    "Clip",
    "ClipMembership",
    "DRAW_STATUS_ORDER",
    "Draw",
    "DrawStatus",
    "DrawSuite",
    "Group",
    "GroupStatus",
    "Intent",
    "Membership",
    "Student",
    "StudentRole",
    "Suite",
]
