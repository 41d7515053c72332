"""
Capability table.

Who may do what, in which draw phase. The rules below are expanded once into
a set of (action, role, phase) tuples, consulted once per API call by the
HTTP layer (utils.draw_guards and group creation). Nothing in the services
layer reads it.

Lifecycle transitions (activate, start_lottery, start_selection, close) are
granted in every phase; the draw lifecycle rejects wrong-phase calls with a
transition error.
"""
from typing import Dict, FrozenSet, Set, Tuple

from suite_draw.models.draw import Draw, DrawStatus
from suite_draw.models.student import StudentRole

ALL_PHASES = frozenset(s.value for s in DrawStatus)
NOT_DRAFT = ALL_PHASES - {DrawStatus.draft.value}
OPEN_PHASES = ALL_PHASES - {DrawStatus.closed.value}
ALL_ROLES = frozenset(r.value for r in StudentRole)
STAFF = frozenset({StudentRole.admin.value, StudentRole.rep.value})
ADMIN = frozenset({StudentRole.admin.value})

# action -> (roles, phases)
RULES: Dict[str, Tuple[FrozenSet[str], FrozenSet[str]]] = {
    "view": (ALL_ROLES, ALL_PHASES),
    "edit": (ADMIN, OPEN_PHASES),
    "destroy": (ADMIN, ALL_PHASES),
    "activate": (ADMIN, ALL_PHASES),
    "start_lottery": (ADMIN, ALL_PHASES),
    "start_selection": (ADMIN, ALL_PHASES),
    "close": (ADMIN, ALL_PHASES),
    "lottery_readiness": (ADMIN, ALL_PHASES),
    "intent_report": (ADMIN, ALL_PHASES),
    "bulk_on_campus": (ADMIN, frozenset({DrawStatus.draft.value, DrawStatus.pre_lottery.value})),
    "toggle_size_lock": (ADMIN, OPEN_PHASES),
    "suites_update": (ADMIN, OPEN_PHASES),
    "reconcile_sizes": (ADMIN, ALL_PHASES),
    "oversubscription": (ALL_ROLES, NOT_DRAFT),
    "lottery": (STAFF, frozenset({DrawStatus.lottery.value})),
    "group_actions": (ADMIN, OPEN_PHASES),
    "select_suite": (ADMIN, frozenset({DrawStatus.suite_selection.value})),
}

# Anyone may work on groups while groups are still forming
OPEN_GROUP_PHASES = frozenset({DrawStatus.pre_lottery.value})

# Drawless groups have no phase; only admins manage them
DRAWLESS_RULES: Dict[str, FrozenSet[str]] = {
    "view": ALL_ROLES,
    "group_actions": ADMIN,
    "select_suite": ADMIN,
}


def _expand() -> FrozenSet[Tuple[str, str, str]]:
    table: Set[Tuple[str, str, str]] = set()
    for action, (roles, phases) in RULES.items():
        for role in roles:
            for phase in phases:
                table.add((action, role, phase))
    for role in ALL_ROLES:
        for phase in OPEN_GROUP_PHASES:
            table.add(("group_actions", role, phase))
    return frozenset(table)


CAPABILITIES = _expand()


def status_of(draw: Draw) -> str:
    return draw.status.value if isinstance(draw.status, DrawStatus) else str(draw.status)


def can(action: str, role: str, draw: Draw) -> bool:
    """True if `role` may perform `action` on `draw` in its current phase."""
    return (action, role, status_of(draw)) in CAPABILITIES


def can_drawless(action: str, role: str) -> bool:
    """True if `role` may perform `action` on a drawless group."""
    return role in DRAWLESS_RULES.get(action, frozenset())
