"""Resource lifecycle states and the legal transition graph."""

from enum import Enum

from carenotes.core.exceptions import InvalidTransitionError


class LifecycleStatus(str, Enum):
    """Lifecycle status shared by every resource type."""

    DRAFT = "draft"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


# Directed graph of legal status changes. ARCHIVED is terminal and nothing
# leads back to DRAFT.
TRANSITIONS: dict[LifecycleStatus, frozenset[LifecycleStatus]] = {
    LifecycleStatus.DRAFT: frozenset({LifecycleStatus.ACTIVE, LifecycleStatus.ARCHIVED}),
    LifecycleStatus.ACTIVE: frozenset({LifecycleStatus.SUSPENDED, LifecycleStatus.ARCHIVED}),
    LifecycleStatus.SUSPENDED: frozenset({LifecycleStatus.ACTIVE, LifecycleStatus.ARCHIVED}),
    LifecycleStatus.ARCHIVED: frozenset(),
}

INITIAL_STATES: frozenset[LifecycleStatus] = frozenset(
    {LifecycleStatus.DRAFT, LifecycleStatus.ACTIVE}
)
TERMINAL_STATES: frozenset[LifecycleStatus] = frozenset({LifecycleStatus.ARCHIVED})


def can_transition(current: LifecycleStatus | str, requested: LifecycleStatus | str) -> bool:
    """Check whether a status change is an edge of the lifecycle graph."""
    return LifecycleStatus(requested) in TRANSITIONS[LifecycleStatus(current)]


def assert_transition(current: LifecycleStatus | str, requested: LifecycleStatus | str) -> None:
    """Assert that a status change is legal.

    Raises:
        InvalidTransitionError: If the edge is not in the graph
    """
    current = LifecycleStatus(current)
    requested = LifecycleStatus(requested)
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)


def assert_mutable(current: LifecycleStatus | str) -> None:
    """Assert that a resource in this status may still be modified.

    Raises:
        InvalidTransitionError: If the resource is in a terminal state
    """
    current = LifecycleStatus(current)
    if current in TERMINAL_STATES:
        raise InvalidTransitionError(
            current.value,
            current.value,
            message=f"Resources in '{current.value}' status are read-only",
        )


def legal_transitions() -> list[tuple[LifecycleStatus, LifecycleStatus]]:
    """All (from, to) edges of the graph."""
    return [(src, dst) for src, targets in TRANSITIONS.items() for dst in sorted(targets)]
