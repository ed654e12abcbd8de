"""
Generic finite-state workflow tables.

One ``TransitionTable`` per entity family. Services validate every status
change against their table *before* writing anything, so an illegal request
leaves the entity untouched.

Usage:
    PAYMENT_TRANSITIONS = TransitionTable(
        "finance_record",
        {"pending": {"paid", "overdue"}, "overdue": {"paid"}},
    )
    PAYMENT_TRANSITIONS.check("pending", "paid")  # ok
    PAYMENT_TRANSITIONS.check("paid", "overdue")  # raises IllegalTransition
"""

from collections.abc import Iterable, Mapping

from apps.core.exceptions import IllegalTransition


class TransitionTable:
    """Explicit table of legal (from, to) status pairs."""

    def __init__(
        self,
        entity: str,
        transitions: Mapping[str, Iterable[str]],
        idempotent: Iterable[str] = (),
    ) -> None:
        """
        Args:
            entity: Entity name used in error messages, e.g. 'user_profile'
            transitions: from_status -> allowed target statuses
            idempotent: Statuses where re-entering the same status is a no-op
                instead of an error
        """
        self.entity = entity
        self._transitions = {str(k): frozenset(str(v) for v in vs) for k, vs in transitions.items()}
        self._idempotent = frozenset(str(s) for s in idempotent)

    def is_allowed(self, from_status: str, to_status: str) -> bool:
        return str(to_status) in self._transitions.get(str(from_status), frozenset())

    def is_noop(self, from_status: str, to_status: str) -> bool:
        return str(from_status) == str(to_status) and str(to_status) in self._idempotent

    def targets(self, from_status: str) -> frozenset[str]:
        return self._transitions.get(str(from_status), frozenset())

    def check(self, from_status: str, to_status: str) -> bool:
        """
        Validate a transition.

        Returns:
            True if the transition must be applied, False if it is an
            idempotent no-op.

        Raises:
            IllegalTransition: If the pair is not in the table.
        """
        if self.is_noop(from_status, to_status):
            return False
        if not self.is_allowed(from_status, to_status):
            raise IllegalTransition(self.entity, str(from_status), str(to_status))
        return True
