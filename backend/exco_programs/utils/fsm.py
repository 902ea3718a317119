"""Action-keyed finite state machine for enforcing allowed status transitions.

Each action names the statuses it may be applied from and the status it moves
the record to (``None`` keeps the current status). An optional guard inspects
the record itself for conditions the status alone cannot express.

Usage:
    from exco_programs.utils.fsm import Transition, TransitionValidator
    FSM = TransitionValidator({
        'submit': Transition({'draft'}, 'submitted'),
        'note': Transition({'draft', 'submitted'}),
    })
    target = FSM.assert_can_transition('submit', record)

Raises IllegalTransition if invalid.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional, Set

from exco_programs.domain.errors import IllegalTransition


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[Any]
    target: Optional[Any] = None
    guard: Optional[Callable[[Any], bool]] = field(default=None, compare=False)
    guard_reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'sources', frozenset(self.sources))

    @property
    def changes_status(self) -> bool:
        return self.target is not None


class TransitionValidator:
    def __init__(self, table: Dict[Any, Transition], field_name: str = 'status'):
        self.table = table
        self.field_name = field_name

    def actions(self):
        return list(self.table.keys())

    def allowed_from(self, action) -> FrozenSet[Any]:
        spec = self.table.get(action)
        return spec.sources if spec else frozenset()

    def is_allowed(self, action, record) -> bool:
        spec = self.table.get(action)
        if spec is None:
            return False
        if getattr(record, self.field_name) not in spec.sources:
            return False
        return spec.guard is None or bool(spec.guard(record))

    def assert_can_transition(self, action, record):
        """Return the resulting status for ``action`` on ``record`` or raise."""
        current = getattr(record, self.field_name)
        spec = self.table.get(action)
        if spec is None or current not in spec.sources:
            raise IllegalTransition(str(action), str(current))
        if spec.guard is not None and not spec.guard(record):
            raise IllegalTransition(str(action), str(current), spec.guard_reason)
        return spec.target if spec.target is not None else current

    def targets_from(self, status) -> Set[Any]:
        """Statuses one action away from ``status`` (including itself for in-place actions)."""
        out = set()
        for spec in self.table.values():
            if status in spec.sources:
                out.add(spec.target if spec.target is not None else status)
        return out

    def reachable_from(self, status) -> Set[Any]:
        seen = {status}
        frontier = [status]
        while frontier:
            current = frontier.pop()
            for nxt in self.targets_from(current):
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return seen

__all__ = ['Transition', 'TransitionValidator']
