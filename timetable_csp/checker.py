#!/usr/bin/env python3
"""
Hard-constraint checks used by the search and by propagation.

Checked hard constraints:
- no teacher double-booked in a slot
- no room double-booked in a slot
- no class double-booked in a slot
- room capacity >= course student count

Soft constraints are never checked here; see catalog.py.
"""

from typing import Dict, Iterable, List

from .builder import CSPInstance
from .models import Value, Variable
from .state import SearchState


class ConstraintChecker:
    """Pure predicates over (variable, value) pairs. Nothing here mutates a state."""

    def __init__(self, instance: CSPInstance):
        self.instance = instance
        self.neighbors = instance.neighbors
        self.capacities = {r.id: r.capacity for r in instance.problem.rooms}
        self._classes = {v: frozenset(v.class_ids) for v in instance.variables}

    def conflicts(self, var_a: Variable, val_a: Value, var_b: Variable, val_b: Value) -> bool:
        """True if the two placements break a pairwise hard constraint."""
        if val_a.time_slot_id != val_b.time_slot_id:
            return False
        if val_a.teacher_id == val_b.teacher_id:
            return True
        if val_a.room_id == val_b.room_id:
            return True
        return not self._classes[var_a].isdisjoint(self._classes[var_b])

    def fits_room(self, variable: Variable, value: Value) -> bool:
        return self.capacities.get(value.room_id, -1) >= variable.student_count

    def is_consistent(self, variable: Variable, value: Value, state: SearchState) -> bool:
        """Can variable take value without breaking a hard constraint against the assigned variables?"""
        if not self.fits_room(variable, value):
            return False
        for other, other_value in state.assignment.items():
            if other is variable:
                continue
            if self.conflicts(variable, value, other, other_value):
                return False
        return True

    def conflicting_variables(self, variable: Variable, value: Value, state: SearchState) -> List[Variable]:
        """Assigned variables that make value inconsistent for variable."""
        return [
            other for other, other_value in state.assignment.items()
            if other is not variable and self.conflicts(variable, value, other, other_value)
        ]

    def supported_by(self, variable: Variable, value: Value, other: Variable, domain: Iterable[Value]) -> bool:
        """Does some value in domain of other stay compatible with variable=value?"""
        for other_value in domain:
            if not self.conflicts(variable, value, other, other_value):
                return True
        return False

    def has_support(self, variable: Variable, value: Value, state: SearchState) -> bool:
        """
        Does value leave every related unassigned variable at least one option?

        Only neighbours that are still unassigned are considered, using their
        current domains in state.
        """
        for other in self.neighbors[variable]:
            if other not in state.unassigned:
                continue
            if not self.supported_by(variable, value, other, state.domains[other]):
                return False
        return True

    def impact(self, variable: Variable, value: Value, state: SearchState) -> int:
        """Number of values removed from unassigned neighbours if variable took value."""
        removed = 0
        for other in self.neighbors[variable]:
            if other not in state.unassigned:
                continue
            for other_value in state.domains[other]:
                if self.conflicts(variable, value, other, other_value):
                    removed += 1
        return removed

    def validate(self, assignment: Dict[Variable, Value]) -> List[str]:
        """
        Replay every hard constraint over a complete assignment.

        Returns:
            Human-readable violations; an empty list means the assignment is valid
        """
        violations = []
        expected = set(self.instance.variables)
        missing = expected - set(assignment)
        if missing:
            violations.append(f"{len(missing)} variable(s) unassigned")

        items = list(assignment.items())
        for i, (var, val) in enumerate(items):
            if not self.fits_room(var, val):
                violations.append(
                    f"{var.id}: room {val.room_id} too small for {var.student_count} students"
                )
            for other, other_val in items[i + 1:]:
                if self.conflicts(var, val, other, other_val):
                    violations.append(
                        f"{var.id} and {other.id} clash in slot {val.time_slot_id}"
                    )
        return violations
