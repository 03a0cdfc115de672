#!/usr/bin/env python3
"""
Constraint propagation policies.

Every propagator shares one contract:
- it only ever removes values from unassigned variables' domains
- it returns False as soon as an unassigned domain becomes empty
- otherwise it returns True with domains pruned to its fixed point,
  so running it again without a new assignment prunes nothing

propagate(state, assigned) runs an incremental pass after `assigned` was
given a value; propagate(state) with no variable runs a full pass.
"""

from abc import ABC, abstractmethod
from collections import defaultdict, deque
from itertools import combinations
from typing import FrozenSet, Optional

from .checker import ConstraintChecker
from .config import PropagationType
from .models import Variable
from .state import SearchState


class Propagator(ABC):
    """Abstract base class for propagation policies."""

    def __init__(self, checker: ConstraintChecker):
        self.checker = checker
        self.neighbors = checker.neighbors

    @abstractmethod
    def propagate(self, state: SearchState, assigned: Optional[Variable] = None) -> bool:
        """
        Prune domains in place.

        Args:
            state: State to prune (the caller's private copy)
            assigned: Variable assigned just before this call, or None for
                      a full pass over every arc

        Returns:
            False if some unassigned domain was wiped out, True otherwise
        """
        pass

    def causes(self, state: SearchState) -> FrozenSet[Variable]:
        """Assignments blamed for removals made in this pass."""
        return frozenset(state.assignment)

    def is_converged(self, state: SearchState) -> bool:
        """True if every remaining value of every unassigned variable has support."""
        return all(
            self.checker.has_support(var, value, state)
            for var in state.unassigned
            for value in state.domains[var]
        )

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class NoPropagation(Propagator):
    """Pure backtracking."""

    def propagate(self, state, assigned=None):
        return True


class ForwardChecking(Propagator):
    """Remove neighbour values that clash with the value just assigned."""

    def propagate(self, state, assigned=None):
        if assigned is None:
            return self._full_pass(state)

        value = state.assignment[assigned]
        causes = frozenset([assigned])
        for other in self.neighbors[assigned]:
            if other not in state.unassigned:
                continue
            doomed = [
                v for v in state.domains[other]
                if self.checker.conflicts(assigned, value, other, v)
            ]
            if doomed:
                state.remove_values(other, doomed, causes)
                if not state.domains[other]:
                    return False
        return True

    def _full_pass(self, state):
        for var in list(state.unassigned):
            for other in self.neighbors[var]:
                if other not in state.assignment:
                    continue
                other_value = state.assignment[other]
                doomed = [
                    v for v in state.domains[var]
                    if self.checker.conflicts(other, other_value, var, v)
                ]
                if doomed:
                    state.remove_values(var, doomed, frozenset([other]))
                    if not state.domains[var]:
                        return False
        return True


class AC3(Propagator):
    """Arc consistency with a worklist of (variable, neighbour) arcs."""

    def propagate(self, state, assigned=None):
        if assigned is None:
            arcs = [(x, y) for x in state.unassigned for y in self.neighbors[x]]
        else:
            arcs = [(x, assigned) for x in self.neighbors[assigned] if x in state.unassigned]
        return self.run(state, arcs)

    def run(self, state, arcs) -> bool:
        causes = self.causes(state)
        queue = deque(arcs)
        queued = set(queue)
        while queue:
            arc = queue.popleft()
            queued.discard(arc)
            x, y = arc
            if x not in state.unassigned:
                continue
            if self.revise(state, x, y, causes):
                if not state.domains[x]:
                    return False
                for z in self.neighbors[x]:
                    if z is y or z not in state.unassigned:
                        continue
                    if (z, x) not in queued:
                        queue.append((z, x))
                        queued.add((z, x))
        return True

    def revise(self, state, x, y, causes) -> bool:
        """Remove values of x with no compatible value left in y's domain."""
        domain_y = state.domains[y]
        doomed = [
            a for a in state.domains[x]
            if not self.checker.supported_by(x, a, y, domain_y)
        ]
        if not doomed:
            return False
        return state.remove_values(x, doomed, causes) > 0


class AC4(Propagator):
    """
    Arc consistency with support counting.

    counter[(x, a, y)] holds how many values of y support x=a, and
    supports[(y, b)] lists the (x, a) pairs that b supports. Removing a
    value decrements the counters it contributed to; a counter reaching
    zero removes that value in turn.
    """

    def propagate(self, state, assigned=None):
        causes = self.causes(state)
        conflicts = self.checker.conflicts
        counter = {}
        supports = defaultdict(list)
        alive = {x: set(state.domains[x]) for x in state.unassigned}
        deleted = deque()

        for x in state.unassigned:
            for y in self.neighbors[x]:
                domain_y = state.domains[y]
                doomed = []
                for a in state.domains[x]:
                    count = 0
                    for b in domain_y:
                        if not conflicts(x, a, y, b):
                            count += 1
                            supports[(y, b)].append((x, a))
                    counter[(x, a, y)] = count
                    if count == 0:
                        doomed.append(a)
                if doomed:
                    state.remove_values(x, doomed, causes)
                    for a in doomed:
                        alive[x].discard(a)
                        deleted.append((x, a))
                    if not state.domains[x]:
                        return False

        while deleted:
            y, b = deleted.popleft()
            for x, a in supports.get((y, b), ()):
                if a not in alive[x]:
                    continue
                key = (x, a, y)
                counter[key] -= 1
                if counter[key] == 0:
                    state.remove_values(x, [a], causes)
                    alive[x].discard(a)
                    deleted.append((x, a))
                    if not state.domains[x]:
                        return False
        return True


class PathConsistency(Propagator):
    """
    Arc consistency plus triangle checks.

    A value a of x survives only if, for every pair (y, z) of mutually
    related neighbours of x, some b in D(y) and c in D(z) are compatible
    with a and with each other. Triangle pruning and AC-3 alternate until
    neither removes anything. This restricts path consistency to domain
    pruning; no binary relation is ever tightened.
    """

    def __init__(self, checker):
        super().__init__(checker)
        self.arc = AC3(checker)

    def propagate(self, state, assigned=None):
        if not self.arc.propagate(state, assigned):
            return False

        causes = self.causes(state)
        changed = True
        while changed:
            changed = False
            for x in list(state.unassigned):
                doomed = [a for a in state.domains[x] if not self._has_path_support(state, x, a)]
                if doomed:
                    state.remove_values(x, doomed, causes)
                    changed = True
                    if not state.domains[x]:
                        return False
            if changed and not self.arc.propagate(state):
                return False
        return True

    def _has_path_support(self, state, x, a) -> bool:
        conflicts = self.checker.conflicts
        related = sorted(self.neighbors[x], key=lambda v: v.index)
        for y, z in combinations(related, 2):
            if z not in self.neighbors[y]:
                continue
            domain_z = state.domains[z]
            found = False
            for b in state.domains[y]:
                if conflicts(x, a, y, b):
                    continue
                if any(not conflicts(x, a, z, c) and not conflicts(y, b, z, c) for c in domain_z):
                    found = True
                    break
            if not found:
                return False
        return True


PROPAGATORS = {
    PropagationType.NONE: NoPropagation,
    PropagationType.FORWARD_CHECKING: ForwardChecking,
    PropagationType.AC3: AC3,
    PropagationType.AC4: AC4,
    PropagationType.PATH_CONSISTENCY: PathConsistency,
}


def make_propagator(propagation_type: PropagationType, checker: ConstraintChecker) -> Propagator:
    return PROPAGATORS[PropagationType.parse(propagation_type)](checker)
