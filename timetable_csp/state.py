#!/usr/bin/env python3
"""
Search state, propagation records, learned nogoods and statistics.

A SearchState is owned by one path of the search tree. Branching copies it;
backtracking simply drops the copy. Domains are stored as tuples and pruning
replaces the tuple, so a copy never shares a mutable domain with its parent.
"""

import time
from collections import deque
from dataclasses import dataclass, fields
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from .models import Value, Variable


class PropagationRecord(NamedTuple):
    """One value removed from one domain, and the assigned variables that caused it."""
    variable: Variable
    value: Value
    causes: FrozenSet[Variable]


class SearchState:
    """Assignment, current domains and the ordered set of unassigned variables."""

    def __init__(
        self,
        domains: Dict[Variable, Tuple[Value, ...]],
        assignment: Optional[Dict[Variable, Value]] = None,
        unassigned: Optional[Dict[Variable, None]] = None,
        track_removals: bool = False,
    ):
        self.domains = domains
        self.assignment = assignment if assignment is not None else {}
        # dict used as an insertion-ordered set
        self.unassigned = unassigned if unassigned is not None else {
            v: None for v in domains if v not in self.assignment
        }
        self.track_removals = track_removals
        self.removals: Dict[Variable, Tuple[PropagationRecord, ...]] = {}

    @classmethod
    def initial(cls, variables: Iterable[Variable], domains: Dict[Variable, Iterable[Value]],
                track_removals: bool = False) -> 'SearchState':
        ordered = sorted(variables, key=lambda v: v.index)
        return cls(
            domains={v: tuple(domains[v]) for v in ordered},
            track_removals=track_removals,
        )

    def copy(self) -> 'SearchState':
        child = SearchState(
            domains=dict(self.domains),
            assignment=dict(self.assignment),
            unassigned=dict(self.unassigned),
            track_removals=self.track_removals,
        )
        child.removals = dict(self.removals)
        return child

    def assign(self, variable: Variable, value: Value):
        self.assignment[variable] = value
        self.domains[variable] = (value,)
        del self.unassigned[variable]

    def remove_values(self, variable: Variable, values, causes: FrozenSet[Variable] = frozenset()) -> int:
        """Drop values from a domain; return how many were actually removed."""
        values = set(values)
        if not values:
            return 0
        old = self.domains[variable]
        kept = tuple(v for v in old if v not in values)
        removed = len(old) - len(kept)
        if removed:
            self.domains[variable] = kept
            if self.track_removals:
                records = tuple(
                    PropagationRecord(variable, v, causes) for v in old if v in values
                )
                self.removals[variable] = self.removals.get(variable, ()) + records
        return removed

    def removal_causes(self, variable: Variable) -> FrozenSet[Variable]:
        """Union of the causes of every value pruned from this variable's domain."""
        causes = set()
        for record in self.removals.get(variable, ()):
            causes |= record.causes
        return frozenset(causes)

    def wiped_out(self) -> Optional[Variable]:
        """First unassigned variable with an empty domain, if any."""
        for variable in self.unassigned:
            if not self.domains[variable]:
                return variable
        return None

    def is_complete(self) -> bool:
        return not self.unassigned

    def snapshot(self) -> Dict[Variable, Tuple[Value, ...]]:
        return dict(self.domains)


class NogoodStore:
    """
    Learned conflict clauses.

    A nogood is a set of (variable, value) pairs that cannot all hold in
    any solution. The store keeps at most max_size clauses; adding beyond
    that evicts the oldest.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._clauses = deque(maxlen=max_size)
        self._seen = set()
        self.learned = 0

    def __len__(self):
        return len(self._clauses)

    def add(self, pairs: Iterable[Tuple[Variable, Value]]) -> bool:
        clause = frozenset(pairs)
        if self.max_size == 0 or clause in self._seen:
            return False
        if len(self._clauses) == self.max_size:
            self._seen.discard(self._clauses[0])
        self._clauses.append(clause)
        self._seen.add(clause)
        self.learned += 1
        return True

    def violated_by(self, assignment: Dict[Variable, Value], variable: Optional[Variable] = None,
                    value: Optional[Value] = None) -> Optional[FrozenSet[Tuple[Variable, Value]]]:
        """First stored clause fully contained in assignment (plus variable=value), if any."""
        for clause in self._clauses:
            if all((var is variable and val == value) or assignment.get(var) == val
                   for var, val in clause):
                return clause
        return None

    def clauses(self) -> List[FrozenSet[Tuple[Variable, Value]]]:
        return list(self._clauses)


@dataclass
class SearchStatistics:
    """Counters for one run. Only the search engine writes to them."""
    nodes_visited: int = 0
    assignments_tried: int = 0
    backtracks: int = 0
    consistency_check_failures: int = 0
    constraint_propagation_failures: int = 0
    solutions_found: int = 0
    backjumps: int = 0
    restarts: int = 0
    nogood_prunes: int = 0
    learned_clauses: int = 0
    max_depth_reached: int = 0
    elapsed_seconds: float = 0.0

    def reset(self):
        for f in fields(self):
            setattr(self, f.name, f.default)
        self._started = time.perf_counter()

    def elapsed(self) -> float:
        return time.perf_counter() - getattr(self, '_started', time.perf_counter())

    def stop(self):
        self.elapsed_seconds = self.elapsed()

    @property
    def failures(self) -> int:
        return self.consistency_check_failures + self.constraint_propagation_failures + self.nogood_prunes

    def as_dict(self) -> Dict[str, float]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['failures'] = self.failures
        return data

    def summary(self) -> str:
        return (
            f"nodes={self.nodes_visited}, tried={self.assignments_tried}, "
            f"backtracks={self.backtracks}, consistency failures={self.consistency_check_failures}, "
            f"propagation failures={self.constraint_propagation_failures}, "
            f"solutions={self.solutions_found}, time={self.elapsed_seconds:.3f}s"
        )
