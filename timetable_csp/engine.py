#!/usr/bin/env python3
"""
Backtracking search over course-hour variables.

Each node of the search tree:
1. checks the budgets (time, depth, nodes, failures) and aborts if one ran out
2. records a solution if every variable is assigned
3. selects a variable and orders its values
4. for each value: checks consistency, copies the state, assigns, propagates,
   and recurses one level deeper
5. counts a backtrack when every value failed

Search strategies change the frontier discipline (depth-first recursion,
breadth-first queue, depth-limited, iterative deepening) but every node goes
through the same consistency and propagation steps.
"""

import sys
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

import numpy as np

from .builder import CSPInstance
from .catalog import ConstraintCatalog
from .checker import ConstraintChecker
from .config import SearchConfig, SearchStrategy
from .heuristics import TieBreaker, make_value_selector, make_variable_selector
from .logger import get_logger
from .models import Value, Variable
from .propagation import make_propagator
from .results import (
    AbortReason,
    Aborted,
    Feasible,
    Infeasible,
    SchedulingOutcome,
    materialize,
)
from .state import NogoodStore, SearchState, SearchStatistics

log = get_logger('engine')


class SearchStatus(Enum):
    ACTIVE = 'active'
    SUCCESS = 'success'
    EXHAUSTED = 'exhausted'
    ABORTED = 'aborted'


class SearchAborted(Exception):
    """Raised inside the engine when a budget runs out; never escapes run()."""

    def __init__(self, reason: AbortReason):
        super().__init__(reason.value)
        self.reason = reason


class _Restart(Exception):
    pass


@dataclass
class _Branch:
    """
    What a subtree reports to its parent.

    conflicts is the set of assigned variables that explain the failure, or
    None when the failure cannot be explained (cutoff, solutions found below,
    or conflict tracking disabled).
    """
    found: bool
    conflicts: Optional[FrozenSet[Variable]] = None


class BacktrackingSearch:
    """
    Complete search engine for one CSP instance.

    Args:
        instance: Variables, domains and neighbour graph from the builder
        config: Search policies and budgets; validated here
        catalog: Soft constraints used to rank solutions when several are found
        record_trace: Keep the (variable id, value) sequence of every branch taken

    Raises:
        ConfigurationError: if config is invalid
    """

    def __init__(self, instance: CSPInstance, config: Optional[SearchConfig] = None,
                 catalog: Optional[ConstraintCatalog] = None, record_trace: bool = False):
        self.config = (config or SearchConfig()).validate()
        self.instance = instance
        self.catalog = catalog if catalog is not None else ConstraintCatalog.default()
        self.record_trace = record_trace

        self.checker = ConstraintChecker(instance)
        self.propagator = make_propagator(self.config.effective_propagation, self.checker)
        self.statistics = SearchStatistics()
        self.status = SearchStatus.ACTIVE
        self.solutions: List[Dict[Variable, Value]] = []
        self.trace = []

    def _reset(self):
        c = self.config
        self.statistics.reset()
        self.status = SearchStatus.ACTIVE
        self.solutions = []
        self._solution_keys = set()
        self.trace = []
        self._cutoff = False

        # One generator per run, so a fixed seed reproduces the run exactly
        self.rng = np.random.default_rng(c.seed)
        randomization = c.randomization_probability if c.enable_randomization else 0.0
        tie_breaker = TieBreaker(c.tie_breaking, self.rng)
        self.variable_selector = make_variable_selector(
            c.variable_selection, self.instance, tie_breaker, c.heuristic_weights, randomization
        )
        self.value_selector = make_value_selector(
            c.value_selection, self.checker, tie_breaker, randomization, c.heuristic_weights
        )

        self.tracking = c.tracks_conflicts
        self.nogoods = NogoodStore(c.max_learned_clauses) if c.enable_learning else None
        self._restart_interval = c.restart_interval
        # Restarts only apply to the recursive depth-first strategies
        self._restarts = c.enable_restart and c.search_strategy in (
            SearchStrategy.DEPTH_FIRST, SearchStrategy.DEPTH_LIMITED
        )
        self._failures_at_restart = 0

        if c.search_strategy in (SearchStrategy.DEPTH_FIRST, SearchStrategy.BREADTH_FIRST):
            self._depth_budget = c.max_search_depth
        else:
            # Depth-limited strategies turn the depth budget into a cutoff
            self._depth_budget = None

    def run(self) -> SchedulingOutcome:
        """Search for up to max_solutions solutions and return the outcome."""
        self._reset()
        c = self.config
        stats = self.statistics
        log.info(
            f"Starting {c.search_strategy.description.lower()} over "
            f"{len(self.instance.variables)} variables "
            f"({c.variable_selection.name}, {c.value_selection.name}, "
            f"{c.effective_propagation.name})"
        )
        log.debug(c.describe())

        needed = len(self.instance.variables) + 200
        if c.search_strategy is not SearchStrategy.BREADTH_FIRST and sys.getrecursionlimit() < needed:
            sys.setrecursionlimit(needed)

        abort_reason = None
        try:
            root = self._root_state()
            if root is not None:
                abort_reason = self._dispatch(root)
        except SearchAborted as e:
            abort_reason = e.reason
        finally:
            stats.stop()

        return self._outcome(abort_reason)

    def _root_state(self) -> Optional[SearchState]:
        state = SearchState.initial(
            self.instance.variables, self.instance.domains, track_removals=self.tracking
        )
        if not self.propagator.propagate(state):
            self.statistics.constraint_propagation_failures += 1
            log.info("Initial propagation wiped out a domain")
            return None
        return state

    def _dispatch(self, root: SearchState) -> Optional[AbortReason]:
        strategy = self.config.search_strategy
        if strategy is SearchStrategy.BREADTH_FIRST:
            self._breadth_first(root)
            return None
        if strategy is SearchStrategy.ITERATIVE_DEEPENING:
            return self._iterative_deepening(root)

        limit = self.config.max_search_depth if strategy is SearchStrategy.DEPTH_LIMITED else None
        self._with_restarts(root, limit)
        if limit is not None and self._cutoff and not self._enough_solutions():
            return AbortReason.DEPTH_LIMIT
        return None

    def _with_restarts(self, root: SearchState, limit: Optional[int]):
        while True:
            self._failures_at_restart = self.statistics.failures
            try:
                self._depth_first(root.copy(), 0, limit)
                return
            except _Restart:
                self.statistics.restarts += 1
                # Doubling keeps the search complete
                self._restart_interval *= 2
                log.debug(
                    f"Restart {self.statistics.restarts}, next after "
                    f"{self._restart_interval} failures"
                )

    def _iterative_deepening(self, root: SearchState) -> Optional[AbortReason]:
        n = len(self.instance.variables)
        top = min(n, self.config.max_search_depth)
        for limit in range(0, top + 1):
            self._cutoff = False
            self._depth_first(root.copy(), 0, limit)
            if self.solutions:
                return None
            if not self._cutoff:
                # Nothing was cut off, so the whole space was seen
                return None
            log.debug(f"Iterative deepening: limit {limit} exhausted")
        return AbortReason.DEPTH_LIMIT

    def _check_budgets(self, depth: int):
        c = self.config
        s = self.statistics
        if s.elapsed() > c.max_search_time_seconds:
            raise SearchAborted(AbortReason.TIME_LIMIT)
        if self._depth_budget is not None and depth > self._depth_budget:
            raise SearchAborted(AbortReason.DEPTH_LIMIT)
        if s.nodes_visited > c.max_nodes:
            raise SearchAborted(AbortReason.NODE_LIMIT)
        if s.failures > c.max_failures:
            raise SearchAborted(AbortReason.FAILURE_LIMIT)

    def _visit(self, depth: int):
        s = self.statistics
        s.nodes_visited += 1
        if depth > s.max_depth_reached:
            s.max_depth_reached = depth
        self._check_budgets(depth)

    def _note_failure(self):
        if not self._restarts:
            return
        if self.statistics.failures - self._failures_at_restart >= self._restart_interval:
            raise _Restart()

    def _enough_solutions(self) -> bool:
        return len(self.solutions) >= self.config.solution_limit

    def _record_solution(self, state: SearchState) -> bool:
        if self.config.enable_solution_validation:
            violations = self.checker.validate(state.assignment)
            if violations:
                log.error(f"Rejected invalid solution: {violations[:3]}")
                self.statistics.consistency_check_failures += 1
                return False
        key = frozenset(state.assignment.items())
        if key not in self._solution_keys:
            self._solution_keys.add(key)
            self.solutions.append(dict(state.assignment))
            self.statistics.solutions_found += 1
            log.debug(f"Solution {len(self.solutions)} found at node {self.statistics.nodes_visited}")
        return True

    def _try_value(self, state: SearchState, variable: Variable, value: Value, conflict_set):
        """
        Check and propagate variable=value.

        Returns the child state, or None after recording why the value failed
        in conflict_set (when conflict tracking is on).
        """
        s = self.statistics
        s.assignments_tried += 1

        if self.nogoods is not None:
            clause = self.nogoods.violated_by(state.assignment, variable, value)
            if clause is not None:
                s.nogood_prunes += 1
                if conflict_set is not None:
                    conflict_set.update(var for var, _ in clause if var is not variable)
                self._note_failure()
                return None

        if not self.checker.is_consistent(variable, value, state):
            s.consistency_check_failures += 1
            if conflict_set is not None:
                conflict_set.update(self.checker.conflicting_variables(variable, value, state))
            self._note_failure()
            return None

        child = state.copy()
        child.assign(variable, value)
        if self.record_trace:
            self.trace.append((variable.id, value))

        if not self.propagator.propagate(child, variable):
            s.constraint_propagation_failures += 1
            if conflict_set is not None:
                wiped = child.wiped_out()
                if wiped is not None:
                    conflict_set.update(child.removal_causes(wiped) - {variable})
            self._note_failure()
            return None
        return child

    def _depth_first(self, state: SearchState, depth: int, limit: Optional[int]) -> _Branch:
        self._visit(depth)

        if state.is_complete():
            return _Branch(found=self._record_solution(state))

        if limit is not None and depth >= limit:
            self._cutoff = True
            return _Branch(found=False)

        wiped = state.wiped_out()
        if wiped is not None:
            self.statistics.backtracks += 1
            return _Branch(False, state.removal_causes(wiped) if self.tracking else None)

        variable = self.variable_selector.select(state)
        values = self.value_selector.order(variable, state)

        # Values pruned earlier from this domain fail because of their causes
        conflict_set = set(state.removal_causes(variable)) if self.tracking else None
        found_any = False

        for value in values:
            child = self._try_value(state, variable, value, conflict_set)
            if child is None:
                continue

            branch = self._depth_first(child, depth + 1, limit)
            if branch.found:
                found_any = True
                if self._enough_solutions():
                    return _Branch(found=True)
                continue

            if branch.conflicts is None:
                conflict_set = None
            elif variable not in branch.conflicts and self.config.enable_backjumping and not found_any:
                # The failure below does not depend on this variable: skip its other values
                self.statistics.backjumps += 1
                self.statistics.backtracks += 1
                return _Branch(False, branch.conflicts)
            elif conflict_set is not None:
                conflict_set.update(branch.conflicts - {variable})

        if found_any:
            return _Branch(found=True)

        self.statistics.backtracks += 1
        if conflict_set is None:
            return _Branch(found=False)

        conflicts = frozenset(conflict_set - {variable})
        if self.nogoods is not None and conflicts:
            self.nogoods.add((v, state.assignment[v]) for v in conflicts)
            self.statistics.learned_clauses = self.nogoods.learned
        return _Branch(False, conflicts)

    def _breadth_first(self, root: SearchState):
        frontier = deque([(root, 0)])
        while frontier:
            state, depth = frontier.popleft()
            self._visit(depth)

            if state.is_complete():
                if self._record_solution(state) and self._enough_solutions():
                    return
                continue

            if state.wiped_out() is not None:
                self.statistics.backtracks += 1
                continue

            variable = self.variable_selector.select(state)
            children = 0
            for value in self.value_selector.order(variable, state):
                child = self._try_value(state, variable, value, None)
                if child is not None:
                    frontier.append((child, depth + 1))
                    children += 1
            if children == 0:
                self.statistics.backtracks += 1

    def _outcome(self, abort_reason: Optional[AbortReason]) -> SchedulingOutcome:
        stats = self.statistics
        problem = self.instance.problem

        if self.solutions:
            self.status = SearchStatus.SUCCESS
            ranked = []
            for solution in self.solutions:
                rows = materialize(solution, self.checker)
                ranked.append((self.catalog.soft_cost(rows, problem), rows))
            ranked.sort(key=lambda item: item[0])
            log.info(
                f"Found {len(ranked)} solution(s), best soft cost {ranked[0][0]:.2f}; {stats.summary()}"
            )
            return Feasible(
                statistics=stats,
                assignments=ranked[0][1],
                solutions=[rows for _, rows in ranked],
                soft_cost=ranked[0][0],
                exhaustive=abort_reason is None,
            )

        if abort_reason is not None:
            self.status = SearchStatus.ABORTED
            log.info(f"Search aborted ({abort_reason.value}); {stats.summary()}")
            return Aborted(statistics=stats, reason=abort_reason)

        self.status = SearchStatus.EXHAUSTED
        log.info(f"Search space exhausted, no solution exists; {stats.summary()}")
        return Infeasible(statistics=stats)
