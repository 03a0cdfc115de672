#!/usr/bin/env python3
"""
Variable and value ordering heuristics, and the tie-breaker they share.

Selectors are small classes behind two calls:
- VariableSelector.select(state) -> next variable to branch on
- ValueSelector.order(variable, state) -> values of that variable, in trial order
"""

from abc import ABC, abstractmethod
from typing import Callable, List, NamedTuple, Optional

import numpy as np

from .builder import CSPInstance
from .checker import ConstraintChecker
from .config import HeuristicWeights, TieBreaking, ValueSelection, VariableSelection
from .models import Value, Variable
from .state import SearchState


class TieKeys(NamedTuple):
    """Key functions a tie-breaker may sort candidates by."""
    index: Callable
    id: Callable
    constraints: Callable
    degree: Callable


class TieBreaker:
    """Orders equally ranked candidates according to a TieBreaking policy."""

    _SORTED = {
        TieBreaking.MIN_INDEX: ('index', False),
        TieBreaking.MAX_INDEX: ('index', True),
        TieBreaking.MIN_ID: ('id', False),
        TieBreaking.MAX_ID: ('id', True),
        TieBreaking.MIN_CONSTRAINTS: ('constraints', False),
        TieBreaking.MAX_CONSTRAINTS: ('constraints', True),
        TieBreaking.MIN_DEGREE: ('degree', False),
        TieBreaking.MAX_DEGREE: ('degree', True),
    }

    def __init__(self, policy: TieBreaking, rng: np.random.Generator):
        self.policy = TieBreaking.parse(policy)
        self.rng = rng

    def order(self, candidates: List, keys: TieKeys) -> List:
        """Return candidates in preference order. Sorting is stable."""
        candidates = list(candidates)
        if len(candidates) < 2 or self.policy is TieBreaking.FIRST:
            return candidates
        if self.policy is TieBreaking.LAST:
            return candidates[::-1]
        if self.policy is TieBreaking.RANDOM:
            return [candidates[i] for i in self.rng.permutation(len(candidates))]
        key_name, descending = self._SORTED[self.policy]
        return sorted(candidates, key=getattr(keys, key_name), reverse=descending)

    def pick(self, candidates: List, keys: TieKeys):
        return self.order(candidates, keys)[0]


class VariableSelector(ABC):
    """
    Chooses the next unassigned variable.

    Returns None only when every variable is assigned. Empty domains are a
    failure the engine detects before calling select().
    """

    def __init__(self, instance: CSPInstance, tie_breaker: TieBreaker,
                 weights: Optional[HeuristicWeights] = None,
                 randomization: float = 0.0):
        self.instance = instance
        self.neighbors = instance.neighbors
        self.tie_breaker = tie_breaker
        self.weights = weights or HeuristicWeights()
        self.randomization = randomization

    def select(self, state: SearchState) -> Optional[Variable]:
        if not state.unassigned:
            return None
        if self.randomization and self.tie_breaker.rng.random() < self.randomization:
            candidates = list(state.unassigned)
            return candidates[self.tie_breaker.rng.integers(len(candidates))]
        return self._select(state)

    @abstractmethod
    def _select(self, state: SearchState) -> Variable:
        pass

    def degree(self, variable: Variable, state: SearchState) -> int:
        """Unassigned variables sharing a hard constraint with variable."""
        return sum(1 for other in self.neighbors[variable] if other in state.unassigned)

    def keys(self, state: SearchState) -> TieKeys:
        return TieKeys(
            index=lambda v: v.index,
            id=lambda v: v.id,
            constraints=self.instance.constraint_count,
            degree=lambda v: self.degree(v, state),
        )

    def _best(self, state: SearchState, score) -> Variable:
        """Lowest score wins; equal scores go to the tie-breaker."""
        best_score = None
        best = []
        for variable in state.unassigned:
            s = score(variable)
            if best_score is None or s < best_score:
                best_score = s
                best = [variable]
            elif s == best_score:
                best.append(variable)
        return self.tie_breaker.pick(best, self.keys(state))


class FirstUnassigned(VariableSelector):
    def _select(self, state):
        return next(iter(state.unassigned))


class MinimumRemainingValues(VariableSelector):
    def _select(self, state):
        return self._best(state, lambda v: len(state.domains[v]))


class DegreeHeuristic(VariableSelector):
    def _select(self, state):
        return self._best(state, lambda v: -self.degree(v, state))


class MostConstrainingVariable(VariableSelector):
    """Weighted mix: small domains, many unassigned neighbours and many constraints score best."""

    def _select(self, state):
        w = self.weights
        count = self.instance.constraint_count
        return self._best(
            state,
            lambda v: (w.mrv_weight * len(state.domains[v])
                       - w.degree_weight * self.degree(v, state)
                       - w.most_constraining_weight * count(v))
        )


class ValueSelector(ABC):
    """Orders the values of a chosen variable for trial."""

    def __init__(self, checker: ConstraintChecker, tie_breaker: TieBreaker,
                 randomization: float = 0.0, weights: Optional[HeuristicWeights] = None):
        self.checker = checker
        self.tie_breaker = tie_breaker
        self.randomization = randomization
        self.weights = weights or HeuristicWeights()

    def order(self, variable: Variable, state: SearchState) -> List[Value]:
        values = self._order(variable, state)
        if self.randomization and self.tie_breaker.rng.random() < self.randomization:
            values = [values[i] for i in self.tie_breaker.rng.permutation(len(values))]
        return values

    @abstractmethod
    def _order(self, variable: Variable, state: SearchState) -> List[Value]:
        pass

    def keys(self, variable: Variable, state: SearchState) -> TieKeys:
        position = {value: i for i, value in enumerate(state.domains[variable])}
        return TieKeys(
            index=position.__getitem__,
            id=lambda value: value,
            constraints=lambda value: self.checker.impact(variable, value, state),
            degree=lambda value: self._touched_neighbors(variable, value, state),
        )

    def _touched_neighbors(self, variable, value, state) -> int:
        conflicts = self.checker.conflicts
        return sum(
            1 for other in self.checker.neighbors[variable]
            if other in state.unassigned
            and any(conflicts(variable, value, other, v) for v in state.domains[other])
        )

    def score(self, variable: Variable, value: Value, state: SearchState) -> float:
        """
        Weighted cost of giving variable this value.

        least_constraining_weight counts the neighbour values it rules out;
        fail_first_weight counts the unassigned neighbours it leaves with at
        most one value.
        """
        removed = 0
        critical = 0
        for other in self.checker.neighbors[variable]:
            if other not in state.unassigned:
                continue
            domain = state.domains[other]
            hit = sum(1 for v in domain if self.checker.conflicts(variable, value, other, v))
            removed += hit
            if hit and len(domain) - hit <= 1:
                critical += 1
        w = self.weights
        return w.least_constraining_weight * removed + w.fail_first_weight * critical

    def _by_score(self, variable, state, descending):
        # Tie order first, then a stable sort on score keeps it inside equal-score groups
        candidates = self.tie_breaker.order(state.domains[variable], self.keys(variable, state))
        scores = {value: self.score(variable, value, state) for value in candidates}
        return sorted(candidates, key=scores.__getitem__, reverse=descending)


class NaturalOrder(ValueSelector):
    def _order(self, variable, state):
        return list(state.domains[variable])


class LeastConstrainingValue(ValueSelector):
    def _order(self, variable, state):
        return self._by_score(variable, state, descending=False)


class MostConstrainingValue(ValueSelector):
    def _order(self, variable, state):
        return self._by_score(variable, state, descending=True)


class RandomOrder(ValueSelector):
    def _order(self, variable, state):
        values = list(state.domains[variable])
        return [values[i] for i in self.tie_breaker.rng.permutation(len(values))]


VARIABLE_SELECTORS = {
    VariableSelection.FIRST_UNASSIGNED: FirstUnassigned,
    VariableSelection.MINIMUM_REMAINING_VALUES: MinimumRemainingValues,
    VariableSelection.DEGREE_HEURISTIC: DegreeHeuristic,
    VariableSelection.MOST_CONSTRAINING: MostConstrainingVariable,
}

VALUE_SELECTORS = {
    ValueSelection.NATURAL_ORDER: NaturalOrder,
    ValueSelection.LEAST_CONSTRAINING: LeastConstrainingValue,
    ValueSelection.MOST_CONSTRAINING: MostConstrainingValue,
    ValueSelection.RANDOM_ORDER: RandomOrder,
}


def make_variable_selector(policy, instance, tie_breaker, weights=None, randomization=0.0) -> VariableSelector:
    return VARIABLE_SELECTORS[VariableSelection.parse(policy)](instance, tie_breaker, weights, randomization)


def make_value_selector(policy, checker, tie_breaker, randomization=0.0, weights=None) -> ValueSelector:
    return VALUE_SELECTORS[ValueSelection.parse(policy)](checker, tie_breaker, randomization, weights)
