#!/usr/bin/env python3
"""
Search configuration: policy enumerations and the frozen SearchConfig.

A SearchConfig is validated once before a run starts and is read-only for
the whole run. Invalid settings raise ConfigurationError at setup time.
"""

import tomllib
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError


class _DescribedEnum(Enum):
    """Enum whose members carry a human readable description."""

    def __new__(cls, value, description):
        obj = object.__new__(cls)
        obj._value_ = value
        obj.description = description
        return obj

    @classmethod
    def parse(cls, value):
        """Accept a member, its name or its value, case-insensitively."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.upper() == member.name or text.lower() == member.value:
                return member
        options = ', '.join(m.name for m in cls)
        raise ConfigurationError(f"Unknown {cls.__name__} '{value}', expected one of: {options}")


class VariableSelection(_DescribedEnum):
    FIRST_UNASSIGNED = ('first_unassigned', 'First unassigned variable in build order')
    MINIMUM_REMAINING_VALUES = ('minimum_remaining_values', 'Variable with the fewest remaining values')
    DEGREE_HEURISTIC = ('degree_heuristic', 'Variable related to the most unassigned variables')
    MOST_CONSTRAINING = ('most_constraining', 'Weighted combination of remaining values and degree')


class ValueSelection(_DescribedEnum):
    NATURAL_ORDER = ('natural_order', 'Values in domain order')
    LEAST_CONSTRAINING = ('least_constraining', 'Values that rule out the fewest neighbour values first')
    MOST_CONSTRAINING = ('most_constraining', 'Values that rule out the most neighbour values first')
    RANDOM_ORDER = ('random_order', 'Values in seeded random order')


class PropagationType(_DescribedEnum):
    NONE = ('none', 'Pure backtracking without propagation')
    FORWARD_CHECKING = ('forward_checking', 'Prune neighbours of the assigned variable')
    AC3 = ('ac3', 'Arc consistency with an arc worklist')
    AC4 = ('ac4', 'Arc consistency with support counters')
    PATH_CONSISTENCY = ('path_consistency', 'Arc consistency plus triangle checks')


class TieBreaking(_DescribedEnum):
    RANDOM = ('random', 'Seeded random choice')
    FIRST = ('first', 'First candidate')
    LAST = ('last', 'Last candidate')
    MIN_INDEX = ('min_index', 'Smallest index first')
    MAX_INDEX = ('max_index', 'Largest index first')
    MIN_ID = ('min_id', 'Smallest id first')
    MAX_ID = ('max_id', 'Largest id first')
    MIN_CONSTRAINTS = ('min_constraints', 'Fewest constraints first')
    MAX_CONSTRAINTS = ('max_constraints', 'Most constraints first')
    MIN_DEGREE = ('min_degree', 'Smallest degree first')
    MAX_DEGREE = ('max_degree', 'Largest degree first')


class SearchStrategy(_DescribedEnum):
    DEPTH_FIRST = ('depth_first', 'Depth-first backtracking')
    BREADTH_FIRST = ('breadth_first', 'Breadth-first frontier search')
    DEPTH_LIMITED = ('depth_limited', 'Depth-first search cut off at max_search_depth')
    ITERATIVE_DEEPENING = ('iterative_deepening', 'Depth-limited search with growing limits')


class PerformanceMode(_DescribedEnum):
    FAST = ('fast', 'Forward checking in natural order')
    BALANCED = ('balanced', 'Minimum remaining values with AC-3')
    THOROUGH = ('thorough', 'Weighted selection with AC-3, backjumping and learning')


@dataclass(frozen=True)
class HeuristicWeights:
    """
    Weights for the weighted selectors.

    mrv_weight, degree_weight and most_constraining_weight score variables
    under MOST_CONSTRAINING: remaining values, unassigned neighbours and
    constraints in the whole graph. least_constraining_weight and
    fail_first_weight score values under LEAST_CONSTRAINING and
    MOST_CONSTRAINING: neighbour values ruled out, and neighbours left
    with at most one value.
    """
    mrv_weight: float = 1.0
    degree_weight: float = 0.5
    most_constraining_weight: float = 0.8
    least_constraining_weight: float = 1.0
    fail_first_weight: float = 0.3


_ENUM_FIELDS = {
    'variable_selection': VariableSelection,
    'value_selection': ValueSelection,
    'propagation_type': PropagationType,
    'tie_breaking': TieBreaking,
    'search_strategy': SearchStrategy,
}


@dataclass(frozen=True)
class SearchConfig:
    """
    Frozen set of policy choices and budgets for one run.

    Attributes:
        variable_selection: Which unassigned variable to branch on next
        value_selection: Order in which that variable's values are tried
        tie_breaking: How equally ranked candidates are ordered
        propagation_type: Propagation applied after each assignment
        enable_forward_checking: Use forward checking when propagation_type is NONE
        enable_backjumping: Conflict-directed backjumping instead of chronological backtracking
        enable_learning: Record exhausted conflict sets as nogoods
        max_learned_clauses: Nogood store capacity (oldest evicted first)
        enable_restart: Restart from the root after restart_interval failures
        restart_interval: Failures before the first restart; doubles each time
        enable_randomization: Randomize variable/value choices with randomization_probability
        randomization_probability: Probability of a random choice, in [0, 1]
        seed: Seed for the run's random generator (None draws fresh entropy)
        max_search_time_seconds: Wall-clock budget
        max_search_depth: Deepest level the search may enter
        max_nodes: Node budget
        max_failures: Failed trial budget
        max_solutions: Solutions to collect; 0 and 1 both stop at the first
        enable_solution_validation: Replay every hard constraint on each solution
        search_strategy: Frontier discipline
        heuristic_weights: Weights for the weighted variable and value selectors
    """
    variable_selection: VariableSelection = VariableSelection.MINIMUM_REMAINING_VALUES
    value_selection: ValueSelection = ValueSelection.LEAST_CONSTRAINING
    tie_breaking: TieBreaking = TieBreaking.FIRST
    propagation_type: PropagationType = PropagationType.AC3
    enable_forward_checking: bool = True
    enable_backjumping: bool = False
    enable_learning: bool = False
    max_learned_clauses: int = 1000
    enable_restart: bool = False
    restart_interval: int = 100
    enable_randomization: bool = False
    randomization_probability: float = 0.1
    seed: Optional[int] = None
    max_search_time_seconds: float = 300
    max_search_depth: int = 1000
    max_nodes: int = 1_000_000
    max_failures: int = 10_000
    max_solutions: int = 1
    enable_solution_validation: bool = True
    search_strategy: SearchStrategy = SearchStrategy.DEPTH_FIRST
    heuristic_weights: HeuristicWeights = field(default_factory=HeuristicWeights)

    @property
    def effective_propagation(self) -> PropagationType:
        """Propagation actually used: forward checking fills in for NONE when enabled."""
        if self.propagation_type is PropagationType.NONE and self.enable_forward_checking:
            return PropagationType.FORWARD_CHECKING
        return self.propagation_type

    @property
    def solution_limit(self) -> int:
        return max(self.max_solutions, 1)

    @property
    def tracks_conflicts(self) -> bool:
        return self.enable_backjumping or self.enable_learning

    def validate(self):
        """Check every field; raise ConfigurationError on the first problem found."""
        for name, enum_cls in _ENUM_FIELDS.items():
            if not isinstance(getattr(self, name), enum_cls):
                raise ConfigurationError(
                    f"{name} must be a {enum_cls.__name__}, got {getattr(self, name)!r}"
                )

        for name in ('max_search_time_seconds', 'max_search_depth', 'max_nodes',
                     'max_failures', 'restart_interval'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}")

        for name in ('max_learned_clauses', 'max_solutions'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")

        p = self.randomization_probability
        if isinstance(p, bool) or not isinstance(p, (int, float)) or not 0.0 <= p <= 1.0:
            raise ConfigurationError(f"randomization_probability must be in [0, 1], got {p!r}")

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ConfigurationError(f"seed must be an integer or None, got {self.seed!r}")

        if not isinstance(self.heuristic_weights, HeuristicWeights):
            raise ConfigurationError("heuristic_weights must be a HeuristicWeights instance")
        for name, weight in asdict(self.heuristic_weights).items():
            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight < 0:
                raise ConfigurationError(f"heuristic weight {name} must be a non-negative number, got {weight!r}")

        return self

    def with_changes(self, **changes) -> 'SearchConfig':
        """Return a copy with some fields replaced (enum fields accept names)."""
        return replace(self, **_coerce(changes))

    def describe(self) -> str:
        """Multi-line summary for logs."""
        lines = [
            f"Variable selection: {self.variable_selection.description}",
            f"Value selection: {self.value_selection.description}",
            f"Tie breaking: {self.tie_breaking.description}",
            f"Propagation: {self.effective_propagation.description}",
            f"Search strategy: {self.search_strategy.description}",
            f"Backjumping: {self.enable_backjumping}, learning: {self.enable_learning} "
            f"(max clauses {self.max_learned_clauses})",
            f"Restart: {self.enable_restart} (interval {self.restart_interval}), "
            f"randomization: {self.enable_randomization} (p={self.randomization_probability:.2f})",
            f"Budgets: {self.max_search_time_seconds}s, depth {self.max_search_depth}, "
            f"{self.max_nodes} nodes, {self.max_failures} failures, {self.max_solutions} solution(s)",
        ]
        return '\n'.join(lines)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchConfig':
        """
        Build a config from a flat mapping of field names.

        Enum fields accept member names or values, case-insensitively.
        A nested 'heuristic_weights' mapping is converted to HeuristicWeights.
        Unknown keys raise ConfigurationError.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown search config key(s): {unknown}")
        return cls(**_coerce(data))

    @classmethod
    def from_toml(cls, filename: str, section: str = 'search') -> 'SearchConfig':
        """
        Read a config from the [search] table of a TOML file.

        Example file:
            [search]
            variable_selection = "minimum_remaining_values"
            propagation_type = "ac3"
            max_nodes = 50000

            [search.heuristic_weights]
            degree_weight = 0.7
        """
        with open(filename, 'rb') as f:
            document = tomllib.load(f)
        if section not in document:
            raise ConfigurationError(f"{filename} has no [{section}] table")
        return cls.from_dict(document[section])

    @classmethod
    def recommended(cls, problem_size: int, mode=PerformanceMode.BALANCED) -> 'SearchConfig':
        """
        Preset configuration for a problem with problem_size variables.

        FAST trades propagation for speed, BALANCED uses MRV with AC-3,
        THOROUGH adds learning and backjumping. Depth and node budgets
        grow with the problem size; large problems also restart. mode
        accepts a PerformanceMode or its name, case-insensitively.
        """
        mode = PerformanceMode.parse(mode)
        if mode is PerformanceMode.FAST:
            settings = dict(
                max_search_time_seconds=60,
                propagation_type=PropagationType.NONE,
                enable_forward_checking=True,
                variable_selection=VariableSelection.FIRST_UNASSIGNED,
                value_selection=ValueSelection.NATURAL_ORDER,
            )
        elif mode is PerformanceMode.BALANCED:
            settings = dict(
                max_search_time_seconds=300,
                propagation_type=PropagationType.AC3,
                variable_selection=VariableSelection.MINIMUM_REMAINING_VALUES,
                value_selection=ValueSelection.LEAST_CONSTRAINING,
            )
        else:
            settings = dict(
                max_search_time_seconds=1800,
                propagation_type=PropagationType.AC3,
                enable_learning=True,
                enable_backjumping=True,
                variable_selection=VariableSelection.MOST_CONSTRAINING,
                value_selection=ValueSelection.LEAST_CONSTRAINING,
            )

        if problem_size < 50:
            settings.update(max_search_depth=500, max_nodes=100_000)
        elif problem_size < 200:
            settings.update(max_search_depth=1000, max_nodes=500_000)
        else:
            settings.update(max_search_depth=2000, max_nodes=1_000_000,
                            enable_restart=True, restart_interval=200)

        # The search must be allowed to reach a complete assignment
        settings['max_search_depth'] = max(settings['max_search_depth'], problem_size)
        return cls(**settings)


def _coerce(data: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(data)
    for name, enum_cls in _ENUM_FIELDS.items():
        if name in result:
            result[name] = enum_cls.parse(result[name])
    weights = result.get('heuristic_weights')
    if isinstance(weights, dict):
        try:
            result['heuristic_weights'] = HeuristicWeights(**weights)
        except TypeError as e:
            raise ConfigurationError(f"Invalid heuristic_weights: {e}") from e
    return result
