#!/usr/bin/env python3
"""
Tests for the backtracking search engine.

Soundness, completeness, proofs of infeasibility, determinism and budgets
are checked on small hand-built problems under every policy combination
that matters.
"""

import pytest

from timetable_csp.builder import build_instance
from timetable_csp.checker import ConstraintChecker
from timetable_csp.config import (
    PropagationType,
    SearchConfig,
    SearchStrategy,
    TieBreaking,
    ValueSelection,
    VariableSelection,
)
from timetable_csp.engine import BacktrackingSearch, SearchStatus
from timetable_csp.exceptions import ConfigurationError
from timetable_csp.models import ProblemData, Value
from timetable_csp.results import AbortReason, Aborted, Feasible, Infeasible

from sample_problems import (
    pigeonhole_problem,
    scenario_problem,
    school_problem,
    single_room_problem,
    slots,
    unique_solution_problem,
)

CONFIGS = {
    'default': SearchConfig(),
    'plain': SearchConfig(propagation_type=PropagationType.NONE, enable_forward_checking=False,
                          variable_selection=VariableSelection.FIRST_UNASSIGNED,
                          value_selection=ValueSelection.NATURAL_ORDER),
    'forward_checking': SearchConfig(propagation_type=PropagationType.FORWARD_CHECKING),
    'ac4': SearchConfig(propagation_type=PropagationType.AC4,
                        variable_selection=VariableSelection.DEGREE_HEURISTIC),
    'path': SearchConfig(propagation_type=PropagationType.PATH_CONSISTENCY,
                         value_selection=ValueSelection.MOST_CONSTRAINING),
    'backjumping': SearchConfig(propagation_type=PropagationType.NONE, enable_backjumping=True,
                                enable_learning=True,
                                variable_selection=VariableSelection.FIRST_UNASSIGNED,
                                value_selection=ValueSelection.NATURAL_ORDER),
    'ac3_learning': SearchConfig(enable_backjumping=True, enable_learning=True,
                                 variable_selection=VariableSelection.MOST_CONSTRAINING),
    'restart': SearchConfig(propagation_type=PropagationType.NONE, enable_forward_checking=False,
                            enable_restart=True, restart_interval=1, enable_learning=True,
                            enable_randomization=True, randomization_probability=0.5, seed=11),
    'random': SearchConfig(value_selection=ValueSelection.RANDOM_ORDER,
                           tie_breaking=TieBreaking.RANDOM, seed=7),
    'depth_limited': SearchConfig(search_strategy=SearchStrategy.DEPTH_LIMITED),
    'iterative_deepening': SearchConfig(search_strategy=SearchStrategy.ITERATIVE_DEEPENING,
                                        propagation_type=PropagationType.FORWARD_CHECKING),
}

# Breadth-first keeps whole levels in memory; only small problems use it
BREADTH_FIRST = SearchConfig(search_strategy=SearchStrategy.BREADTH_FIRST)


def solve(problem, config=None, **kwargs):
    instance = build_instance(problem)
    search = BacktrackingSearch(instance, config, **kwargs)
    return search, search.run()


def replay(search, outcome):
    """Violations of the best solution, replayed against every hard constraint."""
    checker = ConstraintChecker(search.instance)
    by_key = {(v.course_id, v.hour): v for v in search.instance.variables}
    assignment = {
        by_key[(a.course_id, a.hour)]: Value(a.time_slot_id, a.room_id, a.teacher_id)
        for a in outcome.assignments
    }
    return checker.validate(assignment)


@pytest.mark.parametrize('name', sorted(CONFIGS))
def test_solutions_are_sound(name):
    """Test that every policy combination returns a valid complete schedule."""
    search, outcome = solve(school_problem(), CONFIGS[name])
    assert isinstance(outcome, Feasible), f'{name}: expected Feasible, got {outcome.status}'
    assert len(outcome.assignments) == 6
    assert all(a.valid for a in outcome.assignments)
    assert replay(search, outcome) == [], f'{name}: solution breaks a hard constraint'
    assert search.status is SearchStatus.SUCCESS
    print(f'✓ test_solutions_are_sound[{name}] passed')


@pytest.mark.parametrize('name', sorted(CONFIGS))
def test_unsatisfiable_problem_is_infeasible(name):
    """Test that exhausting the space proves infeasibility under every policy."""
    search, outcome = solve(pigeonhole_problem(courses=4, periods=3), CONFIGS[name])
    assert isinstance(outcome, Infeasible), f'{name}: expected Infeasible, got {outcome.status}'
    assert not outcome.is_feasible
    assert search.status is SearchStatus.EXHAUSTED
    print(f'✓ test_unsatisfiable_problem_is_infeasible[{name}] passed')


@pytest.mark.parametrize('name', ['default', 'plain', 'backjumping', 'breadth_first', 'iterative_deepening'])
def test_unique_solution_is_found(name):
    """Test completeness: the only solution is returned and nothing else."""
    config = {**CONFIGS, 'breadth_first': BREADTH_FIRST}[name].with_changes(max_solutions=10)
    _, outcome = solve(unique_solution_problem(), config)
    assert isinstance(outcome, Feasible)
    assert len(outcome.solutions) == 1, f'{name}: found {len(outcome.solutions)} solutions'
    assert outcome.exhaustive
    slots = {a.course_id: a.time_slot_id for a in outcome.assignments}
    assert slots == {'C1': 'MON-1', 'C2': 'MON-2', 'C3': 'MON-3'}, f'Got {slots}'
    print(f'✓ test_unique_solution_is_found[{name}] passed')


def test_multiple_solutions_are_distinct_and_ranked():
    """Test that several solutions are collected, deduplicated and ranked by soft cost."""
    search, outcome = solve(school_problem(), SearchConfig(max_solutions=5))
    assert isinstance(outcome, Feasible)
    assert len(outcome.solutions) == 5
    keys = {tuple((a.course_id, a.hour, a.time_slot_id, a.room_id) for a in s) for s in outcome.solutions}
    assert len(keys) == 5, 'Solutions should be distinct'

    problem = search.instance.problem
    costs = [search.catalog.soft_cost(s, problem) for s in outcome.solutions]
    assert costs == sorted(costs), 'Solutions should be ranked best first'
    assert outcome.soft_cost == costs[0]
    assert outcome.statistics.solutions_found == 5
    print('✓ test_multiple_solutions_are_distinct_and_ranked passed')


def test_root_wipeout_is_infeasible_without_search():
    """Test that arc consistency refutes a trivially unsatisfiable problem at the root."""
    search, outcome = solve(single_room_problem())
    assert isinstance(outcome, Infeasible)
    assert outcome.statistics.nodes_visited == 0
    assert outcome.statistics.constraint_propagation_failures == 1
    print('✓ test_root_wipeout_is_infeasible_without_search passed')


def test_deterministic_policies_repeat_exactly():
    """Test that fixed policies give identical traces and statistics."""
    config = CONFIGS['plain']

    def run():
        search, outcome = solve(school_problem(), config, record_trace=True)
        stats = outcome.statistics.as_dict()
        stats.pop('elapsed_seconds')
        return search.trace, stats, outcome.assignments

    assert run() == run()
    print('✓ test_deterministic_policies_repeat_exactly passed')


def test_seeded_randomization_repeats_exactly():
    """Test that randomized runs repeat under the same seed."""
    config = SearchConfig(value_selection=ValueSelection.RANDOM_ORDER, tie_breaking=TieBreaking.RANDOM,
                          enable_randomization=True, randomization_probability=0.3, seed=2024)

    def run():
        search, outcome = solve(school_problem(), config, record_trace=True)
        return search.trace, outcome.assignments

    assert run() == run()
    print('✓ test_seeded_randomization_repeats_exactly passed')


def test_node_budget_is_respected():
    """Test that the node budget aborts a hard unsatisfiable search."""
    config = CONFIGS['plain'].with_changes(max_nodes=200)
    search, outcome = solve(pigeonhole_problem(courses=8, periods=7), config)
    assert isinstance(outcome, Aborted), f'Expected Aborted, got {outcome.status}'
    assert outcome.reason is AbortReason.NODE_LIMIT
    assert outcome.statistics.nodes_visited <= 201
    assert search.status is SearchStatus.ABORTED
    print('✓ test_node_budget_is_respected passed')


def test_failure_budget_is_respected():
    """Test that the failure budget aborts the search."""
    config = CONFIGS['plain'].with_changes(max_failures=50)
    _, outcome = solve(pigeonhole_problem(courses=8, periods=7), config)
    assert isinstance(outcome, Aborted)
    assert outcome.reason is AbortReason.FAILURE_LIMIT
    assert outcome.statistics.failures > 50
    print('✓ test_failure_budget_is_respected passed')


def test_time_budget_is_respected():
    """Test that a tiny time budget aborts the search."""
    config = CONFIGS['plain'].with_changes(max_search_time_seconds=1e-9)
    _, outcome = solve(pigeonhole_problem(courses=8, periods=7), config)
    assert isinstance(outcome, Aborted)
    assert outcome.reason is AbortReason.TIME_LIMIT
    print('✓ test_time_budget_is_respected passed')


def test_depth_budget_aborts_depth_first():
    """Test that depth-first search aborts when it would go deeper than allowed."""
    config = SearchConfig(max_search_depth=2)
    _, outcome = solve(school_problem(), config)
    assert isinstance(outcome, Aborted)
    assert outcome.reason is AbortReason.DEPTH_LIMIT
    print('✓ test_depth_budget_aborts_depth_first passed')


def test_depth_limited_search_reports_cutoff():
    """Test that a depth cutoff without a solution is Aborted, not Infeasible."""
    config = SearchConfig(search_strategy=SearchStrategy.DEPTH_LIMITED, max_search_depth=3)
    _, outcome = solve(school_problem(), config)
    assert isinstance(outcome, Aborted)
    assert outcome.reason is AbortReason.DEPTH_LIMIT
    print('✓ test_depth_limited_search_reports_cutoff passed')


def test_budget_after_first_solution_keeps_it():
    """Test that a budget hit after a solution is still Feasible, marked non-exhaustive."""
    config = CONFIGS['plain'].with_changes(max_solutions=1000, max_nodes=60)
    _, outcome = solve(school_problem(), config)
    assert isinstance(outcome, Feasible)
    assert not outcome.exhaustive
    assert 1 <= len(outcome.solutions) < 1000
    print('✓ test_budget_after_first_solution_keeps_it passed')


def test_backjumping_skips_irrelevant_levels():
    """
    Test conflict-directed backjumping.

    X is a free course placed first; the two courses of one teacher that
    follow cannot both be placed. Chronological backtracking retries every
    value of X, backjumping does not.
    """
    problem = ProblemData.from_records(
        courses=[
            {'id': 'X', 'hours_per_week': 1, 'teacher_id': 'TX', 'student_count': 5},
            {'id': 'A', 'hours_per_week': 1, 'teacher_id': 'T1', 'student_count': 5},
            {'id': 'B', 'hours_per_week': 1, 'teacher_id': 'T1', 'student_count': 5},
        ],
        teachers=[
            {'id': 'TX', 'unavailable_slot_ids': 'MON-1'},
            {'id': 'T1', 'unavailable_slot_ids': 'MON-2;MON-3'},
        ],
        rooms=[{'id': 'R1', 'capacity': 10}, {'id': 'R2', 'capacity': 10}],
        time_slots=slots('MON-1', 'MON-2', 'MON-3'),
    )
    base = CONFIGS['plain']
    _, chronological = solve(problem, base)
    _, jumping = solve(problem, base.with_changes(enable_backjumping=True))

    assert isinstance(chronological, Infeasible) and isinstance(jumping, Infeasible)
    assert jumping.statistics.backjumps >= 1
    assert jumping.statistics.nodes_visited < chronological.statistics.nodes_visited
    print('✓ test_backjumping_skips_irrelevant_levels passed')


def test_learning_records_nogoods():
    """Test that exhausted conflict sets are learned and reused."""
    config = CONFIGS['plain'].with_changes(enable_learning=True)
    search, outcome = solve(pigeonhole_problem(courses=4, periods=3), config)
    assert isinstance(outcome, Infeasible)
    assert outcome.statistics.learned_clauses >= 1
    assert len(search.nogoods) <= config.max_learned_clauses
    print('✓ test_learning_records_nogoods passed')


def test_learning_with_full_store_stays_complete():
    """Test that evicting nogoods from a one-clause store keeps the proof of infeasibility."""
    config = CONFIGS['plain'].with_changes(enable_learning=True, max_learned_clauses=1)
    search, outcome = solve(pigeonhole_problem(courses=4, periods=3), config)
    assert isinstance(outcome, Infeasible)
    assert outcome.statistics.learned_clauses >= 2, 'Several distinct clauses pass through the store'
    assert len(search.nogoods) == 1
    print('✓ test_learning_with_full_store_stays_complete passed')


def test_restarts_keep_search_complete():
    """Test that restarts happen and the search still proves infeasibility."""
    _, outcome = solve(pigeonhole_problem(courses=4, periods=3), CONFIGS['restart'])
    assert isinstance(outcome, Infeasible)
    assert outcome.statistics.restarts >= 1
    print('✓ test_restarts_keep_search_complete passed')


def test_statistics_are_consistent():
    """Test the relations between the statistics counters."""
    _, outcome = solve(pigeonhole_problem(courses=5, periods=4), CONFIGS['plain'])
    stats = outcome.statistics
    assert stats.failures == (stats.consistency_check_failures
                              + stats.constraint_propagation_failures + stats.nogood_prunes)
    assert stats.assignments_tried >= stats.nodes_visited - 1
    assert stats.max_depth_reached == 4, 'Only four of five courses can ever be placed'
    assert stats.elapsed_seconds >= 0
    print('✓ test_statistics_are_consistent passed')


def test_invalid_config_rejected_before_search():
    """Test that a bad config raises instead of searching."""
    instance = build_instance(school_problem())
    with pytest.raises(ConfigurationError):
        BacktrackingSearch(instance, SearchConfig(max_nodes=-5))
    print('✓ test_invalid_config_rejected_before_search passed')


def test_scenario_feasible():
    """Test that M1 and M2 share their slot in different rooms while M3 uses R3."""
    _, outcome = solve(scenario_problem())
    assert isinstance(outcome, Feasible)
    rows = {a.course_id: a for a in outcome.assignments}
    assert rows['M1'].time_slot_id == rows['M2'].time_slot_id == 'S-1'
    assert rows['M1'].room_id != rows['M2'].room_id
    assert (rows['M3'].time_slot_id, rows['M3'].room_id) == ('S-2', 'R3')
    print('✓ test_scenario_feasible passed')


@pytest.mark.parametrize('problem', [single_room_problem, lambda: scenario_problem(shared_teacher=True)])
def test_scenario_infeasible_variants(problem):
    """Test the forced-clash variants of the scenario."""
    _, outcome = solve(problem(), CONFIGS['plain'])
    assert isinstance(outcome, Infeasible)
    print('✓ test_scenario_infeasible_variants passed')


def test_breadth_first_search():
    """Test breadth-first search on the scenario and on an unsatisfiable problem."""
    search, outcome = solve(scenario_problem(), BREADTH_FIRST)
    assert isinstance(outcome, Feasible)
    assert replay(search, outcome) == []
    assert outcome.statistics.max_depth_reached == 3

    _, outcome = solve(pigeonhole_problem(courses=4, periods=3), BREADTH_FIRST)
    assert isinstance(outcome, Infeasible)
    print('✓ test_breadth_first_search passed')
