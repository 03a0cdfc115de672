#!/usr/bin/env python3
"""
Tests for the soft constraints and the scheduling outcome helpers.
"""

import pytest

from timetable_csp.catalog import (
    HARD_CONSTRAINTS,
    BreakSpacing,
    ConstraintCatalog,
    Continuity,
    CourseSpread,
    RoomCapacityFit,
    SoftConstraint,
    TeacherPreference,
)
from timetable_csp.results import CourseAssignment, ScheduleChromosome, to_dataframe

from sample_problems import school_problem


def row(course_id, hour, teacher_id, room_id, slot_id):
    return CourseAssignment(course_id, hour, teacher_id, room_id, slot_id)


def test_hard_constraint_names():
    """Test that the fixed hard constraints are listed."""
    assert set(HARD_CONSTRAINTS) == {'teacher_conflict', 'room_conflict', 'class_conflict', 'room_capacity'}
    print('✓ test_hard_constraint_names passed')


def test_teacher_preference():
    """Test the penalty for hours outside preferred slots."""
    problem = school_problem()
    assignments = [
        row('MATH-7A', 0, 'T1', 'R1', 'MON-1'),
        row('MATH-7A', 1, 'T1', 'R1', 'MON-2'),
        row('ART-7B', 0, 'T3', 'R2', 'MON-3'),
    ]
    # T1 prefers MON-1 and TUE-1; T3 has no preferences
    assert TeacherPreference().penalty(assignments, problem) == 1.0
    print('✓ test_teacher_preference passed')


def test_course_spread():
    """Test the penalty for repeating a course on one day."""
    problem = school_problem()
    same_day = [row('MATH-7A', 0, 'T1', 'R1', 'MON-1'), row('MATH-7A', 1, 'T1', 'R1', 'MON-2')]
    spread = [row('MATH-7A', 0, 'T1', 'R1', 'MON-1'), row('MATH-7A', 1, 'T1', 'R1', 'TUE-1')]
    assert CourseSpread().penalty(same_day, problem) == 1.0
    assert CourseSpread().penalty(spread, problem) == 0.0
    print('✓ test_course_spread passed')


def test_room_capacity_fit():
    """Test the empty-seat fraction."""
    problem = school_problem()
    # 25 students in a 40 seat room
    cost = RoomCapacityFit().penalty([row('MATH-7A', 0, 'T1', 'R2', 'MON-1')], problem)
    assert cost == pytest.approx(15 / 40)
    print('✓ test_room_capacity_fit passed')


def test_continuity():
    """Test the penalty for idle periods in a class's day."""
    problem = school_problem()
    gap = [row('MATH-7A', 0, 'T1', 'R1', 'MON-1'), row('ENG-7A', 0, 'T2', 'R1', 'MON-3')]
    assert Continuity().penalty(gap, problem) == 1.0
    print('✓ test_continuity passed')


def test_break_spacing():
    """Test the penalty for long runs of consecutive periods."""
    problem = school_problem()
    run = [
        row('MATH-7A', 0, 'T1', 'R1', 'MON-1'),
        row('MATH-7A', 1, 'T1', 'R1', 'MON-2'),
        row('SCI-7B', 0, 'T1', 'R2', 'MON-3'),
    ]
    assert BreakSpacing(max_consecutive=2).penalty(run, problem) == 1.0
    assert BreakSpacing(max_consecutive=3).penalty(run, problem) == 0.0
    print('✓ test_break_spacing passed')


def test_catalog_weights_and_breakdown():
    """Test the weighted soft cost and disabled constraints."""
    problem = school_problem()
    assignments = [row('MATH-7A', 0, 'T1', 'R1', 'MON-2'), row('MATH-7A', 1, 'T1', 'R1', 'MON-3')]
    catalog = ConstraintCatalog.default()
    breakdown = catalog.breakdown(assignments, problem)
    assert breakdown['Teacher preferred time slots'] == pytest.approx(0.8 * 2)
    assert catalog.soft_cost(assignments, problem) == pytest.approx(sum(breakdown.values()))

    for constraint in catalog.soft_constraints:
        constraint.enabled = False
    assert catalog.soft_cost(assignments, problem) == 0
    print('✓ test_catalog_weights_and_breakdown passed')


def test_catalog_rejects_non_constraints():
    """Test type and weight validation."""
    with pytest.raises(TypeError):
        ConstraintCatalog().add_soft_constraint('not a constraint')
    with pytest.raises(ValueError):
        TeacherPreference(weight=1.5)
    print('✓ test_catalog_rejects_non_constraints passed')


def test_custom_soft_constraint():
    """Test that user-defined soft constraints plug into the catalog."""

    class AvoidRoom(SoftConstraint):
        def __init__(self, room_id):
            super().__init__(name=f"Avoid {room_id}", weight=1.0)
            self.room_id = room_id

        def penalty(self, assignments, problem):
            return float(sum(1 for a in assignments if a.room_id == self.room_id))

    catalog = ConstraintCatalog([AvoidRoom('R1')])
    cost = catalog.soft_cost([row('ART-7B', 0, 'T3', 'R1', 'MON-1')], school_problem())
    assert cost == 1.0
    print('✓ test_custom_soft_constraint passed')


def test_chromosome_and_dataframe():
    """Test the gene map and the exported table."""
    problem = school_problem()
    assignments = [row('MATH-7A', 0, 'T1', 'R1', 'MON-1'), row('ART-7B', 0, 'T3', 'R2', 'TUE-2')]
    chromosome = ScheduleChromosome.from_assignments(assignments, soft_cost=1.0)
    assert set(chromosome.genes) == {('MATH-7A', 0), ('ART-7B', 0)}
    assert chromosome.fitness == pytest.approx(0.5)
    assert chromosome.constraint_violations == 0

    df = to_dataframe(assignments, problem)
    assert list(df['Day']) == ['MON', 'TUE']
    assert list(df['Classes']) == ['7A', '7B']
    print('✓ test_chromosome_and_dataframe passed')
