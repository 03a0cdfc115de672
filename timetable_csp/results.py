#!/usr/bin/env python3
"""
Scheduling outcomes and the shared assignment-list representation.

Whatever solver produced a schedule, its result is a list of
CourseAssignment rows (course, hour, teacher, room, time slot, valid flag).
This module turns a complete CSP assignment into that list, wraps it in a
SchedulingOutcome, and exports it as a pandas DataFrame.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Tuple

import pandas as pd

from .models import ProblemData, Value, Variable
from .state import SearchStatistics


@dataclass(frozen=True)
class CourseAssignment:
    course_id: str
    hour: int
    teacher_id: str
    room_id: str
    time_slot_id: str
    valid: bool = True


@dataclass
class ScheduleChromosome:
    """Gene map keyed by (course_id, hour), the shape population solvers also produce."""
    genes: Dict[Tuple[str, int], CourseAssignment] = field(default_factory=dict)
    fitness: float = 0.0
    constraint_violations: int = 0

    @classmethod
    def from_assignments(cls, assignments: List[CourseAssignment], soft_cost: float = 0.0) -> 'ScheduleChromosome':
        violations = sum(1 for a in assignments if not a.valid)
        return cls(
            genes={(a.course_id, a.hour): a for a in assignments},
            fitness=1.0 / (1.0 + soft_cost + violations),
            constraint_violations=violations,
        )

    def assignments(self) -> List[CourseAssignment]:
        return list(self.genes.values())


class AbortReason(Enum):
    TIME_LIMIT = 'time limit exceeded'
    DEPTH_LIMIT = 'depth limit exceeded'
    NODE_LIMIT = 'node limit exceeded'
    FAILURE_LIMIT = 'failure limit exceeded'


@dataclass
class SchedulingOutcome:
    """Base class for the three possible results of Scheduler.run()."""
    statistics: SearchStatistics
    status: ClassVar[str] = 'unknown'

    @property
    def is_feasible(self) -> bool:
        return False


@dataclass
class Feasible(SchedulingOutcome):
    """
    At least one complete, consistent schedule was found.

    assignments is the best-ranked solution; solutions holds every solution
    found, best first. exhaustive is False when a budget cut the
    enumeration short after the first solution.
    """
    assignments: List[CourseAssignment] = field(default_factory=list)
    solutions: List[List[CourseAssignment]] = field(default_factory=list)
    soft_cost: float = 0.0
    exhaustive: bool = True
    status: ClassVar[str] = 'feasible'

    @property
    def is_feasible(self) -> bool:
        return True

    def to_chromosome(self) -> ScheduleChromosome:
        return ScheduleChromosome.from_assignments(self.assignments, self.soft_cost)


@dataclass
class Infeasible(SchedulingOutcome):
    """The whole search space was explored without a solution: a proof of infeasibility."""
    status: ClassVar[str] = 'infeasible'


@dataclass
class Aborted(SchedulingOutcome):
    """A budget ran out before any solution was found. Feasibility is unknown."""
    reason: AbortReason = AbortReason.TIME_LIMIT
    status: ClassVar[str] = 'aborted'


def materialize(assignment: Dict[Variable, Value], checker) -> List[CourseAssignment]:
    """
    Convert a complete assignment into CourseAssignment rows, in variable order.

    Each row's valid flag is recomputed by replaying the hard constraints
    against every other row.
    """
    items = sorted(assignment.items(), key=lambda item: item[0].index)
    rows = []
    for var, val in items:
        valid = checker.fits_room(var, val) and not any(
            checker.conflicts(var, val, other, other_val)
            for other, other_val in items
            if other is not var
        )
        rows.append(CourseAssignment(
            course_id=var.course_id,
            hour=var.hour,
            teacher_id=val.teacher_id,
            room_id=val.room_id,
            time_slot_id=val.time_slot_id,
            valid=valid,
        ))
    return rows


def to_dataframe(assignments: List[CourseAssignment], problem: ProblemData) -> pd.DataFrame:
    """Schedule rows joined with course, room and slot details."""
    schedule_data = []
    for a in assignments:
        course = problem.course(a.course_id)
        slot = problem.slot(a.time_slot_id)
        schedule_data.append({
            'Course': a.course_id,
            'Name': course.name,
            'Hour': a.hour,
            'Instructor': a.teacher_id,
            'Room': a.room_id,
            'Slot': a.time_slot_id,
            'Day': slot.day,
            'Period': slot.period,
            'Enrollment': course.student_count,
            'Classes': ';'.join(course.class_ids),
            'Valid': a.valid,
        })
    columns = ['Course', 'Name', 'Hour', 'Instructor', 'Room', 'Slot',
               'Day', 'Period', 'Enrollment', 'Classes', 'Valid']
    return pd.DataFrame(schedule_data, columns=columns)


def save_schedule(schedule: pd.DataFrame, filename: str = 'schedule.csv'):
    """Save a schedule DataFrame to CSV, creating the parent directory if needed."""
    dirname = os.path.dirname(filename)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    schedule.to_csv(filename, index=False)
