#!/usr/bin/env python3
"""
Constraint catalog: the fixed hard constraints and the weighted soft ones.

Hard constraints decide feasibility and are enforced by the constraint
checker. Soft constraints never prune the search; they only rank complete
solutions when more than one is requested.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional


HARD_CONSTRAINTS = {
    'teacher_conflict': 'A teacher cannot teach two course-hours in the same time slot',
    'room_conflict': 'A room cannot host two course-hours in the same time slot',
    'class_conflict': 'A class cannot attend two course-hours in the same time slot',
    'room_capacity': 'Room capacity must cover the course student count',
}


class SoftConstraint(ABC):
    """
    Abstract base class for soft constraints.

    Each soft constraint has:
    - A name for logging/debugging
    - A weight in [0, 1] applied to its penalty
    - A penalty() method scoring a complete list of assignments (lower is better)
    """

    def __init__(self, name: str, weight: float = 1.0, enabled: bool = True):
        """
        Args:
            name: Human-readable name for this constraint
            weight: Multiplier applied to the raw penalty, between 0.0 and 1.0
            enabled: Disabled constraints contribute nothing to the soft cost
        """
        self.name = name
        self.weight = weight
        self.enabled = enabled

        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"weight must be between 0 and 1, got {weight}")

    @abstractmethod
    def penalty(self, assignments: Iterable, problem) -> float:
        """
        Score a complete schedule.

        Args:
            assignments: CourseAssignment rows (course_id, teacher_id,
                         room_id, time_slot_id)
            problem: ProblemData the assignments were built from

        Returns:
            Non-negative raw penalty, before weighting
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', weight={self.weight}, enabled={self.enabled})"


class TeacherPreference(SoftConstraint):
    """Penalize hours placed outside the teacher's preferred time slots."""

    def __init__(self, weight: float = 0.8):
        super().__init__(name="Teacher preferred time slots", weight=weight)

    def penalty(self, assignments, problem):
        cost = 0
        for a in assignments:
            teacher = problem.teacher(a.teacher_id)
            # Teachers without preferences are happy anywhere
            if teacher is None or not teacher.preferred_slot_ids:
                continue
            if a.time_slot_id not in teacher.preferred_slot_ids:
                cost += 1
        return float(cost)


class CourseSpread(SoftConstraint):
    """Penalize several hours of the same course on the same day."""

    def __init__(self, weight: float = 0.6):
        super().__init__(name="Course hours spread over the week", weight=weight)

    def penalty(self, assignments, problem):
        course_day_count = defaultdict(lambda: defaultdict(int))
        for a in assignments:
            day = problem.slot(a.time_slot_id).day
            course_day_count[a.course_id][day] += 1

        cost = 0
        for days in course_day_count.values():
            for count in days.values():
                if count > 1:
                    cost += count - 1
        return float(cost)


class RoomCapacityFit(SoftConstraint):
    """Penalize rooms much larger than the class using them (fraction of empty seats)."""

    def __init__(self, weight: float = 0.4):
        super().__init__(name="Room capacity fit", weight=weight)

    def penalty(self, assignments, problem):
        cost = 0.0
        for a in assignments:
            room = problem.room(a.room_id)
            if room.capacity <= 0:
                continue
            students = problem.course(a.course_id).student_count
            cost += max(room.capacity - students, 0) / room.capacity
        return cost


class Continuity(SoftConstraint):
    """Penalize idle periods between the lessons of a class on one day."""

    def __init__(self, weight: float = 0.3):
        super().__init__(name="Class timetable continuity", weight=weight)

    def penalty(self, assignments, problem):
        periods = defaultdict(list)
        for a in assignments:
            slot = problem.slot(a.time_slot_id)
            for class_id in problem.course(a.course_id).class_ids:
                periods[(class_id, slot.day)].append(slot.period)

        cost = 0
        for taken in periods.values():
            taken = sorted(set(taken))
            # Gaps between first and last lesson
            cost += (taken[-1] - taken[0] + 1) - len(taken)
        return float(cost)


class BreakSpacing(SoftConstraint):
    """Penalize teachers teaching more than max_consecutive periods without a break."""

    def __init__(self, max_consecutive: int = 2, weight: float = 0.3):
        self.max_consecutive = max_consecutive
        super().__init__(
            name=f"Teacher break after {max_consecutive} consecutive periods",
            weight=weight
        )

    def penalty(self, assignments, problem):
        periods = defaultdict(set)
        for a in assignments:
            slot = problem.slot(a.time_slot_id)
            periods[(a.teacher_id, slot.day)].add(slot.period)

        cost = 0
        for taken in periods.values():
            run = 0
            previous = None
            for period in sorted(taken):
                run = run + 1 if previous is not None and period == previous + 1 else 1
                if run > self.max_consecutive:
                    cost += 1
                previous = period
        return float(cost)


class ConstraintCatalog:
    """Named hard constraints plus the weighted soft constraints used for ranking."""

    def __init__(self, soft_constraints: Optional[List[SoftConstraint]] = None):
        self.hard_constraints = dict(HARD_CONSTRAINTS)
        self.soft_constraints = []
        for constraint in soft_constraints or []:
            self.add_soft_constraint(constraint)

    @classmethod
    def default(cls) -> 'ConstraintCatalog':
        return cls([
            TeacherPreference(),
            CourseSpread(),
            RoomCapacityFit(),
            Continuity(),
            BreakSpacing(),
        ])

    def add_soft_constraint(self, constraint: SoftConstraint):
        if not isinstance(constraint, SoftConstraint):
            raise TypeError(f"Expected SoftConstraint instance, got {type(constraint).__name__}")
        self.soft_constraints.append(constraint)

    def breakdown(self, assignments, problem) -> Dict[str, float]:
        """Weighted penalty per enabled soft constraint."""
        assignments = list(assignments)
        return {
            c.name: c.weight * c.penalty(assignments, problem)
            for c in self.soft_constraints
            if c.enabled
        }

    def soft_cost(self, assignments, problem) -> float:
        return sum(self.breakdown(assignments, problem).values())
