#!/usr/bin/env python3
"""
Build CSP variables and their initial domains from the problem data.

The domain filter is local: a value is admissible when the slot is
available, the room is available and big enough, and the teacher is not
blocked in that slot. No reasoning across variables happens here.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from .exceptions import BuildError
from .logger import get_logger
from .models import ProblemData, Value, Variable

log = get_logger('builder')


@dataclass(frozen=True)
class CSPInstance:
    """Variables, initial domains and the static neighbour graph of one problem."""
    problem: ProblemData
    variables: Tuple[Variable, ...]
    domains: Dict[Variable, Tuple[Value, ...]]
    neighbors: Dict[Variable, FrozenSet[Variable]]

    def constraint_count(self, variable: Variable) -> int:
        return len(self.neighbors[variable])


def build_variables(problem: ProblemData) -> List[Variable]:
    """One variable per required weekly hour, in course input order."""
    variables = []
    for course in problem.courses:
        for hour in range(course.hours_per_week):
            variables.append(Variable(
                id=f"{course.id}#{hour}",
                index=len(variables),
                course_id=course.id,
                hour=hour,
                teacher_id=course.teacher_id,
                student_count=course.student_count,
                class_ids=tuple(course.class_ids),
            ))
    return variables


def build_domains(problem: ProblemData, variables: List[Variable]) -> Dict[Variable, Tuple[Value, ...]]:
    """
    Locally admissible values for every variable.

    Values are ordered by time slot, then room, following input order.

    Raises:
        BuildError: if a course names an unknown teacher, or a variable
                    has no admissible value at all
    """
    open_slots = [s for s in problem.time_slots if s.available]
    open_rooms = [r for r in problem.rooms if r.available]

    domains = {}
    for v in variables:
        teacher = problem.teacher(v.teacher_id)
        if teacher is None:
            raise BuildError(
                f"Course {v.course_id} is taught by unknown teacher {v.teacher_id}",
                variable=v
            )

        rooms = [r for r in open_rooms if r.capacity >= v.student_count]
        domain = tuple(
            Value(slot.id, room.id, teacher.id)
            for slot in open_slots
            if slot.id not in teacher.unavailable_slot_ids
            for room in rooms
        )
        if not domain:
            raise BuildError(
                f"Variable {v.id} has no admissible (slot, room) combination: "
                f"{len(rooms)} room(s) fit {v.student_count} students, "
                f"{len(open_slots)} open slot(s), teacher {teacher.id} blocked in "
                f"{len(teacher.unavailable_slot_ids)}",
                variable=v
            )
        domains[v] = domain
    return domains


def build_neighbors(variables: List[Variable], domains) -> Dict[Variable, FrozenSet[Variable]]:
    """
    Variables related by a hard constraint.

    Two variables are neighbours when they share a teacher, share a class,
    or could be placed in the same room (their initial domains share one).
    """
    by_teacher = defaultdict(set)
    by_class = defaultdict(set)
    by_room = defaultdict(set)
    for v in variables:
        by_teacher[v.teacher_id].add(v)
        for class_id in v.class_ids:
            by_class[class_id].add(v)
        for room_id in {val.room_id for val in domains[v]}:
            by_room[room_id].add(v)

    neighbors = {v: set() for v in variables}
    for group in (*by_teacher.values(), *by_class.values(), *by_room.values()):
        for v in group:
            neighbors[v] |= group
    return {v: frozenset(n - {v}) for v, n in neighbors.items()}


def build_instance(problem: ProblemData) -> CSPInstance:
    """Build variables, domains and neighbours; log teachers over their weekly cap."""
    variables = build_variables(problem)
    domains = build_domains(problem, variables)
    neighbors = build_neighbors(variables, domains)

    hours = defaultdict(int)
    for v in variables:
        hours[v.teacher_id] += 1
    for teacher_id, count in hours.items():
        cap = problem.teacher(teacher_id).max_hours_per_week
        if count > cap:
            log.warning(f"Teacher {teacher_id} needs {count} hours but is capped at {cap}")

    log.info(
        f"Built {len(variables)} variables, "
        f"{sum(len(d) for d in domains.values())} candidate values"
    )
    return CSPInstance(
        problem=problem,
        variables=tuple(variables),
        domains=domains,
        neighbors=neighbors,
    )
