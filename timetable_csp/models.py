#!/usr/bin/env python3
"""
Data models for the timetabling problem.

The domain records (Course, Teacher, Room, TimeSlot) are the read-only
problem facts. Variable and Value are the CSP view of the same problem:
one Variable per required weekly hour of a course, and one Value per
candidate (time slot, room, teacher) combination.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from .utils import parse_flag, split_ids


@dataclass(frozen=True)
class Course:
    id: str
    hours_per_week: int
    teacher_id: str
    student_count: int
    class_ids: Tuple[str, ...] = ()
    name: str = ''


@dataclass(frozen=True)
class Teacher:
    id: str
    max_hours_per_week: int = 16
    unavailable_slot_ids: frozenset = frozenset()
    preferred_slot_ids: frozenset = frozenset()
    name: str = ''


@dataclass(frozen=True)
class Room:
    id: str
    capacity: int
    available: bool = True
    name: str = ''


@dataclass(frozen=True)
class TimeSlot:
    id: str
    day: str
    period: int
    available: bool = True


@dataclass(frozen=True, eq=False)
class Variable:
    """One required hour of a course. Built once per run; compared by identity."""
    id: str
    index: int
    course_id: str
    hour: int
    teacher_id: str
    student_count: int
    class_ids: Tuple[str, ...] = ()

    def __repr__(self):
        return f"Variable({self.id})"


@dataclass(frozen=True, order=True)
class Value:
    """A candidate placement for a Variable. Equality is structural."""
    time_slot_id: str
    room_id: str
    teacher_id: str

    def __repr__(self):
        return f"Value({self.time_slot_id}, {self.room_id}, {self.teacher_id})"


@dataclass(frozen=True)
class ProblemData:
    """
    Immutable bundle of the problem facts.

    Indexes by id are built once in __post_init__ so lookups from the
    checker and the soft constraints stay cheap.
    """
    courses: Tuple[Course, ...]
    teachers: Tuple[Teacher, ...]
    rooms: Tuple[Room, ...]
    time_slots: Tuple[TimeSlot, ...]
    course_index: Dict[str, Course] = field(init=False, repr=False, compare=False)
    teacher_index: Dict[str, Teacher] = field(init=False, repr=False, compare=False)
    room_index: Dict[str, Room] = field(init=False, repr=False, compare=False)
    slot_index: Dict[str, TimeSlot] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        for attr in ('courses', 'teachers', 'rooms', 'time_slots'):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))
        object.__setattr__(self, 'course_index', _index(self.courses, 'course'))
        object.__setattr__(self, 'teacher_index', _index(self.teachers, 'teacher'))
        object.__setattr__(self, 'room_index', _index(self.rooms, 'room'))
        object.__setattr__(self, 'slot_index', _index(self.time_slots, 'time slot'))

    def course(self, course_id: str) -> Course:
        return self.course_index[course_id]

    def teacher(self, teacher_id: str) -> Optional[Teacher]:
        return self.teacher_index.get(teacher_id)

    def room(self, room_id: str) -> Room:
        return self.room_index[room_id]

    def slot(self, slot_id: str) -> TimeSlot:
        return self.slot_index[slot_id]

    @property
    def total_hours(self) -> int:
        """Number of course-hours to place, i.e. the number of CSP variables."""
        return sum(c.hours_per_week for c in self.courses)

    @classmethod
    def from_records(
        cls,
        courses: Iterable[dict],
        teachers: Iterable[dict],
        rooms: Iterable[dict],
        time_slots: Iterable[dict],
    ) -> 'ProblemData':
        """
        Build problem data from plain dictionaries.

        Keys follow the dataclass field names. List-valued fields may be
        given as lists or ';'-separated strings.

        Example:
            ProblemData.from_records(
                courses=[{'id': 'MATH', 'hours_per_week': 2, 'teacher_id': 'T1',
                          'student_count': 30, 'class_ids': ['7A']}],
                teachers=[{'id': 'T1'}],
                rooms=[{'id': 'R1', 'capacity': 40}],
                time_slots=[{'id': 'MON-1', 'day': 'MON', 'period': 1}],
            )
        """
        return cls(
            courses=tuple(
                Course(
                    id=str(c['id']),
                    hours_per_week=int(c.get('hours_per_week', 1)),
                    teacher_id=str(c['teacher_id']),
                    student_count=int(c.get('student_count', 0)),
                    class_ids=split_ids(c.get('class_ids')),
                    name=c.get('name', ''),
                )
                for c in courses
            ),
            teachers=tuple(
                Teacher(
                    id=str(t['id']),
                    max_hours_per_week=int(t.get('max_hours_per_week', 16)),
                    unavailable_slot_ids=frozenset(split_ids(t.get('unavailable_slot_ids'))),
                    preferred_slot_ids=frozenset(split_ids(t.get('preferred_slot_ids'))),
                    name=t.get('name', ''),
                )
                for t in teachers
            ),
            rooms=tuple(
                Room(
                    id=str(r['id']),
                    capacity=int(r['capacity']),
                    available=parse_flag(r.get('available')),
                    name=r.get('name', ''),
                )
                for r in rooms
            ),
            time_slots=tuple(
                TimeSlot(
                    id=str(s['id']),
                    day=str(s['day']),
                    period=int(s['period']),
                    available=parse_flag(s.get('available')),
                )
                for s in time_slots
            ),
        )


def _index(records, kind):
    index = {}
    for record in records:
        if record.id in index:
            raise ValueError(f"Duplicate {kind} id: {record.id}")
        index[record.id] = record
    return index
