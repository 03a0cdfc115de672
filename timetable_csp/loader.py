#!/usr/bin/env python3
"""
Load timetabling input tables from CSV files.

Each table is read with pandas, checked for duplicate ids and missing
columns, and converted into the immutable records in models.py.
"""

import os
from typing import List, Optional

import pandas as pd

from .logger import get_logger
from .models import Course, ProblemData, Room, Teacher, TimeSlot
from .utils import parse_flag, parse_int, split_ids

log = get_logger('loader')

COURSE_COLUMNS = ['Course', 'Hours', 'Instructor', 'Enrollment']
INSTRUCTOR_COLUMNS = ['Instructor']
ROOM_COLUMNS = ['Room', 'Capacity']
TIME_SLOT_COLUMNS = ['Slot', 'Day', 'Period']


def _read_table(filename: str, id_column: str, required: List[str], kind: str) -> pd.DataFrame:
    df = pd.read_csv(filename)

    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{filename} is missing required column(s): {missing}")

    # Check for duplicate ids
    ids = df[id_column].astype(str)
    if len(ids) != len(ids.unique()):
        duplicates = ids[ids.duplicated()].unique()
        raise ValueError(f"Duplicate {kind} found: {list(duplicates)}")

    log.info(f"Loaded {len(df)} {kind} from {filename}")
    return df


def load_courses(filename: str = 'courses.csv') -> List[Course]:
    """Load course data from CSV file."""
    df = _read_table(filename, 'Course', COURSE_COLUMNS, 'courses')
    courses = []
    for _, row in df.iterrows():
        courses.append(Course(
            id=str(row['Course']),
            hours_per_week=parse_int(row['Hours'], default=1),
            teacher_id=str(row['Instructor']),
            student_count=parse_int(row['Enrollment']),
            class_ids=split_ids(row.get('Classes')),
            name=str(row['Name']) if pd.notna(row.get('Name')) else '',
        ))
    return courses


def load_instructors(filename: str = 'instructors.csv') -> List[Teacher]:
    """Load instructor data from CSV file."""
    df = _read_table(filename, 'Instructor', INSTRUCTOR_COLUMNS, 'instructors')
    teachers = []
    for _, row in df.iterrows():
        teachers.append(Teacher(
            id=str(row['Instructor']),
            max_hours_per_week=parse_int(row.get('Max Hours'), default=16),
            unavailable_slot_ids=frozenset(split_ids(row.get('Unavailable'))),
            preferred_slot_ids=frozenset(split_ids(row.get('Preferred'))),
            name=str(row['Name']) if pd.notna(row.get('Name')) else '',
        ))
    return teachers


def load_rooms(filename: str = 'rooms.csv') -> List[Room]:
    """Load room data from CSV file."""
    df = _read_table(filename, 'Room', ROOM_COLUMNS, 'rooms')
    rooms = []
    for _, row in df.iterrows():
        rooms.append(Room(
            id=str(row['Room']),
            capacity=parse_int(row['Capacity']),
            available=parse_flag(row.get('Available')),
            name=str(row['Name']) if pd.notna(row.get('Name')) else '',
        ))
    return rooms


def load_time_slots(filename: str = 'time_slots.csv') -> List[TimeSlot]:
    """Load time slot data from CSV file."""
    df = _read_table(filename, 'Slot', TIME_SLOT_COLUMNS, 'time slots')
    slots = []
    for _, row in df.iterrows():
        slots.append(TimeSlot(
            id=str(row['Slot']),
            day=str(row['Day']),
            period=parse_int(row['Period']),
            available=parse_flag(row.get('Available')),
        ))
    return slots


def load_problem(directory: str = '.', instructors_file: Optional[str] = None) -> ProblemData:
    """
    Load all four input tables from a directory.

    Args:
        directory: Folder holding courses.csv, rooms.csv, time_slots.csv and
                   instructors.csv
        instructors_file: Optional instructors table path. When the file does
                          not exist, instructors are derived from the
                          Instructor column of courses.csv with default
                          limits and no unavailability.

    Returns:
        ProblemData ready for the variable builder
    """
    courses = load_courses(os.path.join(directory, 'courses.csv'))
    rooms = load_rooms(os.path.join(directory, 'rooms.csv'))
    time_slots = load_time_slots(os.path.join(directory, 'time_slots.csv'))

    instructors_path = instructors_file or os.path.join(directory, 'instructors.csv')
    if os.path.exists(instructors_path):
        teachers = load_instructors(instructors_path)
    else:
        log.warning(f"{instructors_path} not found, using instructors listed in courses")
        seen = dict.fromkeys(c.teacher_id for c in courses)
        teachers = [Teacher(id=teacher_id) for teacher_id in seen]

    return ProblemData(courses=courses, teachers=teachers, rooms=rooms, time_slots=time_slots)
