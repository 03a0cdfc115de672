#!/usr/bin/env python3
"""
Tests for the BacktrackingScheduler facade and the command line entry point.
"""

import pandas as pd
import pytest

from timetable_csp.config import SearchConfig
from timetable_csp.exceptions import BuildError, ConfigurationError
from timetable_csp.models import ProblemData
from timetable_csp.results import Feasible, Infeasible
from timetable_csp.scheduler import BacktrackingScheduler, Scheduler, main

from sample_problems import scenario_problem, school_problem, slots


def write_tables(directory):
    (directory / 'courses.csv').write_text(
        "Course,Name,Hours,Instructor,Enrollment,Classes\n"
        "M1,Maths,1,T1,30,\n"
        "M2,Music,1,T2,30,\n"
        "M3,Mechanics,1,T3,50,\n"
    )
    (directory / 'instructors.csv').write_text(
        "Instructor,Unavailable\n"
        "T1,S-2\n"
        "T2,S-2\n"
        "T3,S-1\n"
    )
    (directory / 'rooms.csv').write_text(
        "Room,Capacity\n"
        "R1,40\n"
        "R2,40\n"
        "R3,60\n"
    )
    (directory / 'time_slots.csv').write_text(
        "Slot,Day,Period\n"
        "S-1,S,1\n"
        "S-2,S,2\n"
    )


def test_scheduler_is_a_scheduler():
    """Test the common interface."""
    assert issubclass(BacktrackingScheduler, Scheduler)
    print('✓ test_scheduler_is_a_scheduler passed')


def test_run_builds_schedule_dataframe():
    """Test that a feasible run produces a schedule table."""
    scheduler = BacktrackingScheduler(school_problem(), SearchConfig(seed=1))
    outcome = scheduler.run()
    assert isinstance(outcome, Feasible)
    assert isinstance(scheduler.schedule, pd.DataFrame)
    assert len(scheduler.schedule) == 6
    assert list(scheduler.schedule.columns[:4]) == ['Course', 'Name', 'Hour', 'Instructor']
    assert scheduler.schedule['Valid'].all()
    print('✓ test_run_builds_schedule_dataframe passed')


def test_infeasible_run_has_no_schedule(capsys):
    """Test that an infeasible run leaves no schedule and says why."""
    scheduler = BacktrackingScheduler(scenario_problem(shared_teacher=True))
    outcome = scheduler.run()
    assert isinstance(outcome, Infeasible)
    assert scheduler.schedule is None

    scheduler.display_schedule()
    assert 'infeasible' in capsys.readouterr().out
    print('✓ test_infeasible_run_has_no_schedule passed')


def test_build_error_propagates():
    """Test that an empty domain is raised before any search."""
    problem = ProblemData.from_records(
        courses=[{'id': 'BIG', 'hours_per_week': 1, 'teacher_id': 'T1', 'student_count': 99}],
        teachers=[{'id': 'T1'}],
        rooms=[{'id': 'R1', 'capacity': 10}],
        time_slots=slots('MON-1'),
    )
    with pytest.raises(BuildError):
        BacktrackingScheduler(problem).run()
    print('✓ test_build_error_propagates passed')


def test_invalid_config_reported_before_build():
    """Test that a bad config is reported even when the problem itself cannot be built."""
    problem = ProblemData.from_records(
        courses=[{'id': 'BIG', 'hours_per_week': 1, 'teacher_id': 'T1', 'student_count': 99}],
        teachers=[{'id': 'T1'}],
        rooms=[{'id': 'R1', 'capacity': 10}],
        time_slots=slots('MON-1'),
    )
    scheduler = BacktrackingScheduler(problem, SearchConfig(max_nodes=0))
    with pytest.raises(ConfigurationError, match='max_nodes'):
        scheduler.run()
    assert scheduler.outcome is None
    print('✓ test_invalid_config_reported_before_build passed')


def test_feasible_outcome_as_chromosome():
    """Test converting a found schedule into the gene map shape."""
    problem = school_problem()
    outcome = BacktrackingScheduler(problem).run()
    assert isinstance(outcome, Feasible)

    chromosome = outcome.to_chromosome()
    assert len(chromosome.genes) == problem.total_hours
    assert chromosome.constraint_violations == 0
    assert chromosome.fitness == pytest.approx(1.0 / (1.0 + outcome.soft_cost))
    for course in problem.courses:
        for hour in range(course.hours_per_week):
            assert chromosome.genes[(course.id, hour)].valid
    print('✓ test_feasible_outcome_as_chromosome passed')


def test_from_csv_and_save(tmp_path):
    """Test loading a directory of tables and saving the schedule."""
    write_tables(tmp_path)
    scheduler = BacktrackingScheduler.from_csv(str(tmp_path))
    outcome = scheduler.run()
    assert isinstance(outcome, Feasible)

    output = tmp_path / 'out' / 'schedule.csv'
    scheduler.save_schedule(str(output))
    saved = pd.read_csv(output)
    rows = saved.set_index('Course')
    assert rows.loc['M3', 'Room'] == 'R3'
    assert rows.loc['M1', 'Slot'] == rows.loc['M2', 'Slot'] == 'S-1'
    assert rows.loc['M1', 'Room'] != rows.loc['M2', 'Room']
    print('✓ test_from_csv_and_save passed')


def test_save_without_schedule_writes_nothing(tmp_path):
    """Test that saving before a successful run does not create a file."""
    scheduler = BacktrackingScheduler(school_problem())
    output = tmp_path / 'schedule.csv'
    scheduler.save_schedule(str(output))
    assert not output.exists()
    print('✓ test_save_without_schedule_writes_nothing passed')


def test_main_writes_schedule(tmp_path):
    """Test the command line entry point end to end."""
    write_tables(tmp_path)
    config = tmp_path / 'search.toml'
    config.write_text('[search]\npropagation_type = "ac4"\nseed = 5\n')
    output = tmp_path / 'result.csv'

    status = main([str(tmp_path), '--config', str(config), '--output', str(output)])
    assert status == 0
    assert output.exists()

    status = main([str(tmp_path), '--mode', 'fast', '--output', str(output)])
    assert status == 0
    print('✓ test_main_writes_schedule passed')
