#!/usr/bin/env python3
"""
Timetable scheduling with a backtracking constraint-satisfaction search.

Places every weekly hour of every course into a (time slot, room) pair so
that no teacher, room or class is double-booked and every room is large
enough. Soft preferences only rank the solutions found.
"""

import argparse
from abc import ABC, abstractmethod
from typing import Optional

from .builder import build_instance
from .catalog import ConstraintCatalog
from .config import PerformanceMode, SearchConfig
from .engine import BacktrackingSearch
from .loader import load_problem
from .logger import get_logger, set_verbose
from .models import ProblemData
from .results import Feasible, SchedulingOutcome, save_schedule, to_dataframe

log = get_logger('scheduler')


class Scheduler(ABC):
    """Anything that turns ProblemData into a SchedulingOutcome."""

    @abstractmethod
    def run(self) -> SchedulingOutcome:
        pass


class BacktrackingScheduler(Scheduler):
    def __init__(self, problem: ProblemData, config: Optional[SearchConfig] = None,
                 catalog: Optional[ConstraintCatalog] = None):
        """
        Initialize the backtracking scheduler.

        Args:
            problem: Courses, teachers, rooms and time slots to schedule
            config: Search configuration (defaults to SearchConfig())
            catalog: Soft constraints used to rank solutions
                     (defaults to ConstraintCatalog.default())
        """
        self.problem = problem
        self.config = config or SearchConfig()
        self.catalog = catalog if catalog is not None else ConstraintCatalog.default()
        self.outcome = None
        self.schedule = None

    @classmethod
    def from_csv(cls, directory: str = '.', config: Optional[SearchConfig] = None,
                 catalog: Optional[ConstraintCatalog] = None) -> 'BacktrackingScheduler':
        """Load courses.csv, instructors.csv, rooms.csv and time_slots.csv from directory."""
        return cls(load_problem(directory), config, catalog)

    def run(self) -> SchedulingOutcome:
        """
        Build the CSP and search it.

        Returns:
            Feasible, Infeasible or Aborted

        Raises:
            BuildError: if a course has no candidate (slot, room) pair
            ConfigurationError: if the config is invalid
        """
        self.config.validate()
        instance = build_instance(self.problem)
        search = BacktrackingSearch(instance, self.config, self.catalog)
        self.outcome = search.run()

        if isinstance(self.outcome, Feasible):
            self.schedule = to_dataframe(self.outcome.assignments, self.problem)
        else:
            self.schedule = None
        return self.outcome

    def display_schedule(self):
        """Display the schedule found by run()."""
        if self.schedule is not None:
            print("\nSchedule:")
            print(self.schedule)
        elif self.outcome is not None:
            print(f"No schedule available: search was {self.outcome.status}.")
        else:
            print("No schedule available. Please run run() first.")

    def save_schedule(self, filename: str = 'schedule.csv'):
        """Save the schedule found by run() to a CSV file."""
        if self.schedule is None:
            log.warning("No schedule available to save. Please run run() first.")
            return
        save_schedule(self.schedule, filename)
        log.info(f"Schedule saved to {filename}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build a weekly timetable from CSV data.")
    parser.add_argument('directory', nargs='?', default='.',
                        help="Directory holding courses.csv, rooms.csv, time_slots.csv (and instructors.csv)")
    parser.add_argument('--config', help="TOML file with a [search] table")
    parser.add_argument('--mode', choices=[m.value for m in PerformanceMode],
                        help="Use a preset configuration scaled to the problem size")
    parser.add_argument('--output', default='schedule.csv', help="Where to write the schedule")
    parser.add_argument('--verbose', action='store_true', help="Log per-node detail")
    args = parser.parse_args(argv)

    set_verbose(args.verbose)
    problem = load_problem(args.directory)

    if args.config:
        config = SearchConfig.from_toml(args.config)
    elif args.mode:
        config = SearchConfig.recommended(problem.total_hours, args.mode)
    else:
        config = SearchConfig()

    scheduler = BacktrackingScheduler(problem, config)
    outcome = scheduler.run()
    scheduler.display_schedule()
    if outcome.is_feasible:
        scheduler.save_schedule(args.output)
        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
