"""timetable_csp - Weekly timetabling as a constraint-satisfaction search."""

from .builder import CSPInstance, build_instance
from .catalog import (
    ConstraintCatalog,
    SoftConstraint,
    TeacherPreference,
    CourseSpread,
    RoomCapacityFit,
    Continuity,
    BreakSpacing,
)
from .config import (
    SearchConfig,
    HeuristicWeights,
    VariableSelection,
    ValueSelection,
    PropagationType,
    TieBreaking,
    SearchStrategy,
    PerformanceMode,
)
from .engine import BacktrackingSearch
from .exceptions import TimetableError, ConfigurationError, BuildError
from .loader import load_problem
from .models import Course, Teacher, Room, TimeSlot, ProblemData, Variable, Value
from .results import (
    CourseAssignment,
    SchedulingOutcome,
    Feasible,
    Infeasible,
    Aborted,
    AbortReason,
    ScheduleChromosome,
)
from .scheduler import Scheduler, BacktrackingScheduler

__all__ = [
    "Scheduler",
    "BacktrackingScheduler",
    "BacktrackingSearch",
    "CSPInstance",
    "build_instance",
    "load_problem",
    "SearchConfig",
    "HeuristicWeights",
    "VariableSelection",
    "ValueSelection",
    "PropagationType",
    "TieBreaking",
    "SearchStrategy",
    "PerformanceMode",
    "ConstraintCatalog",
    "SoftConstraint",
    "TeacherPreference",
    "CourseSpread",
    "RoomCapacityFit",
    "Continuity",
    "BreakSpacing",
    "Course",
    "Teacher",
    "Room",
    "TimeSlot",
    "ProblemData",
    "Variable",
    "Value",
    "CourseAssignment",
    "SchedulingOutcome",
    "Feasible",
    "Infeasible",
    "Aborted",
    "AbortReason",
    "ScheduleChromosome",
    "TimetableError",
    "ConfigurationError",
    "BuildError",
]
