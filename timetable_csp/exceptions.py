#!/usr/bin/env python3
"""
Exceptions raised by the timetabling engine before a search starts.

Failures found during the search itself (inconsistent values, domain
wipeouts, exhausted budgets) are never raised; they are counted in the
search statistics or reported as an outcome.
"""


class TimetableError(Exception):
    """Base class for errors raised by timetable_csp."""

    pass


class ConfigurationError(TimetableError, ValueError):
    """Raised when a SearchConfig holds an out-of-range or mistyped setting."""

    pass


class BuildError(TimetableError):
    """Raised when the problem is unsatisfiable before the search begins."""

    def __init__(self, message, variable=None, course_id=None):
        super().__init__(message)
        self.variable = variable
        self.course_id = course_id if course_id is not None else getattr(variable, 'course_id', None)
