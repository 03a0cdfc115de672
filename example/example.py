#!/usr/bin/env python3
"""
Example script: build a weekly timetable from the CSV tables in data/.

Collects several solutions, ranks them by the soft constraints (with an
extra user-defined one), and saves the best schedule.
"""

import os

from timetable_csp import *

here = os.path.dirname(os.path.abspath(__file__))

# Prefer solutions that keep the gym free on Friday afternoons
class KeepGymFreeFriday(SoftConstraint):
    def __init__(self, weight=0.5):
        super().__init__(name="Gym free on Friday afternoon", weight=weight)

    def penalty(self, assignments, problem):
        return float(sum(
            1 for a in assignments
            if a.room_id == 'GYM' and a.time_slot_id in ('FRI-3', 'FRI-4')
        ))


catalog = ConstraintCatalog.default()
catalog.add_soft_constraint(KeepGymFreeFriday())

config = SearchConfig(
    variable_selection=VariableSelection.MINIMUM_REMAINING_VALUES,
    value_selection=ValueSelection.LEAST_CONSTRAINING,
    propagation_type=PropagationType.AC3,
    enable_backjumping=True,
    max_solutions=20,
    seed=42,
)

scheduler = BacktrackingScheduler.from_csv(os.path.join(here, 'data'), config, catalog)
outcome = scheduler.run()

if outcome.is_feasible:
    print(f"Best of {len(outcome.solutions)} solutions, soft cost {outcome.soft_cost:.2f}")
    for name, cost in catalog.breakdown(outcome.assignments, scheduler.problem).items():
        print(f"  {name}: {cost:.2f}")
    scheduler.display_schedule()
    scheduler.save_schedule(os.path.join(here, 'schedule.csv'))
else:
    print(f"No timetable: {outcome.status}")
print(outcome.statistics.summary())
