import math
from dataclasses import replace
from typing import FrozenSet, Iterable, List, Tuple

from renoplan.engine.critical_path import build_schedule
from renoplan.engine.estimator import round_half_up
from renoplan.models.entities import ScheduleResult, Task
from renoplan.models.forecast import (
    Recommendation,
    RecommendationReason,
    RiskLevel,
    Scenario,
    ScenarioType,
    SimulationResult,
)
from renoplan.utils.workdays import add_working_days

OPTIMISTIC_DURATION_FACTOR = 0.85
OPTIMISTIC_COST_FACTOR = 0.9
CONSERVATIVE_DURATION_FACTOR = 1.2
HIGH_RISK_DURATION_FACTOR = 1.1
HIGH_RISK_COST_FACTOR = 1.15


def _product(value: float, factor: float) -> float:
    # drops float noise such as 10 * 1.1 == 11.000000000000002
    return round(value * factor, 9)


def adjust_tasks(
    tasks: Iterable[Task],
    duration_factor: float,
    cost_factor: float = 1.0,
    high_risk: FrozenSet[str] = frozenset(),
) -> List[Task]:
    adjusted = []
    for t in tasks:
        duration = max(1, round_half_up(_product(t.duration, duration_factor)))
        cost = _product(t.cost, cost_factor)
        if t.id in high_risk:
            duration = math.ceil(_product(duration, HIGH_RISK_DURATION_FACTOR))
            cost = _product(cost, HIGH_RISK_COST_FACTOR)
        adjusted.append(replace(t, duration=duration, cost=round(cost, 2)))
    return adjusted


def _scenario(
    kind: ScenarioType,
    baseline: ScheduleResult,
    tasks: Tuple[Task, ...],
    duration: int,
    reliability: int,
    risk_level: RiskLevel,
    notes: Iterable[Recommendation] = (),
) -> Scenario:
    return Scenario(
        type=kind,
        tasks=tasks,
        duration=duration,
        end_date=add_working_days(baseline.project_start, duration, baseline.calendar),
        total_cost=round(sum(t.cost for t in tasks), 2),
        reliability=reliability,
        risk_level=risk_level,
        delta_days=duration - baseline.total_duration,
        notes=tuple(notes),
    )


def _reschedule(baseline: ScheduleResult, tasks: List[Task]) -> Tuple[Task, ...]:
    return build_schedule(tasks, baseline.project_start, baseline.calendar).tasks


def generate_scenarios(
    baseline: ScheduleResult,
    simulation: SimulationResult,
) -> Tuple[Scenario, Scenario, Scenario]:
    """
    Derive optimistic, realistic and conservative views of a baseline schedule.

    Scenario durations come from the simulation (P10, expected, P90). Task
    durations and costs are scaled, then re-dated with the CPM forward pass on
    the baseline's calendar. Pure: identical inputs give identical output.
    """
    optimistic_tasks = _reschedule(
        baseline, adjust_tasks(baseline.tasks, OPTIMISTIC_DURATION_FACTOR, OPTIMISTIC_COST_FACTOR)
    )

    flagged = frozenset(simulation.flagged_task_ids)
    conservative_tasks = _reschedule(
        baseline, adjust_tasks(baseline.tasks, CONSERVATIVE_DURATION_FACTOR, high_risk=flagged)
    )
    risk_notes = [
        Recommendation(
            RecommendationReason.HIGH_VARIABILITY_TASK,
            {"task_id": r.task_id, "level": r.level.value, "variability_pct": round_half_up(r.variability * 100)},
        )
        for r in simulation.task_risks
    ]

    return (
        _scenario(ScenarioType.OPTIMISTIC, baseline, optimistic_tasks, simulation.p10, 60, RiskLevel.HIGH),
        _scenario(
            ScenarioType.REALISTIC, baseline, baseline.tasks, simulation.expected_duration, 85, RiskLevel.MEDIUM,
            simulation.recommendations,
        ),
        _scenario(
            ScenarioType.CONSERVATIVE, baseline, conservative_tasks, simulation.p90, 95, RiskLevel.LOW, risk_notes,
        ),
    )
