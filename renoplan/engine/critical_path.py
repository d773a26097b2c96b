"""
Critical Path Method (CPM) scheduling.

Forward pass (topological order):
    ES = max(EF of dependencies), 0 for roots
    EF = ES + duration
Backward pass (reverse topological order):
    LF = min(LS of dependents), project finish for sinks
    LS = LF - duration
Slack = LS - ES; a task is critical when its slack is zero.

All arithmetic is in working-day offsets from the first working day on or
after the project start. Offsets are mapped to calendar dates only at the
end, so weekends and blackout dates never shift the critical path.

Complexity: O(V + E) for both passes, plus O(D) to enumerate the D working
dates spanned by the schedule.
"""

import math
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from renoplan.graph.task_graph import TaskGraph
from renoplan.models.entities import CriticalPathNode, ScheduleResult, Task, WorkingDayRule
from renoplan.utils.workdays import check_rule, working_dates

SLACK_EPSILON = 1e-6


def is_zero_slack(slack: float) -> bool:
    return math.isclose(slack, 0.0, abs_tol=SLACK_EPSILON)


def compute_nodes(
    graph: TaskGraph,
    order: Optional[List[int]] = None,
    durations: Optional[Sequence[int]] = None,
) -> Tuple[Dict[str, CriticalPathNode], Tuple[str, ...]]:
    """
    Run the forward and backward passes over a DAG.

    Args:
        graph: Validated task graph
        order: Topological order of slots (computed when omitted; raises CycleDetected)
        durations: Per-slot durations overriding the tasks' own

    Returns:
        (nodes keyed by task id, critical path ordered by earliest start)
    """
    if order is None:
        order = graph.topological_order()
    if durations is None:
        durations = [t.duration for t in graph.tasks]

    n = len(graph)
    es = [0] * n
    ef = [0] * n
    for slot in order:
        es[slot] = max((ef[d] for d in graph.deps[slot]), default=0)
        ef[slot] = es[slot] + durations[slot]

    project_finish = max(ef, default=0)
    ls = [0] * n
    lf = [0] * n
    for slot in reversed(order):
        lf[slot] = min((ls[d] for d in graph.dependents[slot]), default=project_finish)
        ls[slot] = lf[slot] - durations[slot]

    nodes: Dict[str, CriticalPathNode] = {}
    for slot in order:
        slack = ls[slot] - es[slot]
        critical = is_zero_slack(slack)
        task_id = graph.id_of(slot)
        nodes[task_id] = CriticalPathNode(
            task_id=task_id,
            early_start=es[slot],
            early_finish=ef[slot],
            late_start=ls[slot],
            late_finish=lf[slot],
            slack=0 if critical else slack,
            is_critical=critical,
        )

    # sorted() is stable, so ties keep topological order
    critical_slots = [s for s in order if nodes[graph.id_of(s)].is_critical]
    critical_path = tuple(graph.id_of(s) for s in sorted(critical_slots, key=lambda s: es[s]))
    return nodes, critical_path


def build_schedule(
    tasks: Sequence[Task],
    project_start: date,
    calendar: Optional[WorkingDayRule] = None,
) -> ScheduleResult:
    """
    Produce a dated CPM schedule.

    Args:
        tasks: Tasks with durations and dependencies
        project_start: First calendar day work may happen
        calendar: Working weekdays and blackout dates (Mon-Fri when omitted)

    Returns:
        ScheduleResult whose tasks carry start/end dates, slack and criticality

    Raises:
        ValidationError: unknown dependency, self dependency, duplicate id, non-positive duration
        CycleDetected: dependencies do not form a DAG
    """
    calendar = calendar or WorkingDayRule()
    check_rule(calendar)
    graph = TaskGraph.build(tasks)
    nodes, critical_path = compute_nodes(graph)

    total = max((node.early_finish for node in nodes.values()), default=0)
    dates = working_dates(project_start, total + 1, calendar)

    scheduled = tuple(
        replace(
            t,
            start_date=dates[nodes[t.id].early_start],
            end_date=dates[nodes[t.id].early_finish],
            is_critical=nodes[t.id].is_critical,
            slack=nodes[t.id].slack,
        )
        for t in graph.tasks
    )
    end_date = dates[total]
    return ScheduleResult(
        tasks=scheduled,
        critical_path=critical_path,
        nodes=nodes,
        project_start=project_start,
        calendar=calendar,
        total_duration=total,
        end_date=end_date,
        calendar_days=(end_date - project_start).days,
        total_cost=sum(t.cost for t in scheduled),
    )
