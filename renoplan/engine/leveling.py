import logging
from dataclasses import replace
from datetime import date
from typing import Dict, Optional, Sequence, Tuple

from renoplan.engine.critical_path import compute_nodes
from renoplan.engine.ortools_solver import solve_with_ortools
from renoplan.engine.serial_scheduler import serial_level
from renoplan.graph.clash_graph import build_clash_graph
from renoplan.graph.task_graph import TaskGraph
from renoplan.models.entities import LevelingResult, Task, WorkingDayRule
from renoplan.models.errors import ValidationError
from renoplan.utils.scoring import makespan
from renoplan.utils.workdays import check_rule, working_dates

logger = logging.getLogger(__name__)

SOLVERS = ("auto", "greedy", "ortools")


def select_solver(num_tasks: int, threshold: int = 15) -> str:
    """
    Heuristic: choose leveler based on problem size.
    Small: greedy (instant, usually tight for a handful of tasks)
    Large: OR-Tools (better makespan once spaces get crowded)
    """
    return "ortools" if num_tasks >= threshold else "greedy"


def level_schedule(
    tasks: Sequence[Task],
    project_start: date,
    calendar: Optional[WorkingDayRule] = None,
    solver: str = "auto",
    time_limit_seconds: float = 10,
    auto_threshold: int = 15,
) -> LevelingResult:
    """
    Dated schedule in which no clashing tasks overlap inside a space.
    The CP-SAT leveler falls back to the greedy one when it finds nothing in time.
    """
    if solver not in SOLVERS:
        raise ValidationError(f"Unknown leveling solver {solver}")
    calendar = calendar or WorkingDayRule()
    check_rule(calendar)

    graph = TaskGraph.build(tasks)
    order = graph.topological_order()
    nodes, _ = compute_nodes(graph, order)
    clashes = build_clash_graph(graph)

    choice = solver if solver != "auto" else select_solver(len(graph), auto_threshold)
    logger.info(f"Leveling {len(graph)} tasks with {choice} solver ({len(clashes)} tasks have clashes)")

    offsets: Optional[Dict[int, Tuple[int, int]]] = None
    if choice == "ortools":
        offsets = solve_with_ortools(graph, clashes, time_limit_seconds)
        if offsets is None:
            logger.warning("CP-SAT returned no schedule within the time limit, falling back to greedy")
            choice = "greedy"
    if offsets is None:
        offsets = serial_level(graph, clashes, order)

    span = makespan(offsets)
    dates = working_dates(project_start, span + 1, calendar)
    leveled = tuple(
        replace(t, start_date=dates[offsets[slot][0]], end_date=dates[offsets[slot][1]], is_critical=False, slack=None)
        for slot, t in enumerate(graph.tasks)
    )
    shifted = tuple(
        t.id for slot, t in enumerate(graph.tasks) if offsets[slot][0] > nodes[t.id].early_start
    )
    return LevelingResult(
        tasks=leveled,
        offsets={graph.id_of(slot): interval for slot, interval in offsets.items()},
        makespan=span,
        end_date=dates[span],
        solver_used=choice,
        shifted_task_ids=shifted,
    )
