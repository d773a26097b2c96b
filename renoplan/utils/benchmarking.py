import time
from dataclasses import dataclass
from typing import List, Sequence

from renoplan.engine.ortools_solver import solve_with_ortools
from renoplan.engine.serial_scheduler import serial_level
from renoplan.graph.clash_graph import build_clash_graph
from renoplan.graph.task_graph import TaskGraph
from renoplan.models.entities import Task
from renoplan.utils.scoring import clash_overlaps, makespan


@dataclass
class BenchmarkResult:
    solver_name: str
    time_seconds: float
    makespan: int
    success: bool
    num_tasks: int


def compare_levelers(tasks: Sequence[Task], time_limit_seconds: float = 10) -> List[BenchmarkResult]:
    """
    Compare greedy vs OR-Tools leveling on the same instance.
    Returns list of BenchmarkResult; a failed run reports makespan -1.
    """
    graph = TaskGraph.build(tasks)
    order = graph.topological_order()
    clashes = build_clash_graph(graph)
    results = []

    start = time.time()
    greedy = serial_level(graph, clashes, order)
    results.append(BenchmarkResult(
        solver_name="greedy",
        time_seconds=time.time() - start,
        makespan=makespan(greedy),
        success=clash_overlaps(greedy, clashes) == 0,
        num_tasks=len(graph),
    ))

    start = time.time()
    ort = solve_with_ortools(graph, clashes, time_limit_seconds=time_limit_seconds)
    results.append(BenchmarkResult(
        solver_name="ortools",
        time_seconds=time.time() - start,
        makespan=makespan(ort) if ort is not None else -1,
        success=ort is not None and clash_overlaps(ort, clashes) == 0,
        num_tasks=len(graph),
    ))

    return results
