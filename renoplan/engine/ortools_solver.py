from typing import Dict, Optional, Set, Tuple

from ortools.sat.python import cp_model

from renoplan.graph.task_graph import TaskGraph


def solve_with_ortools(
    graph: TaskGraph,
    clashes: Dict[int, Set[int]],
    time_limit_seconds: float = 10,
) -> Optional[Dict[int, Tuple[int, int]]]:
    """
    Level a schedule with Google OR-Tools CP-SAT.
    Hard constraints: dependencies and no overlap between clashing tasks.
    Objective: minimise the makespan.
    Returns slot -> (start, finish), or None if no solution is found in time.
    """
    model = cp_model.CpModel()
    durations = [t.duration for t in graph.tasks]
    # Running everything back to back is always feasible
    horizon = sum(durations)

    starts = [
        model.NewIntVar(0, horizon - durations[slot], f"{graph.id_of(slot)}_start")
        for slot in range(len(graph))
    ]

    # Hard constraints: dependencies finish before dependents start
    for slot in range(len(graph)):
        for dep in graph.deps[slot]:
            model.Add(starts[slot] >= starts[dep] + durations[dep])

    # Hard constraints: clashing tasks in one space run one after the other
    for s1, neighbours in clashes.items():
        for s2 in neighbours:
            if s1 >= s2:
                continue
            # Binary variable: 1 if s1 before s2, 0 otherwise
            before = model.NewBoolVar(f"{graph.id_of(s1)}_{graph.id_of(s2)}_before")
            model.Add(starts[s1] + durations[s1] <= starts[s2]).OnlyEnforceIf(before)
            model.Add(starts[s2] + durations[s2] <= starts[s1]).OnlyEnforceIf(before.Not())

    makespan = model.NewIntVar(0, horizon, "makespan")
    for slot in range(len(graph)):
        model.Add(makespan >= starts[slot] + durations[slot])
    model.Minimize(makespan)

    # Solve with time limit
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = time_limit_seconds
    solver.parameters.log_search_progress = False

    status = solver.Solve(model)

    if status not in [cp_model.OPTIMAL, cp_model.FEASIBLE]:
        return None

    result: Dict[int, Tuple[int, int]] = {}
    for slot in range(len(graph)):
        start = int(solver.Value(starts[slot]))
        result[slot] = (start, start + durations[slot])
    return result
