"""
Greedy resource-constrained leveling (serial schedule generation).

Tasks are placed one at a time; each starts as early as its dependencies
allow, then slides forward past any already-placed task it clashes with
(same space, disruptive work, no dependency path between them).

Priority rule:
1. CPM earliest start (this alone keeps dependencies ahead of dependents,
   since every duration is at least one day)
2. Longest remaining path to the end of the project, longest first
3. Topological position

Complexity: O(n log n) for ordering plus O(n * c * k) placement, where
c = clashing neighbours per task and k = slides per task.

Trade-offs:
- Fast and always feasible
- No optimality guarantee on the makespan; use the CP-SAT leveler for that
"""

from typing import Dict, List, Optional, Set, Tuple

from renoplan.engine.critical_path import compute_nodes
from renoplan.graph.task_graph import TaskGraph


def remaining_path_lengths(graph: TaskGraph, order: List[int]) -> List[int]:
    """Longest duration-weighted path from each slot to a sink, own duration included."""
    tail = [0] * len(graph)
    for slot in reversed(order):
        tail[slot] = graph.tasks[slot].duration + max((tail[d] for d in graph.dependents[slot]), default=0)
    return tail


def serial_level(
    graph: TaskGraph,
    clashes: Dict[int, Set[int]],
    order: Optional[List[int]] = None,
) -> Dict[int, Tuple[int, int]]:
    """
    Place every task so no clashing pair overlaps.

    Returns:
        slot -> (start, finish) in working-day offsets
    """
    if order is None:
        order = graph.topological_order()
    nodes, _ = compute_nodes(graph, order)
    tail = remaining_path_lengths(graph, order)
    position = {slot: i for i, slot in enumerate(order)}

    priority = sorted(
        order,
        key=lambda s: (nodes[graph.id_of(s)].early_start, -tail[s], position[s]),
    )

    placed: Dict[int, Tuple[int, int]] = {}
    for slot in priority:
        duration = graph.tasks[slot].duration
        start = max((placed[d][1] for d in graph.deps[slot]), default=0)
        while True:
            blocking = [
                placed[other][1]
                for other in clashes.get(slot, ())
                if other in placed and placed[other][0] < start + duration and start < placed[other][1]
            ]
            if not blocking:
                break
            start = min(blocking)  # retry once the earliest blocker is done
        placed[slot] = (start, start + duration)
    return placed
