from collections import defaultdict
from typing import Dict, Set

from renoplan.graph.task_graph import TaskGraph
from renoplan.models.entities import DISRUPTIVE_CATEGORIES


def build_clash_graph(graph: TaskGraph) -> Dict[int, Set[int]]:
    """Edges join tasks that must not overlap: same space, disruptive work, no dependency path."""
    clashes: Dict[int, Set[int]] = defaultdict(set)
    by_space: Dict[str, list] = defaultdict(list)
    for slot, t in enumerate(graph.tasks):
        by_space[t.space].append(slot)

    ancestors = {}
    for slots in by_space.values():
        for i, s1 in enumerate(slots):
            for s2 in slots[i + 1:]:
                t1, t2 = graph.tasks[s1], graph.tasks[s2]
                if t1.category not in DISRUPTIVE_CATEGORIES and t2.category not in DISRUPTIVE_CATEGORIES:
                    continue
                for s in (s1, s2):
                    if s not in ancestors:
                        ancestors[s] = graph.ancestors(s)
                if s1 in ancestors[s2] or s2 in ancestors[s1]:
                    continue
                clashes[s1].add(s2)
                clashes[s2].add(s1)
    return clashes
