"""
Task dependency graph.

Tasks are stored in slots (their position in the input list); adjacency is kept
as tuples of slot indices so traversals work on integers rather than string
lookups. A TaskGraph is built once per request and never mutated.

Traversals use an explicit stack, so graph depth is not bounded by the
interpreter's recursion limit.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from renoplan.models.entities import Task
from renoplan.models.errors import (
    CycleDetected,
    DuplicateTaskId,
    NonPositiveDuration,
    SelfDependency,
    UnknownDependency,
    ValidationError,
)

UNVISITED, ON_STACK, DONE = 0, 1, 2


def validate_tasks(tasks: Sequence[Task]) -> None:
    """Raise ValidationError for the first malformed task; build nothing."""
    ids: Set[str] = set()
    for t in tasks:
        if t.id in ids:
            raise DuplicateTaskId(t.id)
        ids.add(t.id)
    for t in tasks:
        if t.duration <= 0:
            raise NonPositiveDuration(t.id, t.duration)
        if t.cost < 0:
            raise ValidationError(f"Task {t.id} has negative cost {t.cost}", [t.id])
        for dep in t.dependencies:
            if dep == t.id:
                raise SelfDependency(t.id)
            if dep not in ids:
                raise UnknownDependency(t.id, dep)


@dataclass(frozen=True)
class TaskGraph:
    tasks: Tuple[Task, ...]
    index: Dict[str, int]
    deps: Tuple[Tuple[int, ...], ...]  # slot -> slots it depends on
    dependents: Tuple[Tuple[int, ...], ...]  # slot -> slots that depend on it

    @classmethod
    def build(cls, tasks: Sequence[Task]) -> "TaskGraph":
        validate_tasks(tasks)
        index = {t.id: i for i, t in enumerate(tasks)}
        deps: List[Tuple[int, ...]] = []
        dependents: List[List[int]] = [[] for _ in tasks]
        for i, t in enumerate(tasks):
            # duplicates in the dependency list collapse to one edge
            slots = tuple(dict.fromkeys(index[d] for d in t.dependencies))
            deps.append(slots)
            for d in slots:
                dependents[d].append(i)
        return cls(
            tasks=tuple(tasks),
            index=index,
            deps=tuple(deps),
            dependents=tuple(tuple(d) for d in dependents),
        )

    def __len__(self) -> int:
        return len(self.tasks)

    def id_of(self, slot: int) -> str:
        return self.tasks[slot].id

    def dependency_map(self) -> Dict[str, Set[str]]:
        """task id -> ids of the tasks it depends on."""
        return {t.id: {self.id_of(d) for d in self.deps[i]} for i, t in enumerate(self.tasks)}

    def dependent_map(self) -> Dict[str, Set[str]]:
        """task id -> ids of the tasks that depend on it."""
        return {t.id: {self.id_of(d) for d in self.dependents[i]} for i, t in enumerate(self.tasks)}

    def _dfs(self, on_cycle) -> List[int]:
        """Post-order DFS along dependency edges, roots in input order.

        Post-order puts every dependency before its dependents. `on_cycle` is
        called with the slot path of each back edge found; if it returns True
        the traversal stops.
        """
        state = [UNVISITED] * len(self.tasks)
        order: List[int] = []
        for root in range(len(self.tasks)):
            if state[root] != UNVISITED:
                continue
            path: List[int] = [root]
            cursor: List[int] = [0]
            state[root] = ON_STACK
            while path:
                node = path[-1]
                edges = self.deps[node]
                if cursor[-1] < len(edges):
                    nxt = edges[cursor[-1]]
                    cursor[-1] += 1
                    if state[nxt] == ON_STACK:
                        if on_cycle(path[path.index(nxt):]):
                            return order
                    elif state[nxt] == UNVISITED:
                        state[nxt] = ON_STACK
                        path.append(nxt)
                        cursor.append(0)
                else:
                    state[node] = DONE
                    order.append(node)
                    path.pop()
                    cursor.pop()
        return order

    def topological_order(self) -> List[int]:
        """Slots ordered dependencies-first. Raises CycleDetected."""
        found: List[List[int]] = []

        def stop(cycle: List[int]) -> bool:
            found.append(cycle)
            return True

        order = self._dfs(stop)
        if found:
            raise CycleDetected([self.id_of(s) for s in found[0]])
        return order

    def find_cycle(self) -> Optional[List[str]]:
        try:
            self.topological_order()
        except CycleDetected as exc:
            return exc.cycle
        return None

    def find_cycles(self) -> List[List[str]]:
        """Every distinct cycle closed by a back edge during one full traversal."""
        cycles: List[List[str]] = []
        seen: Set[frozenset] = set()

        def collect(cycle: List[int]) -> bool:
            key = frozenset(cycle)
            if key not in seen:
                seen.add(key)
                cycles.append([self.id_of(s) for s in cycle])
            return False

        self._dfs(collect)
        return cycles

    def levels(self, order: Optional[List[int]] = None) -> List[int]:
        """Longest dependency-chain length from any root, per slot. Requires a DAG."""
        if order is None:
            order = self.topological_order()
        level = [0] * len(self.tasks)
        for slot in order:
            if self.deps[slot]:
                level[slot] = max(level[d] + 1 for d in self.deps[slot])
        return level

    def ancestors(self, slot: int) -> Set[int]:
        """Slots reachable from `slot` along dependency edges (transitive prerequisites)."""
        seen: Set[int] = set()
        stack = list(self.deps[slot])
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.deps[node])
        return seen
