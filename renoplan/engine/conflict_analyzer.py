"""
Dependency conflict analysis.

Four independent detectors run over the task graph, each yielding zero or more
DependencyConflict records:

- circular:        back edges found by an iterative DFS (severity critical)
- resource:        overlapping, unrelated tasks sharing a space where one of them
                   is disruptive work (severity warning)
- sequence:        category precedence rules broken inside a space (severity critical)
- parallelizable:  independent spaces whose work runs back to back (severity info)

Alongside the conflicts the analyzer reports the critical path, groups of tasks
that may run in parallel, bottleneck tasks and optimization suggestions.

Only the resource, sequence and parallelizable detectors look at dates; tasks
without start/end dates are ignored by them. Conflicts are diagnostics: a cycle
or a clash never raises, it is reported. Malformed input (unknown dependency,
non-positive duration...) still raises ValidationError because no graph can be
built from it.
"""

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from renoplan.engine.critical_path import compute_nodes
from renoplan.graph.task_graph import TaskGraph
from renoplan.models.analysis import (
    DEFAULT_SEQUENCE_RULES,
    Bottleneck,
    BottleneckReason,
    ConflictKind,
    DependencyAnalysis,
    DependencyConflict,
    Optimization,
    OptimizationKind,
    SequenceRule,
    Severity,
)
from renoplan.models.entities import DISRUPTIVE_CATEGORIES, Category, Task
from renoplan.models.errors import CycleDetected

LONG_TASK_DAYS = 5
HUB_DEPENDENTS = 3
SMALL_TASK_DAYS = 2
REORDER_MIN_DAYS = 3
UNCERTAIN_CATEGORIES = frozenset({Category.DEMOLITION, Category.PLUMBING})


def tasks_overlap(a: Task, b: Task) -> bool:
    """Half-open [start_date, end_date) intervals intersect."""
    return a.start_date < b.end_date and b.start_date < a.end_date


class DependencyAnalyzer:
    def __init__(self, tasks: Sequence[Task], rules: Iterable[SequenceRule] = DEFAULT_SEQUENCE_RULES):
        self.graph = TaskGraph.build(tasks)
        self.rules = tuple(rules)
        self._ancestors: Dict[int, Set[int]] = {}
        try:
            self.order: Optional[List[int]] = self.graph.topological_order()
        except CycleDetected:
            self.order = None

    # -- reachability ------------------------------------------------------

    def _ancestors_of(self, slot: int) -> Set[int]:
        if slot not in self._ancestors:
            self._ancestors[slot] = self.graph.ancestors(slot)
        return self._ancestors[slot]

    def depends_on(self, task_id: str, other_id: str) -> bool:
        """True when `task_id` transitively waits for `other_id`."""
        return self.graph.index[other_id] in self._ancestors_of(self.graph.index[task_id])

    def related(self, a: str, b: str) -> bool:
        return self.depends_on(a, b) or self.depends_on(b, a)

    def _dated_by_space(self) -> Dict[str, List[Task]]:
        spaces: Dict[str, List[Task]] = defaultdict(list)
        for t in self.graph.tasks:
            if t.is_dated:
                spaces[t.space].append(t)
        return spaces

    # -- detectors ---------------------------------------------------------

    def detect_circular(self) -> List[DependencyConflict]:
        conflicts = []
        for cycle in self.graph.find_cycles():
            titles = [self.graph.tasks[self.graph.index[i]].title for i in cycle]
            conflicts.append(DependencyConflict(
                kind=ConflictKind.CIRCULAR,
                severity=Severity.CRITICAL,
                involved_tasks=tuple(cycle),
                description="Circular dependency: " + " -> ".join(titles + titles[:1]),
                suggested_resolutions=(
                    "Review the dependency relationships between these tasks",
                    "Merge or split some of the tasks",
                    "Reorder the work so one task no longer waits for another",
                ),
            ))
        return conflicts

    def detect_resource(self) -> List[DependencyConflict]:
        conflicts = []
        for space, tasks in self._dated_by_space().items():
            for i, t1 in enumerate(tasks):
                for t2 in tasks[i + 1:]:
                    if not (t1.category in DISRUPTIVE_CATEGORIES or t2.category in DISRUPTIVE_CATEGORIES):
                        continue
                    if not tasks_overlap(t1, t2) or self.related(t1.id, t2.id):
                        continue
                    conflicts.append(DependencyConflict(
                        kind=ConflictKind.RESOURCE,
                        severity=Severity.WARNING,
                        involved_tasks=(t1.id, t2.id),
                        description=f'"{t1.title}" and "{t2.title}" are scheduled at the same time in {space}',
                        suggested_resolutions=(
                            "Reschedule the tasks to run one after the other",
                            "Swap dates with work planned in another space",
                            "Add crew so the work can be split safely",
                        ),
                    ))
        return conflicts

    def detect_sequence(self) -> List[DependencyConflict]:
        conflicts = []
        spaces = self._dated_by_space()
        for rule in self.rules:
            for space, tasks in spaces.items():
                before_tasks = [t for t in tasks if t.category == rule.before]
                after_tasks = [t for t in tasks if t.category == rule.after]
                for before in before_tasks:
                    for after in after_tasks:
                        if after.start_date >= before.end_date or self.depends_on(after.id, before.id):
                            continue
                        conflicts.append(DependencyConflict(
                            kind=ConflictKind.SEQUENCE,
                            severity=Severity.CRITICAL,
                            involved_tasks=(before.id, after.id),
                            description=(
                                f'"{after.title}" in {space} starts before "{before.title}" is finished'
                            ),
                            suggested_resolutions=(
                                f'Move "{after.title}" after "{before.title}" completes',
                                "Declare the dependency explicitly",
                                "Check that both tasks have the right category",
                            ),
                        ))
        return conflicts

    def detect_parallelizable(self) -> List[DependencyConflict]:
        conflicts = []
        spaces = self._dated_by_space()
        names = list(spaces)
        for i, s1 in enumerate(names):
            for s2 in names[i + 1:]:
                group1, group2 = spaces[s1], spaces[s2]
                if any(self.related(a.id, b.id) for a in group1 for b in group2):
                    continue
                start1, end1 = min(t.start_date for t in group1), max(t.end_date for t in group1)
                start2, end2 = min(t.start_date for t in group2), max(t.end_date for t in group2)
                if start1 < end2 and start2 < end1:
                    continue
                involved = sorted(group1 + group2, key=lambda t: t.start_date)
                conflicts.append(DependencyConflict(
                    kind=ConflictKind.PARALLELIZABLE,
                    severity=Severity.INFO,
                    involved_tasks=tuple(t.id for t in involved),
                    description=f"Work in {s1} and {s2} is independent but scheduled one after the other",
                    suggested_resolutions=(
                        "Run the work in both spaces at the same time",
                        "Consider parallel crews if enough workers are available",
                        "Rearrange the schedule to overlap independent spaces",
                    ),
                ))
        return conflicts

    # -- graph-wide summaries ----------------------------------------------

    def critical_path(self) -> Tuple[str, ...]:
        if self.order is None:
            return ()
        _, path = compute_nodes(self.graph, self.order)
        return path

    def parallelizable_groups(self) -> List[Tuple[str, ...]]:
        if self.order is None:
            return []
        levels = self.graph.levels(self.order)
        by_level: Dict[int, List[int]] = defaultdict(list)
        for slot in range(len(self.graph)):
            by_level[levels[slot]].append(slot)

        groups = []
        for level in sorted(by_level):
            group: List[str] = []
            for slot in by_level[level]:
                task_id = self.graph.id_of(slot)
                if all(not self.related(task_id, other) for other in group):
                    group.append(task_id)
            if len(group) > 1:
                groups.append(tuple(group))
        return groups

    def bottlenecks(self, critical: Set[str]) -> List[Bottleneck]:
        found = []
        for slot, t in enumerate(self.graph.tasks):
            if t.id in critical and t.duration > LONG_TASK_DAYS:
                found.append(Bottleneck(
                    t.id, BottleneckReason.LONG_CRITICAL_TASK, float(t.duration - LONG_TASK_DAYS),
                    {"duration": t.duration},
                ))
            waiting = len(self.graph.dependents[slot])
            if waiting >= HUB_DEPENDENTS:
                found.append(Bottleneck(
                    t.id, BottleneckReason.MANY_DEPENDENTS, t.duration * 0.5, {"dependents": waiting},
                ))
            if t.category in UNCERTAIN_CATEGORIES:
                found.append(Bottleneck(
                    t.id, BottleneckReason.HIGH_UNCERTAINTY_CATEGORY, round(t.duration * 0.3, 2),
                    {"category": t.category.value},
                ))
        return sorted(found, key=lambda b: -b.impact_days)

    def optimizations(self, critical: Set[str], groups: List[Tuple[str, ...]]) -> List[Optimization]:
        tasks = self.graph.tasks
        by_id = {t.id: t for t in tasks}
        found = []

        for group in groups:
            durations = [by_id[i].duration for i in group]
            saving = sum(durations) - max(durations)
            if saving > 0:
                found.append(Optimization(OptimizationKind.PARALLEL, group, float(saving)))

        small: Dict[Tuple[str, Category], List[str]] = defaultdict(list)
        for t in tasks:
            if t.duration <= SMALL_TASK_DAYS:
                small[(t.space, t.category)].append(t.id)
        for (space, category), ids in small.items():
            if len(ids) >= 2:
                found.append(Optimization(
                    OptimizationKind.MERGE, tuple(ids), 1.0, {"space": space, "category": category.value},
                ))

        for slot, t in enumerate(tasks):
            if t.id in critical or t.duration < REORDER_MIN_DAYS:
                continue
            if any(self.graph.id_of(d) in critical for d in self.graph.dependents[slot]):
                found.append(Optimization(
                    OptimizationKind.REORDER, (t.id,), float(math.floor(t.duration * 0.2)),
                    {"duration": t.duration},
                ))

        return sorted(found, key=lambda o: -o.days_saved)

    def analyze(self) -> DependencyAnalysis:
        conflicts = (
            self.detect_circular()
            + self.detect_resource()
            + self.detect_sequence()
            + self.detect_parallelizable()
        )
        critical_path = self.critical_path()
        critical = set(critical_path)
        groups = self.parallelizable_groups()
        return DependencyAnalysis(
            conflicts=tuple(conflicts),
            critical_path=critical_path,
            parallelizable_groups=tuple(groups),
            bottlenecks=tuple(self.bottlenecks(critical)),
            optimizations=tuple(self.optimizations(critical, groups)),
        )


def analyze_dependencies(
    tasks: Sequence[Task],
    rules: Iterable[SequenceRule] = DEFAULT_SEQUENCE_RULES,
) -> DependencyAnalysis:
    """Run every detector over `tasks`. Never raises for conflicts."""
    return DependencyAnalyzer(tasks, rules).analyze()
