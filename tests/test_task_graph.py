import pytest
from renoplan.graph.clash_graph import build_clash_graph
from renoplan.graph.task_graph import TaskGraph, validate_tasks
from renoplan.models.entities import Category, Task
from renoplan.models.errors import (
    CycleDetected,
    DuplicateTaskId,
    NonPositiveDuration,
    SelfDependency,
    UnknownDependency,
    ValidationError,
)


def _task(task_id, deps=(), duration=1, category=Category.CARPENTRY, space="hall"):
    return Task(id=task_id, title=task_id, category=category, space=space, duration=duration, dependencies=deps)


class TestBuild:
    """Adjacency maps built from a task list."""

    def test_dependency_map(self, diamond_tasks):
        """Forward map lists what each task waits for."""
        graph = TaskGraph.build(diamond_tasks)
        assert graph.dependency_map() == {"A": set(), "B": {"A"}, "C": {"A"}, "D": {"B", "C"}}

    def test_dependent_map(self, diamond_tasks):
        """Reverse map lists who waits for each task."""
        graph = TaskGraph.build(diamond_tasks)
        assert graph.dependent_map() == {"A": {"B", "C"}, "B": {"D"}, "C": {"D"}, "D": set()}

    def test_duplicate_dependency_collapses(self):
        """Listing the same dependency twice yields one edge."""
        graph = TaskGraph.build([_task("a"), _task("b", deps=("a", "a"))])
        assert graph.deps[1] == (0,)
        assert graph.dependents[0] == (1,)

    def test_slots_follow_input_order(self, diamond_tasks):
        """Slot i is the i-th input task."""
        graph = TaskGraph.build(diamond_tasks)
        assert [graph.id_of(i) for i in range(len(graph))] == ["A", "B", "C", "D"]
        assert graph.index["C"] == 2

    def test_empty_graph(self):
        """No tasks is a valid, empty graph."""
        graph = TaskGraph.build([])
        assert len(graph) == 0
        assert graph.topological_order() == []


class TestValidation:
    """Malformed task lists are rejected with the offending id."""

    def test_unknown_dependency(self):
        """Dependency on a missing id."""
        with pytest.raises(UnknownDependency) as exc_info:
            validate_tasks([_task("a", deps=("ghost",))])
        assert exc_info.value.task_ids == ["a"]
        assert exc_info.value.missing_id == "ghost"

    def test_self_dependency(self):
        """Task depending on itself."""
        with pytest.raises(SelfDependency) as exc_info:
            TaskGraph.build([_task("a", deps=("a",))])
        assert exc_info.value.task_ids == ["a"]

    def test_non_positive_duration(self):
        """Zero-day task."""
        with pytest.raises(NonPositiveDuration) as exc_info:
            TaskGraph.build([_task("a", duration=0)])
        assert exc_info.value.duration == 0

    def test_duplicate_id(self):
        """Two tasks with one id."""
        with pytest.raises(DuplicateTaskId):
            TaskGraph.build([_task("a"), _task("a")])

    def test_all_are_validation_errors(self):
        """Every specific error is catchable as ValidationError."""
        for tasks in ([_task("a", deps=("x",))], [_task("a", deps=("a",))], [_task("a", duration=-2)]):
            with pytest.raises(ValidationError):
                TaskGraph.build(tasks)


class TestTraversal:
    """Topological order, cycles, levels and reachability."""

    def test_topological_order_puts_dependencies_first(self, diamond_tasks):
        """Every dependency precedes its dependents."""
        graph = TaskGraph.build(diamond_tasks)
        order = graph.topological_order()
        position = {graph.id_of(s): i for i, s in enumerate(order)}
        for t in diamond_tasks:
            for dep in t.dependencies:
                assert position[dep] < position[t.id]

    def test_cycle_raises_with_full_cycle(self, cyclic_tasks):
        """CycleDetected carries every task on the cycle."""
        graph = TaskGraph.build(cyclic_tasks)
        with pytest.raises(CycleDetected) as exc_info:
            graph.topological_order()
        assert sorted(exc_info.value.cycle) == ["A", "B", "C"]

    def test_find_cycle_none_for_dag(self, diamond_tasks):
        """A DAG has no cycle."""
        assert TaskGraph.build(diamond_tasks).find_cycle() is None

    def test_find_cycles_reports_disjoint_cycles(self):
        """Two separate cycles are both reported."""
        tasks = [
            _task("a", deps=("b",)), _task("b", deps=("a",)),
            _task("c", deps=("d",)), _task("d", deps=("c",)),
            _task("e"),
        ]
        cycles = TaskGraph.build(tasks).find_cycles()
        assert sorted(sorted(c) for c in cycles) == [["a", "b"], ["c", "d"]]

    def test_deep_chain_does_not_recurse(self):
        """A 5000-task chain is traversed without hitting the recursion limit."""
        n = 5000
        tasks = [_task("t0")] + [_task(f"t{i}", deps=(f"t{i - 1}",)) for i in range(1, n)]
        graph = TaskGraph.build(tasks)
        assert graph.topological_order() == list(range(n))
        assert graph.levels()[-1] == n - 1

    def test_levels(self, diamond_tasks):
        """Level is the longest chain of dependencies above a task."""
        assert TaskGraph.build(diamond_tasks).levels() == [0, 1, 1, 2]

    def test_ancestors(self, diamond_tasks):
        """Transitive prerequisites."""
        graph = TaskGraph.build(diamond_tasks)
        assert {graph.id_of(s) for s in graph.ancestors(graph.index["D"])} == {"A", "B", "C"}
        assert graph.ancestors(graph.index["A"]) == set()


class TestClashGraph:
    """Pairs that must not overlap inside a space."""

    def test_unrelated_disruptive_pair_clashes(self, kitchen_clash):
        """Demolition and tiling in one kitchen clash."""
        clashes = build_clash_graph(TaskGraph.build(kitchen_clash))
        assert clashes[0] == {1}
        assert clashes[1] == {0}

    def test_dependent_pair_does_not_clash(self):
        """A dependency path already orders the pair."""
        tasks = [
            _task("demo", category=Category.DEMOLITION),
            _task("frame", deps=("demo",)),
            _task("paint", deps=("frame",), category=Category.PAINTING),
            _task("wire", category=Category.ELECTRICAL, space="other"),
        ]
        assert build_clash_graph(TaskGraph.build(tasks)) == {}

    def test_quiet_work_does_not_clash(self):
        """Two non-disruptive tasks may share a space."""
        tasks = [_task("paint", category=Category.PAINTING), _task("floor", category=Category.FLOORING)]
        assert build_clash_graph(TaskGraph.build(tasks)) == {}

    def test_other_space_does_not_clash(self):
        """Different spaces never clash."""
        tasks = [
            _task("demo", category=Category.DEMOLITION, space="kitchen"),
            _task("wire", category=Category.ELECTRICAL, space="bath"),
        ]
        assert build_clash_graph(TaskGraph.build(tasks)) == {}
