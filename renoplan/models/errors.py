from typing import List, Sequence


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class ValidationError(SchedulingError):
    """Input task list is malformed. Carries the offending task ids."""

    def __init__(self, message: str, task_ids: Sequence[str] = ()):
        super().__init__(message)
        self.task_ids: List[str] = list(task_ids)


class UnknownDependency(ValidationError):
    def __init__(self, task_id: str, missing_id: str):
        super().__init__(f"Task {task_id} depends on unknown task {missing_id}", [task_id])
        self.task_id = task_id
        self.missing_id = missing_id


class SelfDependency(ValidationError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} depends on itself", [task_id])
        self.task_id = task_id


class NonPositiveDuration(ValidationError):
    def __init__(self, task_id: str, duration: int):
        super().__init__(f"Task {task_id} has non-positive duration {duration}", [task_id])
        self.task_id = task_id
        self.duration = duration


class DuplicateTaskId(ValidationError):
    def __init__(self, task_id: str):
        super().__init__(f"Task id {task_id} appears more than once", [task_id])
        self.task_id = task_id


class CycleDetected(SchedulingError):
    """Dependency relation is not a DAG. `cycle` lists the tasks in dependency order."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        super().__init__("Circular dependency: " + " -> ".join(self.cycle + self.cycle[:1]))


class SimulationAborted(SchedulingError):
    """Cancellation fired before every trial batch ran."""

    def __init__(self, completed_trials: int, requested_trials: int):
        super().__init__(f"Simulation aborted after {completed_trials}/{requested_trials} trials")
        self.completed_trials = completed_trials
        self.requested_trials = requested_trials
