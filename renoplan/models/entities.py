from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from renoplan.models.errors import ValidationError


class Category(str, Enum):
    DEMOLITION = "demolition"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    CARPENTRY = "carpentry"
    PAINTING = "painting"
    FLOORING = "flooring"
    TILING = "tiling"
    LIGHTING = "lighting"
    FINISHING = "finishing"
    FURNITURE = "furniture"
    CLEANUP = "cleanup"


# Work that cannot share a space with anything else running at the same time
DISRUPTIVE_CATEGORIES: FrozenSet[Category] = frozenset(
    {Category.DEMOLITION, Category.PLUMBING, Category.ELECTRICAL}
)

WEEKDAYS: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    category: Category
    space: str
    duration: int  # working days
    dependencies: Tuple[str, ...] = ()
    cost: float = 0.0
    # Derived by build_schedule, never authoritative input
    start_date: Optional[date] = None
    end_date: Optional[date] = None  # exclusive: first day a successor may start
    is_critical: bool = False
    slack: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "category", Category(self.category))

    @property
    def is_dated(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass(frozen=True)
class WorkingDayRule:
    working_weekdays: FrozenSet[int] = WEEKDAYS  # Monday == 0
    blackout_dates: FrozenSet[date] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "working_weekdays", frozenset(self.working_weekdays))
        object.__setattr__(self, "blackout_dates", frozenset(self.blackout_dates))


@dataclass(frozen=True)
class ProjectContext:
    """Risk modifiers supplied by the caller for one simulation request."""

    occupied: bool = False  # residents stay in the home during the work
    month: Optional[int] = None  # 1..12, month the work happens in
    category_multipliers: Dict[Category, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self,
            "category_multipliers",
            {Category(k): float(v) for k, v in self.category_multipliers.items()},
        )
        for category, factor in self.category_multipliers.items():
            if factor <= 0:
                raise ValidationError(f"Multiplier for {category.value} must be positive, got {factor}")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValidationError(f"Month must be in 1..12, got {self.month}")


@dataclass(frozen=True)
class CriticalPathNode:
    task_id: str
    early_start: int
    early_finish: int
    late_start: int
    late_finish: int
    slack: int
    is_critical: bool


@dataclass(frozen=True)
class ScheduleResult:
    tasks: Tuple[Task, ...]
    critical_path: Tuple[str, ...]
    nodes: Dict[str, CriticalPathNode]
    project_start: date
    calendar: WorkingDayRule
    total_duration: int  # working days
    end_date: date
    calendar_days: int
    total_cost: float

    @property
    def critical_ratio(self) -> float:
        if not self.tasks:
            return 0.0
        return len(self.critical_path) / len(self.tasks)

    def task(self, task_id: str) -> Task:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise KeyError(task_id)


@dataclass(frozen=True)
class LevelingResult:
    """Dated schedule with no overlapping clashes inside a space."""

    tasks: Tuple[Task, ...]
    offsets: Dict[str, Tuple[int, int]]  # task_id -> (start, finish) working-day offsets
    makespan: int
    end_date: date
    solver_used: str
    shifted_task_ids: Tuple[str, ...]  # tasks that start later than their CPM earliest start
