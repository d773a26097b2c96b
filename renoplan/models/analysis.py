from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

from renoplan.models.entities import Category


class ConflictKind(str, Enum):
    CIRCULAR = "circular"
    RESOURCE = "resource"
    SEQUENCE = "sequence"
    PARALLELIZABLE = "parallelizable"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class DependencyConflict:
    kind: ConflictKind
    severity: Severity
    involved_tasks: Tuple[str, ...]
    description: str
    suggested_resolutions: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return f"{self.kind.value}-" + "-".join(self.involved_tasks)


@dataclass(frozen=True)
class SequenceRule:
    """Within one space, `before` work has to be finished before `after` work starts."""

    before: Category
    after: Category


DEFAULT_SEQUENCE_RULES: Tuple[SequenceRule, ...] = (
    SequenceRule(Category.DEMOLITION, Category.FINISHING),
    SequenceRule(Category.PLUMBING, Category.FLOORING),
    SequenceRule(Category.ELECTRICAL, Category.PAINTING),
    SequenceRule(Category.FLOORING, Category.FURNITURE),
)


class BottleneckReason(str, Enum):
    LONG_CRITICAL_TASK = "long_critical_task"
    MANY_DEPENDENTS = "many_dependents"
    HIGH_UNCERTAINTY_CATEGORY = "high_uncertainty_category"


@dataclass(frozen=True)
class Bottleneck:
    task_id: str
    reason: BottleneckReason
    impact_days: float
    params: Dict[str, Any] = field(default_factory=dict)


class OptimizationKind(str, Enum):
    PARALLEL = "parallel"
    MERGE = "merge"
    REORDER = "reorder"


@dataclass(frozen=True)
class Optimization:
    kind: OptimizationKind
    task_ids: Tuple[str, ...]
    days_saved: float
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DependencyAnalysis:
    conflicts: Tuple[DependencyConflict, ...]
    critical_path: Tuple[str, ...]
    parallelizable_groups: Tuple[Tuple[str, ...], ...]
    bottlenecks: Tuple[Bottleneck, ...]
    optimizations: Tuple[Optimization, ...]

    def conflicts_of(self, kind: ConflictKind) -> Tuple[DependencyConflict, ...]:
        return tuple(c for c in self.conflicts if c.kind == kind)
