from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Tuple

from renoplan.models.entities import Task


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TaskDistribution:
    """Three-point estimate of one task's duration, in working days."""

    task_id: str
    optimistic: float
    most_likely: float
    pessimistic: float
    uncertainty_factor: float = 1.0

    @property
    def pert_mean(self) -> float:
        return (self.optimistic + 4 * self.most_likely + self.pessimistic) / 6

    @property
    def std_dev(self) -> float:
        return (self.pessimistic - self.optimistic) / 6


@dataclass(frozen=True)
class TaskRisk:
    task_id: str
    level: RiskLevel
    variability: float  # coefficient of variation across trials
    mean: float
    std_dev: float


@dataclass(frozen=True)
class CompletionPoint:
    days: int
    probability: float  # percent of trials finished within `days`


class RecommendationReason(str, Enum):
    SCHEDULE_BUFFER = "schedule_buffer"
    HIGH_VARIABILITY_TASK = "high_variability_task"
    WINTER_CONDITIONS = "winter_conditions"
    SUMMER_CONDITIONS = "summer_conditions"
    OCCUPIED_RESIDENCE = "occupied_residence"
    PARALLELIZE_SPACES = "parallelize_spaces"


@dataclass(frozen=True)
class Recommendation:
    reason: RecommendationReason
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SimulationResult:
    trials: int
    expected_duration: int
    mean_duration: float
    std_dev: float
    p10: int
    p50: int
    p90: int
    min_duration: int
    max_duration: int
    buffer_days: int
    confidence: float
    distributions: Tuple[TaskDistribution, ...]
    task_risks: Tuple[TaskRisk, ...]
    completion_curve: Tuple[CompletionPoint, ...]
    recommendations: Tuple[Recommendation, ...]

    @property
    def flagged_task_ids(self) -> Tuple[str, ...]:
        """Every task with a reported risk, medium or high."""
        return tuple(r.task_id for r in self.task_risks)


class ScenarioType(str, Enum):
    OPTIMISTIC = "optimistic"
    REALISTIC = "realistic"
    CONSERVATIVE = "conservative"


@dataclass(frozen=True)
class Scenario:
    type: ScenarioType
    tasks: Tuple[Task, ...]
    duration: int  # working days
    end_date: date
    total_cost: float
    reliability: int  # percent chance of meeting `end_date`
    risk_level: RiskLevel
    delta_days: int  # against the baseline critical-path duration
    notes: Tuple[Recommendation, ...] = ()
