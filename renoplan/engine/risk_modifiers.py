from abc import ABC, abstractmethod
from typing import FrozenSet, List

from renoplan.models.entities import Category, ProjectContext, Task

HIGH_UNCERTAINTY_CATEGORIES: FrozenSet[Category] = frozenset({Category.DEMOLITION})
FINISHING_CATEGORIES: FrozenSet[Category] = frozenset(
    {Category.FINISHING, Category.PAINTING, Category.FURNITURE, Category.CLEANUP}
)
UTILITY_CATEGORIES: FrozenSet[Category] = frozenset({Category.ELECTRICAL, Category.PLUMBING})

WINTER_MONTHS: FrozenSet[int] = frozenset({12, 1, 2})
SUMMER_MONTHS: FrozenSet[int] = frozenset({7, 8})


class UncertaintyModifier(ABC):
    """
    Abstract base class for uncertainty modifiers.
    Extend this to add domain-specific risk factors to the estimator.
    """

    @abstractmethod
    def factor(self, task: Task, context: ProjectContext) -> float:
        """
        Multiplier applied to the task's uncertainty factor.
        Returns 1.0 when the modifier does not apply.
        """
        pass


class CategoryModifier(UncertaintyModifier):
    """Demolition hides surprises; finishing work is predictable."""

    def __init__(self, high: float = 1.5, finishing: float = 0.8, utility: float = 1.2):
        self.high = high
        self.finishing = finishing
        self.utility = utility

    def factor(self, task: Task, context: ProjectContext) -> float:
        if task.category in HIGH_UNCERTAINTY_CATEGORIES:
            return self.high
        if task.category in FINISHING_CATEGORIES:
            return self.finishing
        if task.category in UTILITY_CATEGORIES:
            return self.utility
        return 1.0


class OccupancyModifier(UncertaintyModifier):
    """Work around residents who stay in the home."""

    def __init__(self, weight: float = 1.3):
        self.weight = weight

    def factor(self, task: Task, context: ProjectContext) -> float:
        return self.weight if context.occupied else 1.0


class SeasonalModifier(UncertaintyModifier):
    """Winter and midsummer slow crews down."""

    def __init__(self, weight: float = 1.1, months: FrozenSet[int] = WINTER_MONTHS | SUMMER_MONTHS):
        self.weight = weight
        self.months = months

    def factor(self, task: Task, context: ProjectContext) -> float:
        return self.weight if context.month in self.months else 1.0


class CallerMultiplierModifier(UncertaintyModifier):
    """Per-category multipliers supplied with the ProjectContext."""

    def factor(self, task: Task, context: ProjectContext) -> float:
        return context.category_multipliers.get(task.category, 1.0)


class ModifierRegistry:
    """
    Registry for pluggable uncertainty modifiers.
    The combined factor is the product of every registered modifier.
    """

    def __init__(self):
        self.modifiers: List[UncertaintyModifier] = []

    def register(self, modifier: UncertaintyModifier) -> "ModifierRegistry":
        self.modifiers.append(modifier)
        return self

    def uncertainty_factor(self, task: Task, context: ProjectContext) -> float:
        result = 1.0
        for m in self.modifiers:
            result *= m.factor(task, context)
        return result


def default_registry() -> ModifierRegistry:
    return (
        ModifierRegistry()
        .register(CategoryModifier())
        .register(CallerMultiplierModifier())
        .register(OccupancyModifier())
        .register(SeasonalModifier())
    )
