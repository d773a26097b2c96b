"""
Probabilistic duration estimation (PERT + Monte Carlo).

Each task's point estimate becomes a three-point distribution:
    optimistic  = duration * 0.8
    most likely = duration
    pessimistic = duration * (1 + 0.5 * uncertainty)
where `uncertainty` is the product of the registered UncertaintyModifiers
(category, occupancy, season, caller multipliers).

A trial draws every task from a normal approximation (Box-Muller) centred on
the PERT mean, clamps it to [optimistic, pessimistic] and rounds to whole
days. The trial's project duration is the longest per-space sum of task
durations: spaces run in parallel, work inside a space runs back to back.
This ignores cross-space dependencies, so it is an approximation of the
CPM duration, not an equivalent.

Trials run in batches. Every batch gets its own random.Random seeded from the
injected source before dispatch, and batch buffers are merged in batch order,
so a fixed seed reproduces the same result for any worker count.
"""

import logging
import math
import random
import threading
from bisect import bisect_right
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from renoplan.engine.risk_modifiers import SUMMER_MONTHS, WINTER_MONTHS, ModifierRegistry, default_registry
from renoplan.graph.task_graph import validate_tasks
from renoplan.models.entities import ProjectContext, Task
from renoplan.models.errors import SimulationAborted, ValidationError
from renoplan.models.forecast import (
    CompletionPoint,
    Recommendation,
    RecommendationReason,
    RiskLevel,
    SimulationResult,
    TaskDistribution,
    TaskRisk,
)

logger = logging.getLogger(__name__)

DEFAULT_TRIALS = 10000
DEFAULT_BATCH_SIZE = 1000
OPTIMISTIC_FACTOR = 0.8
PESSIMISTIC_SPREAD = 0.5
HIGH_RISK_CV = 0.3
MEDIUM_RISK_CV = 0.15
CURVE_STEP_DAYS = 5
BUFFER_WARNING_RATIO = 0.2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def task_distribution(
    task: Task,
    context: Optional[ProjectContext] = None,
    registry: Optional[ModifierRegistry] = None,
) -> TaskDistribution:
    context = context or ProjectContext()
    registry = registry or default_registry()
    uncertainty = registry.uncertainty_factor(task, context)
    return TaskDistribution(
        task_id=task.id,
        optimistic=task.duration * OPTIMISTIC_FACTOR,
        most_likely=float(task.duration),
        pessimistic=task.duration * (1 + PESSIMISTIC_SPREAD * uncertainty),
        uncertainty_factor=uncertainty,
    )


def sample_duration(dist: TaskDistribution, rng: random.Random) -> int:
    """One Box-Muller normal draw, clamped to the distribution's range."""
    u1 = 1.0 - rng.random()  # (0, 1], keeps log() finite
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    value = dist.pert_mean + dist.std_dev * z
    return round_half_up(min(dist.pessimistic, max(dist.optimistic, value)))


@dataclass
class _BatchBuffer:
    durations: List[int]
    sums: List[int]  # per task
    squares: List[int]  # per task


def _run_batch(
    dists: Sequence[TaskDistribution],
    space_of: Sequence[int],
    space_count: int,
    trials: int,
    seed: int,
    cancel_event: Optional[threading.Event],
) -> Optional[_BatchBuffer]:
    if cancel_event is not None and cancel_event.is_set():
        return None
    rng = random.Random(seed)
    buf = _BatchBuffer(durations=[], sums=[0] * len(dists), squares=[0] * len(dists))
    for _ in range(trials):
        totals = [0] * space_count
        for i, dist in enumerate(dists):
            d = sample_duration(dist, rng)
            buf.sums[i] += d
            buf.squares[i] += d * d
            totals[space_of[i]] += d
        buf.durations.append(max(totals))
    return buf


def _percentile(sorted_durations: List[int], fraction: float) -> int:
    n = len(sorted_durations)
    return sorted_durations[min(n - 1, int(math.floor(n * fraction)))]


def _completion_curve(sorted_durations: List[int], step: int = CURVE_STEP_DAYS) -> List[CompletionPoint]:
    n = len(sorted_durations)
    lo, hi = sorted_durations[0], sorted_durations[-1]
    days = list(range(lo, hi + 1, step))
    if days[-1] != hi:
        days.append(hi)
    return [
        CompletionPoint(days=d, probability=round(bisect_right(sorted_durations, d) / n * 100, 1))
        for d in days
    ]


def _classify_risks(tasks: Sequence[Task], sums: List[int], squares: List[int], trials: int) -> List[TaskRisk]:
    risks = []
    for i, t in enumerate(tasks):
        mean = sums[i] / trials
        variance = max(0.0, squares[i] / trials - mean * mean)
        std = math.sqrt(variance)
        cv = std / mean if mean else 0.0
        if cv > HIGH_RISK_CV:
            level = RiskLevel.HIGH
        elif cv > MEDIUM_RISK_CV:
            level = RiskLevel.MEDIUM
        else:
            continue
        risks.append(TaskRisk(t.id, level, round(cv, 4), round(mean, 4), round(std, 4)))
    return sorted(risks, key=lambda r: -r.variability)


def _recommendations(
    context: ProjectContext,
    expected: int,
    buffer_days: int,
    risks: List[TaskRisk],
    space_count: int,
) -> List[Recommendation]:
    recs = []
    if buffer_days > expected * BUFFER_WARNING_RATIO:
        recs.append(Recommendation(RecommendationReason.SCHEDULE_BUFFER, {"buffer_days": buffer_days}))
    if risks:
        top = risks[0]
        recs.append(Recommendation(
            RecommendationReason.HIGH_VARIABILITY_TASK,
            {"task_id": top.task_id, "variability_pct": round_half_up(top.variability * 100)},
        ))
    if context.month in WINTER_MONTHS:
        recs.append(Recommendation(RecommendationReason.WINTER_CONDITIONS, {"month": context.month}))
    elif context.month in SUMMER_MONTHS:
        recs.append(Recommendation(RecommendationReason.SUMMER_CONDITIONS, {"month": context.month}))
    if context.occupied:
        recs.append(Recommendation(
            RecommendationReason.OCCUPIED_RESIDENCE, {"extra_time_pct_min": 20, "extra_time_pct_max": 30},
        ))
    if space_count > 1:
        recs.append(Recommendation(RecommendationReason.PARALLELIZE_SPACES, {"spaces": space_count}))
    return recs


def run_simulation(
    tasks: Sequence[Task],
    trials: int = DEFAULT_TRIALS,
    context: Optional[ProjectContext] = None,
    rng: Optional[random.Random] = None,
    *,
    workers: int = 1,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_event: Optional[threading.Event] = None,
    registry: Optional[ModifierRegistry] = None,
) -> SimulationResult:
    """
    Monte Carlo forecast of the total project duration.

    Args:
        tasks: Tasks to simulate (dependencies are validated, not followed)
        trials: Number of independent trials
        context: Occupancy, month and caller multipliers
        rng: Random source; seed it for reproducible output
        workers: Thread count for batch execution
        batch_size: Trials per batch; cancellation is checked between batches
        cancel_event: Set it to abort the run
        registry: Uncertainty modifiers (default_registry() when omitted)

    Returns:
        SimulationResult with percentiles, per-task risks and recommendations

    Raises:
        ValidationError: malformed tasks, empty task list or trials < 1
        SimulationAborted: cancel_event fired before every batch ran
    """
    if trials < 1:
        raise ValidationError(f"trials must be positive, got {trials}")
    if batch_size < 1:
        raise ValidationError(f"batch_size must be positive, got {batch_size}")
    if not tasks:
        raise ValidationError("Cannot simulate an empty task list")
    validate_tasks(tasks)

    context = context or ProjectContext()
    registry = registry or default_registry()
    rng = rng or random.Random()

    dists = [task_distribution(t, context, registry) for t in tasks]
    space_ids: Dict[str, int] = {}
    space_of = [space_ids.setdefault(t.space, len(space_ids)) for t in tasks]

    sizes = [batch_size] * (trials // batch_size)
    if trials % batch_size:
        sizes.append(trials % batch_size)
    seeds = [rng.getrandbits(64) for _ in sizes]
    logger.debug(f"Simulating {trials} trials over {len(tasks)} tasks in {len(sizes)} batches, workers={workers}")

    def run(size: int, seed: int) -> Optional[_BatchBuffer]:
        return _run_batch(dists, space_of, len(space_ids), size, seed, cancel_event)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            buffers = list(pool.map(run, sizes, seeds))
    else:
        buffers = [run(size, seed) for size, seed in zip(sizes, seeds)]

    completed = sum(size for size, buf in zip(sizes, buffers) if buf is not None)
    if completed < trials:
        logger.warning(f"Simulation aborted after {completed}/{trials} trials")
        raise SimulationAborted(completed, trials)

    durations: List[int] = []
    sums = [0] * len(tasks)
    squares = [0] * len(tasks)
    for buf in buffers:
        durations.extend(buf.durations)
        for i in range(len(tasks)):
            sums[i] += buf.sums[i]
            squares[i] += buf.squares[i]
    durations.sort()

    mean = sum(durations) / trials
    std = math.sqrt(sum((d - mean) ** 2 for d in durations) / trials)
    expected = round_half_up(mean)
    p90 = _percentile(durations, 0.9)
    buffer_days = p90 - expected
    risks = _classify_risks(tasks, sums, squares, trials)
    confidence = max(0.0, min(100.0, 100.0 - (std / mean) * 100)) if mean else 100.0

    return SimulationResult(
        trials=trials,
        expected_duration=expected,
        mean_duration=round(mean, 4),
        std_dev=round(std, 4),
        p10=_percentile(durations, 0.1),
        p50=_percentile(durations, 0.5),
        p90=p90,
        min_duration=durations[0],
        max_duration=durations[-1],
        buffer_days=buffer_days,
        confidence=round(confidence, 1),
        distributions=tuple(dists),
        task_risks=tuple(risks),
        completion_curve=tuple(_completion_curve(durations)),
        recommendations=tuple(_recommendations(context, expected, buffer_days, risks, len(space_ids))),
    )
