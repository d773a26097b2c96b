import random
import threading

import pytest
from renoplan.engine.estimator import round_half_up, run_simulation, sample_duration, task_distribution
from renoplan.engine.risk_modifiers import ModifierRegistry, OccupancyModifier, UncertaintyModifier
from renoplan.models.entities import Category, ProjectContext, Task
from renoplan.models.errors import SimulationAborted, ValidationError
from renoplan.models.forecast import RecommendationReason, RiskLevel, TaskDistribution


def _task(task_id, category=Category.CARPENTRY, space="hall", duration=5):
    return Task(id=task_id, title=task_id, category=category, space=space, duration=duration)


class TestDistributions:
    """Three-point estimates and their modifiers."""

    def test_pert_example(self):
        """4/5/9 gives mean 5.5 and standard deviation 5/6."""
        dist = TaskDistribution("t", optimistic=4, most_likely=5, pessimistic=9)
        assert dist.pert_mean == pytest.approx(5.5)
        assert dist.std_dev == pytest.approx(0.8333, abs=1e-4)

    def test_neutral_category(self):
        """Carpentry in an empty home keeps the base spread."""
        dist = task_distribution(_task("t", duration=10))
        assert dist.optimistic == pytest.approx(8)
        assert dist.most_likely == 10
        assert dist.pessimistic == pytest.approx(15)
        assert dist.uncertainty_factor == pytest.approx(1.0)

    def test_demolition_widens_range(self):
        """Demolition multiplies uncertainty by 1.5."""
        dist = task_distribution(_task("t", Category.DEMOLITION, duration=10))
        assert dist.uncertainty_factor == pytest.approx(1.5)
        assert dist.pessimistic == pytest.approx(17.5)

    def test_context_modifiers_multiply(self):
        """Painting, occupied home, January: 0.8 * 1.3 * 1.1."""
        dist = task_distribution(_task("t", Category.PAINTING), ProjectContext(occupied=True, month=1))
        assert dist.uncertainty_factor == pytest.approx(0.8 * 1.3 * 1.1)

    def test_caller_multiplier(self):
        """Per-category multipliers from the caller apply to matching tasks only."""
        context = ProjectContext(category_multipliers={"plumbing": 2.0})
        assert task_distribution(_task("p", Category.PLUMBING), context).uncertainty_factor == pytest.approx(2.4)
        assert task_distribution(_task("c"), context).uncertainty_factor == pytest.approx(1.0)

    def test_custom_registry(self):
        """Registries are pluggable."""
        class Doubler(UncertaintyModifier):
            def factor(self, task, context):
                return 2.0

        registry = ModifierRegistry().register(Doubler()).register(OccupancyModifier())
        dist = task_distribution(_task("t"), ProjectContext(occupied=True), registry)
        assert dist.uncertainty_factor == pytest.approx(2.6)

    def test_samples_stay_in_range(self):
        """Clamped draws never leave [optimistic, pessimistic]."""
        dist = task_distribution(_task("t", Category.DEMOLITION, duration=10))
        rng = random.Random(3)
        samples = [sample_duration(dist, rng) for _ in range(2000)]
        assert min(samples) >= 8
        assert max(samples) <= 18

    def test_round_half_up(self):
        """Halves round away from zero for positive values."""
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(3.49) == 3


class TestSimulation:
    """Monte Carlo runs over a task list."""

    def test_seeded_run_is_deterministic(self, renovation_tasks):
        """Same seed, same result."""
        first = run_simulation(renovation_tasks, 2000, rng=random.Random(42))
        second = run_simulation(renovation_tasks, 2000, rng=random.Random(42))
        assert first == second

    def test_worker_count_does_not_change_result(self, renovation_tasks):
        """Batches merge in order regardless of threading."""
        serial = run_simulation(renovation_tasks, 3000, rng=random.Random(7), workers=1, batch_size=500)
        threaded = run_simulation(renovation_tasks, 3000, rng=random.Random(7), workers=4, batch_size=500)
        assert serial == threaded

    def test_percentiles_ordered(self, renovation_tasks):
        """min <= p10 <= p50 <= p90 <= max."""
        result = run_simulation(renovation_tasks, 2000, rng=random.Random(1))
        assert result.min_duration <= result.p10 <= result.p50 <= result.p90 <= result.max_duration
        assert result.min_duration <= result.expected_duration <= result.max_duration
        assert result.buffer_days == result.p90 - result.expected_duration
        assert 0 <= result.confidence <= 100

    def test_partial_batch(self, renovation_tasks):
        """Trial counts need not be a multiple of the batch size."""
        result = run_simulation(renovation_tasks, 1234, rng=random.Random(1), batch_size=500)
        assert result.trials == 1234

    def test_completion_curve(self, renovation_tasks):
        """Curve climbs to 100% at the longest trial."""
        result = run_simulation(renovation_tasks, 2000, rng=random.Random(5))
        curve = result.completion_curve
        assert curve[0].days == result.min_duration
        assert curve[-1].days == result.max_duration
        assert curve[-1].probability == 100.0
        probabilities = [p.probability for p in curve]
        assert probabilities == sorted(probabilities)

    def test_single_space_sums_durations(self):
        """Work inside one space runs back to back."""
        tasks = [_task("a", duration=1), _task("b", duration=1)]
        result = run_simulation(tasks, 200, rng=random.Random(2))
        assert result.min_duration >= 2

    def test_spaces_run_in_parallel(self):
        """Project duration is the longest space, not the sum."""
        tasks = [_task("a", space="kitchen", duration=10), _task("b", space="bath", duration=10)]
        result = run_simulation(tasks, 500, rng=random.Random(2))
        assert result.max_duration <= 15

    def test_high_risk_task(self):
        """A hugely uncertain task is classified high risk."""
        tasks = [_task("demo", Category.DEMOLITION, duration=10), _task("paint", Category.PAINTING)]
        context = ProjectContext(category_multipliers={Category.DEMOLITION: 10.0})
        result = run_simulation(tasks, 2000, context, random.Random(9))
        assert "demo" in result.flagged_task_ids
        assert result.task_risks[0].task_id == "demo"
        assert result.task_risks[0].level == RiskLevel.HIGH
        reasons = [r.reason for r in result.recommendations]
        assert RecommendationReason.HIGH_VARIABILITY_TASK in reasons

    def test_context_recommendations(self, renovation_tasks):
        """Season, occupancy and multiple spaces each add a recommendation."""
        context = ProjectContext(occupied=True, month=12)
        result = run_simulation(renovation_tasks, 500, context, random.Random(4))
        reasons = {r.reason for r in result.recommendations}
        assert {
            RecommendationReason.WINTER_CONDITIONS,
            RecommendationReason.OCCUPIED_RESIDENCE,
            RecommendationReason.PARALLELIZE_SPACES,
        } <= reasons

    def test_more_trials_do_not_widen_spread_wildly(self, renovation_tasks):
        """P10-P90 gap stays bounded as trials grow."""
        small = run_simulation(renovation_tasks, 200, rng=random.Random(11))
        large = run_simulation(renovation_tasks, 5000, rng=random.Random(11))
        assert large.p90 - large.p10 <= (small.p90 - small.p10) + len(renovation_tasks)


class TestCancellationAndValidation:
    """Aborted and rejected runs."""

    def test_cancelled_before_start(self, renovation_tasks):
        """A set event skips every batch."""
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationAborted) as exc_info:
            run_simulation(renovation_tasks, 1000, rng=random.Random(1), cancel_event=cancel)
        assert exc_info.value.completed_trials == 0
        assert exc_info.value.requested_trials == 1000

    def test_cancelled_mid_run(self, renovation_tasks):
        """Batches after the signal are skipped and the run is reported incomplete."""
        class TripAfterFirstCheck(threading.Event):
            def __init__(self):
                super().__init__()
                self.checks = 0

            def is_set(self):
                self.checks += 1
                return self.checks > 1

        with pytest.raises(SimulationAborted) as exc_info:
            run_simulation(renovation_tasks, 100, rng=random.Random(1), batch_size=50, cancel_event=TripAfterFirstCheck())
        assert exc_info.value.completed_trials == 50

    def test_zero_trials(self, renovation_tasks):
        """At least one trial is required."""
        with pytest.raises(ValidationError):
            run_simulation(renovation_tasks, 0)

    def test_empty_task_list(self):
        """Nothing to simulate."""
        with pytest.raises(ValidationError):
            run_simulation([], 100)

    def test_malformed_tasks(self):
        """Task validation runs before any trial."""
        with pytest.raises(ValidationError):
            run_simulation([_task("a", duration=0)], 100)

    def test_non_positive_multiplier(self):
        """A negative multiplier would invert the three-point range."""
        with pytest.raises(ValidationError):
            ProjectContext(category_multipliers={Category.PLUMBING: -1.0})
        with pytest.raises(ValidationError):
            ProjectContext(category_multipliers={"demolition": 0})

    def test_month_out_of_range(self):
        """Months run 1..12."""
        with pytest.raises(ValidationError):
            ProjectContext(month=13)
