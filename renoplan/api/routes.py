from datetime import date
from typing import Any, Dict, List, Optional
import logging
import random

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from renoplan.config.settings import get_settings
from renoplan.engine.conflict_analyzer import analyze_dependencies
from renoplan.engine.critical_path import build_schedule
from renoplan.engine.estimator import run_simulation
from renoplan.engine.leveling import level_schedule
from renoplan.engine.scenarios import generate_scenarios
from renoplan.models.analysis import (
    DEFAULT_SEQUENCE_RULES,
    BottleneckReason,
    ConflictKind,
    OptimizationKind,
    SequenceRule,
    Severity,
)
from renoplan.models.entities import Category, ProjectContext, ScheduleResult, Task, WorkingDayRule
from renoplan.models.errors import CycleDetected, SchedulingError, SimulationAborted
from renoplan.models.forecast import RecommendationReason, RiskLevel, ScenarioType, SimulationResult
from renoplan.storage.cache import SimulationCache
from renoplan.utils.benchmarking import compare_levelers

router = APIRouter()
cache = SimulationCache()
settings = get_settings()
logger = logging.getLogger(__name__)


def _http_error(exc: SchedulingError) -> HTTPException:
    """Map core errors to HTTP status codes."""
    if isinstance(exc, CycleDetected):
        return HTTPException(status_code=422, detail={"message": str(exc), "cycle": exc.cycle})
    if isinstance(exc, SimulationAborted):
        return HTTPException(status_code=503, detail={"message": str(exc), "completed_trials": exc.completed_trials})
    return HTTPException(status_code=400, detail={"message": str(exc), "task_ids": getattr(exc, "task_ids", [])})


# -- request DTOs -------------------------------------------------------------

class TaskDTO(BaseModel):
    id: str
    title: str
    category: Category
    space: str
    duration: int
    dependencies: List[str] = []
    cost: float = 0.0
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int):
        """Ensure task duration is reasonable (1 day to 2 years of working days)."""
        if v < 1 or v > 500:
            raise ValueError("duration must be between 1 and 500 working days")
        return v

    @field_validator("cost")
    @classmethod
    def validate_cost(cls, v: float):
        if v < 0:
            raise ValueError("cost must be non-negative")
        return v

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            category=self.category,
            space=self.space,
            duration=self.duration,
            dependencies=tuple(self.dependencies),
            cost=self.cost,
            start_date=self.start_date,
            end_date=self.end_date,
        )


class CalendarDTO(BaseModel):
    working_weekdays: List[int] = [0, 1, 2, 3, 4]
    blackout_dates: List[date] = []

    @field_validator("working_weekdays")
    @classmethod
    def validate_weekdays(cls, v: List[int]):
        """Monday == 0 ... Sunday == 6; at least one working weekday."""
        if not v:
            raise ValueError("at least one working weekday is required")
        for d in v:
            if d < 0 or d > 6:
                raise ValueError("weekdays must be in [0, 6] (Monday == 0)")
        return v

    def to_domain(self) -> WorkingDayRule:
        return WorkingDayRule(frozenset(self.working_weekdays), frozenset(self.blackout_dates))


class ContextDTO(BaseModel):
    occupied: bool = False
    month: Optional[int] = Field(None, ge=1, le=12)
    category_multipliers: Dict[Category, float] = {}

    @field_validator("category_multipliers")
    @classmethod
    def validate_multipliers(cls, v: Dict[Category, float]):
        for category, factor in v.items():
            if factor <= 0:
                raise ValueError(f"multiplier for {category.value} must be positive")
        return v

    def to_domain(self) -> ProjectContext:
        return ProjectContext(self.occupied, self.month, dict(self.category_multipliers))


class SequenceRuleDTO(BaseModel):
    before: Category
    after: Category


class ScheduleRequest(BaseModel):
    tasks: List[TaskDTO]
    project_start: date
    calendar: CalendarDTO = CalendarDTO()


class AnalyzeRequest(BaseModel):
    tasks: List[TaskDTO]
    rules: Optional[List[SequenceRuleDTO]] = None


class SimulateRequest(BaseModel):
    tasks: List[TaskDTO] = Field(..., min_length=1)
    trials: Optional[int] = Field(None, ge=1)
    context: ContextDTO = ContextDTO()
    seed: Optional[int] = None


class ScenarioRequest(ScheduleRequest):
    trials: Optional[int] = Field(None, ge=1)
    context: ContextDTO = ContextDTO()
    seed: Optional[int] = None


# -- response DTOs ------------------------------------------------------------

class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ScheduledTaskDTO(DomainModel):
    id: str
    title: str
    category: Category
    space: str
    duration: int
    dependencies: List[str]
    cost: float
    start_date: Optional[date]
    end_date: Optional[date]
    is_critical: bool
    slack: Optional[int]


class ScheduleResponse(DomainModel):
    tasks: List[ScheduledTaskDTO]
    critical_path: List[str]
    total_duration: int
    end_date: date
    calendar_days: int
    total_cost: float
    critical_ratio: float


class ConflictDTO(DomainModel):
    id: str
    kind: ConflictKind
    severity: Severity
    involved_tasks: List[str]
    description: str
    suggested_resolutions: List[str]


class BottleneckDTO(DomainModel):
    task_id: str
    reason: BottleneckReason
    impact_days: float
    params: Dict[str, Any]


class OptimizationDTO(DomainModel):
    kind: OptimizationKind
    task_ids: List[str]
    days_saved: float
    params: Dict[str, Any]


class AnalysisResponse(DomainModel):
    conflicts: List[ConflictDTO]
    critical_path: List[str]
    parallelizable_groups: List[List[str]]
    bottlenecks: List[BottleneckDTO]
    optimizations: List[OptimizationDTO]


class DistributionDTO(DomainModel):
    task_id: str
    optimistic: float
    most_likely: float
    pessimistic: float
    uncertainty_factor: float
    pert_mean: float
    std_dev: float


class TaskRiskDTO(DomainModel):
    task_id: str
    level: RiskLevel
    variability: float
    mean: float
    std_dev: float


class CompletionPointDTO(DomainModel):
    days: int
    probability: float


class RecommendationDTO(DomainModel):
    reason: RecommendationReason
    params: Dict[str, Any]


class SimulationResponse(DomainModel):
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
    distributions: List[DistributionDTO]
    task_risks: List[TaskRiskDTO]
    completion_curve: List[CompletionPointDTO]
    recommendations: List[RecommendationDTO]
    cached: bool = False


class ScenarioDTO(DomainModel):
    type: ScenarioType
    tasks: List[ScheduledTaskDTO]
    duration: int
    end_date: date
    total_cost: float
    reliability: int
    risk_level: RiskLevel
    delta_days: int
    notes: List[RecommendationDTO]


class ScenariosResponse(BaseModel):
    baseline: ScheduleResponse
    simulation: SimulationResponse
    scenarios: List[ScenarioDTO]


class LevelResponse(DomainModel):
    tasks: List[ScheduledTaskDTO]
    makespan: int
    end_date: date
    solver_used: str
    shifted_task_ids: List[str]


class BenchmarkEntry(DomainModel):
    solver_name: str
    time_seconds: float
    makespan: int
    success: bool


class BenchmarkResponse(BaseModel):
    results: List[BenchmarkEntry]
    num_tasks: int


def _schedule_response(result: ScheduleResult) -> ScheduleResponse:
    return ScheduleResponse.model_validate(result)


def _simulate(tasks: List[Task], trials: Optional[int], context: ContextDTO, seed: Optional[int]) -> SimulationResult:
    trials = trials or settings.default_trials
    if trials > settings.max_trials:
        raise HTTPException(status_code=400, detail=f"trials must not exceed {settings.max_trials}")
    return run_simulation(
        tasks,
        trials,
        context.to_domain(),
        random.Random(seed) if seed is not None else None,
        workers=settings.simulation_workers,
        batch_size=settings.simulation_batch_size,
    )


# -- endpoints ----------------------------------------------------------------

@router.post("/schedule/build", response_model=ScheduleResponse, summary="Build a CPM schedule")
def build(req: ScheduleRequest):
    """
    Compute earliest start/finish, slack and the critical path for a task list.

    **Error Handling:**
    - 400: Invalid task list (unknown dependency, self dependency, duplicate id)
    - 422: Circular dependency (detail carries the cycle)
    """
    logger.info(f"Build request: {len(req.tasks)} tasks, start={req.project_start}")
    try:
        result = build_schedule([t.to_domain() for t in req.tasks], req.project_start, req.calendar.to_domain())
    except SchedulingError as exc:
        logger.warning(f"Build rejected: {exc}")
        raise _http_error(exc) from exc
    logger.info(f"Schedule built: {result.total_duration} working days, critical path {len(result.critical_path)} tasks")
    return _schedule_response(result)


@router.post("/schedule/analyze", response_model=AnalysisResponse, summary="Analyze dependencies")
def analyze(req: AnalyzeRequest):
    """
    Detect circular, resource, sequence and parallelization conflicts.

    Resource, sequence and parallelization checks only consider tasks that
    carry `start_date` and `end_date`. Conflicts are results, not errors.
    """
    logger.info(f"Analyze request: {len(req.tasks)} tasks")
    rules = DEFAULT_SEQUENCE_RULES if req.rules is None else [SequenceRule(r.before, r.after) for r in req.rules]
    try:
        analysis = analyze_dependencies([t.to_domain() for t in req.tasks], rules)
    except SchedulingError as exc:
        logger.warning(f"Analyze rejected: {exc}")
        raise _http_error(exc) from exc
    logger.info(f"Analysis complete: {len(analysis.conflicts)} conflicts")
    return AnalysisResponse.model_validate(analysis)


@router.post("/schedule/simulate", response_model=SimulationResponse, summary="Monte Carlo duration forecast")
def simulate(req: SimulateRequest):
    """
    Forecast total duration with a Monte Carlo simulation.

    **Caching:** only seeded requests are deterministic, so only they are
    cached (when `cache_enabled` is set).
    """
    logger.info(f"Simulate request: {len(req.tasks)} tasks, trials={req.trials}, seed={req.seed}")

    use_cache = settings.cache_enabled and req.seed is not None
    request_hash = SimulationCache.hash_request(req.model_dump(mode="json")) if use_cache else None
    if use_cache:
        cached_result = cache.get(request_hash)
        if cached_result:
            logger.info("Cache hit")
            return {**cached_result, "cached": True}

    try:
        result = _simulate([t.to_domain() for t in req.tasks], req.trials, req.context, req.seed)
    except SchedulingError as exc:
        logger.warning(f"Simulation rejected: {exc}")
        raise _http_error(exc) from exc

    response = SimulationResponse.model_validate(result)
    if use_cache:
        cache.set(request_hash, response.model_dump(mode="json"))
    logger.info(f"Simulation complete: expected={result.expected_duration}, p10={result.p10}, p90={result.p90}")
    return response


@router.post("/schedule/scenarios", response_model=ScenariosResponse, summary="Optimistic/realistic/conservative scenarios")
def scenarios(req: ScenarioRequest):
    """
    Build the baseline schedule, simulate it and derive the three scenarios.
    """
    logger.info(f"Scenario request: {len(req.tasks)} tasks, seed={req.seed}")
    tasks = [t.to_domain() for t in req.tasks]
    try:
        baseline = build_schedule(tasks, req.project_start, req.calendar.to_domain())
        simulation = _simulate(tasks, req.trials, req.context, req.seed)
        generated = generate_scenarios(baseline, simulation)
    except SchedulingError as exc:
        logger.warning(f"Scenario request rejected: {exc}")
        raise _http_error(exc) from exc
    return ScenariosResponse(
        baseline=_schedule_response(baseline),
        simulation=SimulationResponse.model_validate(simulation),
        scenarios=[ScenarioDTO.model_validate(s) for s in generated],
    )


@router.post("/schedule/level", response_model=LevelResponse, summary="Resource-leveled schedule")
def level(
    req: ScheduleRequest,
    solver: str = Query("auto", pattern="^(auto|greedy|ortools)$", description="Leveler: auto, greedy, or ortools"),
):
    """
    Re-date tasks so that disruptive work never overlaps other work in the same space.

    **Solver Selection:**
    - `auto`: greedy below `leveling_auto_threshold` tasks, OR-Tools above
    - `greedy`: serial schedule generation (instant, no optimality guarantee)
    - `ortools`: CP-SAT minimising the makespan under a time limit
    """
    logger.info(f"Level request: {len(req.tasks)} tasks, solver={solver}")
    if solver == "auto":
        solver = settings.leveling_solver
    try:
        result = level_schedule(
            [t.to_domain() for t in req.tasks],
            req.project_start,
            req.calendar.to_domain(),
            solver=solver,
            time_limit_seconds=settings.ortools_time_limit_seconds,
            auto_threshold=settings.leveling_auto_threshold,
        )
    except SchedulingError as exc:
        logger.warning(f"Level rejected: {exc}")
        raise _http_error(exc) from exc
    logger.info(f"Leveling complete: makespan={result.makespan}, shifted={len(result.shifted_task_ids)}")
    return LevelResponse.model_validate(result)


@router.post("/schedule/benchmark", response_model=BenchmarkResponse, summary="Benchmark levelers")
def benchmark(req: ScheduleRequest):
    """
    Compare greedy vs OR-Tools leveling on the same task list.
    """
    logger.info(f"Benchmark request: {len(req.tasks)} tasks")
    try:
        results = compare_levelers([t.to_domain() for t in req.tasks], settings.ortools_time_limit_seconds)
    except SchedulingError as exc:
        raise _http_error(exc) from exc

    logger.info(f"Benchmark complete: {len(results)} levelers compared")
    return {
        "results": [BenchmarkEntry.model_validate(r) for r in results],
        "num_tasks": len(req.tasks),
    }
