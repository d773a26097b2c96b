import random
from datetime import date

import pytest
from renoplan.models.entities import Category, Task, WorkingDayRule


@pytest.fixture
def project_start():
    """A Monday."""
    return date(2024, 3, 4)


@pytest.fixture
def weekdays():
    """Monday-Friday calendar, no blackout dates."""
    return WorkingDayRule()


@pytest.fixture
def diamond_tasks():
    """A(5) feeds B(3) and C(4), both feed D(2); critical path A-C-D, 11 days."""
    return [
        Task(id="A", title="Strip kitchen", category=Category.DEMOLITION, space="kitchen", duration=5, cost=1500),
        Task(id="B", title="Rewire kitchen", category=Category.ELECTRICAL, space="kitchen", duration=3,
             dependencies=("A",), cost=900),
        Task(id="C", title="Replumb kitchen", category=Category.PLUMBING, space="kitchen", duration=4,
             dependencies=("A",), cost=1200),
        Task(id="D", title="Paint kitchen", category=Category.PAINTING, space="kitchen", duration=2,
             dependencies=("B", "C"), cost=400),
    ]


@pytest.fixture
def cyclic_tasks():
    """A waits for C, C waits for B, B waits for A."""
    return [
        Task(id="A", title="Frame wall", category=Category.CARPENTRY, space="hall", duration=2, dependencies=("C",)),
        Task(id="B", title="Run cables", category=Category.ELECTRICAL, space="hall", duration=1, dependencies=("A",)),
        Task(id="C", title="Plaster wall", category=Category.FINISHING, space="hall", duration=3, dependencies=("B",)),
    ]


@pytest.fixture
def kitchen_clash():
    """Demolition and tiling in the same kitchen on overlapping dates, unrelated."""
    return [
        Task(id="demo", title="Demolition", category=Category.DEMOLITION, space="kitchen", duration=3,
             start_date=date(2024, 3, 4), end_date=date(2024, 3, 7)),
        Task(id="tile", title="Tiling", category=Category.TILING, space="kitchen", duration=2,
             start_date=date(2024, 3, 5), end_date=date(2024, 3, 7)),
    ]


@pytest.fixture
def renovation_tasks():
    """Three-space renovation with cross-space dependencies."""
    return [
        Task(id="k-demo", title="Kitchen demolition", category=Category.DEMOLITION, space="kitchen",
             duration=4, cost=2000),
        Task(id="k-plumb", title="Kitchen plumbing", category=Category.PLUMBING, space="kitchen",
             duration=3, dependencies=("k-demo",), cost=1800),
        Task(id="k-elec", title="Kitchen electrical", category=Category.ELECTRICAL, space="kitchen",
             duration=2, dependencies=("k-demo",), cost=1100),
        Task(id="k-tile", title="Kitchen tiling", category=Category.TILING, space="kitchen",
             duration=5, dependencies=("k-plumb", "k-elec"), cost=2500),
        Task(id="b-demo", title="Bathroom demolition", category=Category.DEMOLITION, space="bathroom",
             duration=3, cost=1500),
        Task(id="b-plumb", title="Bathroom plumbing", category=Category.PLUMBING, space="bathroom",
             duration=6, dependencies=("b-demo",), cost=2600),
        Task(id="b-paint", title="Bathroom painting", category=Category.PAINTING, space="bathroom",
             duration=2, dependencies=("b-plumb",), cost=500),
        Task(id="l-paint", title="Living room painting", category=Category.PAINTING, space="living",
             duration=3, cost=900),
        Task(id="l-floor", title="Living room flooring", category=Category.FLOORING, space="living",
             duration=4, dependencies=("l-paint",), cost=3000),
        Task(id="clean", title="Final cleanup", category=Category.CLEANUP, space="living",
             duration=1, dependencies=("k-tile", "b-paint", "l-floor"), cost=300),
    ]


@pytest.fixture
def random_dag():
    """Factory: n tasks, each depending on up to three earlier ones."""
    def make(n, seed=7):
        rng = random.Random(seed)
        categories = list(Category)
        tasks = []
        for i in range(n):
            deps = tuple(sorted({f"t{rng.randrange(i)}" for _ in range(rng.randint(0, 3))})) if i else ()
            tasks.append(Task(
                id=f"t{i}",
                title=f"Task {i}",
                category=rng.choice(categories),
                space=f"room-{rng.randrange(4)}",
                duration=rng.randint(1, 10),
                dependencies=deps,
            ))
        return tasks
    return make
