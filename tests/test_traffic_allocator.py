import random

from app.models.domain import ExperimentDefinition, Variable, VariantValue
from app.models.orm.experiment import ExperimentStatus
from app.services.traffic_allocator import TrafficAllocator


def _experiment(allocation: float, experiment_id: str = "exp-1") -> ExperimentDefinition:
    return ExperimentDefinition(
        experiment_id=experiment_id,
        name="hero",
        status=ExperimentStatus.RUNNING,
        item_id="item-1",
        device_id="default",
        traffic_allocation_percent=allocation,
        variables=(
            Variable(
                variable_id="var-1",
                name="hero",
                values=(VariantValue(value_id="v0", name="a"), VariantValue(value_id="v1", name="b")),
            ),
        ),
    )


def test_zero_allocation_always_excludes():
    allocator = TrafficAllocator(rng=random.Random(1))
    experiment = _experiment(0.0)

    assert not any(allocator.should_include("item-1", experiment, str(i)) for i in range(200))
    assert not any(allocator.should_include("item-1", experiment) for _ in range(200))


def test_full_allocation_always_includes():
    allocator = TrafficAllocator(rng=random.Random(1))
    experiment = _experiment(100.0)

    assert all(allocator.should_include("item-1", experiment, str(i)) for i in range(200))
    assert all(allocator.should_include("item-1", experiment) for _ in range(200))


def test_same_visitor_gets_the_same_answer():
    allocator = TrafficAllocator()
    experiment = _experiment(50.0)

    for visitor in ("alice", "bob", "carol"):
        first = allocator.should_include("item-1", experiment, visitor)
        assert all(allocator.should_include("item-1", experiment, visitor) == first for _ in range(10))


def test_partial_allocation_admits_roughly_its_share():
    allocator = TrafficAllocator()
    experiment = _experiment(30.0)

    included = sum(allocator.should_include("item-1", experiment, f"visitor-{i}") for i in range(2000))

    assert 450 <= included <= 750


def test_anonymous_requests_use_the_random_source():
    allocator = TrafficAllocator(rng=random.Random(7))
    experiment = _experiment(50.0)

    results = {allocator.should_include("item-1", experiment) for _ in range(100)}

    assert results == {True, False}
