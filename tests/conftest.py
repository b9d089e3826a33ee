"""Shared fixtures: an in-memory database per test and builders for test data."""

from __future__ import annotations

import os
import uuid
from typing import Iterable, Optional, Sequence

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import get_db
from app.core.settings import Settings, get_settings
from app.main import app, get_combination_selector, get_traffic_allocator
from app.models.domain import Combination, ExperimentDefinition, TestSet
from app.models.orm.base import Base
from app.models.orm.content import ContentItemORM
from app.models.orm.experiment import (
    ExperimentORM,
    ExperimentStatus,
    VariableORM,
    VariantValueORM,
)
from app.models.orm.exposure import ExposureORM  # noqa: F401 - registers the table
from app.repositories.content_repo import ContentRepository
from app.repositories.experiment_repo import ExperimentRepository
from app.repositories.exposure_repo import ExposureRepository
from app.services.auto_suspender import AutoSuspender
from app.services.combination_resolver import CombinationResolver
from app.services.combination_token import CombinationTokenStore
from app.services.combination_validator import CombinationValidator
from app.services.content_integrity import ContentIntegrityInspector
from app.services.exposure_evaluator import ExposureEvaluator
from app.services.tracking import TestingTracker

ADMIN_TOKEN = "test-admin-token"


class FixedAllocator:
    """Allocator fake with a fixed answer that records its calls."""

    def __init__(self, include: bool = True):
        self.include = include
        self.calls = 0

    def should_include(self, item_id, experiment, visitor_id=None) -> bool:
        self.calls += 1
        return self.include


class FixedSelector:
    """Selector fake returning the same indices every time (or None)."""

    def __init__(self, indices: Optional[Sequence[int]] = (0,)):
        self.indices = tuple(indices) if indices is not None else None
        self.calls = 0

    def select(self, test_set: TestSet) -> Optional[Combination]:
        self.calls += 1
        if self.indices is None:
            return None
        return Combination(test_set=test_set, indices=self.indices)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        TOKENS=[ADMIN_TOKEN],
        AUTHORING_HOSTS=["cm.localhost"],
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def allocator() -> FixedAllocator:
    return FixedAllocator(include=True)


@pytest.fixture
def selector() -> FixedSelector:
    return FixedSelector((0,))


@pytest.fixture
def client(engine, settings, allocator, selector):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_traffic_allocator] = lambda: allocator
    app.dependency_overrides[get_combination_selector] = lambda: selector
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def make_item(db, name: str = "Home", is_published: bool = True) -> ContentItemORM:
    item = ContentItemORM(
        item_id=str(uuid.uuid4()),
        name=name,
        path=f"/{name.lower()}-{uuid.uuid4().hex[:8]}",
        fields={"title": name},
        is_published=is_published,
    )
    db.add(item)
    db.commit()
    return item


def make_experiment(
    db,
    item: ContentItemORM,
    variables: Iterable[Sequence[Optional[str]]] = ((None, None, None),),
    status: ExperimentStatus = ExperimentStatus.RUNNING,
    allocation: float = 100.0,
    device_id: str = "default",
) -> ExperimentORM:
    """
    Creates an experiment whose variables are given as sequences of
    datasource ids, one entry per value (None keeps the original content).
    """
    experiment = ExperimentORM(
        experiment_id=str(uuid.uuid4()),
        name=f"experiment-{uuid.uuid4().hex[:8]}",
        status=status,
        item_id=item.item_id,
        device_id=device_id,
        traffic_allocation_percent=allocation,
    )
    for variable_position, datasources in enumerate(variables):
        variable = VariableORM(
            variable_id=str(uuid.uuid4()),
            position=variable_position,
            name=f"slot-{variable_position}",
        )
        for value_position, datasource_id in enumerate(datasources):
            variable.values.append(
                VariantValueORM(
                    value_id=str(uuid.uuid4()),
                    position=value_position,
                    name=f"value-{value_position}",
                    datasource_id=datasource_id,
                )
            )
        experiment.variables.append(variable)
    db.add(experiment)
    db.commit()
    return experiment


def definition_of(db, experiment: ExperimentORM) -> ExperimentDefinition:
    row = ExperimentRepository(db).get_experiment_with_variables(experiment.experiment_id)
    return ExperimentDefinition.from_orm_row(row)


def build_evaluator(
    db,
    settings: Settings,
    cookies: Optional[dict[str, str]] = None,
    allocator=None,
    selector=None,
    visitor_id: str = "visitor-1",
):
    content_repo = ContentRepository(db)
    experiment_repo = ExperimentRepository(db)
    tracker = TestingTracker(ExposureRepository(db), visitor_id=visitor_id)
    tokens = CombinationTokenStore(cookies or {}, prefix=settings.TOKEN_COOKIE_PREFIX)
    evaluator = ExposureEvaluator(
        settings=settings,
        content_repo=content_repo,
        experiment_repo=experiment_repo,
        resolver=CombinationResolver(
            allocator or FixedAllocator(include=True),
            selector or FixedSelector((0,)),
        ),
        validator=CombinationValidator(ContentIntegrityInspector(content_repo)),
        suspender=AutoSuspender(experiment_repo),
        tracker=tracker,
        tokens=tokens,
    )
    return evaluator, tracker, tokens
