"""
Immutable snapshots used while evaluating a single request.

These are built fresh from the configuration store for every evaluation and
never written back; status changes go through the experiment repository.
"""

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.orm.experiment import ExperimentORM, ExperimentStatus


class VariantValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_id: str
    name: str
    datasource_id: Optional[str] = None
    weight: float = 1.0


class Variable(BaseModel):
    model_config = ConfigDict(frozen=True)

    variable_id: str
    name: str
    values: tuple[VariantValue, ...] = Field(..., min_length=1)


class ExperimentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    experiment_id: str
    name: str
    status: ExperimentStatus
    item_id: str
    device_id: str
    traffic_allocation_percent: float = Field(100.0, ge=0.0, le=100.0)
    variables: tuple[Variable, ...] = ()

    @property
    def is_running(self) -> bool:
        return self.status == ExperimentStatus.RUNNING

    @classmethod
    def from_orm_row(cls, experiment: ExperimentORM) -> "ExperimentDefinition":
        return cls(
            experiment_id=experiment.experiment_id,
            name=experiment.name,
            status=experiment.status,
            item_id=experiment.item_id,
            device_id=experiment.device_id,
            traffic_allocation_percent=experiment.traffic_allocation_percent,
            variables=tuple(
                Variable(
                    variable_id=variable.variable_id,
                    name=variable.name,
                    values=tuple(
                        VariantValue(
                            value_id=value.value_id,
                            name=value.name,
                            datasource_id=value.datasource_id,
                            weight=value.weight,
                        )
                        for value in variable.values
                    ),
                )
                for variable in experiment.variables
            ),
        )


class TestSet(BaseModel):
    """The ordered variables that apply to one (content item, device) pair."""

    model_config = ConfigDict(frozen=True)

    id: str
    item_id: str
    device_id: str
    variables: tuple[Variable, ...]

    @classmethod
    def for_experiment(cls, experiment: ExperimentDefinition) -> "TestSet":
        return cls(
            id=experiment.experiment_id,
            item_id=experiment.item_id,
            device_id=experiment.device_id,
            variables=experiment.variables,
        )

    def fits(self, indices) -> bool:
        """True when ``indices`` has one in-range entry per variable."""
        if indices is None or len(indices) != len(self.variables):
            return False
        return all(
            0 <= index < len(variable.values)
            for index, variable in zip(indices, self.variables)
        )


class Combination(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_set: TestSet
    indices: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.indices)

    def value_at(self, position: int) -> VariantValue:
        return self.test_set.variables[position].values[self.indices[position]]

    def values(self) -> list[VariantValue]:
        return [self.value_at(i) for i in range(len(self.indices))]


class PageMode(str, enum.Enum):
    NORMAL = "normal"
    PREVIEW = "preview"
    EDIT = "edit"


class RequestContext(BaseModel):
    """Everything the evaluator needs to know about the current request."""

    model_config = ConfigDict(frozen=True)

    item_id: Optional[str]
    device_id: str
    visitor_id: Optional[str] = None
    is_authoring_surface: bool = False
    page_mode: PageMode = PageMode.NORMAL
    session_active: bool = True
    forced_combination: Optional[tuple[int, ...]] = None

    @property
    def is_editing(self) -> bool:
        return self.page_mode != PageMode.NORMAL


class DecisionOutcome(str, enum.Enum):
    NO_EXPERIMENT = "no_experiment"
    EXCLUDED = "excluded"
    EXPOSED = "exposed"


class CombinationSource(str, enum.Enum):
    OVERRIDE = "override"
    STICKY = "sticky"
    FRESH = "fresh"


class ExposureDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: DecisionOutcome
    reason: str
    experiment_id: Optional[str] = None
    test_set_id: Optional[str] = None
    combination: Optional[tuple[int, ...]] = None
    source: Optional[CombinationSource] = None
    first_exposure: bool = False

    @property
    def is_exposed(self) -> bool:
        return self.outcome == DecisionOutcome.EXPOSED

    @classmethod
    def no_exposure(cls, reason: str, **kwargs) -> "ExposureDecision":
        return cls(outcome=DecisionOutcome.NO_EXPERIMENT, reason=reason, **kwargs)
