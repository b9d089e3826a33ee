from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.orm.experiment import ExperimentStatus

# The client-held token spends one byte per variable index.
MAX_VALUES_PER_VARIABLE = 256


class VariantValueConfig(BaseModel):
    """Configuration for a single value of a variable."""

    name: str
    datasource_id: Optional[str] = Field(
        None, description="Content item rendered for this value. Omit to keep the original content."
    )
    weight: float = Field(1.0, gt=0.0, description="Relative selection weight.")


class VariableConfig(BaseModel):
    """One axis of variation, e.g. a rendering slot on the page."""

    name: str
    values: List[VariantValueConfig] = Field(..., min_length=1, max_length=MAX_VALUES_PER_VARIABLE)


class ExperimentCreateModel(BaseModel):
    name: str
    description: Optional[str] = None
    item_id: str = Field(..., description="The content item under test.")
    device_id: Optional[str] = Field(None, description="Device the experiment applies to.")
    traffic_allocation_percent: float = Field(
        100.0,
        ge=0.0,
        le=100.0,
        description="Percentage of eligible requests admitted into the experiment.",
    )
    variables: List[VariableConfig] = Field(..., min_length=1)


class ExperimentStatusUpdateModel(BaseModel):
    status: ExperimentStatus


class VariantValueResponseModel(BaseModel):
    value_id: str
    name: str
    datasource_id: Optional[str] = None
    weight: float

    model_config = ConfigDict(from_attributes=True)


class VariableResponseModel(BaseModel):
    variable_id: str
    name: str
    values: List[VariantValueResponseModel]

    model_config = ConfigDict(from_attributes=True)


class ExperimentResponseModel(BaseModel):
    experiment_id: str
    name: str
    description: Optional[str] = None
    status: ExperimentStatus
    suspension_reason: Optional[str] = None
    item_id: str
    device_id: str
    traffic_allocation_percent: float
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    variables: List[VariableResponseModel]

    model_config = ConfigDict(from_attributes=True)
