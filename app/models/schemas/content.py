from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.domain import CombinationSource, DecisionOutcome


class ContentItemCreateModel(BaseModel):
    name: str
    path: str = Field(..., description="Unique site path, e.g. '/home'.")
    fields: Dict = Field(default_factory=dict, description="Flexible JSON object.")
    is_published: bool = True


class ContentItemUpdateModel(BaseModel):
    name: Optional[str] = None
    fields: Optional[Dict] = None
    is_published: Optional[bool] = None


class ContentItemResponseModel(BaseModel):
    item_id: str
    name: str
    path: str
    fields: Dict
    is_published: bool

    model_config = ConfigDict(from_attributes=True)


class ActiveVariantModel(BaseModel):
    """The value chosen for one variable of the active combination."""

    variable: str
    value: str
    datasource_id: Optional[str] = None


class ExposureModel(BaseModel):
    outcome: DecisionOutcome
    reason: str
    experiment_id: Optional[str] = None
    combination: Optional[List[int]] = None
    source: Optional[CombinationSource] = None
    first_exposure: bool = False
    variants: List[ActiveVariantModel] = Field(default_factory=list)


class PageResponseModel(BaseModel):
    item: ContentItemResponseModel
    exposure: ExposureModel
