from fastapi import APIRouter, Depends, FastAPI, Path, Request, Response
import uvicorn
from sqlalchemy.orm import Session
from starlette import status

from app.core.auth import require_auth_token
from app.core.db import get_db
from app.core.logging_config import setup_logging
from app.core.settings import Settings, config_settings, get_settings
from app.models.schemas.content import (
    ContentItemCreateModel,
    ContentItemResponseModel,
    ContentItemUpdateModel,
    PageResponseModel,
)
from app.models.schemas.experiment import (
    ExperimentCreateModel,
    ExperimentResponseModel,
    ExperimentStatusUpdateModel,
)
from app.services.content_service import ContentService
from app.services.experiment_service import ExperimentService
from app.services.page_service import PageService
from app.services.traffic_allocator import TrafficAllocator
from app.services.variant_selection import WeightedCombinationSelector

setup_logging(config_settings.LOG_LEVEL)

app = FastAPI(
    title="Content exposure",
    description="Decides which content test combination a page request is shown.",
    version="0.0.1",
)

# Administration routes require a bearer token; page requests are public.
admin = APIRouter(dependencies=[Depends(require_auth_token)])


def get_traffic_allocator() -> TrafficAllocator:
    return TrafficAllocator()


def get_combination_selector() -> WeightedCombinationSelector:
    return WeightedCombinationSelector()


@admin.post(
    "/content-items",
    response_model=ContentItemResponseModel,
    status_code=status.HTTP_201_CREATED,
)
def post_content_item(item_data: ContentItemCreateModel, db: Session = Depends(get_db)):
    return ContentService(db).create_item(item_data)


@admin.get("/content-items/{item_id}", response_model=ContentItemResponseModel)
def get_content_item(item_id: str, db: Session = Depends(get_db)):
    return ContentService(db).get_item(item_id)


@admin.patch("/content-items/{item_id}", response_model=ContentItemResponseModel)
def patch_content_item(
    item_id: str, item_data: ContentItemUpdateModel, db: Session = Depends(get_db)
):
    return ContentService(db).update_item(item_id, item_data)


@admin.delete("/content-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_content_item(item_id: str, db: Session = Depends(get_db)):
    ContentService(db).delete_item(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin.post(
    "/experiments",
    response_model=ExperimentResponseModel,
    status_code=status.HTTP_201_CREATED,
)
def post_experiments(
    experiment_data: ExperimentCreateModel,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return ExperimentService(db, settings).create_experiment(experiment_data)


@admin.get("/experiments/{experiment_id}", response_model=ExperimentResponseModel)
def get_experiment(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return ExperimentService(db, settings).get_experiment(experiment_id)


@admin.post(
    "/experiments/{experiment_id}/status",
    response_model=ExperimentResponseModel,
    summary="Start, suspend, resume or complete an experiment",
)
def post_experiment_status(
    status_data: ExperimentStatusUpdateModel,
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return ExperimentService(db, settings).update_status(experiment_id, status_data.status)


@app.get(
    "/content/{item_id}",
    response_model=PageResponseModel,
    summary="Resolve a page and the test combination it is shown with",
)
def get_page(
    request: Request,
    response: Response,
    item_id: str = Path(..., description="The ID of the requested content item."),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    allocator: TrafficAllocator = Depends(get_traffic_allocator),
    selector: WeightedCombinationSelector = Depends(get_combination_selector),
):
    """
    Runs the exposure pipeline before the page is rendered. Sticky
    assignments travel in cookies; the response carries the combination
    (if any) the renderer should apply.
    """
    page_service = PageService(db, settings, allocator, selector)
    return page_service.get_page(request, response, item_id)


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


app.include_router(admin)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
