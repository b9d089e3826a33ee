import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.orm.content import ContentItemORM
from app.models.schemas.content import (
    ContentItemCreateModel,
    ContentItemResponseModel,
    ContentItemUpdateModel,
)
from app.repositories.content_repo import ContentRepository

logger = logging.getLogger(__name__)


class ContentService:
    def __init__(self, db: Session):
        self.content_repo = ContentRepository(db)

    def _get_or_404(self, item_id: str) -> ContentItemORM:
        item = self.content_repo.get_item(item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Content item {item_id} not found.",
            )
        return item

    def create_item(self, item_data: ContentItemCreateModel) -> ContentItemResponseModel:
        try:
            item = self.content_repo.create_item(item_data)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except RuntimeError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
            )
        return ContentItemResponseModel.model_validate(item)

    def get_item(self, item_id: str) -> ContentItemResponseModel:
        return ContentItemResponseModel.model_validate(self._get_or_404(item_id))

    def update_item(
        self, item_id: str, item_data: ContentItemUpdateModel
    ) -> ContentItemResponseModel:
        item = self._get_or_404(item_id)
        try:
            item = self.content_repo.update_item(item, item_data)
        except RuntimeError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
            )
        return ContentItemResponseModel.model_validate(item)

    def delete_item(self, item_id: str) -> None:
        item = self._get_or_404(item_id)
        try:
            self.content_repo.delete_item(item)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except RuntimeError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
            )
        logger.info("Deleted content item %s", item_id)
