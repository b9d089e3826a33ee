import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.orm.content import ContentItemORM
from app.models.schemas.content import ContentItemCreateModel, ContentItemUpdateModel

logger = logging.getLogger(__name__)


class ContentRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def get_item(self, item_id: str) -> Optional[ContentItemORM]:
        """Looks up a content item by identity, returning None if it does not exist."""
        return self.db.get(ContentItemORM, item_id)

    def create_item(self, item_data: ContentItemCreateModel) -> ContentItemORM:
        db_item = ContentItemORM(item_id=str(uuid.uuid4()), **item_data.model_dump())
        try:
            self.db.add(db_item)
            self.db.commit()
            self.db.refresh(db_item)
            return db_item

        except IntegrityError:
            self.db.rollback()
            raise ValueError(f"A content item already exists at path {item_data.path}.")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error creating content item")
            raise RuntimeError("A database error occurred during content item creation") from e

    def update_item(
        self, item: ContentItemORM, item_data: ContentItemUpdateModel
    ) -> ContentItemORM:
        for key, value in item_data.model_dump(exclude_unset=True).items():
            setattr(item, key, value)
        try:
            self.db.commit()
            self.db.refresh(item)
            return item

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error updating content item %s", item.item_id)
            raise RuntimeError("A database error occurred during content item update") from e

    def delete_item(self, item: ContentItemORM) -> None:
        try:
            self.db.delete(item)
            self.db.commit()

        except IntegrityError:
            self.db.rollback()
            raise ValueError(f"Content item {item.item_id} is the page of an experiment.")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error deleting content item %s", item.item_id)
            raise RuntimeError("A database error occurred during content item deletion") from e
