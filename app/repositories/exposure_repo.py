import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.orm.exposure import ExposureORM


class ExposureRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_exposure(
        self,
        experiment_id: str,
        test_set_id: str,
        visitor_id: Optional[str],
        combination: str,
        first_exposure: bool,
    ) -> ExposureORM:
        """Records that a visitor has been shown a combination."""
        db_exposure = ExposureORM(
            exposure_id=str(uuid.uuid4()),
            experiment_id=experiment_id,
            test_set_id=test_set_id,
            visitor_id=visitor_id,
            combination=combination,
            first_exposure=first_exposure,
            timestamp=datetime.utcnow(),
        )
        try:
            self.db.add(db_exposure)
            self.db.commit()
            self.db.refresh(db_exposure)
            return db_exposure

        except SQLAlchemyError as e:
            self.db.rollback()
            raise RuntimeError("Exception occurred during exposure recording") from e

    def get_exposures_for_experiment(
        self, experiment_id: str, visitor_id: Optional[str] = None
    ) -> list[ExposureORM]:
        stmt = select(ExposureORM).where(ExposureORM.experiment_id == experiment_id)

        if visitor_id is not None:
            stmt = stmt.where(ExposureORM.visitor_id == visitor_id)

        return self.db.scalars(stmt.order_by(ExposureORM.timestamp)).all()
