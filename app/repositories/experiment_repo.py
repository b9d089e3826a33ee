import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.models.orm.experiment import (
    ExperimentORM,
    ExperimentStatus,
    VariableORM,
    VariantValueORM,
)
from app.models.schemas.experiment import ExperimentCreateModel


class ExperimentRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def create_experiment(
        self, experiment_data: ExperimentCreateModel, device_id: str
    ) -> ExperimentORM:
        """
        Creates a new experiment in DRAFT status together with its variables
        and their values.

        Positions are taken from the order of the submitted lists; they are
        the identity used by combinations and must never be reordered.
        """
        try:
            experiment_id = str(uuid.uuid4())

            db_experiment = ExperimentORM(
                experiment_id=experiment_id,
                name=experiment_data.name,
                description=experiment_data.description,
                status=ExperimentStatus.DRAFT,
                item_id=experiment_data.item_id,
                device_id=device_id,
                traffic_allocation_percent=experiment_data.traffic_allocation_percent,
            )

            for variable_position, variable_data in enumerate(experiment_data.variables):
                db_variable = VariableORM(
                    variable_id=str(uuid.uuid4()),
                    position=variable_position,
                    name=variable_data.name,
                )
                for value_position, value_data in enumerate(variable_data.values):
                    db_variable.values.append(
                        VariantValueORM(
                            value_id=str(uuid.uuid4()),
                            position=value_position,
                            **value_data.model_dump(),
                        )
                    )
                db_experiment.variables.append(db_variable)

            self.db.add(db_experiment)
            self.db.commit()
            self.db.refresh(db_experiment)

            return db_experiment

        except IntegrityError as e:
            self.db.rollback()
            raise ValueError(f"Database integrity error (e.g., duplicate name): {e.orig}")

        except SQLAlchemyError as e:
            self.db.rollback()
            raise RuntimeError(
                f"A database error occurred during experiment creation: {e}"
            )

    def get_experiment_with_variables(self, experiment_id: str) -> ExperimentORM | None:
        """
        Fetches a single Experiment by experiment_id and eagerly loads its
        variables and their values.
        """
        stmt = (
            select(ExperimentORM)
            .where(ExperimentORM.experiment_id == experiment_id)
            .options(selectinload(ExperimentORM.variables).selectinload(VariableORM.values))
        )

        return self.db.scalars(stmt).one_or_none()

    def find_running_experiment(self, item_id: str, device_id: str) -> Optional[ExperimentORM]:
        """Returns the experiment currently running on an item for a device, if any."""
        stmt = (
            select(ExperimentORM)
            .where(
                ExperimentORM.item_id == item_id,
                ExperimentORM.device_id == device_id,
                ExperimentORM.status == ExperimentStatus.RUNNING,
            )
            .options(selectinload(ExperimentORM.variables).selectinload(VariableORM.values))
            .order_by(ExperimentORM.updated_at.desc())
        )

        return self.db.scalars(stmt).first()

    def set_status(
        self,
        experiment: ExperimentORM,
        status: ExperimentStatus,
        reason: Optional[str] = None,
    ) -> ExperimentORM:
        """Persists an administrative status change."""
        now = datetime.utcnow()
        experiment.status = status
        experiment.suspension_reason = reason
        if status == ExperimentStatus.RUNNING and experiment.start_time is None:
            experiment.start_time = now
        if status == ExperimentStatus.COMPLETED:
            experiment.end_time = now

        try:
            self.db.commit()
            self.db.refresh(experiment)
            return experiment

        except IntegrityError as e:
            self.db.rollback()
            raise ValueError(f"Status change conflicts with another experiment: {e.orig}")

        except SQLAlchemyError as e:
            self.db.rollback()
            raise RuntimeError(f"A database error occurred during status update: {e}")

    def suspend_running(self, experiment_id: str, reason: str) -> bool:
        """
        Moves a RUNNING experiment to SUSPENDED.

        The transition is a single conditional UPDATE, so concurrent callers
        race safely: exactly one of them sees a changed row, the others get
        False. Returns False as well when the experiment is not running.
        """
        stmt = (
            update(ExperimentORM)
            .where(
                ExperimentORM.experiment_id == experiment_id,
                ExperimentORM.status == ExperimentStatus.RUNNING,
            )
            .values(
                status=ExperimentStatus.SUSPENDED,
                suspension_reason=reason,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RuntimeError(f"A database error occurred during suspension: {e}")

        return result.rowcount > 0
