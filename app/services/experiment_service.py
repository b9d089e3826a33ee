# services/experiment_service.py

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.settings import Settings
from app.models.orm.experiment import ExperimentORM, ExperimentStatus
from app.models.schemas.experiment import (
    ExperimentCreateModel,
    ExperimentResponseModel,
)
from app.repositories.content_repo import ContentRepository
from app.repositories.experiment_repo import ExperimentRepository

logger = logging.getLogger(__name__)

# Administrative status transitions. RUNNING -> SUSPENDED is also driven
# automatically when a combination references broken content.
ALLOWED_TRANSITIONS: dict[ExperimentStatus, frozenset[ExperimentStatus]] = {
    ExperimentStatus.DRAFT: frozenset({ExperimentStatus.RUNNING}),
    ExperimentStatus.RUNNING: frozenset({ExperimentStatus.SUSPENDED, ExperimentStatus.COMPLETED}),
    ExperimentStatus.SUSPENDED: frozenset({ExperimentStatus.RUNNING, ExperimentStatus.COMPLETED}),
    ExperimentStatus.COMPLETED: frozenset(),
}


class ExperimentService:
    def __init__(self, db: Session, settings: Settings):
        self.experiment_repo = ExperimentRepository(db)
        self.content_repo = ContentRepository(db)
        self.settings = settings

    def _get_or_404(self, experiment_id: str) -> ExperimentORM:
        experiment_orm = self.experiment_repo.get_experiment_with_variables(experiment_id)
        if not experiment_orm:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Experiment {experiment_id} not found.",
            )
        return experiment_orm

    def create_experiment(
        self, experiment_data: ExperimentCreateModel
    ) -> ExperimentResponseModel:
        """
        Creates a new experiment in DRAFT status on an existing content item.
        """
        if self.content_repo.get_item(experiment_data.item_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Content item {experiment_data.item_id} does not exist.",
            )

        device_id = experiment_data.device_id or self.settings.DEFAULT_DEVICE
        try:
            experiment_orm = self.experiment_repo.create_experiment(experiment_data, device_id)

        except ValueError as e:
            logger.info("Rejected experiment %s: %s", experiment_data.name, e)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except RuntimeError as e:
            logger.exception("Failed to create experiment %s", experiment_data.name)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create experiment: {str(e)}",
            )

        logger.info("Created experiment %s on item %s", experiment_orm.experiment_id, experiment_orm.item_id)
        return ExperimentResponseModel.model_validate(experiment_orm)

    def get_experiment(self, experiment_id: str) -> ExperimentResponseModel:
        return ExperimentResponseModel.model_validate(self._get_or_404(experiment_id))

    def update_status(
        self, experiment_id: str, new_status: ExperimentStatus
    ) -> ExperimentResponseModel:
        """
        Applies an administrative status change.

        Only one experiment may run on a given (item, device) pair. Moving a
        suspended experiment back to RUNNING clears its suspension reason.
        """
        experiment_orm = self._get_or_404(experiment_id)
        current = experiment_orm.status

        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot move experiment from {current.value} to {new_status.value}.",
            )

        if new_status == ExperimentStatus.RUNNING:
            running = self.experiment_repo.find_running_experiment(
                experiment_orm.item_id, experiment_orm.device_id
            )
            if running is not None and running.experiment_id != experiment_id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Experiment {running.experiment_id} is already running on this item.",
                )

        reason = "suspended manually" if new_status == ExperimentStatus.SUSPENDED else None
        try:
            experiment_orm = self.experiment_repo.set_status(experiment_orm, new_status, reason)
        except ValueError as e:
            # Another experiment started on the same item concurrently
            logger.info("Rejected status change of experiment %s: %s", experiment_id, e)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except RuntimeError as e:
            logger.exception("Failed to update status of experiment %s", experiment_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(e),
            )

        logger.info("Experiment %s moved from %s to %s", experiment_id, current.value, new_status.value)
        return ExperimentResponseModel.model_validate(experiment_orm)
