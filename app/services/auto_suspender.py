import logging

from app.models.domain import ExperimentDefinition
from app.repositories.experiment_repo import ExperimentRepository

logger = logging.getLogger(__name__)

BROKEN_DATASOURCE = "broken datasource"


class AutoSuspender:
    """Takes an experiment out of RUNNING when its content has become unusable."""

    def __init__(self, experiment_repo: ExperimentRepository):
        self.experiment_repo = experiment_repo

    def suspend(self, experiment: ExperimentDefinition, reason: str = BROKEN_DATASOURCE) -> bool:
        """
        Suspends ``experiment`` and returns True if this call changed its status.

        Suspending an experiment that is no longer running is a no-op. Store
        failures are logged and reported as False; the caller never waits on
        or reacts to the outcome.
        """
        try:
            suspended = self.experiment_repo.suspend_running(experiment.experiment_id, reason)
        except RuntimeError:
            logger.exception("Failed to suspend experiment %s", experiment.experiment_id)
            return False

        if suspended:
            logger.warning(
                "Experiment %s (%s) suspended: %s",
                experiment.experiment_id,
                experiment.name,
                reason,
            )
        else:
            logger.info("Experiment %s already left RUNNING; nothing to suspend", experiment.experiment_id)
        return suspended
