from typing import Iterable, Optional

from app.models.domain import Combination, ExperimentDefinition
from app.repositories.exposure_repo import ExposureRepository
from app.services.combination_token import encode_combination


def is_bot_user_agent(user_agent: Optional[str], patterns: Iterable[str]) -> bool:
    """Crude bot classification: a missing user agent or any known marker in it."""
    if not user_agent:
        return True
    lowered = user_agent.lower()
    return any(pattern.lower() in lowered for pattern in patterns)


class TestingTracker:
    """
    Per-request record of the combination the visitor is currently shown.

    Exposures are also persisted so that reporting can later attribute
    the visitor's events to the combination they saw.
    """

    def __init__(self, exposure_repo: ExposureRepository, visitor_id: Optional[str] = None):
        self.exposure_repo = exposure_repo
        self.visitor_id = visitor_id
        self.combination: Optional[Combination] = None
        self.experiment: Optional[ExperimentDefinition] = None
        self.first_exposure = False

    def set_test_combination(
        self,
        combination: Combination,
        experiment: ExperimentDefinition,
        first_exposure: bool = True,
        record: bool = True,
    ) -> None:
        """
        Makes ``combination`` the active one for this request. With
        ``record=False`` nothing is persisted, for renders that must not count
        as visitor exposures.
        """
        self.combination = combination
        self.experiment = experiment
        self.first_exposure = first_exposure

        if not record:
            return

        self.exposure_repo.create_exposure(
            experiment_id=experiment.experiment_id,
            test_set_id=combination.test_set.id,
            visitor_id=self.visitor_id,
            combination=encode_combination(combination.indices),
            first_exposure=first_exposure,
        )

    def clear(self) -> None:
        self.combination = None
        self.experiment = None
        self.first_exposure = False
