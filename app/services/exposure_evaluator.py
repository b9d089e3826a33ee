import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import Settings
from app.models.domain import (
    CombinationSource,
    DecisionOutcome,
    ExperimentDefinition,
    ExposureDecision,
    RequestContext,
    TestSet,
)
from app.repositories.content_repo import ContentRepository
from app.repositories.experiment_repo import ExperimentRepository
from app.services.auto_suspender import AutoSuspender
from app.services.combination_resolver import CombinationResolver, ResolutionKind
from app.services.combination_token import CombinationTokenStore
from app.services.combination_validator import CombinationValidator
from app.services.tracking import TestingTracker

logger = logging.getLogger(__name__)


class ExposureEvaluator:
    """
    Decides, once per request and before rendering, whether a running
    experiment applies to the requested page and which combination the
    visitor sees.

    An evaluator is built for a single request: the tracker and token store
    it is given belong to that request only.
    """

    def __init__(
        self,
        settings: Settings,
        content_repo: ContentRepository,
        experiment_repo: ExperimentRepository,
        resolver: CombinationResolver,
        validator: CombinationValidator,
        suspender: AutoSuspender,
        tracker: TestingTracker,
        tokens: CombinationTokenStore,
    ):
        self.settings = settings
        self.content_repo = content_repo
        self.experiment_repo = experiment_repo
        self.resolver = resolver
        self.validator = validator
        self.suspender = suspender
        self.tracker = tracker
        self.tokens = tokens
        self.decision: Optional[ExposureDecision] = None

    def process(self, context: RequestContext) -> None:
        """
        Pipeline entry point. Failures of the content or configuration store
        are logged and leave the request without an experiment so that the
        default content is rendered.
        """
        try:
            self.decision = self.evaluate(context)
        except (SQLAlchemyError, RuntimeError, ValueError):
            logger.exception("Exposure evaluation failed for item %s", context.item_id)
            # The page is still rendered from this session
            self.content_repo.db.rollback()
            self.tracker.clear()
            self.decision = ExposureDecision.no_exposure("error")

    def evaluate(self, context: RequestContext) -> ExposureDecision:
        if not self.settings.CONTENT_TESTING_ENABLED:
            return self._exit("testing_disabled", context)

        # No testing on the authoring surface
        if context.is_authoring_surface:
            return self._exit("authoring_surface", context)

        item = self.content_repo.get_item(context.item_id) if context.item_id else None
        if item is None:
            return self._exit("item_not_found", context)

        row = self.experiment_repo.find_running_experiment(item.item_id, context.device_id)
        if row is None:
            return self._exit("no_running_experiment", context)
        experiment = ExperimentDefinition.from_orm_row(row)
        if not experiment.is_running or not experiment.variables:
            return self._exit("no_running_experiment", context)

        test_set = TestSet.for_experiment(experiment)

        # Internal tooling may force a combination; it is honoured in edit
        # mode and without a tracked session
        forced = self.resolver.forced_combination(context, test_set)
        if forced is None:
            if context.is_editing:
                return self._exit("edit_mode", context)

            # Bots leave the tracking session inactive
            if not context.session_active:
                return self._exit("tracking_inactive", context)

        resolution = self.resolver.resolve(context, test_set, experiment, self.tokens)

        if resolution.kind == ResolutionKind.EXCLUDED:
            self.tokens.save_to_response(test_set.id, None)
            return ExposureDecision(
                outcome=DecisionOutcome.EXCLUDED,
                reason="excluded_by_allocation",
                experiment_id=experiment.experiment_id,
                test_set_id=test_set.id,
            )

        if resolution.kind == ResolutionKind.NONE:
            return self._exit(
                "no_combination",
                context,
                experiment_id=experiment.experiment_id,
                test_set_id=test_set.id,
            )

        combination = resolution.combination
        if not self.validator.validate(combination, experiment):
            self.suspender.suspend(experiment)
            self.tracker.clear()
            self.tokens.save_to_response(test_set.id, None)
            return ExposureDecision.no_exposure(
                "broken_datasource",
                experiment_id=experiment.experiment_id,
                test_set_id=test_set.id,
            )

        first_exposure = resolution.source == CombinationSource.FRESH
        # Tooling renders without a tracked session are not visitor exposures
        record = resolution.source != CombinationSource.OVERRIDE or context.session_active
        self.tracker.set_test_combination(combination, experiment, first_exposure, record=record)

        # A forced combination is shown once and never becomes the visitor's own
        if resolution.source != CombinationSource.OVERRIDE:
            self.tokens.save_to_response(test_set.id, combination.indices)

        return ExposureDecision(
            outcome=DecisionOutcome.EXPOSED,
            reason=resolution.source.value,
            experiment_id=experiment.experiment_id,
            test_set_id=test_set.id,
            combination=combination.indices,
            source=resolution.source,
            first_exposure=first_exposure,
        )

    @staticmethod
    def _exit(reason: str, context: RequestContext, **kwargs) -> ExposureDecision:
        logger.debug("No exposure for item %s: %s", context.item_id, reason)
        return ExposureDecision.no_exposure(reason, **kwargs)
