import logging
import uuid
from typing import Optional

from fastapi import HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.core.settings import Settings
from app.models.domain import PageMode, RequestContext
from app.models.schemas.content import (
    ActiveVariantModel,
    ContentItemResponseModel,
    ExposureModel,
    PageResponseModel,
)
from app.repositories.content_repo import ContentRepository
from app.repositories.experiment_repo import ExperimentRepository
from app.repositories.exposure_repo import ExposureRepository
from app.services.auto_suspender import AutoSuspender
from app.services.combination_resolver import Allocator, CombinationResolver, CombinationSelector
from app.services.combination_token import CombinationTokenStore
from app.services.combination_validator import CombinationValidator
from app.services.content_integrity import ContentIntegrityInspector
from app.services.exposure_evaluator import ExposureEvaluator
from app.services.tracking import TestingTracker, is_bot_user_agent

logger = logging.getLogger(__name__)

FORCED_COMBINATION_PARAM = "sc_combination"
PAGE_MODE_PARAM = "sc_mode"
DEVICE_PARAM = "device"


def parse_forced_combination(raw: Optional[str]) -> Optional[tuple[int, ...]]:
    """Parses ``"0,2,1"`` into indices; anything else is treated as absent."""
    if not raw:
        return None
    try:
        indices = tuple(int(part) for part in raw.split(","))
    except ValueError:
        logger.warning("Ignoring unparseable forced combination %r", raw)
        return None
    if any(index < 0 for index in indices):
        logger.warning("Ignoring forced combination with negative index %r", raw)
        return None
    return indices


def parse_page_mode(raw: Optional[str]) -> PageMode:
    try:
        return PageMode(raw) if raw else PageMode.NORMAL
    except ValueError:
        return PageMode.NORMAL


class PageService:
    """Runs the exposure pipeline for a page request and assembles the response."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        allocator: Allocator,
        selector: CombinationSelector,
    ):
        self.settings = settings
        self.content_repo = ContentRepository(db)
        self.experiment_repo = ExperimentRepository(db)
        self.exposure_repo = ExposureRepository(db)
        self.allocator = allocator
        self.selector = selector

    def build_context(self, request: Request, item_id: str, visitor_id: str) -> RequestContext:
        params = request.query_params
        user_agent = request.headers.get("user-agent")
        session_active = self.settings.TRACKING_ENABLED and not is_bot_user_agent(
            user_agent, self.settings.BOT_USER_AGENT_PATTERNS
        )

        return RequestContext(
            item_id=item_id,
            device_id=params.get(DEVICE_PARAM) or self.settings.DEFAULT_DEVICE,
            visitor_id=visitor_id,
            is_authoring_surface=request.url.hostname in self.settings.AUTHORING_HOSTS,
            page_mode=parse_page_mode(params.get(PAGE_MODE_PARAM)),
            session_active=session_active,
            forced_combination=parse_forced_combination(params.get(FORCED_COMBINATION_PARAM)),
        )

    def build_evaluator(
        self, tracker: TestingTracker, tokens: CombinationTokenStore
    ) -> ExposureEvaluator:
        return ExposureEvaluator(
            settings=self.settings,
            content_repo=self.content_repo,
            experiment_repo=self.experiment_repo,
            resolver=CombinationResolver(self.allocator, self.selector),
            validator=CombinationValidator(ContentIntegrityInspector(self.content_repo)),
            suspender=AutoSuspender(self.experiment_repo),
            tracker=tracker,
            tokens=tokens,
        )

    def get_page(self, request: Request, response: Response, item_id: str) -> PageResponseModel:
        visitor_id = request.cookies.get(self.settings.VISITOR_COOKIE_NAME)
        if not visitor_id:
            visitor_id = str(uuid.uuid4())
            response.set_cookie(
                key=self.settings.VISITOR_COOKIE_NAME,
                value=visitor_id,
                max_age=self.settings.TOKEN_MAX_AGE_DAYS * 24 * 60 * 60,
                httponly=True,
                samesite="lax",
            )

        context = self.build_context(request, item_id, visitor_id)
        tracker = TestingTracker(self.exposure_repo, visitor_id=visitor_id)
        tokens = CombinationTokenStore(request.cookies, prefix=self.settings.TOKEN_COOKIE_PREFIX)

        evaluator = self.build_evaluator(tracker, tokens)
        evaluator.process(context)
        tokens.apply(response, self.settings.TOKEN_MAX_AGE_DAYS)

        item = self.content_repo.get_item(item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Content item {item_id} not found.",
            )

        decision = evaluator.decision
        variants = []
        if decision.is_exposed and tracker.combination is not None:
            combination = tracker.combination
            variants = [
                ActiveVariantModel(variable=variable.name, value=value.name, datasource_id=value.datasource_id)
                for variable, value in zip(combination.test_set.variables, combination.values())
            ]

        return PageResponseModel(
            item=ContentItemResponseModel.model_validate(item),
            exposure=ExposureModel(
                outcome=decision.outcome,
                reason=decision.reason,
                experiment_id=decision.experiment_id,
                combination=list(decision.combination) if decision.combination else None,
                source=decision.source,
                first_exposure=decision.first_exposure,
                variants=variants,
            ),
        )
