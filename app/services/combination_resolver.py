import enum
import logging
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict

from app.models.domain import (
    Combination,
    CombinationSource,
    ExperimentDefinition,
    RequestContext,
    TestSet,
)
from app.services.combination_token import CombinationTokenStore

logger = logging.getLogger(__name__)


class CombinationSelector(Protocol):
    def select(self, test_set: TestSet) -> Optional[Combination]:
        ...


class Allocator(Protocol):
    def should_include(
        self, item_id: str, experiment: ExperimentDefinition, visitor_id: Optional[str] = None
    ) -> bool:
        ...


class ResolutionKind(str, enum.Enum):
    NONE = "none"
    EXCLUDED = "excluded"
    COMBINATION = "combination"


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ResolutionKind
    combination: Optional[Combination] = None
    source: Optional[CombinationSource] = None


NO_COMBINATION = Resolution(kind=ResolutionKind.NONE)
EXCLUDED = Resolution(kind=ResolutionKind.EXCLUDED)


class CombinationResolver:
    """
    Produces the combination a request should see, in order of precedence:
    a forced override, a structurally valid sticky token, or a fresh
    selection for requests admitted by traffic allocation.
    """

    def __init__(self, allocator: Allocator, selector: CombinationSelector):
        self.allocator = allocator
        self.selector = selector

    @staticmethod
    def forced_combination(context: RequestContext, test_set: TestSet) -> Optional[Combination]:
        """The override requested by internal tooling, if it fits the test set."""
        forced = context.forced_combination
        if forced is None:
            return None
        if not test_set.fits(forced):
            logger.warning(
                "Ignoring forced combination %s that does not fit test set %s",
                list(forced),
                test_set.id,
            )
            return None
        return Combination(test_set=test_set, indices=tuple(forced))

    @staticmethod
    def sticky_combination(tokens: CombinationTokenStore, test_set: TestSet) -> Optional[Combination]:
        """The combination held by the client, if it still fits the test set."""
        if not tokens.is_set_in_request():
            return None

        values = tokens.get_from_request(test_set.id)
        if values is None:
            return None

        # The token may predate a change to the experiment's variables
        if not test_set.fits(values):
            logger.debug("Stale token %s for test set %s; reallocating", list(values), test_set.id)
            return None

        return Combination(test_set=test_set, indices=values)

    def resolve(
        self,
        context: RequestContext,
        test_set: TestSet,
        experiment: ExperimentDefinition,
        tokens: CombinationTokenStore,
    ) -> Resolution:
        forced = self.forced_combination(context, test_set)
        if forced is not None:
            return Resolution(
                kind=ResolutionKind.COMBINATION,
                combination=forced,
                source=CombinationSource.OVERRIDE,
            )

        sticky = self.sticky_combination(tokens, test_set)
        if sticky is not None:
            return Resolution(
                kind=ResolutionKind.COMBINATION,
                combination=sticky,
                source=CombinationSource.STICKY,
            )

        if not self.allocator.should_include(context.item_id, experiment, context.visitor_id):
            return EXCLUDED

        combination = self.selector.select(test_set)
        if combination is None:
            return NO_COMBINATION

        logger.info(
            "Allocated combination %s of test set %s to visitor %s",
            list(combination.indices),
            test_set.id,
            context.visitor_id,
        )
        return Resolution(
            kind=ResolutionKind.COMBINATION,
            combination=combination,
            source=CombinationSource.FRESH,
        )
