import logging
import random
from typing import Optional, Sequence

from app.models.domain import Combination, TestSet, VariantValue

logger = logging.getLogger(__name__)


class WeightedCombinationSelector:
    """
    Picks a fresh combination for a test set, choosing one value per variable
    with probability proportional to the value weights.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _select_index(self, values: Sequence[VariantValue]) -> Optional[int]:
        total_weight = sum(value.weight for value in values)
        if total_weight <= 0:
            return None

        r = self.rng.uniform(0, total_weight)

        cumulative_weight = 0.0
        for index, value in enumerate(values):
            cumulative_weight += value.weight
            if r <= cumulative_weight:
                return index

        # Floating point rounding can leave r just above the last edge
        return len(values) - 1

    def select(self, test_set: TestSet) -> Optional[Combination]:
        indices = []
        for variable in test_set.variables:
            index = self._select_index(variable.values)
            if index is None:
                logger.warning(
                    "Variable %s of test set %s has no selectable values",
                    variable.name,
                    test_set.id,
                )
                return None
            indices.append(index)

        return Combination(test_set=test_set, indices=tuple(indices))
