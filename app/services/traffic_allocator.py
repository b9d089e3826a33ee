import hashlib
import logging
import random
from typing import Optional

from app.models.domain import ExperimentDefinition

logger = logging.getLogger(__name__)


class TrafficAllocator:
    """Decides whether a request falls inside an experiment's traffic allocation."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @staticmethod
    def _bucket(experiment_id: str, visitor_id: str) -> float:
        """Maps (experiment, visitor) onto a stable point in [0, 100)."""
        seed = f"{experiment_id}:{visitor_id}".encode("utf-8")
        digest = hashlib.sha256(seed).digest()
        return int.from_bytes(digest[:8], "big") / float(1 << 64) * 100.0

    def should_include(
        self,
        item_id: str,
        experiment: ExperimentDefinition,
        visitor_id: Optional[str] = None,
    ) -> bool:
        percent = experiment.traffic_allocation_percent
        if percent <= 0:
            return False
        if percent >= 100:
            return True

        if visitor_id:
            bucket = self._bucket(experiment.experiment_id, visitor_id)
        else:
            # No stable identity yet; the sticky token keeps later requests consistent
            bucket = self.rng.uniform(0, 100)

        included = bucket < percent
        logger.debug(
            "Allocation for item %s in experiment %s: bucket %.2f, allocation %.2f%%, included=%s",
            item_id,
            experiment.experiment_id,
            bucket,
            percent,
            included,
        )
        return included
