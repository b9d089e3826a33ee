import logging
from typing import Protocol

from app.models.domain import Combination, ExperimentDefinition, VariantValue

logger = logging.getLogger(__name__)


class IntegrityInspector(Protocol):
    def is_valid_datasource(self, experiment: ExperimentDefinition, value: VariantValue) -> bool:
        ...


class CombinationValidator:
    def __init__(self, inspector: IntegrityInspector):
        self.inspector = inspector

    def validate(self, combination: Combination, experiment: ExperimentDefinition) -> bool:
        """
        Returns False as soon as one value of the combination references
        content that is missing or unusable. A single broken value
        invalidates the whole combination.
        """
        for position in range(len(combination)):
            value = combination.value_at(position)
            if not self.inspector.is_valid_datasource(experiment, value):
                logger.warning(
                    "Value %s (%s) of experiment %s references unusable datasource %s",
                    value.name,
                    value.value_id,
                    experiment.experiment_id,
                    value.datasource_id,
                )
                return False
        return True
