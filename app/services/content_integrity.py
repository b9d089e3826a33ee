from app.models.domain import ExperimentDefinition, VariantValue
from app.repositories.content_repo import ContentRepository


class ContentIntegrityInspector:
    """Checks that the content a variant value points at can still be rendered."""

    def __init__(self, content_repo: ContentRepository):
        self.content_repo = content_repo

    def is_valid_datasource(self, experiment: ExperimentDefinition, value: VariantValue) -> bool:
        # No datasource means the page's original content is rendered
        if value.datasource_id is None:
            return True

        item = self.content_repo.get_item(value.datasource_id)
        return item is not None and item.is_published
