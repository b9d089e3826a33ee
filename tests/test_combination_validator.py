from conftest import definition_of, make_experiment, make_item

from app.models.domain import Combination, TestSet
from app.repositories.content_repo import ContentRepository
from app.services.combination_validator import CombinationValidator
from app.services.content_integrity import ContentIntegrityInspector


def _validator(db) -> CombinationValidator:
    return CombinationValidator(ContentIntegrityInspector(ContentRepository(db)))


def test_original_content_and_published_datasources_are_valid(db):
    page = make_item(db, "Home")
    banner = make_item(db, "Banner")
    experiment = definition_of(db, make_experiment(db, page, [(None, banner.item_id)]))
    test_set = TestSet.for_experiment(experiment)

    validator = _validator(db)

    assert validator.validate(Combination(test_set=test_set, indices=(0,)), experiment)
    assert validator.validate(Combination(test_set=test_set, indices=(1,)), experiment)


def test_missing_datasource_invalidates_the_whole_combination(db):
    page = make_item(db, "Home")
    banner = make_item(db, "Banner")
    experiment = definition_of(
        db, make_experiment(db, page, [(None, banner.item_id), (None, "deleted-item")])
    )
    test_set = TestSet.for_experiment(experiment)

    validator = _validator(db)

    assert validator.validate(Combination(test_set=test_set, indices=(1, 0)), experiment)
    assert not validator.validate(Combination(test_set=test_set, indices=(1, 1)), experiment)


def test_unpublished_datasource_is_not_usable(db):
    page = make_item(db, "Home")
    draft = make_item(db, "Draft", is_published=False)
    experiment = definition_of(db, make_experiment(db, page, [(None, draft.item_id)]))
    test_set = TestSet.for_experiment(experiment)

    assert not _validator(db).validate(Combination(test_set=test_set, indices=(1,)), experiment)
