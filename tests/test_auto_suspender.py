from conftest import definition_of, make_experiment, make_item

from app.models.orm.experiment import ExperimentStatus
from app.repositories.experiment_repo import ExperimentRepository
from app.services.auto_suspender import BROKEN_DATASOURCE, AutoSuspender


def test_suspends_a_running_experiment(db):
    experiment = make_experiment(db, make_item(db))
    repo = ExperimentRepository(db)

    assert AutoSuspender(repo).suspend(definition_of(db, experiment))

    stored = repo.get_experiment_with_variables(experiment.experiment_id)
    assert stored.status == ExperimentStatus.SUSPENDED
    assert stored.suspension_reason == BROKEN_DATASOURCE


def test_suspending_twice_is_a_no_op(db):
    experiment = make_experiment(db, make_item(db))
    definition = definition_of(db, experiment)
    suspender = AutoSuspender(ExperimentRepository(db))

    assert suspender.suspend(definition)
    assert not suspender.suspend(definition)


def test_does_not_touch_experiments_that_are_not_running(db):
    experiment = make_experiment(db, make_item(db), status=ExperimentStatus.COMPLETED)
    repo = ExperimentRepository(db)

    assert not AutoSuspender(repo).suspend(definition_of(db, experiment))
    assert repo.get_experiment_with_variables(experiment.experiment_id).status == ExperimentStatus.COMPLETED


def test_store_failures_are_swallowed(db):
    class BrokenRepository:
        def suspend_running(self, experiment_id, reason):
            raise RuntimeError("database is gone")

    definition = definition_of(db, make_experiment(db, make_item(db)))

    assert not AutoSuspender(BrokenRepository()).suspend(definition)
