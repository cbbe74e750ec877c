# tests/test_training_service.py
import uuid

import pytest

from conftest import add_scholarship
from scholarai.core.errors import InsufficientDataError, NoTrainedModelError, ScholarshipNotFoundError
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.models.trained_model import MODEL_TYPE_GLOBAL, MODEL_TYPE_SCHOLARSHIP
from scholarai.schemas.profile import ApplicantProfile
from scholarai.services.auto_training import TrainingLockSet
from scholarai.services.prediction_service import PredictionService
from scholarai.services.training_service import TRIGGER_MANUAL, TRIGGER_STATUS_CHANGE


async def test_samples_only_use_decided_applications(db, training_service):
    sch = await add_scholarship(db, decided=12, pending=3)

    samples = await training_service.load_samples(db, sch.id)

    assert len(samples) == 12
    assert await training_service.count_labeled(db, sch.id) == 12
    assert sum(s.label for s in samples) == 6
    assert all(list(s.features) == list(FEATURE_NAMES) for s in samples)


async def test_train_scholarship_model(db, training_service):
    sch = await add_scholarship(db, decided=12)

    outcome = await training_service.train_scholarship_model(
        db, sch.id, trigger_type=TRIGGER_STATUS_CHANGE, trained_by="reviewer"
    )
    model = outcome.model

    assert model.model_type == MODEL_TYPE_SCHOLARSHIP
    assert model.scholarship_id == sch.id
    assert model.is_active is True
    assert model.trigger_type == TRIGGER_STATUS_CHANGE
    assert model.trained_by == "reviewer"
    assert model.training_stats["total_samples"] == 12
    assert model.training_stats["approved_count"] == 6
    assert len(outcome.cross_validation.fold_accuracies) == 3
    assert set(model.weights) == set(FEATURE_NAMES)
    assert 0.0 <= outcome.accuracy <= 1.0


async def test_insufficient_data_writes_nothing(db, training_service, registry):
    sch = await add_scholarship(db, decided=1)

    with pytest.raises(InsufficientDataError) as exc:
        await training_service.train_scholarship_model(db, sch.id)

    assert exc.value.found == 1
    assert exc.value.required == 10
    assert await registry.list_models(db) == []

    with pytest.raises(InsufficientDataError):
        await training_service.train_global_model(db)


async def test_unknown_scholarship(db, training_service):
    with pytest.raises(ScholarshipNotFoundError):
        await training_service.train_scholarship_model(db, uuid.uuid4())


async def test_small_scholarship_predicts_with_global_model(db, training_service, registry):
    await add_scholarship(db, name="Large Fund", decided=24, seed=3)
    small = await add_scholarship(db, name="Small Fund", decided=1, seed=4)
    predictor = PredictionService(registry)
    profile = ApplicantProfile(gwa=1.4, classification="Senior", college="College of Engineering")

    with pytest.raises(NoTrainedModelError):
        await predictor.predict(db, profile, small.id)
    with pytest.raises(InsufficientDataError):
        await training_service.train_scholarship_model(db, small.id)

    outcome = await training_service.train_global_model(db)
    result = await predictor.predict(db, profile, small.id)

    assert outcome.model.training_stats["total_samples"] == 25
    assert result.model_type == MODEL_TYPE_GLOBAL
    assert result.model_id == str(outcome.model.id)
    assert 0.0 <= result.probability <= 1.0


async def test_retraining_replaces_active_model(db, training_service, registry):
    sch = await add_scholarship(db, decided=12)

    first = await training_service.train_scholarship_model(db, sch.id)
    second = await training_service.train_scholarship_model(db, sch.id)
    first_id, second_id = first.model.id, second.model.id
    db.expire_all()

    active = await registry.list_models(db, scholarship_id=sch.id, active_only=True)
    assert [m.id for m in active] == [second_id]
    assert (await registry.resolve(db, sch.id)).model_id == second_id
    assert first_id != second_id


async def test_train_all_reports_each_scholarship(db, training_service):
    ready = await add_scholarship(db, name="A Ready", decided=12, seed=5)
    await add_scholarship(db, name="B Sparse", decided=4, seed=6)

    results = await training_service.train_all_scholarship_models(db, trained_by="admin")
    by_name = {r["name"]: r for r in results}

    assert by_name["A Ready"]["status"] == "success"
    assert by_name["A Ready"]["scholarship_id"] == ready.id
    assert by_name["B Sparse"]["status"] == "insufficient_data"
    assert by_name["B Sparse"]["labeled_count"] == 4


async def test_train_all_releases_locks_after_each_scholarship(db, training_service):
    busy = await add_scholarship(db, name="A Busy", decided=12, seed=5)
    await add_scholarship(db, name="B Free", decided=12, seed=6)
    locks = TrainingLockSet()
    locks.try_acquire(str(busy.id))

    results = await training_service.train_all_scholarship_models(db, locks=locks)
    by_name = {r["name"]: r for r in results}

    assert (by_name["A Busy"]["status"], by_name["A Busy"]["reason"]) == ("skipped", "concurrent_lock")
    assert by_name["B Free"]["status"] == "success"
    assert locks.active() == [str(busy.id)]


async def test_training_stats_and_feature_importance(db, training_service):
    sch = await add_scholarship(db, decided=20, seed=8)

    assert await training_service.feature_importance(db) is None

    await training_service.train_global_model(db, notes="first run")
    await training_service.train_scholarship_model(db, sch.id)
    stats = await training_service.get_training_stats(db)

    assert stats["total_decided"] == 20
    assert stats["approved"] == 10
    assert stats["global_ready"] is True
    assert stats["active_global_model"].notes == "first run"
    assert stats["active_global_model"].trigger_type == TRIGGER_MANUAL
    assert stats["active_scholarship_models"] == 1
    assert stats["total_models"] == 2
    assert stats["scholarships"][0]["has_active_model"] is True

    importance = await training_service.feature_importance(db)
    values = [i["importance"] for i in importance["items"]]
    assert values == sorted(values, reverse=True)
    assert sum(values) == pytest.approx(1.0, abs=1e-6)
