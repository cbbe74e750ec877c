# tests/test_model_registry.py
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from conftest import add_scholarship
from scholarai.core.errors import ModelNotFoundError, NoTrainedModelError
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.ml.model_cache import GLOBAL_KEY, scholarship_key
from scholarai.models.trained_model import MODEL_TYPE_GLOBAL, MODEL_TYPE_SCHOLARSHIP, TrainedModel


def trained_model(model_type=MODEL_TYPE_GLOBAL, scholarship_id=None, bias=0.0, minutes_ago=0):
    return TrainedModel(
        name=f"{model_type} test",
        version="1.0.0",
        model_type=model_type,
        scholarship_id=scholarship_id,
        weights={name: 0.1 for name in FEATURE_NAMES},
        bias=bias,
        metrics={"accuracy": 0.8},
        training_stats={"total_samples": 10},
        feature_importance={},
        training_config={},
        trained_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )


async def test_resolve_without_any_model_raises(db, registry):
    with pytest.raises(NoTrainedModelError):
        await registry.resolve(db)
    with pytest.raises(NoTrainedModelError):
        await registry.resolve(db, uuid.uuid4())


async def test_scholarship_falls_back_to_global(db, registry):
    sch = await add_scholarship(db, decided=0)
    global_row = await registry.activate(db, trained_model(bias=0.5))

    resolved = await registry.resolve(db, sch.id)

    assert resolved.is_global
    assert resolved.model_id == global_row.id
    assert resolved.accuracy == 0.8
    # le repli global est caché sous la clé de la bourse
    assert registry.cache.get(scholarship_key(sch.id)) == resolved


async def test_specific_model_wins_over_global(db, registry):
    sch = await add_scholarship(db, decided=0)
    await registry.activate(db, trained_model(bias=0.5))
    specific = await registry.activate(db, trained_model(MODEL_TYPE_SCHOLARSHIP, sch.id, bias=-0.5))

    resolved = await registry.resolve(db, sch.id)

    assert resolved.model_type == MODEL_TYPE_SCHOLARSHIP
    assert resolved.model_id == specific.id
    assert resolved.bias == -0.5
    assert (await registry.resolve(db)).is_global


async def test_activation_keeps_one_active_model_per_scope(db, registry):
    first = await registry.activate(db, trained_model(minutes_ago=5))
    second = await registry.activate(db, trained_model())
    first_id, second_id = first.id, second.id
    db.expire_all()

    rows = await registry.list_models(db, model_type=MODEL_TYPE_GLOBAL)
    active = [r.id for r in rows if r.is_active]

    assert active == [second_id]
    assert (await registry.get(db, first_id)).is_active is False


async def test_activation_clears_cache(db, registry):
    await registry.activate(db, trained_model(bias=0.1))
    await registry.resolve(db)
    assert GLOBAL_KEY in registry.cache.keys()

    newer = await registry.activate(db, trained_model(bias=0.9))

    assert len(registry.cache) == 0
    assert (await registry.resolve(db)).model_id == newer.id


async def test_activation_during_resolve_is_not_masked_by_cache(db, registry, session_factory, monkeypatch):
    old_id = (await registry.activate(db, trained_model(minutes_ago=5))).id
    read_active_global = registry.active_global_model
    newer_ids = []

    async def read_then_activate_elsewhere(session):
        row = await read_active_global(session)
        async with session_factory() as other:
            newer_ids.append((await registry.activate(other, trained_model())).id)
        return row

    monkeypatch.setattr(registry, "active_global_model", read_then_activate_elsewhere)
    in_flight = await registry.resolve(db)
    monkeypatch.undo()

    assert in_flight.model_id == old_id
    assert GLOBAL_KEY not in registry.cache.keys()
    assert (await registry.resolve(db)).model_id == newer_ids[0]


async def test_deactivating_specific_model_falls_back_to_global(db, registry):
    sch = await add_scholarship(db, decided=0)
    global_id = (await registry.activate(db, trained_model(bias=0.5))).id
    specific_id = (await registry.activate(db, trained_model(MODEL_TYPE_SCHOLARSHIP, sch.id))).id

    assert (await registry.resolve(db, sch.id)).model_id == specific_id

    await registry.deactivate(db, specific_id)
    resolved = await registry.resolve(db, sch.id)
    assert resolved.is_global
    assert resolved.model_id == global_id

    await registry.deactivate(db, global_id)
    with pytest.raises(NoTrainedModelError):
        await registry.resolve(db, sch.id)


async def test_deactivate_and_delete(db, registry):
    row = await registry.activate(db, trained_model())
    await registry.resolve(db)

    await registry.deactivate(db, row.id)
    with pytest.raises(NoTrainedModelError):
        await registry.resolve(db)

    await registry.delete(db, row.id)
    with pytest.raises(ModelNotFoundError):
        await registry.get(db, row.id)


async def test_list_models_filters(db, registry):
    sch = await add_scholarship(db, decided=0)
    await registry.activate(db, trained_model())
    await registry.activate(db, trained_model(MODEL_TYPE_SCHOLARSHIP, sch.id))

    assert len(await registry.list_models(db)) == 2
    only_sch = await registry.list_models(db, scholarship_id=sch.id)
    assert [r.model_type for r in only_sch] == [MODEL_TYPE_SCHOLARSHIP]
    assert len(await registry.list_models(db, active_only=True, limit=1)) == 1


async def test_export_bundle_roundtrip(db, registry, tmp_path):
    row = await registry.activate(db, trained_model(bias=0.25))

    path = registry.export_bundle(row, tmp_path / "global.joblib")
    bundle = registry.load_bundle(path)

    assert bundle["model"]["bias"] == 0.25
    assert bundle["spec"]["feature_names"] == list(FEATURE_NAMES)
    assert bundle["meta"]["model_id"] == str(row.id)
    assert bundle["meta"]["scholarship_id"] is None
