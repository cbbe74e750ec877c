# tests/test_auto_training.py
import asyncio
import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace

from scholarai.core.errors import InsufficientDataError
from scholarai.services.auto_training import (
    GLOBAL_LOCK_KEY,
    AutoTrainer,
    AutoTrainingConfig,
    TrainingLockSet,
)
from scholarai.services.training_service import TRIGGER_GLOBAL_REFRESH, TRIGGER_STATUS_CHANGE


class FakeTraining:
    """Service d’entraînement minimal : compte les appels, peut bloquer ou échouer."""

    min_samples_global = 50
    min_samples_scholarship = 30

    def __init__(self, labeled=100, gate=None, fail=None):
        self.labeled = labeled
        self.gate = gate
        self.fail = fail
        self.calls = []

    async def count_labeled(self, db, scholarship_id=None):
        return self.labeled

    async def _run(self, kind, **kwargs):
        self.calls.append((kind, kwargs))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        model = SimpleNamespace(id=uuid.uuid4(), training_stats={"total_samples": self.labeled})
        return SimpleNamespace(model=model, accuracy=0.8)

    async def train_scholarship_model(self, db, scholarship_id, **kwargs):
        return await self._run("scholarship", scholarship_id=scholarship_id, **kwargs)

    async def train_global_model(self, db, **kwargs):
        return await self._run("global", **kwargs)


@asynccontextmanager
async def fake_session():
    yield object()


def make_trainer(training, **config):
    return AutoTrainer(training, fake_session, AutoTrainingConfig(**config))


# ============================
# Locks
# ============================
def test_lock_set_is_exclusive():
    locks = TrainingLockSet()

    assert locks.try_acquire("a") is True
    assert locks.try_acquire("a") is False
    assert locks.active() == ["a"]

    locks.release("a")
    assert locks.is_locked("a") is False
    assert locks.try_acquire("a") is True


# ============================
# Déclenchement
# ============================
def test_not_triggered_without_event_loop():
    trainer = make_trainer(FakeTraining())
    assert trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved") is False


async def test_non_final_or_disabled_is_ignored():
    trainer = make_trainer(FakeTraining())
    assert trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "under_review") is False

    disabled = make_trainer(FakeTraining(), enabled=False)
    assert disabled.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved") is False
    assert disabled.counter == 0


async def test_decision_trains_scholarship_model():
    training = FakeTraining()
    trainer = make_trainer(training)
    app_id, sch_id = uuid.uuid4(), uuid.uuid4()

    assert trainer.on_outcome_decided(app_id, sch_id, "rejected", "reviewer") is True
    await trainer.drain()

    kind, kwargs = training.calls[0]
    assert kind == "scholarship"
    assert kwargs["scholarship_id"] == sch_id
    assert kwargs["trigger_type"] == TRIGGER_STATUS_CHANGE
    assert kwargs["trigger_application_id"] == app_id
    assert kwargs["trained_by"] == "reviewer"

    entry = trainer.log()[0]
    assert entry["event"] == "success"
    assert entry["scope"] == "scholarship"
    assert entry["scholarship_id"] == str(sch_id)
    assert entry["accuracy"] == 0.8
    assert trainer.locks.active() == []


async def test_concurrent_decisions_train_once():
    gate = asyncio.Event()
    training = FakeTraining(gate=gate)
    trainer = make_trainer(training)
    sch_id = uuid.uuid4()

    trainer.on_outcome_decided(uuid.uuid4(), sch_id, "approved")
    trainer.on_outcome_decided(uuid.uuid4(), sch_id, "approved")
    await asyncio.sleep(0.01)
    assert trainer.locks.is_locked(str(sch_id))

    gate.set()
    await trainer.drain()

    events = sorted((e["event"], e.get("reason")) for e in trainer.log())
    assert events == [("skipped", "concurrent_lock"), ("success", None)]
    assert len(training.calls) == 1
    assert trainer.locks.active() == []


async def test_different_scholarships_train_in_parallel():
    gate = asyncio.Event()
    training = FakeTraining(gate=gate)
    trainer = make_trainer(training)

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await asyncio.sleep(0.01)
    assert len(trainer.locks.active()) == 2

    gate.set()
    await trainer.drain()
    assert [e["event"] for e in trainer.log()] == ["success", "success"]


async def test_global_retrain_every_interval():
    training = FakeTraining()
    trainer = make_trainer(training, global_retrain_interval=2)

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await trainer.drain()
    assert trainer.status()["decisions_until_global_retrain"] == 1

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "rejected")
    await trainer.drain()

    assert [kind for kind, _ in training.calls] == ["scholarship", "scholarship", "global"]
    assert training.calls[-1][1]["trigger_type"] == TRIGGER_GLOBAL_REFRESH
    assert trainer.log(1)[0]["scope"] == "global"
    assert trainer.counter == 2


async def test_insufficient_data_is_skipped():
    training = FakeTraining(labeled=3)
    trainer = make_trainer(training)

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await trainer.drain()

    entry = trainer.log()[0]
    assert entry["event"] == "skipped"
    assert entry["reason"] == "insufficient_data"
    assert entry["labeled_count"] == 3
    assert entry["required"] == 30
    assert training.calls == []


async def test_insufficient_data_raised_by_training_is_skipped():
    training = FakeTraining(fail=InsufficientDataError(5, 30))
    trainer = make_trainer(training)

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await trainer.drain()

    entry = trainer.log()[0]
    assert (entry["event"], entry["reason"], entry["labeled_count"]) == ("skipped", "insufficient_data", 5)


async def test_training_failure_is_contained():
    training = FakeTraining(fail=RuntimeError("disk full"))
    trainer = make_trainer(training)
    sch_id = uuid.uuid4()

    assert trainer.on_outcome_decided(uuid.uuid4(), sch_id, "approved") is True
    await trainer.drain()

    entry = trainer.log()[0]
    assert entry["event"] == "error"
    assert entry["error"] == "disk full"
    assert "elapsed_ms" in entry
    assert not trainer.locks.is_locked(str(sch_id))

    # le scope est de nouveau disponible
    training.fail = None
    trainer.on_outcome_decided(uuid.uuid4(), sch_id, "approved")
    await trainer.drain()
    assert trainer.log()[0]["event"] == "success"


async def test_manual_lock_blocks_auto_training():
    trainer = make_trainer(FakeTraining(), global_retrain_interval=1)
    trainer.locks.try_acquire(GLOBAL_LOCK_KEY)

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await trainer.drain()

    latest = trainer.log()[0]
    assert (latest["scope"], latest["event"], latest["reason"]) == ("global", "skipped", "concurrent_lock")


# ============================
# Journal / status
# ============================
def test_log_is_bounded_and_newest_first():
    trainer = make_trainer(FakeTraining(), log_size=3)
    for i in range(5):
        trainer._record("success", scope="scholarship", elapsed_ms=i)

    entries = trainer.log(10)
    assert [e["elapsed_ms"] for e in entries] == [4, 3, 2]
    assert [e["elapsed_ms"] for e in trainer.log(2)] == [4, 3]
    assert trainer.log(0) == []


def test_record_drops_empty_fields_and_stringifies_ids():
    trainer = make_trainer(FakeTraining())
    sch_id = uuid.uuid4()

    entry = trainer._record("skipped", scope="scholarship", reason="concurrent_lock", scholarship_id=sch_id, model_id=None)

    assert entry["scholarship_id"] == str(sch_id)
    assert "model_id" not in entry


async def test_status_summary():
    trainer = make_trainer(FakeTraining(), global_retrain_interval=10)
    status = trainer.status()

    assert status["enabled"] is True
    assert status["counter"] == 0
    assert status["decisions_until_global_retrain"] == 10
    assert status["last_event"] is None
    assert status["config"]["min_samples_scholarship"] == 30

    trainer.on_outcome_decided(uuid.uuid4(), uuid.uuid4(), "approved")
    await trainer.drain()
    status = trainer.status()

    assert status["counter"] == 1
    assert status["today_summary"] == {"total_auto_trains": 1, "scholarship_trains": 1, "global_trains": 0}
    assert status["last_event"]["event"] == "success"
    assert status["active_locks"] == []
