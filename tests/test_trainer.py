# tests/test_trainer.py
import pytest

from conftest import make_samples
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.ml.seeded_random import SeededRandom
from scholarai.ml.trainer import (
    BIAS_BOUND,
    WEIGHT_BOUND,
    Sample,
    TrainingConfig,
    calculate_feature_importance,
    class_weights,
    evaluate_model,
    train_model,
)


def test_sample_rejects_non_binary_label():
    with pytest.raises(ValueError):
        Sample(features={}, label=2)


def test_class_weights_balance_minority():
    samples = [Sample(features={}, label=1)] + [Sample(features={}, label=0)] * 3

    positive, negative = class_weights(samples)

    assert positive == pytest.approx(2.0)
    assert negative == pytest.approx(4 / 6)


def test_training_learns_separable_signal():
    samples = make_samples(40)
    run = train_model(samples, TrainingConfig(epochs=80), SeededRandom(42))

    metrics = evaluate_model(run.weights, run.bias, samples)

    assert set(run.weights) == set(FEATURE_NAMES)
    assert metrics.accuracy >= 0.85
    assert run.history
    assert run.final_loss == min(h.loss for h in run.history)


def test_weights_and_bias_stay_clipped():
    samples = make_samples(20)
    config = TrainingConfig(learning_rate=50.0, lr_decay=0.0, epochs=30, early_stopping_patience=30)

    run = train_model(samples, config, SeededRandom(1))

    assert all(-WEIGHT_BOUND <= w <= WEIGHT_BOUND for w in run.weights.values())
    assert -BIAS_BOUND <= run.bias <= BIAS_BOUND


def test_same_seed_gives_identical_model():
    samples = make_samples(24)
    config = TrainingConfig(epochs=20)

    a = train_model(samples, config, SeededRandom(42))
    b = train_model(samples, config, SeededRandom(42))

    assert a.weights == b.weights
    assert a.bias == b.bias


def test_empty_sample_set_is_rejected():
    with pytest.raises(ValueError):
        train_model([], TrainingConfig(), SeededRandom(42))
    with pytest.raises(ValueError):
        evaluate_model({}, 0.0, [])


def test_evaluate_counts_confusion_cells():
    x_pos = {name: 1.0 for name in FEATURE_NAMES}
    x_neg = {name: 0.0 for name in FEATURE_NAMES}
    weights = {name: 1.0 for name in FEATURE_NAMES}
    samples = [
        Sample(features=x_pos, label=1),  # TP
        Sample(features=x_pos, label=0),  # FP
        Sample(features=x_neg, label=0),  # TN
        Sample(features=x_neg, label=1),  # FN
    ]

    m = evaluate_model(weights, -1.0, samples)

    assert (m.true_positives, m.false_positives, m.true_negatives, m.false_negatives) == (1, 1, 1, 1)
    assert m.accuracy == 0.5
    assert m.precision == 0.5
    assert m.recall == 0.5
    assert m.f1_score == pytest.approx(0.5)


def test_feature_importance_normalized():
    importance = calculate_feature_importance({"a": 2.0, "b": -1.0, "c": 1.0})

    assert sum(importance.values()) == pytest.approx(1.0)
    assert importance["a"] == pytest.approx(0.5)
    assert calculate_feature_importance({"a": 0.0}) == {"a": 0.0}
