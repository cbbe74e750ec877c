# tests/test_cross_validation.py
import pytest

from conftest import make_samples
from scholarai.ml.cross_validation import (
    accuracy_std,
    average_biases,
    average_weights,
    create_k_folds,
    cross_validate,
)
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.ml.seeded_random import SeededRandom
from scholarai.ml.trainer import TrainingConfig


def test_folds_partition_all_indices():
    folds = create_k_folds(23, 5, SeededRandom(42))

    assert len(folds) == 5
    flat = [i for fold in folds for i in fold]
    assert sorted(flat) == list(range(23))
    # le dernier fold absorbe le reste
    assert [len(f) for f in folds] == [4, 4, 4, 4, 7]


def test_folds_are_deterministic():
    assert create_k_folds(30, 3, SeededRandom(7)) == create_k_folds(30, 3, SeededRandom(7))


@pytest.mark.parametrize("n, k", [(10, 1), (3, 5)])
def test_invalid_fold_setup(n, k):
    with pytest.raises(ValueError):
        create_k_folds(n, k, SeededRandom(42))


def test_average_weights_and_bias():
    w = average_weights([{"a": 1.0, "b": 0.0}, {"a": 3.0, "b": -2.0}], feature_names=("a", "b"))

    assert w == {"a": 2.0, "b": -1.0}
    assert average_biases([0.5, -0.5, 1.5]) == pytest.approx(0.5)


def test_accuracy_std_population():
    assert accuracy_std([0.8, 0.8, 0.8]) == 0.0
    assert accuracy_std([0.6, 1.0]) == pytest.approx(0.2)


def test_fifty_samples_five_folds():
    samples = make_samples(50)
    config = TrainingConfig(k_folds=5, random_seed=42, epochs=60)

    result = cross_validate(samples, config)

    assert len(result.fold_accuracies) == 5
    assert len(result.weights) == 15
    assert set(result.weights) == set(FEATURE_NAMES)
    assert sum(result.feature_importance.values()) == pytest.approx(1.0, abs=1e-6)
    assert result.metrics.accuracy == pytest.approx(sum(result.fold_accuracies) / 5)

    m = result.metrics
    assert m.true_positives + m.true_negatives + m.false_positives + m.false_negatives == 50


def test_cross_validation_is_reproducible():
    samples = make_samples(30)
    config = TrainingConfig(k_folds=3, epochs=20)

    a = cross_validate(samples, config)
    b = cross_validate(samples, config)

    assert a.weights == b.weights
    assert a.bias == b.bias
    assert a.fold_accuracies == b.fold_accuracies


def test_metrics_to_dict_is_json_friendly():
    result = cross_validate(make_samples(12), TrainingConfig(k_folds=3, epochs=5))
    d = result.metrics.to_dict()

    assert set(d) >= {"accuracy", "precision", "recall", "f1_score", "accuracy_std", "fold_accuracies"}
    assert isinstance(d["fold_accuracies"], list)
