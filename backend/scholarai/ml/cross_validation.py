from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.ml.math_utils import shuffle_seeded
from scholarai.ml.seeded_random import SeededRandom
from scholarai.ml.trainer import (
    EvaluationMetrics,
    Sample,
    TrainingConfig,
    calculate_feature_importance,
    evaluate_model,
    train_model,
)

"""
ML Cross-Validation.

Rôle (fonctionnel) :
- Partitionne les échantillons en k folds disjoints (shuffle seedé une seule fois,
  tranches contiguës, le dernier fold absorbe le reste).
- Pour chaque fold : entraîne sur les k-1 autres, évalue sur le fold tenu à l’écart.
- Agrège :
  - poids / biais = moyenne arithmétique des k modèles (c’est CE modèle qui est persisté),
  - métriques = moyenne des folds (+ somme des comptes de confusion),
  - écart-type des accuracies + liste des accuracies par fold (transparence).

Notes :
- Un SeededRandom neuf (config.random_seed) pilote tout le run : folds + shuffles d’epoch.
"""

log = logging.getLogger("scholarai.ml.cross_validation")


@dataclass(frozen=True)
class FoldResult:
    index: int
    test_indices: List[int]
    weights: Dict[str, float]
    bias: float
    metrics: EvaluationMetrics
    convergence_epoch: int
    final_loss: float


@dataclass(frozen=True)
class AggregatedMetrics:
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    true_negatives: int
    false_positives: int
    false_negatives: int
    accuracy_std: float
    fold_accuracies: List[float]
    final_loss: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "true_positives": self.true_positives,
            "true_negatives": self.true_negatives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "accuracy_std": self.accuracy_std,
            "fold_accuracies": list(self.fold_accuracies),
            "final_loss": self.final_loss,
        }


@dataclass
class CrossValidationResult:
    weights: Dict[str, float]
    bias: float
    metrics: AggregatedMetrics
    feature_importance: Dict[str, float]
    folds: List[List[int]]
    fold_results: List[FoldResult] = field(default_factory=list)

    @property
    def fold_accuracies(self) -> List[float]:
        return list(self.metrics.fold_accuracies)


def create_k_folds(n: int, k: int, rng: SeededRandom) -> List[List[int]]:
    """Indices 0..n-1 mélangés puis découpés en k tranches (le dernier fold prend le reste)."""
    if k < 2:
        raise ValueError("k must be >= 2")
    if n < k:
        raise ValueError(f"Cannot build {k} folds from {n} samples")

    shuffled = shuffle_seeded(range(n), rng)
    fold_size = n // k
    folds: List[List[int]] = []
    for i in range(k):
        start = i * fold_size
        end = n if i == k - 1 else start + fold_size
        folds.append(shuffled[start:end])
    return folds


def average_weights(fold_weights: Sequence[Dict[str, float]], feature_names: Sequence[str] = FEATURE_NAMES) -> Dict[str, float]:
    k = len(fold_weights)
    return {name: sum(w[name] for w in fold_weights) / k for name in feature_names}


def average_biases(fold_biases: Sequence[float]) -> float:
    return sum(fold_biases) / len(fold_biases)


def accuracy_std(accuracies: Sequence[float]) -> float:
    """Écart-type (population) des accuracies de folds."""
    mean = sum(accuracies) / len(accuracies)
    return math.sqrt(sum((a - mean) ** 2 for a in accuracies) / len(accuracies))


def aggregate_metrics(fold_results: Sequence[FoldResult]) -> AggregatedMetrics:
    k = len(fold_results)
    metrics = [f.metrics for f in fold_results]
    accuracies = [m.accuracy for m in metrics]
    return AggregatedMetrics(
        accuracy=sum(accuracies) / k,
        precision=sum(m.precision for m in metrics) / k,
        recall=sum(m.recall for m in metrics) / k,
        f1_score=sum(m.f1_score for m in metrics) / k,
        true_positives=sum(m.true_positives for m in metrics),
        true_negatives=sum(m.true_negatives for m in metrics),
        false_positives=sum(m.false_positives for m in metrics),
        false_negatives=sum(m.false_negatives for m in metrics),
        accuracy_std=accuracy_std(accuracies),
        fold_accuracies=accuracies,
        final_loss=sum(f.final_loss for f in fold_results) / k,
    )


def cross_validate(samples: Sequence[Sample], config: TrainingConfig) -> CrossValidationResult:
    """
    Validation croisée k-fold complète.

    Retour :
    - CrossValidationResult : modèle moyenné + métriques agrégées + importance des features
    """
    rng = SeededRandom(config.random_seed)
    k = config.k_folds
    folds = create_k_folds(len(samples), k, rng)

    fold_results: List[FoldResult] = []
    for i, test_indices in enumerate(folds):
        train_samples = [samples[idx] for j, fold in enumerate(folds) if j != i for idx in fold]
        test_samples = [samples[idx] for idx in test_indices]

        run = train_model(train_samples, config, rng)
        metrics = evaluate_model(run.weights, run.bias, test_samples)

        log.info("fold %s/%s accuracy=%.3f", i + 1, k, metrics.accuracy, extra={"accuracy": metrics.accuracy})

        fold_results.append(
            FoldResult(
                index=i,
                test_indices=list(test_indices),
                weights=dict(run.weights),
                bias=run.bias,
                metrics=metrics,
                convergence_epoch=run.convergence_epoch,
                final_loss=run.final_loss,
            )
        )

    weights = average_weights([f.weights for f in fold_results])
    bias = average_biases([f.bias for f in fold_results])
    aggregated = aggregate_metrics(fold_results)

    return CrossValidationResult(
        weights=weights,
        bias=bias,
        metrics=aggregated,
        feature_importance=calculate_feature_importance(weights),
        folds=folds,
        fold_results=fold_results,
    )
