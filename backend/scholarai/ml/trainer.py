from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Sequence

from sklearn.metrics import confusion_matrix

from scholarai.ml.feature_vectorizer import FEATURE_NAMES, FeatureVector
from scholarai.ml.math_utils import binary_cross_entropy, dot_product, shuffle_seeded, sigmoid
from scholarai.ml.seeded_random import SeededRandom

"""
ML Trainer (régression logistique).

Rôle (fonctionnel) :
- Entraîne une régression logistique par descente de gradient mini-batch :
  - poids initialisés à une valeur égale (pas de warm start : l’importance vient des données),
  - pondération des classes total / (2 * count_classe) contre le déséquilibre,
  - régularisation L2 + learning rate décroissant lr0 / (1 + decay * epoch),
  - clipping après CHAQUE batch : poids dans [-5, 5], biais dans [-3, 3],
  - early stopping (patience) + seuil de convergence,
  - on retourne le meilleur snapshot (loss minimale), pas forcément le dernier epoch.
- Évalue un modèle sur un jeu de test (matrice de confusion -> accuracy/precision/recall/F1).

Notes :
- Le shuffle passe par SeededRandom : deux runs avec la même graine sont identiques au bit près.
- Code CPU pur : appelé dans un thread par le service d’entraînement (asyncio.to_thread).
"""

log = logging.getLogger("scholarai.ml.trainer")

WEIGHT_BOUND = 5.0
BIAS_BOUND = 3.0


@dataclass(frozen=True)
class Sample:
    """Échantillon d’entraînement : features complètes + label binaire (1 = approuvé)."""
    features: FeatureVector
    label: int

    def __post_init__(self) -> None:
        if self.label not in (0, 1):
            raise ValueError(f"label must be 0 or 1, got {self.label!r}")


@dataclass(frozen=True)
class TrainingConfig:
    """Hyperparamètres d’un run (valeurs par défaut = settings par défaut)."""
    learning_rate: float = 0.1
    epochs: int = 500
    batch_size: int = 8
    regularization: float = 0.0001
    lr_decay: float = 0.001
    early_stopping_patience: int = 50
    convergence_threshold: float = 0.00001
    k_folds: int = 5
    random_seed: int = 42
    initial_weight: float = 0.1

    @classmethod
    def from_settings(cls, s) -> "TrainingConfig":
        return cls(
            learning_rate=s.TRAINING_LEARNING_RATE,
            epochs=s.TRAINING_EPOCHS,
            batch_size=s.TRAINING_BATCH_SIZE,
            regularization=s.TRAINING_REGULARIZATION,
            lr_decay=s.TRAINING_LR_DECAY,
            early_stopping_patience=s.TRAINING_EARLY_STOPPING_PATIENCE,
            convergence_threshold=s.TRAINING_CONVERGENCE_THRESHOLD,
            k_folds=s.TRAINING_K_FOLDS,
            random_seed=s.TRAINING_RANDOM_SEED,
            initial_weight=s.TRAINING_INITIAL_WEIGHT,
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class EpochStat:
    epoch: int
    loss: float
    accuracy: float


@dataclass
class TrainingRun:
    """Meilleur snapshot d’un entraînement + historique par epoch."""
    weights: Dict[str, float]
    bias: float
    history: List[EpochStat] = field(default_factory=list)
    convergence_epoch: int = 0
    final_loss: float = float("inf")


@dataclass(frozen=True)
class EvaluationMetrics:
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    true_negatives: int
    false_positives: int
    false_negatives: int


def _clip(value: float, bound: float) -> float:
    return max(-bound, min(bound, value))


def initialize_weights(initial_value: float = 0.1) -> Dict[str, float]:
    """Tous les poids égaux : le modèle apprend l’importance uniquement depuis les données."""
    return {name: initial_value for name in FEATURE_NAMES}


def class_weights(samples: Sequence[Sample]) -> tuple[float, float]:
    """(poids positif, poids négatif) = total / (2 * count), count plancher à 1."""
    total = len(samples)
    positives = sum(1 for s in samples if s.label == 1)
    negatives = total - positives
    return total / (2 * max(1, positives)), total / (2 * max(1, negatives))


def _accuracy(weights: Dict[str, float], bias: float, samples: Sequence[Sample]) -> float:
    correct = 0
    for s in samples:
        predicted = 1 if sigmoid(dot_product(weights, s.features) + bias) >= 0.5 else 0
        if predicted == s.label:
            correct += 1
    return correct / len(samples)


def train_model(samples: Sequence[Sample], config: TrainingConfig, rng: SeededRandom) -> TrainingRun:
    """
    Descente de gradient mini-batch avec early stopping.

    Retour :
    - TrainingRun (poids/biais du meilleur epoch, historique, epoch de convergence, meilleure loss)
    """
    if not samples:
        raise ValueError("Cannot train on an empty sample set")

    weights = initialize_weights(config.initial_weight)
    bias = 0.0

    positive_weight, negative_weight = class_weights(samples)
    log.debug("class weights: positive=%.2f negative=%.2f", positive_weight, negative_weight)

    best_weights = dict(weights)
    best_bias = bias
    best_loss = float("inf")
    no_improvement = 0

    history: List[EpochStat] = []
    convergence_epoch = config.epochs

    # Au moins 2 batches par epoch quand c’est possible
    batch_size = max(1, min(config.batch_size, len(samples) // 2))

    for epoch in range(config.epochs):
        lr = config.learning_rate / (1 + config.lr_decay * epoch)
        shuffled = shuffle_seeded(samples, rng)

        epoch_loss = 0.0
        seen = 0

        for start in range(0, len(shuffled), batch_size):
            batch = shuffled[start:start + batch_size]

            gradients = {name: 0.0 for name in weights}
            bias_gradient = 0.0
            batch_loss = 0.0

            for sample in batch:
                cw = positive_weight if sample.label == 1 else negative_weight
                prediction = sigmoid(dot_product(weights, sample.features) + bias)
                error = (prediction - sample.label) * cw

                for name, value in sample.features.items():
                    if name in gradients:
                        gradients[name] += error * value
                bias_gradient += error
                batch_loss += binary_cross_entropy(sample.label, prediction) * cw

            scale = 1.0 / len(batch)
            for name in weights:
                grad = gradients[name] * scale + config.regularization * weights[name]
                weights[name] = _clip(weights[name] - lr * grad, WEIGHT_BOUND)
            bias = _clip(bias - lr * bias_gradient * scale, BIAS_BOUND)

            epoch_loss += batch_loss
            seen += len(batch)

        avg_loss = epoch_loss / seen
        history.append(EpochStat(epoch=epoch + 1, loss=avg_loss, accuracy=_accuracy(weights, bias, samples)))

        if avg_loss < best_loss:
            best_loss = avg_loss
            best_weights = dict(weights)
            best_bias = bias
            no_improvement = 0
        else:
            no_improvement += 1

        if no_improvement >= config.early_stopping_patience:
            log.debug("early stopping at epoch %s (patience=%s)", epoch + 1, config.early_stopping_patience)
            convergence_epoch = epoch + 1
            break

        if (epoch + 1) % 50 == 0:
            log.debug("epoch %s: loss=%.4f accuracy=%.3f", epoch + 1, avg_loss, history[-1].accuracy)

        if avg_loss < config.convergence_threshold:
            convergence_epoch = epoch + 1
            break

    return TrainingRun(
        weights=best_weights,
        bias=best_bias,
        history=history,
        convergence_epoch=convergence_epoch,
        final_loss=best_loss,
    )


def evaluate_model(
    weights: Dict[str, float],
    bias: float,
    samples: Sequence[Sample],
    threshold: float = 0.5,
) -> EvaluationMetrics:
    """Évalue (poids, biais) sur un jeu de test : matrice de confusion -> métriques."""
    if not samples:
        raise ValueError("Cannot evaluate on an empty sample set")

    y_true = [s.label for s in samples]
    y_pred = [1 if sigmoid(dot_product(weights, s.features) + bias) >= threshold else 0 for s in samples]

    tn, fp, fn, tp = (int(v) for v in confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel())

    accuracy = (tp + tn) / len(samples)
    precision = tp / (tp + fp) if tp + fp > 0 else 0.0
    recall = tp / (tp + fn) if tp + fn > 0 else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

    return EvaluationMetrics(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        f1_score=f1,
        true_positives=tp,
        true_negatives=tn,
        false_positives=fp,
        false_negatives=fn,
    )


def calculate_feature_importance(weights: Dict[str, float]) -> Dict[str, float]:
    """Importance = |w| / Σ|w| (somme = 1 ; 0 partout si tous les poids sont nuls)."""
    total = sum(abs(w) for w in weights.values())
    return {name: (abs(w) / total if total > 0 else 0.0) for name, w in weights.items()}
