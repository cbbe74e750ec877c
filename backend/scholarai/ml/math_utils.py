from __future__ import annotations

import math
from typing import List, Mapping, Sequence, TypeVar

from scholarai.ml.seeded_random import SeededRandom

"""
ML Math Utils.

Primitives numériques de la régression logistique :
- sigmoid (stable, jamais NaN, sigmoid(0) == 0.5)
- binary_cross_entropy (probabilités bornées par eps)
- dot_product (poids x features, par nom de feature)
- shuffle_seeded (Fisher-Yates piloté par SeededRandom, copie non mutante)
"""

T = TypeVar("T")

BCE_EPSILON = 1e-15
SIGMOID_CLIP = 500.0


def sigmoid(z: float) -> float:
    if math.isnan(z):
        return 0.5
    z = max(-SIGMOID_CLIP, min(SIGMOID_CLIP, z))
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def binary_cross_entropy(y_true: int, y_pred: float) -> float:
    p = max(BCE_EPSILON, min(1.0 - BCE_EPSILON, y_pred))
    return -(y_true * math.log(p) + (1 - y_true) * math.log(1.0 - p))


def dot_product(weights: Mapping[str, float], features: Mapping[str, float]) -> float:
    """Somme w_f * x_f sur les features connues du modèle (ordre des features)."""
    total = 0.0
    for name, value in features.items():
        w = weights.get(name)
        if w is not None:
            total += w * value
    return total


def shuffle_seeded(items: Sequence[T], rng: SeededRandom) -> List[T]:
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.next_int(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
