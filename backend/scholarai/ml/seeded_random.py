from __future__ import annotations

"""
ML Seeded Random.

Rôle (fonctionnel) :
- Générateur pseudo-aléatoire déterministe (LCG) utilisé partout où le moteur a besoin
  d’aléa : partition des folds, shuffle des mini-batches, données de démo.
- Deux instances créées avec la même graine produisent exactement la même séquence.

Notes :
- Aucun autre composant du moteur ne doit appeler `random` (non seedé).
- Récurrence : state = (state * A + C) mod M, avec M = 2**31 -> next() ∈ [0, 1).
"""

LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MODULUS = 2 ** 31


class SeededRandom:
    """Générateur LCG reproductible."""

    def __init__(self, seed: int = 42) -> None:
        self.seed = int(seed)
        self.current = self.seed % LCG_MODULUS

    def next(self) -> float:
        """Valeur suivante dans [0, 1)."""
        self.current = (self.current * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.current / LCG_MODULUS

    def next_int(self, n: int) -> int:
        """Entier dans [0, n)."""
        if n <= 0:
            raise ValueError("n must be positive")
        return int(self.next() * n)

    def reset(self) -> None:
        """Revient à la graine initiale."""
        self.current = self.seed % LCG_MODULUS
