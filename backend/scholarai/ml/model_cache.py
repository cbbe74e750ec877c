from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

"""
ML Model Cache.

Rôle (fonctionnel) :
- Cache mémoire des modèles résolus (clé "global" ou "scholarship_<id>").
- Expiration paresseuse : une entrée périmée est supprimée au moment où on la lit.
- Invalidation totale après chaque activation / désactivation / suppression de modèle.

Notes :
- Service injecté (app.state) : un seul cache par process, protégé par un threading.Lock
  (mêmes principes que le rate limiter mémoire : simple et suffisant en mono-instance).
- clock injectable pour tester l’expiration sans attendre.
- Génération : chaque invalidation l’incrémente ; une écriture préparée avant une
  invalidation (lecture DB concurrente d’une activation) est ignorée.
"""

T = TypeVar("T")

GLOBAL_KEY = "global"


def scholarship_key(scholarship_id) -> str:
    return f"scholarship_{scholarship_id}"


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float


class ModelWeightsCache(Generic[T]):
    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry[T]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: T, generation: Optional[int] = None) -> bool:
        """Écrit l’entrée, sauf si `generation` a été dépassée entre-temps (retourne False)."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + self.ttl_seconds)
            return True

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generation += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
