from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from scholarai.core.errors import InsufficientDataError
from scholarai.core.request_id import job_request_id, reset_request_id, set_request_id
from scholarai.models.application import LABELED_STATUSES
from scholarai.services.training_service import (
    TRIGGER_GLOBAL_REFRESH,
    TRIGGER_STATUS_CHANGE,
    TrainingService,
)

"""
Auto-Training (orchestrateur de ré-entraînement).

Rôle (fonctionnel) :
- Réagit à chaque décision de candidature (approved / rejected) :
  - ré-entraîne le modèle de la bourse concernée,
  - tous les N décisions (AUTO_TRAINING_GLOBAL_INTERVAL), ré-entraîne aussi le modèle global.
- Fire-and-forget : on_outcome_decided() planifie une tâche asyncio et rend la main
  immédiatement ; la réponse HTTP n’attend jamais l’entraînement.
- Exclusion mutuelle par scope (bourse ou "__global__") via TrainingLockSet :
  un second déclenchement pendant un entraînement est journalisé “skipped/concurrent_lock”.
- Isolation des pannes : toute erreur est journalisée (event "error"), jamais propagée.
- Journal borné (ring buffer, AUTO_TRAINING_LOG_SIZE entrées) exposé via status() / log().

Événements journalisés :
- skipped (reason = concurrent_lock | insufficient_data)
- success (model_id, accuracy, elapsed_ms)
- error (message, elapsed_ms)

Notes :
- Le verrou est pris AVANT le premier await : deux décisions simultanées sur la même bourse
  donnent exactement un entraînement et un skip.
- Chaque tâche ouvre sa propre session DB (session_factory) et pose un request_id
  "auto-train-xxxx" pour corréler ses logs.
"""

log = logging.getLogger("scholarai.services.auto_training")

GLOBAL_LOCK_KEY = "__global__"

SCOPE_SCHOLARSHIP = "scholarship"
SCOPE_GLOBAL = "global"


class TrainingLockSet:
    """Ensemble de verrous non bloquants par scope (try-acquire, pas d’attente)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._held: Set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._held:
                return False
            self._held.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._held.discard(key)

    def is_locked(self, key: str) -> bool:
        with self._lock:
            return key in self._held

    def active(self) -> List[str]:
        with self._lock:
            return sorted(self._held)


@dataclass(frozen=True)
class AutoTrainingConfig:
    enabled: bool = True
    global_retrain_interval: int = 10
    log_size: int = 100

    @classmethod
    def from_settings(cls, s) -> "AutoTrainingConfig":
        return cls(
            enabled=s.AUTO_TRAINING_ENABLED,
            global_retrain_interval=s.AUTO_TRAINING_GLOBAL_INTERVAL,
            log_size=s.AUTO_TRAINING_LOG_SIZE,
        )


class AutoTrainer:
    def __init__(
        self,
        training: TrainingService,
        session_factory: Callable[[], Any],
        config: AutoTrainingConfig = AutoTrainingConfig(),
        locks: Optional[TrainingLockSet] = None,
    ) -> None:
        self.training = training
        self.session_factory = session_factory
        self.config = config
        self.locks = locks or TrainingLockSet()

        self._counter = 0
        self._events: Deque[Dict[str, Any]] = deque(maxlen=config.log_size)
        self._events_lock = threading.Lock()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

    # -----------------------------
    # Cycle de vie
    # -----------------------------
    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Capture l’event loop de l’application (appelé dans le lifespan FastAPI)."""
        self._loop = loop or asyncio.get_running_loop()

    async def drain(self) -> None:
        """Attend toutes les tâches en vol (arrêt propre, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def counter(self) -> int:
        return self._counter

    # -----------------------------
    # Déclenchement
    # -----------------------------
    def on_outcome_decided(self, application_id, scholarship_id, outcome: str, decided_by: Optional[str] = None) -> bool:
        """
        Planifie un ré-entraînement en arrière-plan. Ne lève jamais, ne bloque jamais.

        Retour :
        - True si une tâche a été planifiée, False sinon (désactivé, statut non final, pas de loop)
        """
        if not self.config.enabled or outcome not in LABELED_STATUSES:
            return False

        try:
            loop = self._loop or asyncio.get_running_loop()
        except RuntimeError:
            log.warning("auto-training not started: no event loop, decision ignored")
            return False

        args = (application_id, scholarship_id, decided_by)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        try:
            if running is loop:
                self._spawn(*args)
            else:
                loop.call_soon_threadsafe(self._spawn, *args)
        except RuntimeError:
            log.warning("auto-training loop closed, decision ignored")
            return False
        return True

    def _spawn(self, application_id, scholarship_id, decided_by) -> None:
        task = asyncio.get_running_loop().create_task(
            self._handle_decision(application_id, scholarship_id, decided_by)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_decision(self, application_id, scholarship_id, decided_by) -> None:
        token = set_request_id(job_request_id("auto-train"))
        try:
            self._counter += 1
            retrain_global = self._counter % self.config.global_retrain_interval == 0

            await self._retrain(SCOPE_SCHOLARSHIP, str(scholarship_id), scholarship_id, application_id, decided_by)
            if retrain_global:
                await self._retrain(SCOPE_GLOBAL, GLOBAL_LOCK_KEY, None, application_id, decided_by)
        except Exception as exc:
            log.exception("auto-training handler failed")
            self._record("error", scope=SCOPE_SCHOLARSHIP, scholarship_id=scholarship_id, application_id=application_id, error=str(exc))
        finally:
            reset_request_id(token)

    async def _retrain(self, scope: str, lock_key: str, scholarship_id, application_id, decided_by) -> None:
        if not self.locks.try_acquire(lock_key):
            log.info("auto-train skipped: already training", extra={"scope": scope, "reason": "concurrent_lock"})
            self._record("skipped", scope=scope, reason="concurrent_lock", scholarship_id=scholarship_id, application_id=application_id)
            return

        start = time.perf_counter()
        try:
            async with self.session_factory() as db:
                if scope == SCOPE_GLOBAL:
                    required = self.training.min_samples_global
                    labeled = await self.training.count_labeled(db)
                else:
                    required = self.training.min_samples_scholarship
                    labeled = await self.training.count_labeled(db, scholarship_id)

                if labeled < required:
                    self._skip_insufficient(scope, scholarship_id, application_id, labeled, required)
                    return

                if scope == SCOPE_GLOBAL:
                    outcome = await self.training.train_global_model(
                        db,
                        trigger_type=TRIGGER_GLOBAL_REFRESH,
                        trigger_application_id=application_id,
                        trained_by=decided_by,
                    )
                else:
                    outcome = await self.training.train_scholarship_model(
                        db,
                        scholarship_id,
                        trigger_type=TRIGGER_STATUS_CHANGE,
                        trigger_application_id=application_id,
                        trained_by=decided_by,
                    )

            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info(
                "auto-train success",
                extra={"scope": scope, "model_id": outcome.model.id, "accuracy": outcome.accuracy, "elapsed_ms": elapsed_ms},
            )
            self._record(
                "success",
                scope=scope,
                scholarship_id=scholarship_id,
                application_id=application_id,
                model_id=outcome.model.id,
                accuracy=outcome.accuracy,
                elapsed_ms=elapsed_ms,
                labeled_count=outcome.model.training_stats.get("total_samples"),
            )
        except InsufficientDataError as exc:
            self._skip_insufficient(scope, scholarship_id, application_id, exc.found, exc.required)
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.warning("auto-train failed: %s", exc, exc_info=True, extra={"scope": scope, "elapsed_ms": elapsed_ms})
            self._record(
                "error",
                scope=scope,
                scholarship_id=scholarship_id,
                application_id=application_id,
                error=str(exc),
                elapsed_ms=elapsed_ms,
            )
        finally:
            self.locks.release(lock_key)

    def _skip_insufficient(self, scope, scholarship_id, application_id, labeled: int, required: int) -> None:
        log.info(
            "auto-train skipped: %s/%s samples",
            labeled,
            required,
            extra={"scope": scope, "reason": "insufficient_data", "labeled_count": labeled},
        )
        self._record(
            "skipped",
            scope=scope,
            reason="insufficient_data",
            scholarship_id=scholarship_id,
            application_id=application_id,
            labeled_count=labeled,
            required=required,
        )

    # -----------------------------
    # Journal
    # -----------------------------
    def _record(self, event: str, *, scope: str, **fields: Any) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc), "scope": scope, "event": event}
        for key, value in fields.items():
            if value is None:
                continue
            entry[key] = str(value) if key in ("scholarship_id", "application_id", "model_id") else value
        with self._events_lock:
            self._events.append(entry)
        return entry

    def log(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Entrées les plus récentes d’abord."""
        with self._events_lock:
            entries = list(self._events)
        if limit <= 0:
            return []
        return [dict(e) for e in reversed(entries[-limit:])]

    def status(self) -> Dict[str, Any]:
        with self._events_lock:
            entries = list(self._events)

        today = datetime.now(timezone.utc).date()
        successes = [e for e in entries if e["event"] == "success" and e["timestamp"].date() == today]
        interval = self.config.global_retrain_interval

        return {
            "enabled": self.config.enabled,
            "config": {
                **asdict(self.config),
                "min_samples_global": self.training.min_samples_global,
                "min_samples_scholarship": self.training.min_samples_scholarship,
            },
            "counter": self._counter,
            "decisions_until_global_retrain": interval - (self._counter % interval),
            "active_locks": self.locks.active(),
            "today_summary": {
                "total_auto_trains": len(successes),
                "scholarship_trains": sum(1 for e in successes if e["scope"] == SCOPE_SCHOLARSHIP),
                "global_trains": sum(1 for e in successes if e["scope"] == SCOPE_GLOBAL),
            },
            "last_event": dict(entries[-1]) if entries else None,
        }
