from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.core.errors import InsufficientDataError, ScholarshipNotFoundError
from scholarai.ml.cross_validation import CrossValidationResult, cross_validate
from scholarai.ml.feature_vectorizer import (
    DEFAULT_CONSTANTS,
    FEATURE_CATEGORIES,
    FEATURE_LABELS,
    ApplicationContext,
    ScoringConstants,
    extract_features,
)
from scholarai.ml.model_registry import ModelRegistry
from scholarai.ml.trainer import Sample, TrainingConfig, calculate_feature_importance
from scholarai.models.application import LABELED_STATUSES, Application
from scholarai.models.scholarship import Scholarship
from scholarai.models.trained_model import MODEL_TYPE_GLOBAL, MODEL_TYPE_SCHOLARSHIP, TrainedModel

"""
Training Service.

Rôle (fonctionnel) :
- Orchestration DB <-> ML de l’entraînement :
  - charge les candidatures décidées (approved = 1, rejected = 0) dans un ordre déterministe,
  - extrait les features depuis le SNAPSHOT candidat + critères/dates de la bourse,
  - lance la validation croisée dans un thread (asyncio.to_thread : CPU pur),
  - persiste le modèle moyenné et l’active via le ModelRegistry (une transaction + cache vidé).
- Portées :
  - global : toutes les candidatures décidées (minimum MIN_SAMPLES_GLOBAL),
  - scholarship_specific : une bourse (minimum MIN_SAMPLES_SCHOLARSHIP).
- Fonctions admin : entraînement de toutes les bourses, statistiques, importance des features.

Erreurs :
- InsufficientDataError si le nombre d’échantillons est sous le minimum (aucun modèle écrit).
- ScholarshipNotFoundError si la bourse n’existe pas.
"""

log = logging.getLogger("scholarai.services.training")

MODEL_VERSION = "1.0.0"

TRIGGER_MANUAL = "manual"
TRIGGER_STATUS_CHANGE = "auto_status_change"
TRIGGER_GLOBAL_REFRESH = "auto_global_refresh"


@dataclass
class TrainingOutcome:
    """Modèle persisté + détail de la validation croisée."""
    model: TrainedModel
    cross_validation: CrossValidationResult
    elapsed_ms: int

    @property
    def accuracy(self) -> float:
        return self.cross_validation.metrics.accuracy


def _labeled_filter(scholarship_id=None):
    clauses = [Application.status.in_(LABELED_STATUSES)]
    if scholarship_id is not None:
        clauses.append(Application.scholarship_id == scholarship_id)
    return clauses


class TrainingService:
    def __init__(
        self,
        registry: ModelRegistry,
        config: TrainingConfig = TrainingConfig(),
        *,
        min_samples_global: int = 50,
        min_samples_scholarship: int = 30,
        constants: ScoringConstants = DEFAULT_CONSTANTS,
    ) -> None:
        self.registry = registry
        self.config = config
        self.min_samples_global = min_samples_global
        self.min_samples_scholarship = min_samples_scholarship
        self.constants = constants

    @classmethod
    def from_settings(cls, registry: ModelRegistry, s) -> "TrainingService":
        return cls(
            registry,
            TrainingConfig.from_settings(s),
            min_samples_global=s.MIN_SAMPLES_GLOBAL,
            min_samples_scholarship=s.MIN_SAMPLES_SCHOLARSHIP,
            constants=ScoringConstants.from_settings(s),
        )

    # -----------------------------
    # Données
    # -----------------------------
    async def count_labeled(self, db: AsyncSession, scholarship_id=None) -> int:
        stmt = select(func.count(Application.id)).where(*_labeled_filter(scholarship_id))
        return int((await db.execute(stmt)).scalar_one())

    async def load_samples(self, db: AsyncSession, scholarship_id=None) -> List[Sample]:
        """Échantillons labellisés, ordonnés (created_at, id) pour un entraînement reproductible."""
        stmt = (
            select(Application)
            .where(*_labeled_filter(scholarship_id))
            .order_by(Application.created_at.asc(), Application.id.asc())
        )
        applications = (await db.execute(stmt)).scalars().all()
        return [self._to_sample(app) for app in applications]

    def _to_sample(self, app: Application) -> Sample:
        sch = app.scholarship
        context = ApplicationContext(
            applied_at=app.applied_at,
            opens_at=sch.application_start_date,
            deadline=sch.application_deadline,
        )
        features = extract_features(app.profile, sch.criteria, context, self.constants)
        return Sample(features=features, label=1 if app.status == "approved" else 0)

    async def _get_scholarship(self, db: AsyncSession, scholarship_id) -> Scholarship:
        sch = await db.get(Scholarship, scholarship_id)
        if sch is None:
            raise ScholarshipNotFoundError(scholarship_id)
        return sch

    # -----------------------------
    # Entraînement
    # -----------------------------
    async def _train(
        self,
        db: AsyncSession,
        samples: List[Sample],
        *,
        model_type: str,
        scholarship: Optional[Scholarship],
        trigger_type: str,
        trigger_application_id,
        trained_by: Optional[str],
        notes: Optional[str],
    ) -> TrainingOutcome:
        start = time.perf_counter()

        cv = await asyncio.to_thread(cross_validate, samples, self.config)

        approved = sum(s.label for s in samples)
        k = self.config.k_folds
        now = datetime.now(timezone.utc)

        if scholarship is None:
            name = f"Global Model {now:%Y%m%d-%H%M%S}"
            default_notes = f"Trained with {k}-fold cross-validation on {len(samples)} applications"
        else:
            name = f"{scholarship.name} Model {now:%Y%m%d-%H%M%S}"
            default_notes = f"Trained with {k}-fold cross-validation for {scholarship.name}"

        model = TrainedModel(
            name=name,
            version=MODEL_VERSION,
            model_type=model_type,
            scholarship_id=scholarship.id if scholarship is not None else None,
            weights=cv.weights,
            bias=cv.bias,
            metrics=cv.metrics.to_dict(),
            training_stats={
                "total_samples": len(samples),
                "approved_count": approved,
                "rejected_count": len(samples) - approved,
                "k_folds": k,
                "positive_ratio": approved / len(samples),
            },
            feature_importance=cv.feature_importance,
            training_config=self.config.to_dict(),
            trigger_type=trigger_type,
            trigger_application_id=trigger_application_id,
            trained_by=trained_by,
            notes=notes or default_notes,
            trained_at=now,
        )
        model = await self.registry.activate(db, model)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "model trained",
            extra={
                "model_id": model.id,
                "model_type": model_type,
                "scholarship_id": model.scholarship_id,
                "accuracy": cv.metrics.accuracy,
                "elapsed_ms": elapsed_ms,
                "labeled_count": len(samples),
            },
        )
        return TrainingOutcome(model=model, cross_validation=cv, elapsed_ms=elapsed_ms)

    async def train_global_model(
        self,
        db: AsyncSession,
        *,
        trigger_type: str = TRIGGER_MANUAL,
        trigger_application_id=None,
        trained_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TrainingOutcome:
        samples = await self.load_samples(db)
        if len(samples) < self.min_samples_global:
            raise InsufficientDataError(len(samples), self.min_samples_global, scope="global")

        return await self._train(
            db,
            samples,
            model_type=MODEL_TYPE_GLOBAL,
            scholarship=None,
            trigger_type=trigger_type,
            trigger_application_id=trigger_application_id,
            trained_by=trained_by,
            notes=notes,
        )

    async def train_scholarship_model(
        self,
        db: AsyncSession,
        scholarship_id,
        *,
        trigger_type: str = TRIGGER_MANUAL,
        trigger_application_id=None,
        trained_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TrainingOutcome:
        scholarship = await self._get_scholarship(db, scholarship_id)

        samples = await self.load_samples(db, scholarship.id)
        if len(samples) < self.min_samples_scholarship:
            raise InsufficientDataError(len(samples), self.min_samples_scholarship, scope=str(scholarship.id))

        return await self._train(
            db,
            samples,
            model_type=MODEL_TYPE_SCHOLARSHIP,
            scholarship=scholarship,
            trigger_type=trigger_type,
            trigger_application_id=trigger_application_id,
            trained_by=trained_by,
            notes=notes,
        )

    async def train_all_scholarship_models(
        self,
        db: AsyncSession,
        *,
        trained_by: Optional[str] = None,
        locks: Any = None,
    ) -> List[Dict[str, Any]]:
        """Entraîne chaque bourse active ayant assez de données ; rapporte succès / manque / erreur.

        Avec `locks` (un TrainingLockSet), une bourse déjà en cours d’entraînement
        est sautée avec la raison `concurrent_lock`.
        """
        scholarships = (
            await db.execute(select(Scholarship).where(Scholarship.status == "active").order_by(Scholarship.name))
        ).scalars().all()

        results: List[Dict[str, Any]] = []
        for sch in scholarships:
            count = await self.count_labeled(db, sch.id)
            entry: Dict[str, Any] = {"scholarship_id": sch.id, "name": sch.name, "labeled_count": count}

            if count < self.min_samples_scholarship:
                entry["status"] = "insufficient_data"
                results.append(entry)
                continue

            key = str(sch.id)
            if locks is not None and not locks.try_acquire(key):
                log.info("training skipped for scholarship %s: lock held", sch.id, extra={"scholarship_id": sch.id})
                entry.update(status="skipped", reason="concurrent_lock")
                results.append(entry)
                continue

            try:
                outcome = await self.train_scholarship_model(db, sch.id, trained_by=trained_by)
            except Exception as exc:
                await db.rollback()
                log.exception("training failed for scholarship %s", sch.id, extra={"scholarship_id": sch.id})
                entry.update(status="error", error=str(exc))
            else:
                entry.update(status="success", model_id=outcome.model.id, accuracy=outcome.accuracy)
            finally:
                if locks is not None:
                    locks.release(key)
            results.append(entry)

        return results

    # -----------------------------
    # Statistiques
    # -----------------------------
    async def get_training_stats(self, db: AsyncSession) -> Dict[str, Any]:
        rows = (
            await db.execute(
                select(Application.scholarship_id, Application.status, func.count(Application.id))
                .where(Application.status.in_(LABELED_STATUSES))
                .group_by(Application.scholarship_id, Application.status)
            )
        ).all()

        per_scholarship: Dict[Any, Dict[str, int]] = {}
        for scholarship_id, status, count in rows:
            per_scholarship.setdefault(scholarship_id, {"approved": 0, "rejected": 0})[status] = int(count)

        approved = sum(c["approved"] for c in per_scholarship.values())
        rejected = sum(c["rejected"] for c in per_scholarship.values())

        active_specific = set(
            (
                await db.execute(
                    select(TrainedModel.scholarship_id).where(
                        TrainedModel.model_type == MODEL_TYPE_SCHOLARSHIP,
                        TrainedModel.is_active.is_(True),
                    )
                )
            ).scalars().all()
        )
        total_models = int((await db.execute(select(func.count(TrainedModel.id)))).scalar_one())

        scholarships = (await db.execute(select(Scholarship).order_by(Scholarship.name))).scalars().all()
        breakdown = []
        for sch in scholarships:
            counts = per_scholarship.get(sch.id, {"approved": 0, "rejected": 0})
            total = counts["approved"] + counts["rejected"]
            breakdown.append(
                {
                    "scholarship_id": sch.id,
                    "name": sch.name,
                    "approved": counts["approved"],
                    "rejected": counts["rejected"],
                    "total": total,
                    "has_enough_data": total >= self.min_samples_scholarship,
                    "has_active_model": sch.id in active_specific,
                }
            )
        breakdown.sort(key=lambda b: b["total"], reverse=True)

        return {
            "total_decided": approved + rejected,
            "approved": approved,
            "rejected": rejected,
            "min_samples_global": self.min_samples_global,
            "min_samples_scholarship": self.min_samples_scholarship,
            "global_ready": approved + rejected >= self.min_samples_global,
            "active_global_model": await self.registry.active_global_model(db),
            "active_scholarship_models": len(active_specific),
            "total_models": total_models,
            "scholarships": breakdown,
        }

    async def feature_importance(self, db: AsyncSession) -> Optional[Dict[str, Any]]:
        """Importance des features du modèle global actif (None si aucun)."""
        model = await self.registry.active_global_model(db)
        if model is None:
            return None

        importance = model.feature_importance or calculate_feature_importance(model.weights)
        items = [
            {
                "feature": name,
                "label": FEATURE_LABELS.get(name, name),
                "category": FEATURE_CATEGORIES.get(name, "other"),
                "weight": float(weight),
                "importance": float(importance.get(name, 0.0)),
            }
            for name, weight in model.weights.items()
        ]
        items.sort(key=lambda i: i["importance"], reverse=True)
        return {"model_id": model.id, "items": items}
