from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import joblib
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.core.errors import ModelNotFoundError, NoTrainedModelError
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.ml.model_cache import GLOBAL_KEY, ModelWeightsCache, scholarship_key
from scholarai.models.trained_model import MODEL_TYPE_GLOBAL, MODEL_TYPE_SCHOLARSHIP, TrainedModel

"""
ML Model Registry.

Rôle (fonctionnel) :
- Source de vérité “quel modèle fait autorité” pour une prédiction (résolution à deux niveaux) :
  1) modèle actif spécifique à la bourse,
  2) sinon modèle global actif le plus récent,
  3) sinon NoTrainedModelError (jamais de poids par défaut).
- Active un nouveau modèle : désactive l’ancien de la même portée + insère le nouveau,
  dans UNE transaction, puis vide le cache.
- Opérations admin : désactivation, suppression, listing, export d’un bundle joblib.

Notes :
- Le résultat de resolve() est caché par clé (“global” / “scholarship_<id>”) pendant le TTL
  du ModelWeightsCache : une bourse sans modèle spécifique cache donc le global de repli.
- Toute écriture vide le cache entier : une prédiction ne voit jamais un modèle désactivé
  au-delà de la transaction qui l’a remplacé.
"""

log = logging.getLogger("scholarai.ml.model_registry")

BASE_DIR = Path(__file__).resolve().parents[2]  # backend/
MODELS_DIR = BASE_DIR / "models"


@dataclass(frozen=True)
class ResolvedModel:
    """Modèle prêt pour l’inférence (copie immuable des colonnes utiles)."""
    weights: Dict[str, float]
    bias: float
    model_type: str
    model_id: uuid.UUID
    accuracy: Optional[float] = None
    trained_at: Optional[datetime] = None

    @property
    def is_global(self) -> bool:
        return self.model_type == MODEL_TYPE_GLOBAL

    @classmethod
    def from_row(cls, row: TrainedModel) -> "ResolvedModel":
        return cls(
            weights={name: float(w) for name, w in (row.weights or {}).items()},
            bias=float(row.bias or 0.0),
            model_type=row.model_type,
            model_id=row.id,
            accuracy=row.accuracy,
            trained_at=row.trained_at,
        )


class ModelRegistry:
    def __init__(self, cache: ModelWeightsCache) -> None:
        self.cache = cache

    # -----------------------------
    # Lecture
    # -----------------------------
    async def _active_scholarship_model(self, db: AsyncSession, scholarship_id) -> Optional[TrainedModel]:
        stmt = (
            select(TrainedModel)
            .where(
                TrainedModel.model_type == MODEL_TYPE_SCHOLARSHIP,
                TrainedModel.scholarship_id == scholarship_id,
                TrainedModel.is_active.is_(True),
            )
            .order_by(TrainedModel.trained_at.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalars().first()

    async def active_global_model(self, db: AsyncSession) -> Optional[TrainedModel]:
        stmt = (
            select(TrainedModel)
            .where(TrainedModel.model_type == MODEL_TYPE_GLOBAL, TrainedModel.is_active.is_(True))
            .order_by(TrainedModel.trained_at.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalars().first()

    async def resolve(self, db: AsyncSession, scholarship_id=None) -> ResolvedModel:
        """
        Résout le modèle à utiliser pour une bourse (ou le global si scholarship_id est None).

        Lève :
        - NoTrainedModelError si aucun modèle spécifique ni global n’est actif
        """
        key = scholarship_key(scholarship_id) if scholarship_id is not None else GLOBAL_KEY

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        # lue avant la DB : une activation pendant la lecture rend l’écriture caduque
        generation = self.cache.generation
        row: Optional[TrainedModel] = None
        if scholarship_id is not None:
            row = await self._active_scholarship_model(db, scholarship_id)
        if row is None:
            row = await self.active_global_model(db)
        if row is None or not row.weights:
            raise NoTrainedModelError()

        resolved = ResolvedModel.from_row(row)
        self.cache.set(key, resolved, generation=generation)

        log.debug("resolved %s model for key=%s", resolved.model_type, key, extra={"model_id": resolved.model_id})
        return resolved

    async def get(self, db: AsyncSession, model_id) -> TrainedModel:
        row = await db.get(TrainedModel, model_id)
        if row is None:
            raise ModelNotFoundError(model_id)
        return row

    async def list_models(
        self,
        db: AsyncSession,
        *,
        model_type: Optional[str] = None,
        scholarship_id=None,
        active_only: bool = False,
        limit: int = 50,
    ) -> List[TrainedModel]:
        stmt = select(TrainedModel)
        if model_type:
            stmt = stmt.where(TrainedModel.model_type == model_type)
        if scholarship_id is not None:
            stmt = stmt.where(TrainedModel.scholarship_id == scholarship_id)
        if active_only:
            stmt = stmt.where(TrainedModel.is_active.is_(True))
        stmt = stmt.order_by(TrainedModel.trained_at.desc()).limit(limit)
        return list((await db.execute(stmt)).scalars().all())

    # -----------------------------
    # Écriture
    # -----------------------------
    async def activate(self, db: AsyncSession, model: TrainedModel) -> TrainedModel:
        """Désactive les modèles de même portée puis insère `model` actif (une transaction)."""
        scope = TrainedModel.scholarship_id.is_(None) if model.scholarship_id is None else (
            TrainedModel.scholarship_id == model.scholarship_id
        )
        await db.execute(
            update(TrainedModel)
            .where(TrainedModel.model_type == model.model_type, scope, TrainedModel.is_active.is_(True))
            .values(is_active=False)
        )

        model.is_active = True
        db.add(model)
        await db.commit()
        await db.refresh(model)

        self.cache.clear()

        log.info(
            "model activated",
            extra={"model_id": model.id, "model_type": model.model_type, "scholarship_id": model.scholarship_id},
        )
        return model

    async def deactivate(self, db: AsyncSession, model_id) -> TrainedModel:
        row = await self.get(db, model_id)
        row.is_active = False
        await db.commit()
        await db.refresh(row)
        self.cache.clear()
        log.info("model deactivated", extra={"model_id": row.id, "model_type": row.model_type})
        return row

    async def delete(self, db: AsyncSession, model_id) -> None:
        row = await self.get(db, model_id)
        await db.execute(delete(TrainedModel).where(TrainedModel.id == row.id))
        await db.commit()
        self.cache.clear()
        log.info("model deleted", extra={"model_id": model_id})

    # -----------------------------
    # Export
    # -----------------------------
    @staticmethod
    def export_bundle(model: TrainedModel, path: Optional[Path] = None) -> Path:
        """
        Sérialise un modèle entraîné en bundle joblib { "model", "spec", "meta" }.

        Par défaut : backend/models/<model_type>_<version>_<timestamp>.joblib
        """
        if path is None:
            MODELS_DIR.mkdir(parents=True, exist_ok=True)
            stamp = model.trained_at.strftime("%Y%m%d-%H%M") if model.trained_at else "unknown"
            path = MODELS_DIR / f"{model.model_type}_{model.version}_{stamp}.joblib"

        bundle = {
            "model": {"weights": dict(model.weights), "bias": float(model.bias)},
            "spec": {"feature_names": list(FEATURE_NAMES)},
            "meta": {
                "model_id": str(model.id),
                "name": model.name,
                "model_type": model.model_type,
                "scholarship_id": str(model.scholarship_id) if model.scholarship_id else None,
                "version": model.version,
                "trained_at": model.trained_at.isoformat() if model.trained_at else None,
                "metrics": model.metrics,
                "training_config": model.training_config,
            },
        }
        joblib.dump(bundle, path)
        return path

    @staticmethod
    def load_bundle(path: Path) -> dict:
        return joblib.load(path)
