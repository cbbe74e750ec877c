from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.core.errors import ScholarshipNotFoundError
from scholarai.ml.feature_vectorizer import FeatureVector, extract_features
from scholarai.ml.inference import PredictionConfig, PredictionResult, predict_with_model
from scholarai.ml.model_registry import ModelRegistry
from scholarai.models.scholarship import Scholarship
from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
Prediction Service.

Rôle (fonctionnel) :
- Point d’entrée “use case” de la prédiction :
  - charge la bourse (critères d’éligibilité),
  - résout le modèle (spécifique -> global -> NoTrainedModelError) via le ModelRegistry,
  - applique le modèle (predict_with_model).
- Expose aussi l’extraction de features seule (debug / transparence côté UI).

Notes :
- Pas d’écriture DB : la prédiction n’est pas persistée.
- Une prédiction n’attend jamais un entraînement : elle lit le modèle actif au moment T.
"""

log = logging.getLogger("scholarai.services.prediction")


class PredictionService:
    def __init__(self, registry: ModelRegistry, config: PredictionConfig = PredictionConfig()) -> None:
        self.registry = registry
        self.config = config

    async def _get_scholarship(self, db: AsyncSession, scholarship_id) -> Scholarship:
        sch = await db.get(Scholarship, scholarship_id)
        if sch is None:
            raise ScholarshipNotFoundError(scholarship_id)
        return sch

    async def predict(self, db: AsyncSession, profile: ApplicantProfile, scholarship_id) -> PredictionResult:
        scholarship = await self._get_scholarship(db, scholarship_id)
        resolved = await self.registry.resolve(db, scholarship.id)

        result = predict_with_model(resolved, profile, scholarship.criteria, self.config)

        log.debug(
            "prediction p=%.3f outcome=%s",
            result.probability,
            result.predicted_outcome,
            extra={"scholarship_id": scholarship.id, "model_id": result.model_id, "model_type": result.model_type},
        )
        return result

    async def extract(
        self,
        db: AsyncSession,
        profile: ApplicantProfile,
        *,
        scholarship_id=None,
        criteria: Optional[EligibilityCriteria] = None,
    ) -> FeatureVector:
        if scholarship_id is not None:
            criteria = (await self._get_scholarship(db, scholarship_id)).criteria
        return extract_features(profile, criteria or EligibilityCriteria(), None, self.config.constants)
