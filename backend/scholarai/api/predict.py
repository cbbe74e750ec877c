from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.api.deps import get_prediction_service
from scholarai.db.session import get_db
from scholarai.ml.feature_vectorizer import FEATURE_NAMES
from scholarai.schemas.prediction import FeaturesOut, FeaturesRequest, PredictionOut, PredictRequest
from scholarai.services.prediction_service import PredictionService

"""
API Prediction.

Rôle (fonctionnel) :
- POST /predict : probabilité d’approbation d’un profil pour une bourse + facteurs classés.
  - 404 SCHOLARSHIP_NOT_FOUND si la bourse n’existe pas,
  - 409 NO_TRAINED_MODEL si aucun modèle (spécifique ni global) n’est actif.
- POST /predict/features : vecteur de features seul (transparence / debug).
"""

router = APIRouter(prefix="/predict", tags=["predict"])


@router.post("", response_model=PredictionOut)
async def predict(
    payload: PredictRequest,
    db: AsyncSession = Depends(get_db),
    svc: PredictionService = Depends(get_prediction_service),
):
    res = await svc.predict(db, payload.profile, payload.scholarship_id)
    data = asdict(res)
    data.pop("features", None)
    return PredictionOut(scholarship_id=payload.scholarship_id, **data)


@router.post("/features", response_model=FeaturesOut)
async def features(
    payload: FeaturesRequest,
    db: AsyncSession = Depends(get_db),
    svc: PredictionService = Depends(get_prediction_service),
):
    vector = await svc.extract(db, payload.profile, scholarship_id=payload.scholarship_id, criteria=payload.criteria)
    return FeaturesOut(features=vector, feature_names=list(FEATURE_NAMES))
