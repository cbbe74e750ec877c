from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.api.deps import get_auto_trainer, get_registry, get_training_service
from scholarai.core.errors import AppHTTPException, ConcurrencyLockError
from scholarai.db.session import get_db
from scholarai.ml.model_registry import ModelRegistry
from scholarai.schemas.training import (
    AutoTrainingLogEntry,
    AutoTrainingStatusOut,
    FeatureImportanceOut,
    TrainAllOut,
    TrainedModelOut,
    TrainingResultOut,
    TrainingStatsOut,
    TrainRequest,
)
from scholarai.services.auto_training import GLOBAL_LOCK_KEY, AutoTrainer
from scholarai.services.training_service import TrainingOutcome, TrainingService

"""
API Training (admin).

Rôle (fonctionnel) :
- Entraînement manuel :
  - POST /training/global : modèle global (toutes les candidatures décidées),
  - POST /training/scholarships/{id} : modèle spécifique à une bourse,
  - POST /training/scholarships : toutes les bourses actives ayant assez de données.
- Gestion des modèles : liste, désactivation, suppression, importance des features.
- Observabilité de l’auto-training : état + journal récent.

Règles :
- Un entraînement manuel partage les verrous de l’auto-training :
  409 TRAINING_IN_PROGRESS si le même scope est déjà en cours ;
  l’entraînement de toutes les bourses saute celles déjà verrouillées.
- 422 INSUFFICIENT_DATA si le minimum d’échantillons n’est pas atteint.
"""

router = APIRouter(prefix="/training", tags=["training"])


def _result(outcome: TrainingOutcome) -> TrainingResultOut:
    return TrainingResultOut(
        model=TrainedModelOut.model_validate(outcome.model),
        fold_accuracies=outcome.cross_validation.fold_accuracies,
        elapsed_ms=outcome.elapsed_ms,
    )


@router.post("/global", response_model=TrainingResultOut)
async def train_global(
    payload: Optional[TrainRequest] = None,
    db: AsyncSession = Depends(get_db),
    svc: TrainingService = Depends(get_training_service),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    payload = payload or TrainRequest()
    locks = auto_trainer.locks
    if not locks.try_acquire(GLOBAL_LOCK_KEY):
        raise ConcurrencyLockError(GLOBAL_LOCK_KEY)
    try:
        outcome = await svc.train_global_model(db, trained_by=payload.trained_by, notes=payload.notes)
    finally:
        locks.release(GLOBAL_LOCK_KEY)
    return _result(outcome)


@router.post("/scholarships/{scholarship_id}", response_model=TrainingResultOut)
async def train_scholarship(
    scholarship_id: uuid.UUID,
    payload: Optional[TrainRequest] = None,
    db: AsyncSession = Depends(get_db),
    svc: TrainingService = Depends(get_training_service),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    payload = payload or TrainRequest()
    key = str(scholarship_id)
    locks = auto_trainer.locks
    if not locks.try_acquire(key):
        raise ConcurrencyLockError(key)
    try:
        outcome = await svc.train_scholarship_model(
            db, scholarship_id, trained_by=payload.trained_by, notes=payload.notes
        )
    finally:
        locks.release(key)
    return _result(outcome)


@router.post("/scholarships", response_model=TrainAllOut)
async def train_all(
    payload: Optional[TrainRequest] = None,
    db: AsyncSession = Depends(get_db),
    svc: TrainingService = Depends(get_training_service),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    payload = payload or TrainRequest()
    results = await svc.train_all_scholarship_models(db, trained_by=payload.trained_by, locks=auto_trainer.locks)
    return TrainAllOut(
        results=results,
        trained=sum(1 for r in results if r["status"] == "success"),
        skipped=sum(1 for r in results if r["status"] in ("insufficient_data", "skipped")),
        failed=sum(1 for r in results if r["status"] == "error"),
    )


@router.get("/stats", response_model=TrainingStatsOut)
async def training_stats(
    db: AsyncSession = Depends(get_db),
    svc: TrainingService = Depends(get_training_service),
):
    stats = await svc.get_training_stats(db)
    active = stats.pop("active_global_model")
    return TrainingStatsOut(
        **stats,
        active_global_model=TrainedModelOut.model_validate(active) if active is not None else None,
    )


@router.get("/models", response_model=List[TrainedModelOut])
async def list_models(
    model_type: Optional[str] = Query(default=None, pattern="^(global|scholarship_specific)$"),
    scholarship_id: Optional[uuid.UUID] = None,
    active_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    registry: ModelRegistry = Depends(get_registry),
):
    rows = await registry.list_models(
        db, model_type=model_type, scholarship_id=scholarship_id, active_only=active_only, limit=limit
    )
    return [TrainedModelOut.model_validate(r) for r in rows]


@router.patch("/models/{model_id}/deactivate", response_model=TrainedModelOut)
async def deactivate_model(
    model_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    registry: ModelRegistry = Depends(get_registry),
):
    row = await registry.deactivate(db, model_id)
    return TrainedModelOut.model_validate(row)


@router.delete("/models/{model_id}", status_code=204)
async def delete_model(
    model_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    registry: ModelRegistry = Depends(get_registry),
):
    await registry.delete(db, model_id)
    return Response(status_code=204)


@router.get("/feature-importance", response_model=FeatureImportanceOut)
async def feature_importance(
    db: AsyncSession = Depends(get_db),
    svc: TrainingService = Depends(get_training_service),
):
    data = await svc.feature_importance(db)
    if data is None:
        raise AppHTTPException(404, "NO_GLOBAL_MODEL", "No active global model")
    return FeatureImportanceOut(**data)


@router.get("/auto/status", response_model=AutoTrainingStatusOut)
async def auto_training_status(auto_trainer: AutoTrainer = Depends(get_auto_trainer)):
    return AutoTrainingStatusOut(**auto_trainer.status())


@router.get("/auto/log", response_model=List[AutoTrainingLogEntry])
async def auto_training_log(
    limit: int = Query(default=50, ge=1, le=100),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    return [AutoTrainingLogEntry(**e) for e in auto_trainer.log(limit)]
