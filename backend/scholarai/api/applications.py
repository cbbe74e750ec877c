from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.api.deps import get_auto_trainer
from scholarai.core.errors import ApplicationNotFoundError
from scholarai.db.session import get_db
from scholarai.models.application import LABELED_STATUSES, Application
from scholarai.schemas.training import DecisionIn, DecisionOut
from scholarai.services.auto_training import AutoTrainer

"""
API Applications (décision).

Rôle (fonctionnel) :
- POST /applications/{id}/decision : pose le statut décidé d’une candidature
  (approved / rejected / under_review / withdrawn) et trace qui / quand.
- Pour une décision finale (approved / rejected), notifie l’auto-training APRÈS le commit,
  sans attendre : la réponse HTTP part avant l’entraînement.
"""

log = logging.getLogger("scholarai.api.applications")

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("/{application_id}/decision", response_model=DecisionOut)
async def decide_application(
    application_id: uuid.UUID,
    payload: DecisionIn,
    db: AsyncSession = Depends(get_db),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    app_row = await db.get(Application, application_id)
    if app_row is None:
        raise ApplicationNotFoundError(application_id)

    status = payload.status.value
    app_row.status = status
    if status in LABELED_STATUSES:
        app_row.decided_at = datetime.now(timezone.utc)
        app_row.decided_by = payload.decided_by
    await db.commit()
    await db.refresh(app_row)

    log.info("application decided: %s", status, extra={"application_id": app_row.id, "scholarship_id": app_row.scholarship_id})

    triggered = auto_trainer.on_outcome_decided(app_row.id, app_row.scholarship_id, status, payload.decided_by)

    return DecisionOut(
        application_id=app_row.id,
        scholarship_id=app_row.scholarship_id,
        status=app_row.status,
        decided_at=app_row.decided_at,
        auto_training_triggered=triggered,
    )
