from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scholarai.api.deps import get_auto_trainer, get_registry
from scholarai.db.session import get_db
from scholarai.ml.model_registry import ModelRegistry
from scholarai.services.auto_training import AutoTrainer

"""
API System Status.

Rôle (fonctionnel) :
- Expose un endpoint de statut “healthcheck” pour la plateforme.
- Vérifie la disponibilité de la base (requête simple).
- Expose l’état du modèle global actif (id, précision, date d’entraînement).
- Expose l’état de l’auto-training (compteur, verrous actifs).
"""

log = logging.getLogger("scholarai.api.status")

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(
    db: AsyncSession = Depends(get_db),
    registry: ModelRegistry = Depends(get_registry),
    auto_trainer: AutoTrainer = Depends(get_auto_trainer),
):
    # 1) DB check (requête minimale)
    db_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        log.warning("database check failed", exc_info=True)
        db_ok = False

    # 2) Modèle global actif (requis pour toute prédiction)
    global_model = None
    if db_ok:
        row = await registry.active_global_model(db)
        if row is not None:
            global_model = {
                "id": str(row.id),
                "accuracy": row.accuracy,
                "trained_at": row.trained_at.isoformat() if row.trained_at else None,
            }

    auto = auto_trainer.status()

    # Réponse (format constant) pour monitoring / UI
    return {
        "ok": bool(db_ok and global_model is not None),
        "db": {"ok": db_ok},
        "models": {"ok": global_model is not None, "global": global_model, "cached_keys": registry.cache.keys()},
        "auto_training": {
            "enabled": auto["enabled"],
            "counter": auto["counter"],
            "active_locks": auto["active_locks"],
        },
        "ts": datetime.now(timezone.utc).isoformat(),
    }
