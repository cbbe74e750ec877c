from fastapi import APIRouter

from scholarai.core.settings import settings

"""
API Health.

Rôle (fonctionnel) :
- Endpoint simple pour vérifier que l’API répond.
- Expose quelques infos utiles en démo (env, auto-training actif).
"""

router = APIRouter()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "env": settings.ENV,
        "auto_training": settings.AUTO_TRAINING_ENABLED,
    }
