from fastapi import APIRouter

from .health import router as health_router

from scholarai.api.applications import router as applications_router
from scholarai.api.predict import router as predict_router
from scholarai.api.status import router as status_router
from scholarai.api.training import router as training_router

"""
Router principal de l’API.

Rôle (fonctionnel) :
- Regroupe les routeurs par domaine (health, status, prédiction, entraînement, décisions)
- Sert de point d’entrée unique pour l’inclusion dans l’application FastAPI.
"""

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(status_router)
api_router.include_router(predict_router)
api_router.include_router(training_router)
api_router.include_router(applications_router)
