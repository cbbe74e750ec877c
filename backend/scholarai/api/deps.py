from __future__ import annotations

from fastapi import Request

from scholarai.ml.model_registry import ModelRegistry
from scholarai.services.auto_training import AutoTrainer
from scholarai.services.prediction_service import PredictionService
from scholarai.services.training_service import TrainingService

"""
Dépendances API.

Rôle (fonctionnel) :
- Centralise les dépendances réutilisables sur les routes.
- Les services sont des singletons posés sur app.state au démarrage (voir main.py) :
  un seul cache de modèles et un seul jeu de verrous par process.
"""


def get_registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


def get_training_service(request: Request) -> TrainingService:
    return request.app.state.training_service


def get_prediction_service(request: Request) -> PredictionService:
    return request.app.state.prediction_service


def get_auto_trainer(request: Request) -> AutoTrainer:
    return request.app.state.auto_trainer
