"""
scholarai.models

Package ORM (SQLAlchemy) : définition des entités persistées en base.

Rôle (fonctionnel) :
- Centralise les modèles principaux de l’application (Scholarship, Application, TrainedModel).
- Permet des imports plus simples depuis scholarai.models (ex: from scholarai.models import Application).
- Expose explicitement l’API publique du package via __all__ (évite imports implicites).
"""

from scholarai.models.scholarship import Scholarship
from scholarai.models.application import Application
from scholarai.models.trained_model import TrainedModel

__all__ = ["Scholarship", "Application", "TrainedModel"]
