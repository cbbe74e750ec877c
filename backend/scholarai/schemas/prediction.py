from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scholarai.schemas.profile import ApplicantProfile, EligibilityCriteria

"""
Schemas Prediction (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP de /predict et /predict/features.
- PredictRequest : bourse existante (scholarship_id) OU critères ad hoc (criteria) pour
  /predict/features, + profil candidat.
- PredictionOut : probabilité calibrée, issue, confiance, facteurs classés, modèle utilisé.

Notes :
- ConfigDict(from_attributes=True) : construction directe depuis les dataclasses ML.
"""


class PredictRequest(BaseModel):
    """Payload de prédiction : profil candidat + bourse cible."""
    scholarship_id: uuid.UUID
    profile: ApplicantProfile

    model_config = ConfigDict(extra="forbid")


class FeaturesRequest(BaseModel):
    """Payload d’extraction de features (bourse existante ou critères fournis)."""
    scholarship_id: Optional[uuid.UUID] = None
    criteria: Optional[EligibilityCriteria] = None
    profile: ApplicantProfile

    model_config = ConfigDict(extra="forbid")


class FactorOut(BaseModel):
    feature: str
    label: str
    category: str
    value: float
    weight: float
    raw_contribution: float
    contribution: float
    met: bool
    description: str

    model_config = ConfigDict(from_attributes=True)


class PredictionOut(BaseModel):
    """Sortie API d’une prédiction (probabilité + explicabilité + modèle)."""
    scholarship_id: uuid.UUID
    probability: float
    probability_percentage: int
    predicted_outcome: str
    confidence: str
    z_score: float
    intercept: float
    model_type: str
    model_id: str
    disclaimer: str
    factors: List[FactorOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class FeaturesOut(BaseModel):
    features: Dict[str, float]
    feature_names: List[str]
