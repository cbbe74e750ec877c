from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

"""
Schemas Training (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des endpoints /training/* et /applications/{id}/decision.
- Valide et sérialise :
  - la représentation d’un modèle entraîné (TrainedModelOut, depuis l’ORM),
  - le résultat d’un entraînement (modèle + métriques par fold),
  - les stats d’entraînement (données disponibles, modèles actifs),
  - l’état et le journal de l’auto-entraînement,
  - la décision d’une candidature (approved / rejected / …).

Notes :
- Ces schémas sont distincts des modèles ORM (scholarai.models.*).
"""


class DecisionStatus(str, Enum):
    """Statuts qu’un évaluateur peut poser sur une candidature."""
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class DecisionIn(BaseModel):
    status: DecisionStatus
    decided_by: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="forbid")


class DecisionOut(BaseModel):
    application_id: uuid.UUID
    scholarship_id: uuid.UUID
    status: str
    decided_at: Optional[datetime] = None
    auto_training_triggered: bool


class TrainRequest(BaseModel):
    """Options d’un entraînement manuel (toutes optionnelles)."""
    trained_by: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(extra="forbid")


class TrainedModelOut(BaseModel):
    id: uuid.UUID
    name: str
    version: str
    model_type: str
    scholarship_id: Optional[uuid.UUID] = None
    is_active: bool
    weights: Dict[str, float]
    bias: float
    metrics: Dict[str, Any]
    training_stats: Dict[str, Any]
    feature_importance: Dict[str, float]
    trigger_type: str
    trigger_application_id: Optional[uuid.UUID] = None
    trained_by: Optional[str] = None
    notes: Optional[str] = None
    trained_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrainingResultOut(BaseModel):
    """Résultat d’un entraînement : modèle persisté + détail par fold."""
    model: TrainedModelOut
    fold_accuracies: List[float]
    elapsed_ms: int


class ScholarshipTrainingOutcome(BaseModel):
    scholarship_id: uuid.UUID
    name: str
    status: str  # success | insufficient_data | skipped | error
    reason: Optional[str] = None
    labeled_count: int
    model_id: Optional[uuid.UUID] = None
    accuracy: Optional[float] = None
    error: Optional[str] = None


class TrainAllOut(BaseModel):
    results: List[ScholarshipTrainingOutcome]
    trained: int
    skipped: int
    failed: int


class ScholarshipDataStats(BaseModel):
    scholarship_id: uuid.UUID
    name: str
    approved: int
    rejected: int
    total: int
    has_enough_data: bool
    has_active_model: bool


class TrainingStatsOut(BaseModel):
    total_decided: int
    approved: int
    rejected: int
    min_samples_global: int
    min_samples_scholarship: int
    global_ready: bool
    active_global_model: Optional[TrainedModelOut] = None
    active_scholarship_models: int
    total_models: int
    scholarships: List[ScholarshipDataStats]


class FeatureImportanceItem(BaseModel):
    feature: str
    label: str
    category: str
    weight: float
    importance: float


class FeatureImportanceOut(BaseModel):
    model_id: uuid.UUID
    items: List[FeatureImportanceItem]


class AutoTrainingLogEntry(BaseModel):
    timestamp: datetime
    scope: str
    event: str  # skipped | success | error
    reason: Optional[str] = None
    scholarship_id: Optional[str] = None
    application_id: Optional[str] = None
    model_id: Optional[str] = None
    accuracy: Optional[float] = None
    elapsed_ms: Optional[int] = None
    labeled_count: Optional[int] = None
    required: Optional[int] = None
    error: Optional[str] = None


class AutoTrainingStatusOut(BaseModel):
    enabled: bool
    config: Dict[str, Any]
    counter: int
    decisions_until_global_retrain: int
    active_locks: List[str]
    today_summary: Dict[str, int]
    last_event: Optional[AutoTrainingLogEntry] = None
