from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from scholarai.db.base import Base, JSONType, utcnow

"""
Model TrainedModel.

Rôle (fonctionnel) :
- Stocke un modèle de régression logistique entraîné par validation croisée :
  poids par feature (JSON), biais, métriques, stats d’entraînement, importance des features.
- Deux portées :
  - global : scholarship_id = NULL, entraîné sur toutes les candidatures décidées,
  - scholarship_specific : entraîné sur les candidatures d’une seule bourse.

Invariants :
- Un seul modèle actif par (model_type, scholarship_id) : l’activation désactive les autres
  dans la même transaction (voir ModelRegistry.activate).
- Jamais modifié après création, sauf is_active (désactivation admin / remplacement).

Traçabilité :
- trigger_type : manual | auto_status_change | auto_global_refresh
- trigger_application_id / trained_by : origine de l’entraînement.
"""

MODEL_TYPE_GLOBAL = "global"
MODEL_TYPE_SCHOLARSHIP = "scholarship_specific"


class TrainedModel(Base):
    __tablename__ = "trained_models"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)

    model_type: Mapped[str] = mapped_column(String(30), nullable=False, default=MODEL_TYPE_GLOBAL)
    scholarship_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("scholarships.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # feature -> poids dans [-5, 5] ; biais dans [-3, 3]
    weights: Mapped[dict] = mapped_column(JSONType, nullable=False)
    bias: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    metrics: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    training_stats: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    feature_importance: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    training_config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    trigger_type: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    trigger_application_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    trained_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    trained_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_trained_models_resolution", "model_type", "scholarship_id", "is_active"),
    )

    @property
    def accuracy(self) -> float | None:
        value = (self.metrics or {}).get("accuracy")
        return float(value) if value is not None else None
