from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scholarai.db.base import Base, JSONType, utcnow
from scholarai.schemas.profile import EligibilityCriteria

"""
Model Scholarship.

Rôle (fonctionnel) :
- Représente une bourse à laquelle les étudiants candidatent.
- Porte les critères d’éligibilité (JSON) consommés par l’extracteur de features.
- Porte la fenêtre de candidature (ouverture / deadline) utilisée pour le timing.

Relations :
- Scholarship -> Application : 1..N.
- Les modèles spécifiques (trained_models.scholarship_id) référencent la bourse.
"""


class Scholarship(Base):
    __tablename__ = "scholarships"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scholarship_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # active | closed | archived
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)

    # Critères (voir EligibilityCriteria) : listes vides = pas de restriction
    eligibility_criteria: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    application_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    application_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    applications = relationship("Application", back_populates="scholarship", cascade="all, delete-orphan")

    @property
    def criteria(self) -> EligibilityCriteria:
        return EligibilityCriteria.model_validate(self.eligibility_criteria or {})
