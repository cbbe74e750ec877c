from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scholarai.db.base import Base, JSONType, utcnow
from scholarai.schemas.profile import ApplicantProfile

"""
Model Application.

Rôle (fonctionnel) :
- Représente la candidature d’un étudiant à une bourse.
- Conserve un snapshot du profil au moment de la candidature (applicant_snapshot) :
  c’est CE snapshot qui alimente l’entraînement (pas le profil courant).
- Porte la décision (approved / rejected) qui sert de label.

Statuts :
- pending | under_review | approved | rejected | withdrawn
- Seuls approved / rejected sont des exemples d’entraînement.

Index :
- (scholarship_id, status) : comptage des échantillons labellisés par bourse.
"""

LABELED_STATUSES = ("approved", "rejected")
APPLICATION_STATUSES = ("pending", "under_review", "approved", "rejected", "withdrawn")


class Application(Base):
    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    scholarship_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("scholarships.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    applicant_snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Décision (audit)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    scholarship = relationship("Scholarship", back_populates="applications", lazy="joined")

    __table_args__ = (Index("ix_applications_scholarship_status", "scholarship_id", "status"),)

    @property
    def profile(self) -> ApplicantProfile:
        return ApplicantProfile.model_validate(self.applicant_snapshot or {})

    @property
    def applied_at(self) -> datetime:
        return self.submitted_at or self.created_at
