from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

"""
Schemas Profile / Criteria (Pydantic).

Rôle (fonctionnel) :
- Définit les structures d’entrée du moteur de scoring, partagées par :
  - l’API (/predict, /predict/features),
  - l’entraînement (snapshot du candidat stocké sur la candidature),
  - les critères d’éligibilité stockés sur la bourse (JSON).
- Chaque champ optionnel a une valeur par défaut documentée : l’extracteur de features
  dérive les constantes “unknown” / “no restriction” d’un seul endroit.

Valeurs par défaut :
- ApplicantProfile : tous les champs à None (inconnu), profile_completed=False.
- EligibilityCriteria : seuils à None (pas de seuil), listes vides (pas de restriction),
  is_filipino_only=False.
"""


def _strip_or_none(v):
    """Normalise les chaînes vides en None (formulaires / imports CSV)."""
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ApplicantProfile(BaseModel):
    """Profil étudiant utilisé pour extraire les features."""

    # GWA philippin : 1.0 (meilleur) .. 5.0 (pire)
    gwa: Optional[float] = None
    # Year level (Freshman, Sophomore, Junior, Senior, Graduate…)
    classification: Optional[str] = None
    annual_family_income: Optional[float] = None
    # Socialized Tuition bracket (FDS, FD, PD80…)
    st_bracket: Optional[str] = None
    college: Optional[str] = None
    course: Optional[str] = None
    citizenship: Optional[str] = None
    profile_completed: bool = False

    model_config = ConfigDict(extra="ignore")

    @field_validator("classification", "st_bracket", "college", "course", "citizenship", mode="before")
    @classmethod
    def _strip_strings(cls, v):
        return _strip_or_none(v)


class EligibilityCriteria(BaseModel):
    """Critères d’éligibilité d’une bourse (stockés en JSON sur Scholarship)."""

    max_gwa: Optional[float] = None
    min_gwa: Optional[float] = None
    max_annual_family_income: Optional[float] = None
    eligible_classifications: List[str] = Field(default_factory=list)
    eligible_st_brackets: List[str] = Field(default_factory=list)
    eligible_colleges: List[str] = Field(default_factory=list)
    eligible_courses: List[str] = Field(default_factory=list)
    eligible_citizenship: List[str] = Field(default_factory=list)
    is_filipino_only: bool = False

    model_config = ConfigDict(extra="ignore")

    @property
    def required_gwa(self) -> float:
        """Seuil GWA utilisé pour le bonus de normalisation (3.0 si non précisé)."""
        return self.max_gwa or self.min_gwa or 3.0

    @property
    def citizenship_requirement(self) -> List[str]:
        """Liste de nationalités acceptées (le flag Filipino-only équivaut à ["Filipino"])."""
        if self.eligible_citizenship:
            return list(self.eligible_citizenship)
        if self.is_filipino_only:
            return ["Filipino"]
        return []
